"""
Pytest configuration for the hybrid_rag test suite.

Provides deterministic fake providers: a bag-of-words embedder over a small
fixed vocabulary and an in-memory corpus.
"""
from typing import Optional
from unittest.mock import AsyncMock

import numpy as np
import pytest

from hybrid_rag.core.models.document import Passage, PassageMetadata, Source
from hybrid_rag.core.strategies.term_processor import normalize, tokenize

pytest_plugins = ["pytest_asyncio"]

VOCAB = (
    "رمز", "عبور", "ریست", "بازنشانی", "پسورد", "کلمه",
    "سفارش", "تاخیر", "اردر",
    "ارزش", "خالص", "دارایی", "nav", "محاسبه",
)
_INDEX = {token: i for i, token in enumerate(VOCAB)}


def bow_vector(text: str) -> np.ndarray:
    vector = np.zeros(len(VOCAB), dtype=np.float32)
    for token in tokenize(text):
        if token in _INDEX:
            vector[_INDEX[token]] += 1.0
    return vector


class FakeEmbedder:
    """Bag-of-words embedder; records every call."""

    def __init__(self):
        self.calls: list[tuple[str, bool]] = []

    async def embed(self, text: str, is_query: bool = False) -> np.ndarray:
        self.calls.append((text, is_query))
        return bow_vector(text)


class FakeCorpus:
    def __init__(self, passages: list[Passage]):
        self.passages = passages
        self.calls = 0

    def query(self, category_filter: Optional[str] = None) -> list[Passage]:
        self.calls += 1
        if not category_filter:
            return list(self.passages)
        return [p for p in self.passages if p.metadata.category == category_filter]


def build_passage(pid: str, content: str, source_id: Optional[str] = None, category: str = "general") -> Passage:
    return Passage(
        id=pid,
        content=content,
        search_content=normalize(content),
        embedding=bow_vector(content),
        metadata=PassageMetadata(category=category),
        source=Source(id=source_id or f"doc-{pid}", title=f"Title {pid}"),
    )


@pytest.fixture
def make_passage():
    return build_passage


@pytest.fixture
def passages():
    return [
        build_passage(
            "p1",
            "برای بازنشانی رمز عبور به صفحه ورود بروید و گزینه فراموشی رمز عبور را بزنید",
            source_id="doc-password",
            category="account",
        ),
        build_passage(
            "p2",
            "در صورت تاخیر سفارش با پشتیبانی تماس بگیرید",
            source_id="doc-orders",
            category="orders",
        ),
        build_passage(
            "p3",
            "ارزش خالص دارایی صندوق روزانه محاسبه می شود",
            source_id="doc-nav",
            category="funds",
        ),
    ]


@pytest.fixture
def corpus(passages):
    return FakeCorpus(passages)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def llm():
    """Completion provider mock with a Persian default reply."""
    mock = AsyncMock()
    mock.complete = AsyncMock(return_value="برای بازنشانی رمز عبور به صفحه ورود بروید.")
    return mock


@pytest.fixture
def make_corpus():
    return FakeCorpus
