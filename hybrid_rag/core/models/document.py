"""Document domain models."""
from dataclasses import dataclass, field
from typing import Optional

import numpy as np


@dataclass(frozen=True)
class PassageMetadata:
    """Classification attached to a passage at indexing time."""
    category: str = "general"
    sub_category: str = "uncategorized"
    tags: tuple[str, ...] = ()
    ticket_id: Optional[str] = None


@dataclass(frozen=True)
class Source:
    """Where a passage came from."""
    id: str
    title: str
    page: Optional[int] = None


@dataclass(frozen=True)
class Passage:
    """Indexed unit of corpus text. Owned by the corpus, read-only here."""
    id: str
    content: str
    search_content: str
    embedding: np.ndarray = field(compare=False, repr=False)
    metadata: PassageMetadata = field(default_factory=PassageMetadata)
    source: Source = field(default_factory=lambda: Source(id="unknown", title="Unknown"))


@dataclass(frozen=True)
class ScoredCandidate:
    """Passage scored against one query.

    final_score is derived from vector_score and the precision-stage score.
    Rerank builds new candidates instead of touching existing ones.
    """
    passage: Passage
    vector_score: float
    keyword_score: float
    final_score: float

    @property
    def source_id(self) -> str:
        return self.passage.source.id
