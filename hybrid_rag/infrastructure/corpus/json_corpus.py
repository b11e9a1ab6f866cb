import json
import logging
from pathlib import Path
from typing import Optional

import numpy as np

from hybrid_rag.core.errors import ConfigurationError
from hybrid_rag.core.models.document import Passage, PassageMetadata, Source
from hybrid_rag.core.strategies.term_processor import normalize

logger = logging.getLogger(__name__)


def passage_from_record(record: dict) -> Passage:
    """Build a Passage from an exported chunk record.

    Accepts both snake_case and camelCase keys. search_content is derived
    from content when the record does not carry it.
    """
    meta = record.get("metadata") or {}
    source = record.get("source") or {}
    content = record.get("content", "")
    search_content = record.get("search_content") or record.get("searchContent")

    return Passage(
        id=str(record["id"]),
        content=content,
        search_content=search_content or normalize(content),
        embedding=np.asarray(record.get("embedding") or [], dtype=np.float32),
        metadata=PassageMetadata(
            category=meta.get("category", "general"),
            sub_category=meta.get("sub_category", meta.get("subCategory", "uncategorized")),
            tags=tuple(meta.get("tags") or ()),
            ticket_id=meta.get("ticket_id", meta.get("ticketId")),
        ),
        source=Source(
            id=str(source.get("id", "unknown")),
            title=source.get("title", "Unknown"),
            page=source.get("page"),
        ),
    )


class JsonCorpus:
    """Read-only corpus loaded from a JSON array of passage records."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._passages: Optional[list[Passage]] = None

    def load(self) -> list[Passage]:
        if self._passages is not None:
            return self._passages

        if not self._path.exists():
            raise ConfigurationError(f"Corpus file not found: {self._path}")

        with open(self._path, encoding="utf-8") as f:
            records = json.load(f)

        if isinstance(records, dict):
            records = records.get("passages", records.get("chunks", []))

        self._passages = [passage_from_record(r) for r in records]
        logger.info(f"Loaded {len(self._passages)} passages from {self._path}")
        return self._passages

    def query(self, category_filter: Optional[str] = None) -> list[Passage]:
        passages = self.load()
        if not category_filter:
            return list(passages)
        return [p for p in passages if p.metadata.category == category_filter]

    def count(self) -> int:
        return len(self.load())
