"""Corpus protocol for dependency injection."""
from typing import Optional, Protocol, runtime_checkable

from ..models.document import Passage


@runtime_checkable
class CorpusProtocol(Protocol):
    """Read-only access to indexed passages."""

    def query(self, category_filter: Optional[str] = None) -> list[Passage]:
        """Snapshot of passages, optionally restricted to one category.

        Args:
            category_filter: Category name, or None for the whole corpus.

        Returns:
            Passages in a stable order.
        """
        ...
