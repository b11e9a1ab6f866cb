"""Embedding provider protocol for dependency injection."""
from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding service."""

    async def embed(self, text: str, is_query: bool = False) -> np.ndarray:
        """Encode text to a fixed-length vector.

        Args:
            text: Text to encode.
            is_query: Whether to apply the model's query-side prefix.

        Returns:
            Embedding vector. A zero vector on recoverable failures.

        Raises:
            ProviderUnreachableError: The provider cannot be reached at all.
        """
        ...
