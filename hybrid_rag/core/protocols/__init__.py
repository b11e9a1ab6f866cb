"""Protocol interfaces for dependency injection."""
from .embedder import EmbeddingProvider
from .llm import CompletionProvider
from .corpus import CorpusProtocol
from .health import HealthCheckable

__all__ = [
    "EmbeddingProvider",
    "CompletionProvider",
    "CorpusProtocol",
    "HealthCheckable",
]
