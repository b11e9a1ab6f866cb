"""Retrieval configuration value."""
from dataclasses import asdict, dataclass, replace
from typing import Any, Optional

from ..errors import ConfigurationError


@dataclass(frozen=True)
class RetrievalConfig:
    """Immutable retrieval hyperparameters passed into every call.

    The auto-tuner never mutates a config; it builds a new one with
    `with_overrides` and the caller installs it as the new default.
    """
    min_confidence: float = 0.15
    temperature: float = 0.1
    vector_weight: float = 0.8
    recall_k: int = 30
    top_k: int = 5
    fallback_queries: int = 3
    fallback_temperature: float = 0.7
    max_concurrency: int = 4
    system_prompt: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.vector_weight <= 1.0:
            raise ConfigurationError(
                f"vector_weight must be within [0, 1], got {self.vector_weight}"
            )
        if self.min_confidence < 0.0:
            raise ConfigurationError(
                f"min_confidence must be non-negative, got {self.min_confidence}"
            )
        if self.temperature < 0.0 or self.fallback_temperature < 0.0:
            raise ConfigurationError("temperature must be non-negative")
        if self.recall_k < 1 or self.top_k < 1:
            raise ConfigurationError("recall_k and top_k must be at least 1")
        if self.fallback_queries < 0:
            raise ConfigurationError("fallback_queries must be non-negative")
        if self.max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1")

    @classmethod
    def from_settings(cls, settings: Any) -> "RetrievalConfig":
        """Build the live default from application settings."""
        return cls(
            min_confidence=settings.rag_min_confidence,
            temperature=settings.rag_temperature,
            vector_weight=settings.rag_vector_weight,
            recall_k=settings.rag_recall_k,
            top_k=settings.rag_top_k,
            fallback_queries=settings.rag_fallback_queries,
            fallback_temperature=settings.rag_fallback_temperature,
            max_concurrency=settings.rag_max_concurrency,
            system_prompt=settings.system_prompt or None,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "RetrievalConfig":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)

    def with_overrides(self, **overrides: Any) -> "RetrievalConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    def to_dict(self) -> dict:
        return asdict(self)
