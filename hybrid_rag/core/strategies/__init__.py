"""Scoring, term processing and filtering strategies."""
from .term_processor import TermProcessor, normalize, tokenize
from .scoring import (
    ConfidenceGateStrategy,
    HybridScorer,
    PrecisionRerankStrategy,
    RecallStrategy,
    ScoringStrategy,
    cosine_similarity,
)

__all__ = [
    "TermProcessor",
    "normalize",
    "tokenize",
    "ConfidenceGateStrategy",
    "HybridScorer",
    "PrecisionRerankStrategy",
    "RecallStrategy",
    "ScoringStrategy",
    "cosine_similarity",
]
