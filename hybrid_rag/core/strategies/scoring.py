
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from ..models.document import Passage, ScoredCandidate
from ..protocols.embedder import EmbeddingProvider
from .term_processor import normalize, numeric_codes

logger = logging.getLogger(__name__)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two vectors; 0.0 when either is all zeros."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape or a.size == 0:
        return 0.0
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


class HybridScorer:
    """Vector and lexical relevance signals for a (query, passage) pair.

    The keyword score is bounded to [0, 1] so recall-stage scores stay
    comparable across passages. The precision-stage score is unbounded:
    an exact numeric code match adds NUMERIC_CODE_BONUS on top.
    """

    EXACT_MATCH_MIN_LENGTH = 10
    BIGRAM_WEIGHT = 0.3
    OCCURRENCE_WEIGHT = 0.05
    MAX_COUNTED_OCCURRENCES = 3
    COVERAGE_WEIGHT = 0.4
    FULL_COVERAGE_BONUS = 0.2
    NUMERIC_CODE_BONUS = 5.0

    def __init__(self, embedder: Optional[EmbeddingProvider] = None):
        """Initialize scorer.

        Args:
            embedder: Used by `score` when no query embedding is supplied.
        """
        self._embedder = embedder

    @staticmethod
    def passage_text(passage: Passage) -> str:
        return passage.search_content or normalize(passage.content)

    def vector_score(self, query_embedding: np.ndarray, passage: Passage) -> float:
        similarity = cosine_similarity(query_embedding, passage.embedding)
        return min(1.0, max(0.0, similarity))

    def keyword_score(self, query: str, passage: Passage) -> float:
        text = self.passage_text(passage)
        normalized_query = normalize(query)
        if not normalized_query or not text:
            return 0.0

        if (
            len(normalized_query) > self.EXACT_MATCH_MIN_LENGTH
            and normalized_query in text
        ):
            return 1.0

        tokens = normalized_query.split()
        score = 0.0

        # every adjacent pair counts, stop words included
        for first, second in zip(tokens, tokens[1:]):
            if f"{first} {second}" in text:
                score += self.BIGRAM_WEIGHT

        matched = 0
        for token in tokens:
            occurrences = text.count(token)
            if occurrences:
                matched += 1
                score += self.OCCURRENCE_WEIGHT * min(
                    occurrences, self.MAX_COUNTED_OCCURRENCES
                )

        score += self.COVERAGE_WEIGHT * (matched / len(tokens))
        if matched == len(tokens):
            score += self.FULL_COVERAGE_BONUS

        return min(1.0, score)

    def numeric_code_hit(self, query: str, passage: Passage) -> bool:
        codes = numeric_codes(query)
        if not codes:
            return False
        text = normalize(passage.content) + " " + self.passage_text(passage)
        return any(re.search(rf"(?<!\d){code}(?!\d)", text) for code in codes)

    def advanced_score(
        self, query: str, passage: Passage, keyword_score: Optional[float] = None
    ) -> float:
        """Precision-stage score: keyword score plus the numeric code bonus."""
        if keyword_score is None:
            keyword_score = self.keyword_score(query, passage)
        bonus = self.NUMERIC_CODE_BONUS if self.numeric_code_hit(query, passage) else 0.0
        return keyword_score + bonus

    async def score(
        self,
        query: str,
        passage: Passage,
        query_embedding: Optional[np.ndarray] = None,
    ) -> tuple[float, float]:
        """Return (vector_score, keyword_score) for one pair."""
        if query_embedding is None:
            if self._embedder is None:
                raise ValueError("No query embedding and no embedder configured")
            query_embedding = await self._embedder.embed(query, is_query=True)
        return (
            self.vector_score(query_embedding, passage),
            self.keyword_score(query, passage),
        )


class ScoringStrategy(ABC):
    """Base class for scoring strategies."""

    @abstractmethod
    def apply(
        self, query: str, candidates: list[ScoredCandidate]
    ) -> list[ScoredCandidate]:
        """Apply strategy to candidates. Never mutates the input list."""
        ...


class RecallStrategy(ScoringStrategy):
    """Keep the best `limit` candidates by initial hybrid score."""

    def __init__(self, limit: int = 30):
        self._limit = limit

    def apply(
        self, query: str, candidates: list[ScoredCandidate]
    ) -> list[ScoredCandidate]:
        # sorted() is stable, so ties keep corpus order
        ranked = sorted(candidates, key=lambda c: c.final_score, reverse=True)
        kept = ranked[: self._limit]

        if len(kept) < len(candidates):
            logger.info(f"Recall: {len(candidates)} → {len(kept)} candidates")

        return kept


class PrecisionRerankStrategy(ScoringStrategy):
    """Rescore with vector + precision-stage score and sort descending."""

    def __init__(self, scorer: HybridScorer):
        self._scorer = scorer

    def apply(
        self, query: str, candidates: list[ScoredCandidate]
    ) -> list[ScoredCandidate]:
        rescored = [
            ScoredCandidate(
                passage=c.passage,
                vector_score=c.vector_score,
                keyword_score=c.keyword_score,
                final_score=c.vector_score
                + self._scorer.advanced_score(query, c.passage, c.keyword_score),
            )
            for c in candidates
        ]
        rescored.sort(key=lambda c: c.final_score, reverse=True)

        if logger.isEnabledFor(logging.DEBUG):
            top_scores = ", ".join(f"{c.final_score:.2f}" for c in rescored[:3])
            logger.debug(f"Rerank top-3 scores: [{top_scores}]")

        return rescored


class ConfidenceGateStrategy(ScoringStrategy):
    """Drop candidates below the confidence threshold, keep the top `top_k`."""

    def __init__(self, min_confidence: float, top_k: int = 5):
        self._min_confidence = min_confidence
        self._top_k = top_k

    def apply(
        self, query: str, candidates: list[ScoredCandidate]
    ) -> list[ScoredCandidate]:
        passed = [c for c in candidates if c.final_score >= self._min_confidence]

        if len(passed) < len(candidates):
            logger.info(
                f"Confidence gate: {len(candidates)} → {len(passed)} "
                f"(min_allowed={self._min_confidence:.2f})"
            )

        return passed[: self._top_k]
