"""Retrieval orchestrator - two-stage hybrid search with multi-query fallback."""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from ..errors import ConfigurationError, ProviderUnreachableError
from ..models.chat import ChatMessage
from ..models.config import RetrievalConfig
from ..models.document import Passage, ScoredCandidate
from ..models.result import (
    CandidatePreview,
    PipelineEvent,
    PipelineStep,
    RetrievalOutcome,
)
from ..prompts import ALTERNATIVE_QUERIES_PROMPT
from ..protocols.corpus import CorpusProtocol
from ..protocols.embedder import EmbeddingProvider
from ..protocols.llm import CompletionProvider
from ..strategies.scoring import (
    ConfidenceGateStrategy,
    HybridScorer,
    PrecisionRerankStrategy,
    RecallStrategy,
)
from ..strategies.term_processor import TermProcessor, normalize
from .query_rewriter import QueryRewriter

logger = logging.getLogger(__name__)

EventQueue = asyncio.Queue

_LIST_MARKER_RE = re.compile(r"^\s*(?:[-*•]+|\(?[0-9۰-۹]+[.)\-:])\s*")


def emit_event(
    events: Optional[EventQueue],
    step: PipelineStep,
    started_at: float,
    **fields,
) -> None:
    """Fire-and-forget progress notification. Never blocks, never raises."""
    if events is None:
        return
    event = PipelineEvent(
        step=step,
        elapsed_ms=int((time.perf_counter() - started_at) * 1000),
        **fields,
    )
    try:
        events.put_nowait(event)
    except asyncio.QueueFull:
        logger.debug(f"Event queue full, dropping '{step.value}' event")


@dataclass(frozen=True)
class StageResult:
    """Candidates after each stage of one recall → rerank → gate pass."""
    recalled: tuple[ScoredCandidate, ...]
    reranked: tuple[ScoredCandidate, ...]
    gated: tuple[ScoredCandidate, ...]


class RetrievalOrchestrator:
    """Runs Analyzing → Vectorizing → Recall → Rerank → (Fallback) → Gated."""

    def __init__(
        self,
        corpus: CorpusProtocol,
        embedder: EmbeddingProvider,
        llm: CompletionProvider,
        rewriter: Optional[QueryRewriter] = None,
        term_processor: Optional[TermProcessor] = None,
        scorer: Optional[HybridScorer] = None,
    ):
        """Initialize orchestrator.

        Args:
            corpus: Read-only passage source.
            embedder: Embedding provider for queries.
            llm: Completion provider for rewriting and alternative queries.
            rewriter: Query rewriter (built from `llm` when omitted).
            term_processor: Term and synonym tables.
            scorer: Hybrid scorer (built from `term_processor` when omitted).

        Raises:
            ConfigurationError: A required collaborator is missing.
        """
        for name, dependency in (("corpus", corpus), ("embedder", embedder), ("llm", llm)):
            if dependency is None:
                raise ConfigurationError(f"RetrievalOrchestrator requires a {name}")

        self._corpus = corpus
        self._embedder = embedder
        self._llm = llm
        self._rewriter = rewriter or QueryRewriter(llm)
        self._terms = term_processor or TermProcessor()
        self._scorer = scorer or HybridScorer(embedder)

    @property
    def term_processor(self) -> TermProcessor:
        return self._terms

    async def retrieve(
        self,
        query: str,
        history: Sequence[ChatMessage] = (),
        config: Optional[RetrievalConfig] = None,
        category_filter: Optional[str] = None,
        events: Optional[EventQueue] = None,
        started_at: Optional[float] = None,
    ) -> RetrievalOutcome:
        """Find the passages to ground an answer on.

        Args:
            query: Raw user question.
            history: Prior turns, most-recent-last.
            config: Retrieval hyperparameters.
            category_filter: Restrict the corpus to one category.
            events: Optional queue receiving PipelineEvent notifications.
            started_at: perf_counter() origin for elapsed times.

        Returns:
            Outcome with the gated candidates (possibly empty).
        """
        config = config or RetrievalConfig()
        started_at = started_at if started_at is not None else time.perf_counter()

        emit_event(events, PipelineStep.ANALYZING, started_at)
        rewritten = await self._rewriter.rewrite(query, history)
        terms = tuple(sorted(self._terms.extract_critical_terms(rewritten)))
        expanded = self._terms.expand_with_synonyms(rewritten)

        emit_event(
            events,
            PipelineStep.VECTORIZING,
            started_at,
            expanded_query=expanded,
            extracted_keywords=terms,
        )

        passages = await asyncio.to_thread(self._corpus.query, category_filter)
        primary = await self.search(expanded, passages, config)

        emit_event(
            events,
            PipelineStep.SEARCHING,
            started_at,
            expanded_query=expanded,
            extracted_keywords=terms,
            candidates=self._preview(primary.reranked, primary.gated),
        )

        if primary.gated:
            logger.info(
                f"Retrieval: {len(primary.gated)} passages for '{rewritten[:50]}'"
            )
            return RetrievalOutcome(
                query=query,
                rewritten_query=rewritten,
                expanded_query=expanded,
                critical_terms=terms,
                candidates=primary.gated,
                recall_count=len(primary.recalled),
            )

        alternatives: tuple[str, ...] = ()
        merged: tuple[ScoredCandidate, ...] = ()
        if config.fallback_queries > 0:
            alternatives = tuple(
                await self.generate_alternative_queries(rewritten, config)
            )
            if alternatives:
                merged = await self._fallback_search(alternatives, passages, config)
                emit_event(
                    events,
                    PipelineStep.SEARCHING,
                    started_at,
                    expanded_query=expanded,
                    extracted_keywords=terms,
                    candidates=self._preview(merged, merged),
                )

        if merged:
            logger.info(
                f"Multi-query fallback recovered {len(merged)} passages "
                f"for '{rewritten[:50]}'"
            )
        else:
            logger.info(f"No passages passed the gate for '{rewritten[:50]}'")

        return RetrievalOutcome(
            query=query,
            rewritten_query=rewritten,
            expanded_query=expanded,
            critical_terms=terms,
            candidates=merged,
            recall_count=len(primary.recalled),
            used_fallback=True,
            alternative_queries=alternatives,
        )

    async def search(
        self,
        query: str,
        passages: Sequence[Passage],
        config: RetrievalConfig,
    ) -> StageResult:
        """One recall → rerank → gate pass over a corpus snapshot."""
        query_embedding = await self._embedder.embed(query, is_query=True)

        weight = config.vector_weight
        initial: list[ScoredCandidate] = []
        for passage in passages:
            vector_score = self._scorer.vector_score(query_embedding, passage)
            keyword_score = self._scorer.keyword_score(query, passage)
            initial.append(
                ScoredCandidate(
                    passage=passage,
                    vector_score=vector_score,
                    keyword_score=keyword_score,
                    final_score=weight * vector_score + (1.0 - weight) * keyword_score,
                )
            )

        recalled = RecallStrategy(config.recall_k).apply(query, initial)
        reranked = PrecisionRerankStrategy(self._scorer).apply(query, recalled)
        gated = ConfidenceGateStrategy(config.min_confidence, config.top_k).apply(
            query, reranked
        )
        return StageResult(tuple(recalled), tuple(reranked), tuple(gated))

    async def generate_alternative_queries(
        self, query: str, config: RetrievalConfig
    ) -> list[str]:
        """Ask the model for differently-worded versions of the query.

        Model and parse failures yield no alternatives.

        Raises:
            ProviderUnreachableError: The completion provider is down.
        """
        prompt = ALTERNATIVE_QUERIES_PROMPT.format(
            count=config.fallback_queries, query=query
        )
        try:
            raw = await self._llm.complete(
                [{"role": "user", "content": prompt}], config.fallback_temperature
            )
        except ProviderUnreachableError:
            raise
        except Exception as e:
            logger.warning(f"[fallback] Alternative query generation failed: {e}")
            return []

        seen = {normalize(query)}
        alternatives: list[str] = []
        for line in (raw or "").splitlines():
            candidate = _LIST_MARKER_RE.sub("", line).strip().strip("\"'«»")
            key = normalize(candidate)
            if len(key) < 3 or key in seen:
                continue
            seen.add(key)
            alternatives.append(candidate)

        logger.info(f"[fallback] {len(alternatives)} alternative queries")
        return alternatives[: config.fallback_queries]

    async def _fallback_search(
        self,
        alternatives: Sequence[str],
        passages: Sequence[Passage],
        config: RetrievalConfig,
    ) -> tuple[ScoredCandidate, ...]:
        semaphore = asyncio.Semaphore(config.max_concurrency)

        async def run(alternative: str) -> StageResult:
            async with semaphore:
                expanded = self._terms.expand_with_synonyms(alternative)
                return await self.search(expanded, passages, config)

        results = await asyncio.gather(*(run(alt) for alt in alternatives))
        return self.merge_candidates(
            [r.gated for r in results], limit=config.top_k
        )

    @staticmethod
    def merge_candidates(
        groups: Sequence[Sequence[ScoredCandidate]], limit: Optional[int] = None
    ) -> tuple[ScoredCandidate, ...]:
        """Union by passage id, keeping each passage's best score.

        Groups are visited in order, so equal scores resolve to the first
        occurrence and the result is independent of completion order.
        """
        best: dict[str, ScoredCandidate] = {}
        for group in groups:
            for candidate in group:
                current = best.get(candidate.passage.id)
                if current is None or candidate.final_score > current.final_score:
                    best[candidate.passage.id] = candidate

        ordered = sorted(best.values(), key=lambda c: c.final_score, reverse=True)
        return tuple(ordered[:limit] if limit is not None else ordered)

    @staticmethod
    def _preview(
        ranked: Sequence[ScoredCandidate],
        accepted: Sequence[ScoredCandidate],
        limit: int = 5,
    ) -> tuple[CandidatePreview, ...]:
        accepted_ids = {c.passage.id for c in accepted}
        return tuple(
            CandidatePreview(
                title=c.passage.source.title,
                score=round(c.final_score, 3),
                accepted=c.passage.id in accepted_ids,
            )
            for c in ranked[:limit]
        )
