"""Chat service - coordinates retrieval and answer generation."""

import asyncio
import logging
import time
from typing import Optional, Sequence

from ..errors import CompletionError, ConfigurationError, ProviderUnreachableError
from ..models.chat import ChatMessage
from ..models.config import RetrievalConfig
from ..models.document import ScoredCandidate, Source
from ..models.result import (
    DebugInfo,
    PipelineStep,
    QueryResult,
    QueryStatus,
    RetrievalOutcome,
)
from ..prompts import (
    CANCELLED_TEXT,
    GENERATION_FAILED_TEXT,
    MODEL_ERROR_TEXT,
    NO_INFORMATION_TEXT,
    UNREACHABLE_TEXT,
)
from .answer_service import AnswerGenerator
from .retrieval_service import EventQueue, RetrievalOrchestrator, emit_event

logger = logging.getLogger(__name__)


class ChatService:
    """Answers one question end to end and always returns a QueryResult."""

    def __init__(
        self,
        retriever: RetrievalOrchestrator,
        generator: AnswerGenerator,
        default_config: Optional[RetrievalConfig] = None,
    ):
        """Initialize chat service.

        Args:
            retriever: Retrieval orchestrator.
            generator: Answer generator.
            default_config: Config used when a call does not pass one.
        """
        if retriever is None or generator is None:
            raise ConfigurationError("ChatService requires a retriever and a generator")
        self._retriever = retriever
        self._generator = generator
        self._default_config = default_config or RetrievalConfig()

    @property
    def default_config(self) -> RetrievalConfig:
        return self._default_config

    def install_config(self, config: RetrievalConfig) -> None:
        """Make `config` the default for subsequent requests."""
        logger.info(f"Installing retrieval config: {config.to_dict()}")
        self._default_config = config

    async def ask(
        self,
        query: str,
        history: Sequence[ChatMessage] = (),
        config: Optional[RetrievalConfig] = None,
        category_filter: Optional[str] = None,
        events: Optional[EventQueue] = None,
        cancel_event: Optional[asyncio.Event] = None,
        advisor: bool = False,
    ) -> QueryResult:
        """Answer a question from the corpus.

        Args:
            query: User question.
            history: Prior turns, most-recent-last.
            config: Overrides the default config for this call only.
            category_filter: Restrict retrieval to one category.
            events: Optional queue receiving PipelineEvent notifications.
            cancel_event: Setting it aborts in-flight provider calls.
            advisor: Use the support-advisor instruction.

        Returns:
            Query result; failures are reported through status and error.
        """
        started_at = time.perf_counter()
        config = config or self._default_config

        pipeline = asyncio.ensure_future(
            self._run(query, history, config, category_filter, events, advisor, started_at)
        )
        if cancel_event is None:
            return await pipeline

        watcher = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {pipeline, watcher}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            pipeline.cancel()
            watcher.cancel()
            raise

        if pipeline in done:
            watcher.cancel()
            return pipeline.result()

        pipeline.cancel()
        await asyncio.gather(pipeline, return_exceptions=True)
        logger.info(f"Request cancelled: '{query[:50]}'")
        return QueryResult(
            text=CANCELLED_TEXT,
            status=QueryStatus.CANCELLED,
            error="CANCELLED",
            debug_info=self._debug_info(None, config, started_at, 0),
        )

    async def _run(
        self,
        query: str,
        history: Sequence[ChatMessage],
        config: RetrievalConfig,
        category_filter: Optional[str],
        events: Optional[EventQueue],
        advisor: bool,
        started_at: float,
    ) -> QueryResult:
        try:
            outcome = await self._retriever.retrieve(
                query,
                history=history,
                config=config,
                category_filter=category_filter,
                events=events,
                started_at=started_at,
            )
        except ProviderUnreachableError as e:
            logger.error(f"Provider unreachable during retrieval: {e}")
            return self._failure(
                QueryStatus.PROVIDER_UNREACHABLE, UNREACHABLE_TEXT, None, config, started_at
            )
        except CompletionError as e:
            logger.error(f"Completion error during retrieval: {e}")
            return self._failure(
                QueryStatus.MODEL_ERROR, MODEL_ERROR_TEXT, None, config, started_at
            )
        except Exception as e:
            logger.exception(f"Retrieval error: {e}")
            return self._failure(
                QueryStatus.ERROR, MODEL_ERROR_TEXT, None, config, started_at
            )

        if not outcome.found:
            return QueryResult(
                text=NO_INFORMATION_TEXT,
                status=QueryStatus.NO_INFORMATION,
                debug_info=self._debug_info(outcome, config, started_at, 0),
            )

        emit_event(
            events,
            PipelineStep.GENERATING,
            started_at,
            expanded_query=outcome.expanded_query,
            extracted_keywords=outcome.critical_terms,
        )

        try:
            answer = await self._generator.generate(
                query,
                outcome.candidates,
                history=history,
                config=config,
                advisor=advisor,
            )
        except ProviderUnreachableError as e:
            logger.error(f"Provider unreachable during generation: {e}")
            return self._failure(
                QueryStatus.PROVIDER_UNREACHABLE, UNREACHABLE_TEXT, outcome, config, started_at
            )
        except CompletionError as e:
            logger.error(f"Completion error: {e}")
            return self._failure(
                QueryStatus.MODEL_ERROR, MODEL_ERROR_TEXT, outcome, config, started_at
            )
        except Exception as e:
            logger.exception(f"Generation error: {e}")
            return self._failure(
                QueryStatus.ERROR, MODEL_ERROR_TEXT, outcome, config, started_at
            )

        if not answer.valid:
            return self._failure(
                QueryStatus.GENERATION_FAILED,
                GENERATION_FAILED_TEXT,
                outcome,
                config,
                started_at,
                "LANGUAGE_LEAKAGE",
            )

        logger.info(
            f"Answered '{query[:50]}' from {len(outcome.candidates)} passages "
            f"in {int((time.perf_counter() - started_at) * 1000)}ms"
        )
        return QueryResult(
            text=answer.text,
            sources=self._unique_sources(outcome.candidates),
            debug_info=self._debug_info(outcome, config, started_at, len(outcome.candidates)),
            status=QueryStatus.OK,
            context=AnswerGenerator.format_context(outcome.candidates),
        )

    def _failure(
        self,
        status: QueryStatus,
        text: str,
        outcome: Optional[RetrievalOutcome],
        config: RetrievalConfig,
        started_at: float,
        error: Optional[str] = None,
    ) -> QueryResult:
        candidates = outcome.candidates if outcome else ()
        return QueryResult(
            text=text,
            sources=self._unique_sources(candidates),
            debug_info=self._debug_info(outcome, config, started_at, len(candidates)),
            status=status,
            error=error or status.value.upper(),
        )

    @staticmethod
    def _debug_info(
        outcome: Optional[RetrievalOutcome],
        config: RetrievalConfig,
        started_at: float,
        candidate_count: int,
    ) -> DebugInfo:
        strategy = "Hybrid-TwoStage"
        logic_step = (
            f"Recall(top{config.recall_k}, V:{config.vector_weight:.2f})"
            f"→Rerank→Gate(≥{config.min_confidence:.2f})"
        )
        if outcome is not None and outcome.used_fallback:
            strategy += "+MultiQuery"
            logic_step += f"→Fallback({len(outcome.alternative_queries)})"
        return DebugInfo(
            strategy=strategy,
            processing_time_ms=int((time.perf_counter() - started_at) * 1000),
            candidate_count=candidate_count,
            logic_step=logic_step,
            extracted_keywords=outcome.critical_terms if outcome else (),
        )

    @staticmethod
    def _unique_sources(candidates: Sequence[ScoredCandidate]) -> tuple[Source, ...]:
        """Get unique sources, ranking order kept."""
        seen = set()
        sources = []
        for c in candidates:
            if c.passage.source.id not in seen:
                seen.add(c.passage.source.id)
                sources.append(c.passage.source)
        return tuple(sources)
