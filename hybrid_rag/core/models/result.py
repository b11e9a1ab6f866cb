"""Query pipeline results and progress events."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .document import ScoredCandidate, Source


class PipelineStep(str, Enum):
    """Observable stages of one retrieval run."""
    ANALYZING = "analyzing"
    VECTORIZING = "vectorizing"
    SEARCHING = "searching"
    GENERATING = "generating"


class QueryStatus(str, Enum):
    """Terminal outcome of one request."""
    OK = "ok"
    NO_INFORMATION = "no_information"  # defined outcome, not an error
    CANCELLED = "cancelled"
    PROVIDER_UNREACHABLE = "provider_unreachable"
    MODEL_ERROR = "model_error"
    GENERATION_FAILED = "generation_failed"
    ERROR = "error"


@dataclass(frozen=True)
class CandidatePreview:
    """Lightweight view of a candidate for progress reporting."""
    title: str
    score: float
    accepted: bool = False


@dataclass(frozen=True)
class PipelineEvent:
    """Progress notification. Purely observational."""
    step: PipelineStep
    elapsed_ms: int
    expanded_query: Optional[str] = None
    extracted_keywords: tuple[str, ...] = ()
    candidates: tuple[CandidatePreview, ...] = ()


@dataclass(frozen=True)
class DebugInfo:
    strategy: str
    processing_time_ms: int
    candidate_count: int
    logic_step: str
    extracted_keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class RetrievalOutcome:
    """What the orchestrator hands to generation."""
    query: str
    rewritten_query: str
    expanded_query: str
    critical_terms: tuple[str, ...]
    candidates: tuple[ScoredCandidate, ...]
    recall_count: int
    used_fallback: bool = False
    alternative_queries: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return bool(self.candidates)


@dataclass(frozen=True)
class QueryResult:
    """Final answer for one request."""
    text: str
    sources: tuple[Source, ...] = ()
    debug_info: Optional[DebugInfo] = None
    status: QueryStatus = QueryStatus.OK
    error: Optional[str] = None
    context: str = field(default="", repr=False)

    @property
    def ok(self) -> bool:
        return self.status == QueryStatus.OK
