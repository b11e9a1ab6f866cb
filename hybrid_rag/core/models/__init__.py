"""Domain models."""
from .document import Passage, PassageMetadata, Source, ScoredCandidate
from .chat import ChatMessage, ChatHistory
from .config import RetrievalConfig
from .result import (
    CandidatePreview,
    DebugInfo,
    PipelineEvent,
    PipelineStep,
    QueryResult,
    QueryStatus,
    RetrievalOutcome,
)
from .benchmark import (
    AnswerScore,
    BenchmarkCase,
    BenchmarkResult,
    BenchmarkRun,
    FineTuningRecord,
    TuningOutcome,
    TuningStepResult,
    TuningStrategy,
)

__all__ = [
    "Passage",
    "PassageMetadata",
    "Source",
    "ScoredCandidate",
    "ChatMessage",
    "ChatHistory",
    "RetrievalConfig",
    "CandidatePreview",
    "DebugInfo",
    "PipelineEvent",
    "PipelineStep",
    "QueryResult",
    "QueryStatus",
    "RetrievalOutcome",
    "AnswerScore",
    "BenchmarkCase",
    "BenchmarkResult",
    "BenchmarkRun",
    "FineTuningRecord",
    "TuningOutcome",
    "TuningStepResult",
    "TuningStrategy",
]
