"""Evaluation and tuning records."""
from dataclasses import dataclass, field
from typing import Optional, Union

from .config import RetrievalConfig
from .document import Source


@dataclass(frozen=True)
class BenchmarkCase:
    id: Union[int, str]
    question: str
    ground_truth: str
    category: str = "general"

    @classmethod
    def from_dict(cls, data: dict) -> "BenchmarkCase":
        return cls(
            id=data["id"],
            question=data["question"],
            ground_truth=data.get("ground_truth", data.get("groundTruth", "")),
            category=data.get("category", "general"),
        )

    @property
    def is_ticket(self) -> bool:
        return str(self.id).startswith("ticket-")


@dataclass(frozen=True)
class AnswerScore:
    """Composite score together with every component it was built from."""
    score: float
    keyword_recall: float
    vector_score: float
    faithfulness: Optional[float] = None
    relevance: Optional[float] = None


@dataclass(frozen=True)
class BenchmarkResult:
    case_id: Union[int, str]
    question: str
    ground_truth: str
    generated_answer: str
    similarity_score: float
    keyword_recall: float
    vector_score: float
    faithfulness_score: Optional[float]
    relevance_score: Optional[float]
    retrieved_sources: tuple[Source, ...]
    time_taken_ms: int
    context: str = field(default="", repr=False)


@dataclass(frozen=True)
class BenchmarkRun:
    """Summary of one pass over a case set."""
    timestamp: float
    total_cases: int
    avg_score: float
    avg_faithfulness: Optional[float]
    avg_relevance: Optional[float]
    pass_rate: float
    avg_time_ms: float
    results: tuple[BenchmarkResult, ...] = ()


@dataclass(frozen=True)
class TuningStrategy:
    """Named full override of the tunable hyperparameters."""
    name: str
    min_confidence: float
    temperature: float
    vector_weight: float

    def apply(self, base: RetrievalConfig) -> RetrievalConfig:
        return base.with_overrides(
            min_confidence=self.min_confidence,
            temperature=self.temperature,
            vector_weight=self.vector_weight,
        )


@dataclass(frozen=True)
class TuningStepResult:
    strategy_name: str
    config: RetrievalConfig
    score: float
    passed: bool


@dataclass(frozen=True)
class TuningOutcome:
    """Accepted strategy, or the best local optimum when none was accepted."""
    best: TuningStepResult
    accepted: bool
    steps: tuple[TuningStepResult, ...]

    @property
    def config(self) -> RetrievalConfig:
        return self.best.config


@dataclass(frozen=True)
class FineTuningRecord:
    prompt: str
    response: str
    context: str
    score: float
    source_ids: tuple[str, ...]
    model: str

    def to_chat_record(self) -> dict:
        """Chat-format dict, one line of the JSONL export."""
        return {
            "messages": [
                {"role": "user", "content": self.prompt},
                {"role": "assistant", "content": self.response},
            ],
            "context": self.context,
            "score": self.score,
            "metadata": {"source_ids": list(self.source_ids), "model": self.model},
        }
