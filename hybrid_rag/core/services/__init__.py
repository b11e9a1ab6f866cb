"""Core business services."""
from .query_rewriter import QueryRewriter
from .retrieval_service import RetrievalOrchestrator, StageResult, emit_event
from .answer_service import AnswerGenerator, GeneratedAnswer
from .chat_service import ChatService
from .evaluation_service import EvaluationHarness
from .tuning_service import DEFAULT_STRATEGIES, AutoTuner
from .health_service import HealthService, ProviderHealth

__all__ = [
    "QueryRewriter",
    "RetrievalOrchestrator",
    "StageResult",
    "emit_event",
    "AnswerGenerator",
    "GeneratedAnswer",
    "ChatService",
    "EvaluationHarness",
    "DEFAULT_STRATEGIES",
    "AutoTuner",
    "HealthService",
    "ProviderHealth",
]
