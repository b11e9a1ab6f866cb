import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .config.settings import Settings
from .core.errors import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _singletons: dict[type, Any] = field(default_factory=dict)
    _singleton_flags: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = False
    ) -> None:
        """Register factory for interface.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Whether to cache instance.
        """
        self._factories[interface] = factory
        if singleton:
            self._singleton_flags.add(interface)

    def resolve(self, interface: type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        if interface not in self._factories:
            raise ConfigurationError(f"No factory registered for {interface.__name__}")

        instance = self._factories[interface]()

        if interface in self._singleton_flags:
            self._singletons[interface] = instance

        return instance

    def reset(self) -> None:
        """Reset singletons (for testing)."""
        self._singletons.clear()


container = Container()


def _build_embedder(settings: Settings):
    if settings.embedding_backend == "ollama":
        from .infrastructure.embeddings.ollama_embedder import OllamaEmbedder

        return OllamaEmbedder(
            base_url=settings.ollama_base_url,
            model=settings.embedding_model,
            dimension=settings.embedding_dimension,
        )
    if settings.embedding_backend == "sentence-transformers":
        from .infrastructure.embeddings.sentence_transformer import (
            SentenceTransformerEmbedder,
        )

        return SentenceTransformerEmbedder(settings.embedding_model)
    raise ConfigurationError(f"Unknown embedding backend: {settings.embedding_backend}")


def _build_corpus(settings: Settings):
    if settings.corpus_backend == "json":
        from .infrastructure.corpus.json_corpus import JsonCorpus

        return JsonCorpus(settings.corpus_path)
    if settings.corpus_backend == "chroma":
        from .infrastructure.corpus.chroma_corpus import ChromaCorpus

        return ChromaCorpus(
            host=settings.chroma_host,
            port=settings.chroma_port,
            collection_name=settings.chroma_collection,
        )
    raise ConfigurationError(f"Unknown corpus backend: {settings.corpus_backend}")


def configure_container(settings: Settings, target: Container | None = None) -> Container:
    """Configure container with all dependencies.

    Args:
        settings: Application settings.
        target: Container to fill (the module-level one by default).

    Returns:
        Configured container.

    Raises:
        ConfigurationError: Settings name an unknown backend or an invalid
            retrieval default.
    """
    from .core.models.config import RetrievalConfig
    from .core.protocols.corpus import CorpusProtocol
    from .core.protocols.embedder import EmbeddingProvider
    from .core.protocols.llm import CompletionProvider
    from .core.services.answer_service import AnswerGenerator
    from .core.services.chat_service import ChatService
    from .core.services.evaluation_service import EvaluationHarness
    from .core.services.health_service import HealthService
    from .core.services.query_rewriter import QueryRewriter
    from .core.services.retrieval_service import RetrievalOrchestrator
    from .core.services.tuning_service import AutoTuner
    from .core.strategies.term_processor import TermProcessor
    from .infrastructure.llm.ollama_client import OllamaClient

    c = target if target is not None else container

    # Fail at construction, not mid-query.
    default_config = RetrievalConfig.from_settings(settings)
    if settings.embedding_backend not in ("ollama", "sentence-transformers"):
        raise ConfigurationError(f"Unknown embedding backend: {settings.embedding_backend}")
    if settings.corpus_backend not in ("json", "chroma"):
        raise ConfigurationError(f"Unknown corpus backend: {settings.corpus_backend}")

    c.register(EmbeddingProvider, lambda: _build_embedder(settings), singleton=True)
    c.register(CorpusProtocol, lambda: _build_corpus(settings), singleton=True)
    c.register(
        CompletionProvider,
        lambda: OllamaClient(
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.llm_timeout,
        ),
        singleton=True,
    )
    c.register(TermProcessor, TermProcessor, singleton=True)

    c.register(
        RetrievalOrchestrator,
        lambda: RetrievalOrchestrator(
            corpus=c.resolve(CorpusProtocol),
            embedder=c.resolve(EmbeddingProvider),
            llm=c.resolve(CompletionProvider),
            rewriter=QueryRewriter(
                c.resolve(CompletionProvider), timeout=settings.rag_rewrite_timeout
            ),
            term_processor=c.resolve(TermProcessor),
        ),
        singleton=True,
    )

    c.register(
        ChatService,
        lambda: ChatService(
            retriever=c.resolve(RetrievalOrchestrator),
            generator=AnswerGenerator(c.resolve(CompletionProvider)),
            default_config=default_config,
        ),
        singleton=True,
    )

    c.register(
        EvaluationHarness,
        lambda: EvaluationHarness(
            chat_service=c.resolve(ChatService),
            embedder=c.resolve(EmbeddingProvider),
            llm=c.resolve(CompletionProvider),
            term_processor=c.resolve(TermProcessor),
            judge_enabled=settings.judge_enabled,
            pass_threshold=settings.benchmark_pass_threshold,
            model_name=settings.llm_model,
        ),
        singleton=True,
    )

    c.register(
        AutoTuner,
        lambda: AutoTuner(
            harness=c.resolve(EvaluationHarness),
            acceptance_threshold=settings.tuning_acceptance,
        ),
        singleton=True,
    )

    c.register(
        HealthService,
        lambda: HealthService(
            providers=_health_targets(c, settings),
            timeout=settings.health_timeout,
        ),
        singleton=True,
    )

    logger.info("Container configured")
    return c


def _health_targets(c: Container, settings: Settings) -> dict:
    from .core.protocols.corpus import CorpusProtocol
    from .core.protocols.embedder import EmbeddingProvider
    from .core.protocols.health import HealthCheckable
    from .core.protocols.llm import CompletionProvider

    targets = {
        "llm": c.resolve(CompletionProvider),
        "embedding": c.resolve(EmbeddingProvider),
    }
    if settings.corpus_backend == "chroma":
        targets["corpus"] = c.resolve(CorpusProtocol)
    return {name: p for name, p in targets.items() if isinstance(p, HealthCheckable)}
