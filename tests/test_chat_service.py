"""
Tests for ChatService

Every failure path must come back as a well-formed QueryResult.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from hybrid_rag.core.errors import (
    CompletionError,
    ConfigurationError,
    ProviderUnreachableError,
)
from hybrid_rag.core.models.config import RetrievalConfig
from hybrid_rag.core.models.result import PipelineStep, QueryStatus
from hybrid_rag.core.prompts import NO_INFORMATION_TEXT
from hybrid_rag.core.services.answer_service import AnswerGenerator
from hybrid_rag.core.services.chat_service import ChatService
from hybrid_rag.core.services.retrieval_service import RetrievalOrchestrator

PASSWORD_QUESTION = "چطور رمز عبور را ریست کنم؟"


def _service(corpus, embedder, retrieval_llm, answer_llm, config=None):
    return ChatService(
        retriever=RetrievalOrchestrator(corpus, embedder, retrieval_llm),
        generator=AnswerGenerator(answer_llm),
        default_config=config,
    )


def _llm(**kwargs):
    llm = Mock()
    llm.complete = AsyncMock(**kwargs)
    return llm


class TestAsk:

    @pytest.mark.asyncio
    async def test_password_reset_end_to_end(self, corpus, embedder, llm):
        service = _service(corpus, embedder, llm, llm)

        result = await service.ask(PASSWORD_QUESTION)

        assert result.ok
        assert result.error is None
        assert [s.id for s in result.sources] == ["doc-password"]
        assert result.text.startswith("برای بازنشانی")
        assert "[سند: doc-password]" in result.context

    @pytest.mark.asyncio
    async def test_debug_info(self, corpus, embedder, llm):
        service = _service(corpus, embedder, llm, llm)

        result = await service.ask(PASSWORD_QUESTION)

        info = result.debug_info
        assert info.strategy == "Hybrid-TwoStage"
        assert info.candidate_count == 1
        assert "Recall(top30" in info.logic_step
        assert "رمز" in info.extracted_keywords

    @pytest.mark.asyncio
    async def test_no_information_is_not_an_error(self, corpus, embedder, llm):
        service = _service(corpus, embedder, llm, llm, RetrievalConfig(fallback_queries=0))

        result = await service.ask("هوای امروز چطور است")

        assert result.status == QueryStatus.NO_INFORMATION
        assert result.text == NO_INFORMATION_TEXT
        assert result.error is None
        assert result.sources == ()
        llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sources_deduplicated_by_source_id(self, make_passage, make_corpus, embedder, llm):
        passages = [
            make_passage("a1", "بازنشانی رمز عبور از صفحه ورود", source_id="guide"),
            make_passage("a2", "رمز عبور باید هشت کاراکتر باشد", source_id="guide"),
        ]
        service = _service(make_corpus(passages), embedder, llm, llm)

        result = await service.ask(PASSWORD_QUESTION)

        assert [s.id for s in result.sources] == ["guide"]

    @pytest.mark.asyncio
    async def test_config_override_is_per_call(self, corpus, embedder, llm):
        service = _service(corpus, embedder, llm, llm)

        await service.ask(PASSWORD_QUESTION, config=RetrievalConfig(temperature=0.9))

        assert llm.complete.await_args.args[1] == 0.9
        assert service.default_config.temperature == RetrievalConfig().temperature

    def test_install_config(self, corpus, embedder, llm):
        service = _service(corpus, embedder, llm, llm)
        tuned = RetrievalConfig(min_confidence=0.4)

        service.install_config(tuned)

        assert service.default_config is tuned

    def test_missing_collaborator_is_fatal(self):
        with pytest.raises(ConfigurationError):
            ChatService(retriever=None, generator=Mock())


class TestFailures:

    @pytest.mark.asyncio
    async def test_unreachable_embedding_provider(self, corpus, llm):
        embedder = Mock()
        embedder.embed = AsyncMock(side_effect=ProviderUnreachableError("refused"))
        service = _service(corpus, embedder, llm, llm)

        result = await service.ask(PASSWORD_QUESTION)

        assert result.status == QueryStatus.PROVIDER_UNREACHABLE
        assert result.error == "PROVIDER_UNREACHABLE"
        assert result.sources == ()
        assert result.text

    @pytest.mark.asyncio
    async def test_unreachable_completion_provider_keeps_sources(self, corpus, embedder, llm):
        answer_llm = _llm(side_effect=ProviderUnreachableError("refused"))
        service = _service(corpus, embedder, llm, answer_llm)

        result = await service.ask(PASSWORD_QUESTION)

        assert result.status == QueryStatus.PROVIDER_UNREACHABLE
        assert [s.id for s in result.sources] == ["doc-password"]

    @pytest.mark.asyncio
    async def test_unreachable_provider_during_fallback(self, corpus, embedder, llm):
        retrieval_llm = _llm(side_effect=ProviderUnreachableError("refused"))
        service = _service(corpus, embedder, retrieval_llm, llm)

        result = await service.ask("هوای امروز چطور است")

        assert result.status == QueryStatus.PROVIDER_UNREACHABLE
        assert result.error == "PROVIDER_UNREACHABLE"
        assert result.sources == ()
        retrieval_llm.complete.assert_awaited()
        llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_model_error(self, corpus, embedder, llm):
        answer_llm = _llm(side_effect=CompletionError("context length exceeded"))
        service = _service(corpus, embedder, llm, answer_llm)

        result = await service.ask(PASSWORD_QUESTION)

        assert result.status == QueryStatus.MODEL_ERROR
        assert result.error == "MODEL_ERROR"

    @pytest.mark.asyncio
    async def test_language_leakage(self, corpus, embedder, llm):
        answer_llm = _llm(return_value="Here is your answer in English.")
        service = _service(corpus, embedder, llm, answer_llm)

        result = await service.ask(PASSWORD_QUESTION)

        assert result.status == QueryStatus.GENERATION_FAILED
        assert result.error == "LANGUAGE_LEAKAGE"
        assert result.text
        assert [s.id for s in result.sources] == ["doc-password"]

    @pytest.mark.asyncio
    async def test_unexpected_error(self, corpus, embedder, llm):
        answer_llm = _llm(side_effect=KeyError("choices"))
        service = _service(corpus, embedder, llm, answer_llm)

        result = await service.ask(PASSWORD_QUESTION)

        assert result.status == QueryStatus.ERROR
        assert result.error == "ERROR"


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_aborts_inflight_call(self, corpus, embedder, llm):
        cancelled = []

        async def slow(messages, temperature):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise
            return "دیر"

        answer_llm = Mock()
        answer_llm.complete = slow
        service = _service(corpus, embedder, llm, answer_llm)
        cancel_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel_event.set)

        result = await asyncio.wait_for(
            service.ask(PASSWORD_QUESTION, cancel_event=cancel_event), timeout=5
        )

        assert result.status == QueryStatus.CANCELLED
        assert result.error == "CANCELLED"
        assert result.status != QueryStatus.NO_INFORMATION
        assert cancelled == [True]

    @pytest.mark.asyncio
    async def test_unset_event_does_not_interfere(self, corpus, embedder, llm):
        service = _service(corpus, embedder, llm, llm)

        result = await service.ask(PASSWORD_QUESTION, cancel_event=asyncio.Event())

        assert result.ok


class TestEvents:

    @pytest.mark.asyncio
    async def test_generating_step_emitted_last(self, corpus, embedder, llm):
        service = _service(corpus, embedder, llm, llm)
        events = asyncio.Queue()

        await service.ask(PASSWORD_QUESTION, events=events)

        steps = []
        while not events.empty():
            steps.append(events.get_nowait().step)
        assert steps[-1] == PipelineStep.GENERATING
        assert steps[0] == PipelineStep.ANALYZING
