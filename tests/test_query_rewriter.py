"""
Tests for QueryRewriter
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from hybrid_rag.core.models.chat import ChatMessage
from hybrid_rag.core.services.query_rewriter import QueryRewriter


def _history(n):
    return [
        ChatMessage(role="user" if i % 2 == 0 else "assistant", content=f"turn-{i}")
        for i in range(n)
    ]


class TestOptimize:

    @pytest.fixture
    def rewriter(self):
        return QueryRewriter(Mock())

    def test_strips_politeness(self, rewriter):
        assert rewriter.optimize("سلام لطفا چطور رمز عبور را ریست کنم") == (
            "چطور رمز عبور را ریست کنم"
        )

    def test_keeps_procedural_intent(self, rewriter):
        assert rewriter.optimize("لطفا مراحل ثبت نام") == "مراحل ثبت نام"

    def test_degenerate_result_falls_back(self, rewriter):
        assert rewriter.optimize("سلام") == "سلام"


class TestRewrite:

    @pytest.mark.asyncio
    async def test_no_history_skips_llm(self):
        llm = Mock()
        llm.complete = AsyncMock()
        rewriter = QueryRewriter(llm)

        result = await rewriter.rewrite("ممنون، خطای 4021 یعنی چه")

        assert result == "خطای 4021 یعنی چه"
        llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_history_rewrite_sanitized(self):
        llm = Mock()
        llm.complete = AsyncMock(return_value='Standalone query: "نحوه رفع خطای 4021"\n')
        rewriter = QueryRewriter(llm)

        result = await rewriter.rewrite("چطور درستش کنم", _history(2))

        assert result == "نحوه رفع خطای 4021"

    @pytest.mark.asyncio
    async def test_only_last_four_turns_sent(self):
        llm = Mock()
        llm.complete = AsyncMock(return_value="rewritten query")
        rewriter = QueryRewriter(llm)

        await rewriter.rewrite("and then?", _history(6))

        messages = llm.complete.await_args.args[0]
        prompt = messages[-1]["content"]
        assert "turn-0" not in prompt
        assert "turn-1" not in prompt
        assert "turn-2" in prompt
        assert "turn-5" in prompt

    @pytest.mark.asyncio
    async def test_provider_error_returns_raw_query(self):
        llm = Mock()
        llm.complete = AsyncMock(side_effect=RuntimeError("boom"))
        rewriter = QueryRewriter(llm)

        assert await rewriter.rewrite("fix it", _history(2)) == "fix it"

    @pytest.mark.asyncio
    async def test_degenerate_output_returns_raw_query(self):
        llm = Mock()
        llm.complete = AsyncMock(return_value="a")
        rewriter = QueryRewriter(llm)

        assert await rewriter.rewrite("fix it", _history(2)) == "fix it"

    @pytest.mark.asyncio
    async def test_timeout_returns_raw_query(self):
        async def slow(messages, temperature):
            await asyncio.sleep(5)
            return "never"

        llm = Mock()
        llm.complete = slow
        rewriter = QueryRewriter(llm, timeout=0.01)

        assert await rewriter.rewrite("fix it", _history(2)) == "fix it"
