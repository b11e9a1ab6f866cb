"""Query rewriter - turns follow-ups into standalone search queries."""

import asyncio
import logging
from typing import Optional, Sequence

from ..models.chat import ChatMessage
from ..prompts import REWRITE_SYSTEM_PROMPT, REWRITE_USER_PROMPT
from ..protocols.llm import CompletionProvider
from ..strategies.term_processor import normalize

logger = logging.getLogger(__name__)


class QueryRewriter:
    """Rewrites a question against recent history, or tidies it without one."""

    HISTORY_LIMIT = 4
    MAX_TURN_CHARS = 400
    MIN_OUTPUT_LENGTH = 3

    FILLER_TOKENS = frozenset(
        {
            "سلام", "لطفا", "لطفاً", "ممنون", "مرسی", "متشکرم", "خواهشمندم",
            "خواهشا", "میخواستم", "بدونم", "بپرسم", "ببخشید", "عزیز", "همکار",
            "hi", "hello", "please", "thanks", "thank", "kindly",
        }
    )

    # Procedural intent is retrieval signal, never filler.
    INTENT_TOKENS = frozenset(
        {
            "چطور", "چگونه", "نحوه", "روش", "مراحل", "مرحله", "گام", "طریقه",
            "how", "steps", "step", "method", "procedure",
        }
    )

    def __init__(
        self,
        llm: CompletionProvider,
        temperature: float = 0.0,
        timeout: Optional[float] = 30.0,
    ):
        """Initialize rewriter.

        Args:
            llm: Completion provider used for history-aware rewriting.
            temperature: Sampling temperature for the rewrite call.
            timeout: Seconds before a rewrite call is abandoned.
        """
        self._llm = llm
        self._temperature = temperature
        self._timeout = timeout
        self._fillers = frozenset(normalize(t) for t in self.FILLER_TOKENS)
        self._intents = frozenset(normalize(t) for t in self.INTENT_TOKENS)

    def optimize(self, query: str) -> str:
        """Strip filler and politeness tokens, keeping procedural words."""
        kept = [
            token
            for token in query.split()
            if normalize(token) in self._intents or normalize(token) not in self._fillers
        ]
        optimized = " ".join(kept).strip()
        if self._is_degenerate(optimized):
            return query
        return optimized

    async def rewrite(
        self, query: str, history: Sequence[ChatMessage] = ()
    ) -> str:
        """Return a standalone search query.

        Never makes things worse than the raw query: provider failures and
        degenerate outputs fall back to it.
        """
        turns = tuple(history)[-self.HISTORY_LIMIT:]
        if not turns:
            return self.optimize(query)

        messages = [
            {"role": "system", "content": REWRITE_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": REWRITE_USER_PROMPT.format(
                    history=self._format_history(turns), question=query
                ),
            },
        ]

        try:
            raw = await asyncio.wait_for(
                self._llm.complete(messages, self._temperature), self._timeout
            )
        except Exception as e:
            logger.warning(f"[rewrite] Falling back to raw query: {e}")
            return query

        rewritten = self._sanitize(raw)
        if self._is_degenerate(rewritten):
            logger.info(f"[rewrite] Degenerate output {raw!r}, using raw query")
            return query

        if rewritten != query:
            logger.info(f"[rewrite] '{query[:50]}' → '{rewritten[:50]}'")
        return rewritten

    def _format_history(self, turns: Sequence[ChatMessage]) -> str:
        lines = []
        for turn in turns:
            content = turn.truncated(self.MAX_TURN_CHARS).strip().replace("\n", " ")
            lines.append(f"{turn.role}: {content}")
        return "\n".join(lines)

    @staticmethod
    def _sanitize(raw: Optional[str]) -> str:
        if not raw:
            return ""
        for line in raw.strip().splitlines():
            line = line.strip()
            if line.lower().startswith("standalone query:"):
                line = line.split(":", 1)[1]
            line = line.strip().strip("\"'«»`").strip()
            if line:
                return line
        return ""

    def _is_degenerate(self, text: str) -> bool:
        return len(text.strip()) < self.MIN_OUTPUT_LENGTH
