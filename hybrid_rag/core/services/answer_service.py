"""Answer generator - grounded prompt construction and output cleanup."""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from ..models.chat import ChatMessage
from ..models.config import RetrievalConfig
from ..models.document import ScoredCandidate
from ..prompts import ADVISOR_SYSTEM_PROMPT, ANSWER_SYSTEM_PROMPT, CONTEXT_PROMPT
from ..protocols.llm import CompletionProvider

logger = logging.getLogger(__name__)

# CJK characters + CJK punctuation
_CJK_RE = re.compile(
    r"[\u3000-\u303f\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af\uff00-\uffef]"
)
_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_PERSIAN_LETTER_RE = re.compile(
    r"[\u0621-\u063a\u0641-\u064a\u067e\u0686\u0698\u06a9\u06af\u06cc]"
)
_FOREIGN_LETTER_RE = re.compile(r"[A-Za-z\u0400-\u04ff]")
_LIST_MARKER_TAIL_RE = re.compile(r"[\s\d۰-۹.\-*#•()]*$")
_BOILERPLATE_RE = re.compile(
    r"^\s*(?:"
    r"(?:based on|according to)\s+(?:the\s+)?(?:provided\s+|given\s+)?"
    r"(?:context|documents?|documentation|information)[^:\n]{0,40}[:,.]"
    r"|(?:بر\s*اساس|طبق|با\s*توجه\s*به)\s+(?:متن|مستندات|اطلاعات|اسناد)"
    r"(?:\s+(?:ارائه\s*شده|موجود|داده\s*شده))?\s*[:،,]"
    r")\s*",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class GeneratedAnswer:
    text: str
    raw_text: str
    valid: bool


class AnswerGenerator:
    """Builds the grounded prompt and calls the completion provider once."""

    HISTORY_LIMIT = 4
    MAX_TURN_CHARS = 500

    def __init__(self, llm: CompletionProvider, enforce_language: bool = True):
        """Initialize generator.

        Args:
            llm: Completion provider.
            enforce_language: Treat output without Persian letters as a failure.
        """
        self._llm = llm
        self._enforce_language = enforce_language

    @staticmethod
    def format_context(candidates: Sequence[ScoredCandidate]) -> str:
        """Passage texts tagged with their source id."""
        return "\n\n---\n\n".join(
            f"[سند: {c.passage.source.id}]\n{c.passage.content}" for c in candidates
        )

    def build_messages(
        self,
        question: str,
        candidates: Sequence[ScoredCandidate],
        history: Sequence[ChatMessage] = (),
        system_prompt: Optional[str] = None,
        advisor: bool = False,
    ) -> list[dict]:
        if advisor:
            instruction = ADVISOR_SYSTEM_PROMPT
        else:
            instruction = system_prompt or ANSWER_SYSTEM_PROMPT

        messages = [{"role": "system", "content": instruction}]
        for turn in tuple(history)[-self.HISTORY_LIMIT:]:
            role = "user" if turn.role == "user" else "assistant"
            messages.append({"role": role, "content": turn.truncated(self.MAX_TURN_CHARS)})

        messages.append(
            {
                "role": "user",
                "content": CONTEXT_PROMPT.format(
                    context=self.format_context(candidates), question=question
                ),
            }
        )
        return messages

    async def generate(
        self,
        question: str,
        candidates: Sequence[ScoredCandidate],
        history: Sequence[ChatMessage] = (),
        config: Optional[RetrievalConfig] = None,
        advisor: bool = False,
    ) -> GeneratedAnswer:
        """Generate and clean an answer.

        Provider errors propagate; language leakage does not raise but
        returns an answer flagged invalid.
        """
        config = config or RetrievalConfig()
        messages = self.build_messages(
            question, candidates, history, config.system_prompt, advisor
        )
        raw = await self._llm.complete(messages, config.temperature)
        cleaned = self.clean_output(raw or "")

        if self._enforce_language:
            valid = bool(_PERSIAN_LETTER_RE.search(cleaned))
        else:
            valid = bool(cleaned)

        if not valid:
            logger.error(f"Generation produced no usable answer: {(raw or '')[:80]!r}")

        return GeneratedAnswer(text=cleaned, raw_text=raw or "", valid=valid)

    def clean_output(self, text: str) -> str:
        """Strip reasoning blocks, prefaces and foreign-script leakage."""
        cleaned = _THINK_RE.sub("", text)
        cleaned = _CJK_RE.sub("", cleaned).strip()
        cleaned = _BOILERPLATE_RE.sub("", cleaned, count=1)

        if self._enforce_language:
            first = _PERSIAN_LETTER_RE.search(cleaned)
            if first is None:
                return ""
            prefix = cleaned[: first.start()]
            if _FOREIGN_LETTER_RE.search(prefix):
                marker = _LIST_MARKER_TAIL_RE.search(prefix).group().lstrip()
                cleaned = marker + cleaned[first.start():]
            cleaned = _BOILERPLATE_RE.sub("", cleaned, count=1)

        cleaned = re.sub(r"[ \t]{2,}", " ", cleaned)
        return cleaned.strip()
