"""Conversation turns passed to the rewriter and the answer generator."""
from dataclasses import dataclass, field
from typing import Iterable


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" | "assistant"
    content: str

    def truncated(self, limit: int) -> str:
        """Content cut to `limit` characters, marked with an ellipsis."""
        if len(self.content) <= limit:
            return self.content
        return self.content[:limit] + "…"


@dataclass
class ChatHistory:
    """Bounded conversation window, oldest turns dropped first."""
    messages: list[ChatMessage] = field(default_factory=list)
    max_messages: int = 8

    @classmethod
    def from_records(cls, records: Iterable[dict], max_messages: int = 8) -> "ChatHistory":
        history = cls(max_messages=max_messages)
        for record in records:
            history.add(ChatMessage(role=record["role"], content=record["content"]))
        return history

    def add(self, message: ChatMessage) -> None:
        self.messages.append(message)
        if len(self.messages) > self.max_messages:
            self.messages = self.messages[-self.max_messages:]

    def record(self, question: str, answer: str) -> None:
        """Append one question/answer exchange."""
        self.add(ChatMessage(role="user", content=question))
        self.add(ChatMessage(role="assistant", content=answer))

    def recent(self, limit: int = 4) -> tuple[ChatMessage, ...]:
        """Last `limit` turns, most-recent-last."""
        if limit <= 0:
            return ()
        return tuple(self.messages[-limit:])
