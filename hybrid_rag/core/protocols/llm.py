"""Completion provider protocol for dependency injection."""
from typing import Protocol, runtime_checkable


@runtime_checkable
class CompletionProvider(Protocol):
    """Protocol for LLM client."""

    async def complete(self, messages: list[dict], temperature: float) -> str:
        """Generate a single non-streaming reply.

        Args:
            messages: Chat messages (role/content dicts).
            temperature: Sampling temperature.

        Returns:
            Generated text.

        Raises:
            ProviderUnreachableError: Transport failure.
            CompletionError: The model answered with an error.
        """
        ...
