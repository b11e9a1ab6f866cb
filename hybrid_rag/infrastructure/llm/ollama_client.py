import logging

import httpx
import openai
from openai import AsyncOpenAI

from hybrid_rag.core.errors import CompletionError, ProviderUnreachableError

logger = logging.getLogger(__name__)


class OllamaClient:
    """LLM client for Ollama (OpenAI-compatible API)."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434/v1",
        model: str = "qwen2.5:7b",
        max_tokens: int = 1024,
        timeout: float = 120.0,
    ):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API URL.
            model: Model name.
            max_tokens: Max response tokens.
            timeout: Request timeout in seconds.
        """
        self._client = AsyncOpenAI(base_url=base_url, api_key="ollama", timeout=timeout)
        self._base_url = base_url
        self._model = model
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    async def complete(self, messages: list[dict], temperature: float) -> str:
        """Single non-streaming completion.

        Args:
            messages: Chat messages.
            temperature: Sampling temperature.

        Returns:
            Reply text.

        Raises:
            ProviderUnreachableError: The server could not be reached.
            CompletionError: The server answered with an error.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                max_tokens=self._max_tokens,
                temperature=temperature,
                stream=False,
            )
        except openai.APIConnectionError as e:
            raise ProviderUnreachableError(
                f"LLM unreachable at {self._base_url}: {e}"
            ) from e
        except openai.APIError as e:
            raise CompletionError(f"LLM error from {self._model}: {e}") from e

        if not response.choices:
            raise CompletionError(f"Empty completion from {self._model}")
        return response.choices[0].message.content or ""

    async def ping(self, timeout: float = 2.0) -> bool:
        base_url = self._base_url.rstrip("/").removesuffix("/v1")
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.get(f"{base_url}/api/tags")
            return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"LLM ping failed: {e}")
            return False
