import logging
import re
from typing import Optional

import httpx
import numpy as np

from hybrid_rag.core.errors import ProviderUnreachableError

logger = logging.getLogger(__name__)

INSTRUCT_TASK = "Given a web search query, retrieve relevant passages that answer the query"
MAX_INPUT_CHARS = 2048

_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def format_embedding_input(model_name: str, text: str, is_query: bool) -> str:
    """Apply the asymmetric query/passage prefix the model family expects."""
    text = _CONTROL_RE.sub(" ", text)
    text = " ".join(text.split())[:MAX_INPUT_CHARS]

    name = model_name.lower()
    if "e5" in name and "instruct" in name:
        # Instruct models take a task description on the query side only.
        return f"Instruct: {INSTRUCT_TASK}\nQuery: {text}" if is_query else text
    if "nomic" in name:
        return ("search_query: " if is_query else "search_document: ") + text
    return ("query: " if is_query else "passage: ") + text


def parse_embedding(data: dict) -> Optional[list]:
    """Pull the vector out of any of the known reply shapes."""
    if isinstance(data.get("embedding"), list):
        return data["embedding"]
    embeddings = data.get("embeddings")
    if isinstance(embeddings, list) and embeddings and isinstance(embeddings[0], list):
        return embeddings[0]
    items = data.get("data")
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0].get("embedding")
    return None


class OllamaEmbedder:
    """Embedding provider backed by the Ollama HTTP API."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "intfloat/multilingual-e5-large-instruct",
        dimension: int = 1024,
        timeout: float = 60.0,
    ):
        """Initialize Ollama embedder.

        Args:
            base_url: Ollama server URL (without /v1).
            model: Embedding model name.
            dimension: Size of the zero vector returned on failure.
            timeout: Request timeout in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._dimension = dimension
        self._timeout = timeout

    def _zero(self) -> np.ndarray:
        return np.zeros(self._dimension, dtype=np.float32)

    async def embed(self, text: str, is_query: bool = False) -> np.ndarray:
        if not text or not text.strip():
            return self._zero()

        prompt = format_embedding_input(self._model, text, is_query)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    f"{self._base_url}/api/embeddings",
                    json={"model": self._model, "prompt": prompt},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.ConnectError as e:
            raise ProviderUnreachableError(
                f"Ollama unreachable at {self._base_url}: {e}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Embedding failed: {e}")
            return self._zero()

        vector = parse_embedding(data)
        if not vector:
            logger.warning(f"Unexpected embedding reply keys: {list(data)}")
            return self._zero()

        embedding = np.asarray(vector, dtype=np.float32)
        if np.isnan(embedding).any():
            logger.error("Embedding contained NaN values")
            return self._zero()
        return embedding

    async def ping(self, timeout: float = 2.0) -> bool:
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.get(f"{self._base_url}/api/tags")
            return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Ollama ping failed: {e}")
            return False
