import asyncio
import logging
from functools import cached_property

import numpy as np
from sentence_transformers import SentenceTransformer

from .ollama_embedder import format_embedding_input

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """In-process embedding provider."""

    def __init__(self, model_name: str = "intfloat/multilingual-e5-large-instruct"):
        self._model_name = model_name

    @cached_property
    def model(self) -> SentenceTransformer:
        logger.info(f"Loading embedding model: {self._model_name}")
        return SentenceTransformer(self._model_name)

    def warmup(self) -> None:
        _ = self.model
        logger.info("Embedding model warmed up")

    def encode(self, texts: str | list[str], is_query: bool = False) -> np.ndarray:
        if isinstance(texts, str):
            return self.model.encode(
                format_embedding_input(self._model_name, texts, is_query),
                convert_to_numpy=True,
            )
        return self.model.encode(
            [format_embedding_input(self._model_name, t, is_query) for t in texts],
            convert_to_numpy=True,
        )

    async def embed(self, text: str, is_query: bool = False) -> np.ndarray:
        if not text or not text.strip():
            return np.zeros(self.model.get_sentence_embedding_dimension(), dtype=np.float32)
        try:
            return await asyncio.to_thread(self.encode, text, is_query)
        except (RuntimeError, ValueError) as e:
            logger.warning(f"Embedding failed: {e}")
            return np.zeros(self.model.get_sentence_embedding_dimension(), dtype=np.float32)

    async def ping(self, timeout: float = 2.0) -> bool:
        # Local model: available once it can be loaded.
        try:
            await asyncio.wait_for(asyncio.to_thread(self.warmup), timeout)
        except asyncio.TimeoutError:
            # Still loading counts as reachable.
            return True
        except (OSError, RuntimeError) as e:
            logger.warning(f"Embedding model unavailable: {e}")
            return False
        return True
