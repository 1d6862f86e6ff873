"""
Embedding service - text to fixed-length vectors.

Any object with ``async embed(text) -> List[float]`` and a ``dimension``
attribute can stand in for the OpenAI embedder (tests use a small fake).
"""

import logging
import time
from typing import List, Optional, Sequence

import openai

from himind.core.config import settings
from himind.core.logging_utils import log_model_usage
from himind.shared.errors import EmbeddingDimensionError, EmbeddingServiceError

logger = logging.getLogger("HiMind.Knowledge.Embedder")

MAX_INPUT_CHARS = 8000


def validate_dimension(embedding: Sequence[float], expected: int) -> None:
    """Raise EmbeddingDimensionError when ``embedding`` has the wrong length."""
    if len(embedding) != expected:
        raise EmbeddingDimensionError(expected=expected, actual=len(embedding))


class OpenAIEmbedder:
    """OpenAI embeddings with a bounded request timeout."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model or settings.EMBEDDING_MODEL
        self.dimension = dimension or settings.EMBEDDING_DIMENSION
        self.client = openai.AsyncOpenAI(
            api_key=api_key or settings.OPENAI_API_KEY,
            timeout=timeout or settings.EMBEDDING_TIMEOUT_SECONDS,
            max_retries=2,
        )
        logger.info(f"Embedder initialized with model {self.model} ({self.dimension} dims)")

    async def embed(self, text: str) -> List[float]:
        """
        Generate an embedding for text.

        Raises:
            EmbeddingServiceError: the provider call failed
            EmbeddingDimensionError: the provider returned an unexpected length
        """
        started = time.monotonic()
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text[:MAX_INPUT_CHARS],
            )
        except openai.OpenAIError as e:
            raise EmbeddingServiceError(f"Embedding API call failed: {e}") from e

        embedding = response.data[0].embedding
        validate_dimension(embedding, self.dimension)

        usage = getattr(response, "usage", None)
        log_model_usage(
            model=self.model,
            operation="embedding",
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return embedding
