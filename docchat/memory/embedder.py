# docchat/memory/embedder.py

"""
Embedding gateway over the OpenAI embeddings API.

Architecture contract:
chunker → embedder → vector_store

Guarantees:
• One remote call per embed() attempt
• Always returns a list of floats of the configured dimension
• Failures surface as ProviderError with a closed kind
• Retriable kinds are retried by the configured RetryPolicy
"""

import logging
from typing import List, Optional

from openai import AsyncOpenAI

from docchat.config import (
    EMBEDDING_DIMENSION,
    EMBEDDING_MODEL,
    OPENAI_API_KEY,
)
from docchat.errors import ProviderError, ProviderErrorKind
from docchat.llm.provider_errors import to_provider_error
from docchat.retry import RetryPolicy

logger = logging.getLogger(__name__)


class Embedder:
    """
    Text to vector gateway.

    Responsibilities:
    • Call OpenAI embedding API
    • Classify provider failures
    • Enforce the index dimension
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = EMBEDDING_MODEL,
        dimension: int = EMBEDDING_DIMENSION,
        retry_policy: Optional[RetryPolicy] = None,
    ):

        self._client = client or AsyncOpenAI(api_key=OPENAI_API_KEY)
        self._model = model
        self._dimension = dimension

        self._embed_with_retry = (retry_policy or RetryPolicy()).wrap(
            self._embed_once,
            operation="embed",
        )

        logger.info(
            "Embedding gateway initialized",
            extra={"model": model, "dimension": dimension},
        )

    # ============================================================
    # PUBLIC API
    # ============================================================

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            ProviderError: classified provider failure
        """

        return await self._embed_with_retry(text)

    async def _embed_once(self, text: str) -> List[float]:

        try:

            response = await self._client.embeddings.create(
                model=self._model,
                input=text,
            )

        except Exception as e:

            raise to_provider_error(e, operation="embed") from e

        embedding = list(response.data[0].embedding)

        if len(embedding) != self._dimension:

            logger.error(
                "Embedding dimension mismatch",
                extra={
                    "expected": self._dimension,
                    "received": len(embedding),
                },
            )

            raise ProviderError(
                ProviderErrorKind.UNKNOWN,
                f"Embedding model returned {len(embedding)} dimensions, "
                f"expected {self._dimension}",
            )

        return embedding

    # ============================================================
    # ACCESSORS
    # ============================================================

    def get_dimension(self) -> int:
        """Length of every vector returned by embed()."""
        return self._dimension
