# docchat/workflow/compressor.py

import logging
import math
from typing import Callable

from docchat.config import (
    CHARS_PER_TOKEN,
    COMPRESSION_TEMPERATURE,
    COMPRESSION_TOKEN_MARGIN,
    MAX_SUMMARY_TOKENS,
)
from docchat.prompts.prompt_builder import build_compression_messages

logger = logging.getLogger(__name__)

TokenEstimator = Callable[[str], int]


def estimate_tokens(text: str) -> int:
    """Rough token count: 4 characters per token, no tokenizer call."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class ContextCompressor:
    """
    Condenses retrieved context to a token budget with one LLM call.

    Compression never blocks a query: when the completion call fails,
    the original context is returned unchanged.
    """

    def __init__(
        self,
        llm_client,
        token_estimator: TokenEstimator = estimate_tokens,
        temperature: float = COMPRESSION_TEMPERATURE,
        token_margin: int = COMPRESSION_TOKEN_MARGIN,
    ):

        self._llm = llm_client
        self._estimate = token_estimator
        self._temperature = temperature
        self._token_margin = token_margin

    async def compress(
        self,
        context_text: str,
        user_question: str,
        max_summary_tokens: int = MAX_SUMMARY_TOKENS,
    ) -> str:

        estimated = self._estimate(context_text)

        if estimated <= max_summary_tokens:

            logger.info(
                "Compression skipped: context within budget",
                extra={
                    "estimated_tokens": estimated,
                    "max_summary_tokens": max_summary_tokens,
                },
            )

            return context_text

        try:

            completion = await self._llm.complete(
                build_compression_messages(
                    context_text,
                    user_question,
                    max_summary_tokens,
                ),
                temperature=self._temperature,
                max_tokens=max_summary_tokens + self._token_margin,
            )

        except Exception as e:

            logger.warning(
                "Compression failed, using uncompressed context",
                extra={
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )

            return context_text

        summary = (completion.text or "").strip()

        if not summary:

            logger.warning("Compression returned empty summary, using uncompressed context")

            return context_text

        logger.info(
            "Context compressed",
            extra={
                "original_tokens": estimated,
                "compressed_tokens": self._estimate(summary),
                "max_summary_tokens": max_summary_tokens,
            },
        )

        return summary
