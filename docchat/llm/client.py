import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from docchat.config import (
    LLM_MAX_TOKENS,
    LLM_MODEL,
    LLM_TEMPERATURE,
    OPENAI_API_KEY,
)
from docchat.llm.provider_errors import to_provider_error
from docchat.models import TokenUsage
from docchat.retry import RetryPolicy

logger = logging.getLogger(__name__)

Message = Dict[str, str]


@dataclass
class Completion:
    text: str
    usage: TokenUsage


@dataclass
class CompletionDelta:
    """One streamed fragment. The provider's final report carries usage only."""
    text: str = ""
    usage: Optional[TokenUsage] = None


def usage_from_response(usage) -> TokenUsage:

    if usage is None:
        return TokenUsage()

    return TokenUsage(
        prompt=getattr(usage, "prompt_tokens", 0) or 0,
        completion=getattr(usage, "completion_tokens", 0) or 0,
        total=getattr(usage, "total_tokens", 0) or 0,
    )


class LLMClient:
    """
    Chat completion gateway over the OpenAI API.

    Handles whole-response and streaming calls. Provider failures are
    raised as ProviderError; whole-response calls are retried for
    retriable kinds, streams are not.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = LLM_MODEL,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize OpenAI client.

        Args:
            client: preconfigured AsyncOpenAI client (default: built from OPENAI_API_KEY)
            model: OpenAI model to use (default: gpt-4o-mini)
            retry_policy: retry policy for whole-response calls
        """
        self._client = client or AsyncOpenAI(api_key=OPENAI_API_KEY)
        self.model = model

        self._complete_with_retry = (retry_policy or RetryPolicy()).wrap(
            self._complete_once,
            operation="complete",
        )

    async def complete(
        self,
        messages: List[Message],
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = LLM_MAX_TOKENS,
    ) -> Completion:
        """
        Generate a whole response.

        Raises:
            ProviderError: classified provider failure
        """
        return await self._complete_with_retry(messages, temperature, max_tokens)

    async def _complete_once(
        self,
        messages: List[Message],
        temperature: float,
        max_tokens: int,
    ) -> Completion:

        start = time.time()

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            raise to_provider_error(e, operation="complete") from e

        text = ""

        if response.choices:
            text = response.choices[0].message.content or ""

        logger.info(
            "LLM provider success",
            extra={
                "provider": "openai",
                "model": self.model,
                "latency_seconds": round(time.time() - start, 3),
            },
        )

        return Completion(text=text, usage=usage_from_response(response.usage))

    async def stream(
        self,
        messages: List[Message],
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = LLM_MAX_TOKENS,
    ) -> AsyncIterator[CompletionDelta]:
        """
        Generate a response incrementally.

        Fragments are yielded as the provider sends them, without
        buffering, so the consumer's pace sets the pace of the stream.
        """

        try:
            stream = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )
        except Exception as e:
            raise to_provider_error(e, operation="stream") from e

        try:

            async for event in stream:

                if getattr(event, "usage", None):
                    yield CompletionDelta(usage=usage_from_response(event.usage))

                if not event.choices:
                    continue

                content = event.choices[0].delta.content

                if content:
                    yield CompletionDelta(text=content)

        except Exception as e:
            raise to_provider_error(e, operation="stream") from e
