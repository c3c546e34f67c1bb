"""
Retry-with-backoff for remote gateway calls.

Only errors that expose `retriable = True` (rate limits, provider outages,
vector store timeouts and connection failures) are retried. Everything
else fails on the first attempt.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from docchat.config import (
    QUERY_RETRY_MAX_ATTEMPTS,
    RETRY_INITIAL_DELAY,
    RETRY_JITTER,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_DELAY,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retriable(exc: BaseException) -> bool:
    return bool(getattr(exc, "retriable", False))


@dataclass(frozen=True)
class RetryPolicy:

    max_attempts: int = RETRY_MAX_ATTEMPTS
    initial_delay: float = RETRY_INITIAL_DELAY
    max_delay: float = RETRY_MAX_DELAY
    jitter: float = RETRY_JITTER

    def wrap(
        self,
        fn: Callable[..., Awaitable[T]],
        operation: str = "",
    ) -> Callable[..., Awaitable[T]]:
        """Return `fn` retried under this policy."""

        name = operation or getattr(fn, "__name__", "call")

        def _log_retry(retry_state):
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Retrying remote call",
                extra={
                    "operation": name,
                    "attempt": retry_state.attempt_number,
                    "max_attempts": self.max_attempts,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )

        return retry(
            retry=retry_if_exception(is_retriable),
            stop=stop_after_attempt(max(1, self.max_attempts)),
            wait=wait_exponential_jitter(
                initial=self.initial_delay,
                max=self.max_delay,
                jitter=self.jitter,
            ),
            before_sleep=_log_retry,
            reraise=True,
        )(fn)


NO_RETRY = RetryPolicy(max_attempts=1)

QUERY_RETRY = RetryPolicy(max_attempts=QUERY_RETRY_MAX_ATTEMPTS)
