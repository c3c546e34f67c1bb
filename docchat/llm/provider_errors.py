# docchat/llm/provider_errors.py

"""
Classification of OpenAI SDK failures into ProviderError kinds.

Runs immediately after the remote call, so nothing downstream has to
re-derive the failure kind from free text.
"""

import logging

import openai

from docchat.errors import ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)

_QUOTA_CODES = {"insufficient_quota", "billing_hard_limit_reached"}

_UNAVAILABLE_STATUSES = {500, 502, 503, 504}


def classify_status(status_code: int, error_code: str = None) -> ProviderErrorKind:

    if status_code == 402 or error_code in _QUOTA_CODES:
        return ProviderErrorKind.QUOTA_EXCEEDED

    if status_code == 429:
        return ProviderErrorKind.RATE_LIMITED

    if status_code in (401, 403):
        return ProviderErrorKind.AUTH_FAILED

    if status_code in _UNAVAILABLE_STATUSES:
        return ProviderErrorKind.SERVICE_UNAVAILABLE

    return ProviderErrorKind.UNKNOWN


def to_provider_error(exc: Exception, operation: str) -> ProviderError:
    """Map an exception raised by the OpenAI SDK to a ProviderError."""

    if isinstance(exc, ProviderError):
        return exc

    if isinstance(exc, openai.APIStatusError):

        kind = classify_status(exc.status_code, getattr(exc, "code", None))
        status_code = exc.status_code

    elif isinstance(exc, openai.APIConnectionError):

        # Includes APITimeoutError
        kind = ProviderErrorKind.SERVICE_UNAVAILABLE
        status_code = None

    else:

        kind = ProviderErrorKind.UNKNOWN
        status_code = None

    logger.error(
        "Model provider call failed",
        extra={
            "operation": operation,
            "error_kind": kind.value,
            "status_code": status_code,
            "error_type": type(exc).__name__,
        },
    )

    return ProviderError(kind, status_code=status_code)
