"""
Error taxonomy for the document chat service.

Every error carries a closed `kind` so the HTTP boundary can choose a
status code and message without matching on message text.
"""

from enum import Enum
from typing import Any, Dict, Optional


class DocChatError(Exception):
    """Base exception for all service errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


# ============================================================
# UPSTREAM MODEL PROVIDER (EMBEDDING + COMPLETION)
# ============================================================

class ProviderErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    AUTH_FAILED = "auth_failed"
    QUOTA_EXCEEDED = "quota_exceeded"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNKNOWN = "unknown"


_PROVIDER_MESSAGES = {
    ProviderErrorKind.RATE_LIMITED:
        "Model provider rate limit exceeded. Please try again later.",
    ProviderErrorKind.AUTH_FAILED:
        "Model provider authentication failed. Please check the configured API key.",
    ProviderErrorKind.QUOTA_EXCEEDED:
        "Model provider quota exceeded. Please check your plan and billing details.",
    ProviderErrorKind.SERVICE_UNAVAILABLE:
        "Model provider is temporarily unavailable. Please try again later.",
    ProviderErrorKind.UNKNOWN:
        "Model provider request failed.",
}


class ProviderError(DocChatError):
    """Raised by the embedding and completion gateways."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.kind = kind
        self.status_code = status_code
        super().__init__(
            message or _PROVIDER_MESSAGES[kind],
            details={"kind": kind.value, "status_code": status_code},
        )

    @property
    def retriable(self) -> bool:
        return self.kind in (
            ProviderErrorKind.RATE_LIMITED,
            ProviderErrorKind.SERVICE_UNAVAILABLE,
        )


# ============================================================
# VECTOR INDEX
# ============================================================

class VectorStoreErrorKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    UNKNOWN = "unknown"


_VECTOR_STORE_MESSAGES = {
    VectorStoreErrorKind.TIMEOUT:
        "Vector database request timed out. Please try again later.",
    VectorStoreErrorKind.CONNECTION_ERROR:
        "Unable to connect to vector database. Please check your connection and try again.",
    VectorStoreErrorKind.UNKNOWN:
        "Vector database request failed.",
}


class VectorStoreError(DocChatError):
    """Raised by the vector index gateway."""

    def __init__(
        self,
        kind: VectorStoreErrorKind,
        operation: str,
        message: Optional[str] = None,
    ):
        self.kind = kind
        self.operation = operation
        super().__init__(
            message or _VECTOR_STORE_MESSAGES[kind],
            details={"kind": kind.value, "operation": operation},
        )

    @property
    def retriable(self) -> bool:
        return self.kind in (
            VectorStoreErrorKind.TIMEOUT,
            VectorStoreErrorKind.CONNECTION_ERROR,
        )


# ============================================================
# INGESTION
# ============================================================

class IngestionErrorKind(str, Enum):
    UNSUPPORTED_TYPE = "unsupported_type"
    FILE_TOO_LARGE = "file_too_large"
    EMPTY_FILE = "empty_file"
    NO_TEXT = "no_text"
    EXTRACTION_FAILED = "extraction_failed"


class IngestionError(DocChatError):
    """Raised when an uploaded document cannot be accepted."""

    def __init__(self, kind: IngestionErrorKind, message: str):
        self.kind = kind
        super().__init__(message, details={"kind": kind.value})

    @property
    def retriable(self) -> bool:
        return False


# ============================================================
# LOOKUPS
# ============================================================

class DocumentNotFoundError(DocChatError):

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document with ID {document_id} not found")


class ChatNotFoundError(DocChatError):

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        super().__init__(f"Chat history with ID {chat_id} not found")
