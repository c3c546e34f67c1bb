from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docchat.config import (
    MAX_SUMMARY_TOKENS,
    MAX_SUMMARY_TOKENS_LIMIT,
    MAX_TOP_K,
    MIN_SUMMARY_TOKENS,
    MIN_TOP_K,
    TOP_K,
)


# ============================================================
# PIPELINE DATA MODEL
# ============================================================

class Chunk(BaseModel):
    """One piece of a document's extracted text. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    text: str
    index: int
    total_chunks: int
    document_id: str
    filename: str
    content_type: str
    size_bytes: int
    uploaded_at: datetime

    @property
    def record_id(self) -> str:
        return f"{self.document_id}_chunk_{self.index}"


class VectorRecord(BaseModel):
    """A chunk plus its embedding, as stored in the vector index."""

    id: str
    embedding: List[float]
    metadata: Chunk

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: List[float]) -> "VectorRecord":
        return cls(id=chunk.record_id, embedding=embedding, metadata=chunk)


class SearchResult(BaseModel):
    """A similarity match; higher score means more similar."""

    id: str
    score: float
    metadata: Chunk


class TokenUsage(BaseModel):
    prompt: int = 0
    completion: int = 0
    total: int = 0


class ContextItem(BaseModel):
    text: str
    score: float
    source: Optional[str] = None

    @classmethod
    def from_search_result(cls, result: SearchResult) -> "ContextItem":
        return cls(
            text=result.metadata.text,
            score=result.score,
            source=result.metadata.filename or None,
        )


class ChatMessage(BaseModel):
    """One conversation turn."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    context: Optional[List[ContextItem]] = None
    tokens_used: Optional[TokenUsage] = None


class ChatResult(BaseModel):
    """Outcome of one orchestrator query."""

    answer: str
    context: Optional[List[ContextItem]] = None
    tokens_used: TokenUsage = Field(default_factory=TokenUsage)


class StreamEvent(BaseModel):
    """Incremental output of a streaming query."""

    type: Literal["context", "chunk", "done"]
    text: Optional[str] = None
    answer: Optional[str] = None
    context: Optional[List[ContextItem]] = None
    tokens_used: Optional[TokenUsage] = None


class UploadedDocument(BaseModel):
    document_id: str
    filename: str
    content_type: str
    size_bytes: int
    chunk_count: int
    uploaded_at: datetime


# ============================================================
# HTTP SCHEMAS
# ============================================================

class ChatQueryRequest(BaseModel):
    """Request to ask a question, optionally within an existing chat."""

    message: str = Field(..., min_length=1, max_length=32000)
    chat_id: Optional[str] = None
    top_k: int = Field(TOP_K, ge=MIN_TOP_K, le=MAX_TOP_K)
    use_rag: bool = True
    compress_prompt: bool = True
    max_summary_tokens: int = Field(
        MAX_SUMMARY_TOKENS,
        ge=MIN_SUMMARY_TOKENS,
        le=MAX_SUMMARY_TOKENS_LIMIT,
    )

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        """Ensure message is not just whitespace."""
        if not v.strip():
            raise ValueError("Message cannot be empty")
        return v.strip()


class ChatQueryResponse(BaseModel):
    answer: str
    chat_id: str
    context: Optional[List[ContextItem]] = None
    tokens_used: Optional[TokenUsage] = None


class ChatHistoryResponse(BaseModel):
    chat_id: str
    messages: List[ChatMessage]
    created_at: datetime
    updated_at: datetime


class ChatSummary(BaseModel):
    chat_id: str
    message_count: int
    created_at: datetime
    updated_at: datetime
    last_message: Optional[ChatMessage] = None


class ListChatsResponse(BaseModel):
    chats: List[ChatSummary]


class DeleteChatResponse(BaseModel):
    chat_id: str
    message: str
    success: bool


class UploadResponse(BaseModel):
    """Response after uploading a document."""
    document_id: str
    filename: str
    content_type: str
    size_bytes: int
    chunks_created: int
    uploaded_at: datetime
    message: str = "Document uploaded and indexed successfully"


class DocumentInfo(BaseModel):
    """Information about a stored document."""
    document_id: str
    filename: str
    content_type: str
    size_bytes: int
    chunks_count: int
    uploaded_at: Optional[datetime] = None


class ListDocumentsResponse(BaseModel):
    """Response listing all documents in the system."""
    documents: List[DocumentInfo]
    total_documents: int
    total_chunks: int


class DeleteDocumentResponse(BaseModel):
    """Response after deleting a document."""
    document_id: str
    message: str
    success: bool


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    total_documents: int
    total_chunks: int


class ErrorResponse(BaseModel):
    detail: str
    error_kind: Optional[str] = None
    request_id: Optional[str] = None
