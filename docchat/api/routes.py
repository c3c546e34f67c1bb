import json
import logging
import time
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import StreamingResponse

from docchat.api.deps import (
    get_document_service,
    get_history_store,
    get_ingestor,
    get_metrics_tracker,
    get_orchestrator,
    get_registry,
)
from docchat.errors import (
    ChatNotFoundError,
    DocChatError,
    IngestionError,
    IngestionErrorKind,
)
from docchat.history.store import ChatHistoryStore, messages_for_completion
from docchat.memory.ingest import DocumentIngestor, DocumentService
from docchat.memory.registry import DocumentRegistry
from docchat.models import (
    ChatHistoryResponse,
    ChatMessage,
    ChatQueryRequest,
    ChatQueryResponse,
    ContextItem,
    DeleteChatResponse,
    DeleteDocumentResponse,
    DocumentInfo,
    HealthResponse,
    ListChatsResponse,
    ListDocumentsResponse,
    TokenUsage,
    UploadedDocument,
    UploadResponse,
)
from docchat.observability.metrics import MetricsTracker
from docchat.workflow.document_qa import RAGOrchestrator


# ============================================================
# LOGGER
# ============================================================

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================
# HELPERS
# ============================================================

def _document_info(document: UploadedDocument) -> DocumentInfo:

    return DocumentInfo(
        document_id=document.document_id,
        filename=document.filename,
        content_type=document.content_type,
        size_bytes=document.size_bytes,
        chunks_count=document.chunk_count,
        uploaded_at=document.uploaded_at,
    )


async def _resolve_chat(
    store: ChatHistoryStore,
    chat_id: Optional[str],
) -> Tuple[str, List[ChatMessage]]:
    """
    Return the chat id and its prior turns. An unknown id is created
    under that id; no id means a new chat.
    """

    if not chat_id:
        return await store.create(), []

    try:
        history = await store.get_history(chat_id)
    except ChatNotFoundError:
        return await store.create(chat_id), []

    return chat_id, messages_for_completion(history.messages)


async def _save_turns(
    store: ChatHistoryStore,
    chat_id: str,
    question: str,
    answer: str,
    context: Optional[List[ContextItem]],
    tokens_used: Optional[TokenUsage],
):

    await store.append(chat_id, ChatMessage(role="user", content=question))

    await store.append(
        chat_id,
        ChatMessage(
            role="assistant",
            content=answer,
            context=context,
            tokens_used=tokens_used,
        ),
    )


def _sse_frame(event_type: str, data) -> str:
    return f"data: {json.dumps({'type': event_type, 'data': data})}\n\n"


def _dump_context(context: Optional[List[ContextItem]]):

    if context is None:
        return None

    return [item.model_dump(mode="json") for item in context]


# ============================================================
# HEALTH
# ============================================================

@router.get("/health", response_model=HealthResponse)
def health_check(registry: DocumentRegistry = Depends(get_registry)):

    return HealthResponse(
        status="healthy",
        total_documents=len(registry),
        total_chunks=registry.total_chunks(),
    )


# ============================================================
# METRICS ENDPOINT
# ============================================================

@router.get("/metrics")
def get_metrics(metrics: MetricsTracker = Depends(get_metrics_tracker)):

    return metrics.get_metrics()


# ============================================================
# UPLOAD DOCUMENT
# ============================================================

@router.post("/upload", response_model=UploadResponse)
async def upload_document(
    request: Request,
    file: Optional[UploadFile] = File(None),
    ingestor: DocumentIngestor = Depends(get_ingestor),
):

    if file is None:
        raise IngestionError(IngestionErrorKind.EMPTY_FILE, "No file provided")

    content = await file.read()

    filename = file.filename or "upload"
    content_type = file.content_type or "application/octet-stream"

    logger.info(
        "Document upload received",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "upload_filename": filename,
            "content_type": content_type,
            "size_bytes": len(content),
        },
    )

    document = await ingestor.ingest(content, filename, content_type)

    return UploadResponse(
        document_id=document.document_id,
        filename=document.filename,
        content_type=document.content_type,
        size_bytes=document.size_bytes,
        chunks_created=document.chunk_count,
        uploaded_at=document.uploaded_at,
    )


# ============================================================
# DOCUMENTS
# ============================================================

@router.get("/documents", response_model=ListDocumentsResponse)
def list_documents(service: DocumentService = Depends(get_document_service)):

    documents = [_document_info(d) for d in service.list_documents()]

    return ListDocumentsResponse(
        documents=documents,
        total_documents=len(documents),
        total_chunks=sum(d.chunks_count for d in documents),
    )


@router.get("/documents/{document_id}", response_model=DocumentInfo)
async def get_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
):

    return _document_info(await service.get_document(document_id))


@router.delete("/documents/{document_id}", response_model=DeleteDocumentResponse)
async def delete_document(
    document_id: str,
    service: DocumentService = Depends(get_document_service),
):

    await service.delete_document(document_id)

    return DeleteDocumentResponse(
        document_id=document_id,
        message=f"Document {document_id} and all its chunks deleted successfully",
        success=True,
    )


# ============================================================
# CHAT QUERY
# ============================================================

@router.post("/chat/query", response_model=ChatQueryResponse)
async def chat_query(
    payload: ChatQueryRequest,
    request: Request,
    orchestrator: RAGOrchestrator = Depends(get_orchestrator),
    store: ChatHistoryStore = Depends(get_history_store),
    metrics: MetricsTracker = Depends(get_metrics_tracker),
):

    start_time = time.time()

    chat_id, history = await _resolve_chat(store, payload.chat_id)

    result = await orchestrator.query(
        payload.message,
        top_k=payload.top_k,
        use_rag=payload.use_rag,
        compress_prompt=payload.compress_prompt,
        max_summary_tokens=payload.max_summary_tokens,
        history=history,
    )

    await _save_turns(
        store,
        chat_id,
        payload.message,
        result.answer,
        result.context,
        result.tokens_used,
    )

    metrics.record_tokens(result.tokens_used)

    logger.info(
        "Chat query complete",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "chat_id": chat_id,
            "history_turns": len(history),
            "latency_seconds": round(time.time() - start_time, 3),
        },
    )

    return ChatQueryResponse(
        answer=result.answer,
        chat_id=chat_id,
        context=result.context,
        tokens_used=result.tokens_used,
    )


@router.post("/chat/query/stream")
async def chat_query_stream(
    payload: ChatQueryRequest,
    request: Request,
    orchestrator: RAGOrchestrator = Depends(get_orchestrator),
    store: ChatHistoryStore = Depends(get_history_store),
    metrics: MetricsTracker = Depends(get_metrics_tracker),
):
    """
    Server-sent events. Frames, in order: chatId, context, chunk*, done.
    A failure after the stream has started is sent as one error frame.
    """

    request_id = getattr(request.state, "request_id", None)

    chat_id, history = await _resolve_chat(store, payload.chat_id)

    async def event_stream():

        yield _sse_frame("chatId", chat_id)

        try:

            async for event in orchestrator.query_stream(
                payload.message,
                top_k=payload.top_k,
                use_rag=payload.use_rag,
                compress_prompt=payload.compress_prompt,
                max_summary_tokens=payload.max_summary_tokens,
                history=history,
            ):

                if event.type == "context":

                    yield _sse_frame("context", _dump_context(event.context))

                elif event.type == "chunk":

                    yield _sse_frame("chunk", event.text)

                elif event.type == "done":

                    await _save_turns(
                        store,
                        chat_id,
                        payload.message,
                        event.answer,
                        event.context,
                        event.tokens_used,
                    )

                    metrics.record_tokens(event.tokens_used or TokenUsage())

                    yield _sse_frame(
                        "done",
                        {
                            "chat_id": chat_id,
                            "answer": event.answer,
                            "context": _dump_context(event.context),
                            "tokens_used": (event.tokens_used or TokenUsage()).model_dump(),
                        },
                    )

        except Exception as e:

            logger.error(
                "Streaming chat query failed",
                extra={
                    "request_id": request_id,
                    "chat_id": chat_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )

            kind = getattr(e, "kind", None)

            yield _sse_frame(
                "error",
                {
                    "error_kind": kind.value if kind is not None else None,
                    "message": e.message if isinstance(e, DocChatError) else "Streaming failed",
                },
            )

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


# ============================================================
# CHAT HISTORY
# ============================================================

@router.get("/chat/history", response_model=ListChatsResponse)
async def list_chats(store: ChatHistoryStore = Depends(get_history_store)):

    return ListChatsResponse(chats=await store.list_all())


@router.post("/chat/history", response_model=ChatHistoryResponse)
async def create_chat(store: ChatHistoryStore = Depends(get_history_store)):

    chat = await store.get_history(await store.create())

    return ChatHistoryResponse(**chat.model_dump())


@router.get("/chat/history/{chat_id}", response_model=ChatHistoryResponse)
async def get_chat(
    chat_id: str,
    store: ChatHistoryStore = Depends(get_history_store),
):

    chat = await store.get_history(chat_id)

    return ChatHistoryResponse(**chat.model_dump())


@router.delete("/chat/history/{chat_id}", response_model=DeleteChatResponse)
async def delete_chat(
    chat_id: str,
    store: ChatHistoryStore = Depends(get_history_store),
):

    if not await store.delete(chat_id):
        raise ChatNotFoundError(chat_id)

    return DeleteChatResponse(
        chat_id=chat_id,
        message=f"Chat history {chat_id} deleted successfully",
        success=True,
    )
