# docchat/main.py
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docchat.api.deps import (
    get_metrics_tracker,
    get_qdrant_db,
    get_registry,
    get_vector_store,
)
from docchat.api.routes import router
from docchat.config import ALLOWED_ORIGINS, OPENAI_API_KEY, RETRY_MAX_DELAY
from docchat.errors import (
    ChatNotFoundError,
    DocChatError,
    DocumentNotFoundError,
    IngestionError,
    IngestionErrorKind,
    ProviderError,
    ProviderErrorKind,
    VectorStoreError,
    VectorStoreErrorKind,
)
from docchat.models import ErrorResponse
from docchat.observability.logger import get_logger, setup_logging

# Initialize logging FIRST
setup_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Document Chat API",
    description="Retrieval-augmented chat over uploaded documents",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Assign a request id, log start and completion with latency,
    and record request metrics.
    """

    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    metrics = get_metrics_tracker()

    logger.info(
        "request_started",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        },
    )

    start_time = time.time()

    try:

        response = await call_next(request)

    except Exception as e:

        latency = time.time() - start_time

        metrics.record_failure()

        logger.error(
            "request_failed",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "latency_seconds": round(latency, 3),
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )

        raise

    latency = time.time() - start_time

    if response.status_code < 400:
        metrics.record_success(latency)
    else:
        metrics.record_failure()

    response.headers["X-Request-ID"] = request_id

    logger.info(
        "request_completed",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "latency_seconds": round(latency, 3),
        },
    )

    return response


app.include_router(router)


# ============================================================
# LIFECYCLE
# ============================================================

@app.on_event("startup")
async def startup_event():

    get_registry().load()

    logger.info("application_startup", extra={"version": "1.0.0"})

    if not OPENAI_API_KEY:

        logger.warning(
            "missing_api_key",
            extra={
                "warning_detail":
                "OPENAI_API_KEY not set. Embedding and completion calls will fail."
            },
        )

    try:

        await get_vector_store().initialize()

    except VectorStoreError as e:

        # Queries still answer in general mode while the index is down
        logger.error(
            "vector_store_unavailable",
            extra={
                "error": str(e),
                "error_kind": e.kind.value,
            },
        )


@app.on_event("shutdown")
async def shutdown_event():

    logger.info("application_shutdown")

    # Only close a client that was actually opened
    if get_qdrant_db.cache_info().currsize:
        await get_qdrant_db().close()


# ============================================================
# ERROR KIND → HTTP STATUS
# ============================================================

_INGESTION_STATUS = {
    IngestionErrorKind.FILE_TOO_LARGE: 413,
    IngestionErrorKind.UNSUPPORTED_TYPE: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
}

_PROVIDER_STATUS = {
    ProviderErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ProviderErrorKind.QUOTA_EXCEEDED: status.HTTP_402_PAYMENT_REQUIRED,
    ProviderErrorKind.AUTH_FAILED: status.HTTP_502_BAD_GATEWAY,
    ProviderErrorKind.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ProviderErrorKind.UNKNOWN: status.HTTP_502_BAD_GATEWAY,
}

_VECTOR_STORE_STATUS = {
    VectorStoreErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    VectorStoreErrorKind.CONNECTION_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    VectorStoreErrorKind.UNKNOWN: status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: DocChatError) -> int:

    if isinstance(exc, IngestionError):
        return _INGESTION_STATUS.get(exc.kind, status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, ProviderError):
        return _PROVIDER_STATUS[exc.kind]

    if isinstance(exc, VectorStoreError):
        return _VECTOR_STORE_STATUS[exc.kind]

    if isinstance(exc, (DocumentNotFoundError, ChatNotFoundError)):
        return status.HTTP_404_NOT_FOUND

    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(DocChatError)
async def docchat_exception_handler(request: Request, exc: DocChatError):

    request_id = getattr(request.state, "request_id", "unknown")
    status_code = status_for(exc)
    kind = getattr(exc, "kind", None)

    log = logger.error if status_code >= 500 else logger.warning

    log(
        "request_error",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "status_code": status_code,
            "error": str(exc),
            "error_type": type(exc).__name__,
            "error_kind": kind.value if kind is not None else None,
        },
    )

    headers = None

    if isinstance(exc, ProviderError) and exc.kind == ProviderErrorKind.RATE_LIMITED:
        headers = {"Retry-After": str(int(RETRY_MAX_DELAY))}

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            detail=exc.message,
            error_kind=kind.value if kind is not None else None,
            request_id=request_id,
        ).model_dump(),
        headers=headers,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):

    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        "unhandled_exception",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            detail="An internal error occurred. Please try again.",
            request_id=request_id,
        ).model_dump(),
    )


@app.get("/")
async def root():

    return {
        "message": "Document Chat API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics",
    }
