# docchat/memory/store.py

"""
Vector index gateway over Qdrant.

Every remote call runs under an explicit timeout and is converted into a
VectorStoreError with a closed kind (TIMEOUT, CONNECTION_ERROR, UNKNOWN).
TIMEOUT and CONNECTION_ERROR are retried by the configured RetryPolicy.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError
from qdrant_client.http.exceptions import ResponseHandlingException
from qdrant_client.http.models import (
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PointStruct,
)

from docchat.config import (
    METADATA_FETCH_LIMIT,
    SEARCH_TIMEOUT_SECONDS,
    UPSERT_BATCH_SIZE,
    UPSERT_TIMEOUT_SECONDS,
)
from docchat.errors import VectorStoreError, VectorStoreErrorKind
from docchat.memory.qdrant_client import QdrantVectorDB
from docchat.models import Chunk, SearchResult, VectorRecord
from docchat.retry import RetryPolicy

logger = logging.getLogger(__name__)

MetadataFilter = Dict[str, Any]

_POINT_NAMESPACE = uuid.UUID("6f1c3a52-4b1e-5f0a-9d57-3c2b8e4a1d90")


def point_id_for(record_id: str) -> str:
    """Qdrant only accepts UUID or integer ids; derive a stable UUID."""
    return str(uuid.uuid5(_POINT_NAMESPACE, record_id))


def build_filter(metadata_filter: Optional[MetadataFilter]) -> Optional[Filter]:

    if not metadata_filter:
        return None

    return Filter(
        must=[
            FieldCondition(key=key, match=MatchValue(value=value))
            for key, value in metadata_filter.items()
        ]
    )


def classify_store_exception(exc: Exception, operation: str) -> VectorStoreError:

    if isinstance(exc, VectorStoreError):
        return exc

    source = exc.source if isinstance(exc, ResponseHandlingException) else exc

    if isinstance(source, (asyncio.TimeoutError, httpx.TimeoutException)):
        kind = VectorStoreErrorKind.TIMEOUT

    elif isinstance(source, (httpx.TransportError, ConnectionError, OSError)):
        kind = VectorStoreErrorKind.CONNECTION_ERROR

    else:
        kind = VectorStoreErrorKind.UNKNOWN

    return VectorStoreError(kind, operation)


class VectorStore:

    def __init__(
        self,
        db: QdrantVectorDB,
        batch_size: int = UPSERT_BATCH_SIZE,
        upsert_timeout: float = UPSERT_TIMEOUT_SECONDS,
        search_timeout: float = SEARCH_TIMEOUT_SECONDS,
        fetch_limit: int = METADATA_FETCH_LIMIT,
        retry_policy: Optional[RetryPolicy] = None,
    ):

        if batch_size <= 0:
            raise ValueError("Upsert batch size must be positive")

        self._db = db
        self._client = db.client
        self._collection = db.collection

        self._batch_size = batch_size
        self._upsert_timeout = upsert_timeout
        self._search_timeout = search_timeout
        self._fetch_limit = fetch_limit

        self._call_with_retry = (retry_policy or RetryPolicy()).wrap(
            self._call,
            operation="vector_store",
        )

    async def initialize(self):

        try:
            await self._db.ensure_collection()
        except Exception as e:
            raise classify_store_exception(e, "initialize") from e

    # ============================================================
    # REMOTE CALL WRAPPER
    # ============================================================

    async def _call(self, operation: str, timeout: float, fn, **kwargs):

        try:

            return await asyncio.wait_for(fn(**kwargs), timeout=timeout)

        except Exception as e:

            error = classify_store_exception(e, operation)

            logger.error(
                "Vector store call failed",
                extra={
                    "operation": operation,
                    "error_kind": error.kind.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )

            raise error from e

    # ============================================================
    # UPSERT
    # ============================================================

    async def upsert(self, records: List[VectorRecord]):
        """
        Store records in sequential batches.

        Raises:
            VectorStoreError: TIMEOUT when a batch exceeds the upsert timeout,
                CONNECTION_ERROR on network failure.
        """

        if not records:
            return

        points = [
            PointStruct(
                id=point_id_for(record.id),
                vector=record.embedding,
                payload={
                    **record.metadata.model_dump(mode="json"),
                    "record_id": record.id,
                },
            )
            for record in records
        ]

        total_batches = (len(points) + self._batch_size - 1) // self._batch_size

        for batch_number, start in enumerate(range(0, len(points), self._batch_size), 1):

            batch = points[start:start + self._batch_size]

            await self._call_with_retry(
                "upsert",
                self._upsert_timeout,
                self._client.upsert,
                collection_name=self._collection,
                points=batch,
                wait=True,
            )

            logger.info(
                "Upserted vector batch",
                extra={
                    "batch": batch_number,
                    "total_batches": total_batches,
                    "points": len(batch),
                },
            )

        logger.info(
            "Stored vectors",
            extra={"records": len(records), "collection": self._collection},
        )

    # ============================================================
    # SEARCH
    # ============================================================

    async def search(
        self,
        query_vector: List[float],
        top_k: int,
        metadata_filter: Optional[MetadataFilter] = None,
    ) -> List[SearchResult]:

        response = await self._call_with_retry(
            "search",
            self._search_timeout,
            self._client.query_points,
            collection_name=self._collection,
            query=query_vector,
            limit=top_k,
            query_filter=build_filter(metadata_filter),
            with_payload=True,
        )

        results = []

        for point in response.points or []:

            chunk = self._chunk_from_payload(point.payload, point.id)

            if chunk is None:
                continue

            results.append(
                SearchResult(
                    id=(point.payload or {}).get("record_id") or chunk.record_id,
                    score=float(point.score or 0.0),
                    metadata=chunk,
                )
            )

        return results

    # ============================================================
    # DELETE
    # ============================================================

    async def delete_by_document_id(self, document_id: str):

        await self._call_with_retry(
            "delete",
            self._upsert_timeout,
            self._client.delete,
            collection_name=self._collection,
            points_selector=FilterSelector(
                filter=build_filter({"document_id": document_id})
            ),
            wait=True,
        )

        logger.info(
            "Deleted vectors for document",
            extra={"document_id": document_id},
        )

    # ============================================================
    # METADATA READS
    # ============================================================

    # Both reads below fetch at most `fetch_limit` points in one request.
    # Collections holding more points than that are silently truncated;
    # the document registry is the scalable path for listings.

    async def get_document_metadata(self, document_id: str) -> List[Chunk]:

        points = await self._scroll(
            "get_document_metadata",
            build_filter({"document_id": document_id}),
        )

        chunks = [
            chunk
            for chunk in (self._chunk_from_payload(p.payload, p.id) for p in points)
            if chunk is not None
        ]

        return sorted(chunks, key=lambda c: c.index)

    async def list_document_ids(self) -> List[str]:

        points = await self._scroll("list_document_ids", None)

        seen = {}

        for point in points:

            document_id = (point.payload or {}).get("document_id")

            if document_id and document_id not in seen:
                seen[document_id] = True

        logger.info("Found documents in index", extra={"documents": len(seen)})

        return list(seen)

    async def _scroll(self, operation: str, scroll_filter: Optional[Filter]):

        points, _next_offset = await self._call_with_retry(
            operation,
            self._search_timeout,
            self._client.scroll,
            collection_name=self._collection,
            scroll_filter=scroll_filter,
            limit=self._fetch_limit,
            with_payload=True,
            with_vectors=False,
        )

        return points or []

    @staticmethod
    def _chunk_from_payload(payload: Optional[dict], point_id) -> Optional[Chunk]:

        try:

            return Chunk.model_validate(payload or {})

        except ValidationError:

            logger.warning(
                "Skipping point with malformed payload",
                extra={"point_id": str(point_id)},
            )

            return None
