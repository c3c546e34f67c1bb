# docchat/memory/ingest.py

"""
Document ingestion pipeline.

Architecture contract preserved:
loader → chunker → embedder → vector_store → registry

Embedding, vector store and extraction failures propagate to the caller
as a failed upload. Nothing is registered unless the upsert succeeded.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import List

from docchat.config import (
    CHUNK_OVERLAP,
    CHUNK_SIZE,
    EMBED_CONCURRENCY,
    MAX_FILE_SIZE,
)
from docchat.errors import (
    DocumentNotFoundError,
    IngestionError,
    IngestionErrorKind,
)
from docchat.memory.chunker import chunk_text
from docchat.memory.loader import extract_text, is_supported
from docchat.memory.registry import DocumentRegistry
from docchat.models import Chunk, UploadedDocument, VectorRecord

logger = logging.getLogger(__name__)


def generate_document_id() -> str:
    return str(uuid.uuid4())


class DocumentIngestor:

    def __init__(
        self,
        embedder,
        vector_store,
        registry: DocumentRegistry,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        max_file_size: int = MAX_FILE_SIZE,
        embed_concurrency: int = EMBED_CONCURRENCY,
    ):

        self._embedder = embedder
        self._vector_store = vector_store
        self._registry = registry

        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._max_file_size = max_file_size
        self._embed_concurrency = max(1, embed_concurrency)

    # ============================================================
    # VALIDATION
    # ============================================================

    def validate(self, content: bytes, content_type: str):

        if not content:
            raise IngestionError(
                IngestionErrorKind.EMPTY_FILE,
                "No file content provided",
            )

        if len(content) > self._max_file_size:
            raise IngestionError(
                IngestionErrorKind.FILE_TOO_LARGE,
                f"File size exceeds maximum allowed size of {self._max_file_size} bytes",
            )

        if not is_supported(content_type):
            raise IngestionError(
                IngestionErrorKind.UNSUPPORTED_TYPE,
                f"File type {content_type} not supported. Supported types: PDF, DOCX, TXT",
            )

    # ============================================================
    # INGEST RAW FILE
    # ============================================================

    async def ingest(
        self,
        content: bytes,
        filename: str,
        content_type: str,
    ) -> UploadedDocument:

        self.validate(content, content_type)

        # Parsers are CPU bound; keep the event loop free
        text = await asyncio.to_thread(extract_text, content, content_type)

        return await self.ingest_text(
            text,
            filename=filename,
            content_type=content_type,
            size_bytes=len(content),
        )

    # ============================================================
    # INGEST EXTRACTED TEXT
    # ============================================================

    async def ingest_text(
        self,
        text: str,
        filename: str,
        content_type: str = "text/plain",
        size_bytes: int = 0,
    ) -> UploadedDocument:

        if not text or not text.strip():
            raise IngestionError(
                IngestionErrorKind.NO_TEXT,
                "File contains no extractable text",
            )

        start_time = time.time()

        pieces = chunk_text(text, self._chunk_size, self._chunk_overlap)

        if not pieces:
            raise IngestionError(
                IngestionErrorKind.NO_TEXT,
                "No valid chunks created from document",
            )

        document_id = generate_document_id()
        uploaded_at = datetime.utcnow()

        chunks = [
            Chunk(
                text=piece,
                index=i,
                total_chunks=len(pieces),
                document_id=document_id,
                filename=filename,
                content_type=content_type,
                size_bytes=size_bytes,
                uploaded_at=uploaded_at,
            )
            for i, piece in enumerate(pieces)
        ]

        embeddings = await self._embed_chunks(chunks)

        records = [
            VectorRecord.from_chunk(chunk, embedding)
            for chunk, embedding in zip(chunks, embeddings)
        ]

        await self._vector_store.upsert(records)

        document = UploadedDocument(
            document_id=document_id,
            filename=filename,
            content_type=content_type,
            size_bytes=size_bytes,
            chunk_count=len(chunks),
            uploaded_at=uploaded_at,
        )

        await asyncio.to_thread(self._registry.register, document)

        logger.info(
            "Document ingestion complete",
            extra={
                "document_id": document_id,
                "chunks": len(chunks),
                "latency_seconds": round(time.time() - start_time, 3),
            },
        )

        return document

    async def _embed_chunks(self, chunks: List[Chunk]) -> List[List[float]]:
        """
        Embed every chunk, at most `embed_concurrency` calls in flight.

        The first failure cancels every embedding still queued or running
        and is re-raised once they have all finished.
        """

        semaphore = asyncio.Semaphore(self._embed_concurrency)

        async def _embed(chunk: Chunk) -> List[float]:
            async with semaphore:
                return await self._embedder.embed(chunk.text)

        tasks = [asyncio.ensure_future(_embed(c)) for c in chunks]

        try:

            return await asyncio.gather(*tasks)

        except Exception as e:

            for task in tasks:
                task.cancel()

            # Collect every outcome so no task exception goes unretrieved
            await asyncio.gather(*tasks, return_exceptions=True)

            logger.error(
                "Failed to generate embeddings for document",
                extra={
                    "document_id": chunks[0].document_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )

            raise


class DocumentService:
    """Listing, lookup and deletion of ingested documents."""

    def __init__(self, vector_store, registry: DocumentRegistry):

        self._vector_store = vector_store
        self._registry = registry

    def list_documents(self) -> List[UploadedDocument]:
        return self._registry.list()

    async def get_document(self, document_id: str) -> UploadedDocument:

        document = self._registry.get(document_id)

        if document is not None:
            return document

        # Documents indexed before the registry existed
        chunks = await self._vector_store.get_document_metadata(document_id)

        if not chunks:
            raise DocumentNotFoundError(document_id)

        first = chunks[0]

        return UploadedDocument(
            document_id=first.document_id,
            filename=first.filename,
            content_type=first.content_type,
            size_bytes=first.size_bytes,
            chunk_count=first.total_chunks,
            uploaded_at=first.uploaded_at,
        )

    async def delete_document(self, document_id: str):

        if document_id not in self._registry:

            chunks = await self._vector_store.get_document_metadata(document_id)

            if not chunks:
                raise DocumentNotFoundError(document_id)

        await self._vector_store.delete_by_document_id(document_id)

        await asyncio.to_thread(self._registry.remove, document_id)

        logger.info(
            "Document and all chunks deleted",
            extra={"document_id": document_id},
        )
