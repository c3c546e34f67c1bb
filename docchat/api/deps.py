# docchat/api/deps.py

"""
Service wiring.

Each component is built once, on first use, so importing the app does
not need provider credentials. Routes receive components through
FastAPI dependencies; tests replace them with app.dependency_overrides.

Ingestion and the query path share one Qdrant connection but use
separate gateways: uploads retry with the full policy, while query-time
retrieval uses QUERY_RETRY so an unavailable index falls back to general
chat without waiting out retries.
"""

import os
from functools import lru_cache

from docchat.config import EMBEDDING_DIMENSION, STORAGE_DIR
from docchat.history.store import ChatHistoryStore, InMemoryChatHistoryStore
from docchat.llm.client import LLMClient
from docchat.memory.embedder import Embedder
from docchat.memory.embedding_cache import CachedEmbedder
from docchat.memory.ingest import DocumentIngestor, DocumentService
from docchat.memory.qdrant_client import QdrantVectorDB
from docchat.memory.registry import DocumentRegistry
from docchat.memory.store import VectorStore
from docchat.observability.metrics import MetricsTracker
from docchat.retry import QUERY_RETRY
from docchat.workflow.compressor import ContextCompressor
from docchat.workflow.document_qa import RAGOrchestrator


@lru_cache(maxsize=None)
def get_registry() -> DocumentRegistry:
    return DocumentRegistry.default()


@lru_cache(maxsize=None)
def get_metrics_tracker() -> MetricsTracker:
    return MetricsTracker(os.path.join(STORAGE_DIR, "metrics.json"))


@lru_cache(maxsize=None)
def get_qdrant_db() -> QdrantVectorDB:
    return QdrantVectorDB(dim=EMBEDDING_DIMENSION)


@lru_cache(maxsize=None)
def get_vector_store() -> VectorStore:
    return VectorStore(get_qdrant_db())


@lru_cache(maxsize=None)
def get_query_vector_store() -> VectorStore:
    return VectorStore(get_qdrant_db(), retry_policy=QUERY_RETRY)


@lru_cache(maxsize=None)
def get_embedder() -> Embedder:
    return Embedder()


@lru_cache(maxsize=None)
def get_query_embedder() -> CachedEmbedder:
    return CachedEmbedder(Embedder(retry_policy=QUERY_RETRY))


@lru_cache(maxsize=None)
def get_llm_client() -> LLMClient:
    return LLMClient()


@lru_cache(maxsize=None)
def get_history_store() -> ChatHistoryStore:
    return InMemoryChatHistoryStore()


@lru_cache(maxsize=None)
def get_ingestor() -> DocumentIngestor:

    return DocumentIngestor(
        embedder=get_embedder(),
        vector_store=get_vector_store(),
        registry=get_registry(),
    )


@lru_cache(maxsize=None)
def get_document_service() -> DocumentService:
    return DocumentService(get_vector_store(), get_registry())


@lru_cache(maxsize=None)
def get_orchestrator() -> RAGOrchestrator:

    llm_client = get_llm_client()

    return RAGOrchestrator(
        embedder=get_query_embedder(),
        vector_store=get_query_vector_store(),
        llm_client=llm_client,
        compressor=ContextCompressor(llm_client),
    )
