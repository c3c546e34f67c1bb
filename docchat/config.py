# docchat/config.py
"""
Configuration for the document chat RAG service.

This file centralizes all tunable parameters for the RAG pipeline.
Every value can be overridden through an environment variable of the
same name; changes here affect system behavior without code modifications.
"""

import os


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


# ========== PROVIDER CREDENTIALS ==========

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

QDRANT_URL = os.getenv("QDRANT_URL", "http://localhost:6333")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY")
QDRANT_COLLECTION = os.getenv("QDRANT_COLLECTION", "documents")


# ========== DOCUMENT PROCESSING ==========

# Characters, not words
CHUNK_SIZE = _env_int("CHUNK_SIZE", 1000)
CHUNK_OVERLAP = _env_int("CHUNK_OVERLAP", 200)

# File upload limits
MAX_FILE_SIZE = _env_int("MAX_FILE_SIZE", 10 * 1024 * 1024)  # bytes

ALLOWED_CONTENT_TYPES = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/msword": "docx",
    "text/plain": "text",
}

# Concurrent embedding calls per uploaded document
EMBED_CONCURRENCY = _env_int("EMBED_CONCURRENCY", 4)


# ========== EMBEDDING CONFIGURATION ==========

EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
EMBEDDING_DIMENSION = _env_int("EMBEDDING_DIMENSION", 1536)

# Query embeddings kept in the LRU cache
EMBEDDING_CACHE_SIZE = _env_int("EMBEDDING_CACHE_SIZE", 256)


# ========== VECTOR INDEX CONFIGURATION ==========

UPSERT_BATCH_SIZE = _env_int("UPSERT_BATCH_SIZE", 100)
UPSERT_TIMEOUT_SECONDS = _env_float("UPSERT_TIMEOUT_SECONDS", 15.0)
SEARCH_TIMEOUT_SECONDS = _env_float("SEARCH_TIMEOUT_SECONDS", 10.0)

# Upper bound for "fetch every chunk" style reads. Anything beyond is truncated.
METADATA_FETCH_LIMIT = _env_int("METADATA_FETCH_LIMIT", 10000)


# ========== RETRIEVAL CONFIGURATION ==========

TOP_K = 5
MIN_TOP_K = 1
MAX_TOP_K = 20

# Results at or above this score are kept. When nothing clears it,
# every result is used anyway (low-confidence fallback).
SIMILARITY_THRESHOLD = _env_float("SIMILARITY_THRESHOLD", 0.5)


# ========== COMPRESSION CONFIGURATION ==========

MAX_SUMMARY_TOKENS = 500
MIN_SUMMARY_TOKENS = 100
MAX_SUMMARY_TOKENS_LIMIT = 2000

COMPRESSION_TEMPERATURE = _env_float("COMPRESSION_TEMPERATURE", 0.3)
COMPRESSION_TOKEN_MARGIN = 100

# 4 characters ~ 1 token
CHARS_PER_TOKEN = 4


# ========== LLM CONFIGURATION ==========

LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")

LLM_TEMPERATURE = _env_float("LLM_TEMPERATURE", 0.7)
LLM_MAX_TOKENS = _env_int("LLM_MAX_TOKENS", 1000)

# Prior conversation turns sent with each question
HISTORY_WINDOW = _env_int("HISTORY_WINDOW", 10)


# ========== RETRY POLICY ==========

RETRY_MAX_ATTEMPTS = _env_int("RETRY_MAX_ATTEMPTS", 3)
RETRY_INITIAL_DELAY = _env_float("RETRY_INITIAL_DELAY", 0.5)
RETRY_MAX_DELAY = _env_float("RETRY_MAX_DELAY", 8.0)
RETRY_JITTER = _env_float("RETRY_JITTER", 0.5)

# Query-time embed and search; a failure falls back to general chat
QUERY_RETRY_MAX_ATTEMPTS = _env_int("QUERY_RETRY_MAX_ATTEMPTS", 1)


# ========== SERVICE ==========

STORAGE_DIR = os.getenv("STORAGE_DIR", "storage")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "logs/app.log")

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]


# ========== DESIGN TRADE-OFFS (DOCUMENTED) ==========

"""
TRADE-OFF DECISIONS:

1. SIMILARITY_THRESHOLD = 0.5 with fallback:
   - Results below the threshold are still used when nothing clears it
   - Partial context beats none for small corpora
   - Risk: irrelevant context reaches the prompt

2. CHUNK_SIZE = 1000 / CHUNK_OVERLAP = 200 characters:
   - Break points prefer sentence end, then line end, then word boundary
   - Overlap keeps a sentence split across chunks retrievable from both

3. Compression skipped under MAX_SUMMARY_TOKENS:
   - chars / 4 token estimate, no tokenizer call
   - Avoids an extra LLM round trip for short contexts

4. HISTORY_WINDOW = 10:
   - Bounds prompt growth from long conversations
   - Older turns are dropped, not summarized
"""
