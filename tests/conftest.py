# tests/conftest.py
import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from docchat.retry import RetryPolicy
from tests.factories import FakeEmbedder, FakeLLM


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_vector_store():
    """Mock with the VectorStore surface."""

    store = MagicMock()
    store.search = AsyncMock(return_value=[])
    store.upsert = AsyncMock(return_value=None)
    store.delete_by_document_id = AsyncMock(return_value=None)
    store.get_document_metadata = AsyncMock(return_value=[])
    store.list_document_ids = AsyncMock(return_value=[])
    return store


@pytest.fixture
def fast_retry():
    """Retry policy without sleeps."""
    return RetryPolicy(max_attempts=3, initial_delay=0, max_delay=0, jitter=0)
