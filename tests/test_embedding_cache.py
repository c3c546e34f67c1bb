# tests/test_embedding_cache.py
from unittest.mock import AsyncMock, MagicMock

import pytest

from docchat.errors import ProviderError, ProviderErrorKind
from docchat.memory.embedding_cache import CachedEmbedder, normalize_key

from tests.factories import FakeEmbedder


def test_normalize_key_collapses_whitespace():
    assert normalize_key("  What   is\nthis? ") == "What is this?"


@pytest.mark.asyncio
async def test_repeated_question_hits_cache():
    inner = FakeEmbedder()
    cache = CachedEmbedder(inner, max_entries=10)

    first = await cache.embed("What is revenue?")
    second = await cache.embed("What  is revenue?  ")

    assert first == second
    assert inner.calls == ["What is revenue?"]
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_least_recently_used_entry_is_evicted():
    inner = FakeEmbedder()
    cache = CachedEmbedder(inner, max_entries=2)

    await cache.embed("a")
    await cache.embed("b")
    await cache.embed("a")   # "b" is now least recent
    await cache.embed("c")   # evicts "b"

    assert len(cache) == 2

    await cache.embed("a")
    await cache.embed("b")

    assert inner.calls == ["a", "b", "c", "b"]


@pytest.mark.asyncio
async def test_failures_are_not_cached():
    inner = MagicMock()
    inner.embed = AsyncMock(side_effect=[ProviderError(ProviderErrorKind.RATE_LIMITED), [1.0, 2.0]])
    cache = CachedEmbedder(inner, max_entries=4)

    with pytest.raises(ProviderError):
        await cache.embed("q")

    assert await cache.embed("q") == [1.0, 2.0]
    assert inner.embed.await_count == 2


@pytest.mark.asyncio
async def test_returned_vectors_are_copies():
    cache = CachedEmbedder(FakeEmbedder(dimension=3), max_entries=4)

    vector = await cache.embed("q")
    vector.append(99.0)

    assert len(await cache.embed("q")) == 3


def test_size_must_be_positive():
    with pytest.raises(ValueError):
        CachedEmbedder(FakeEmbedder(), max_entries=0)
