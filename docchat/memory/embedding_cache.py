# docchat/memory/embedding_cache.py

import logging
from collections import OrderedDict
from typing import List

from docchat.config import EMBEDDING_CACHE_SIZE

logger = logging.getLogger(__name__)


def normalize_key(text: str) -> str:
    return " ".join(text.split())


class CachedEmbedder:
    """
    LRU cache in front of an embedder.

    Same embed(text) contract as Embedder. Repeated questions skip the
    remote call; failures are never cached.
    """

    def __init__(self, embedder, max_entries: int = EMBEDDING_CACHE_SIZE):

        if max_entries <= 0:
            raise ValueError("Embedding cache size must be positive")

        self._embedder = embedder
        self._max_entries = max_entries
        self._entries: "OrderedDict[str, List[float]]" = OrderedDict()

    async def embed(self, text: str) -> List[float]:

        key = normalize_key(text)

        cached = self._entries.get(key)

        if cached is not None:

            self._entries.move_to_end(key)

            return list(cached)

        embedding = await self._embedder.embed(text)

        self._entries[key] = list(embedding)
        self._entries.move_to_end(key)

        while len(self._entries) > self._max_entries:

            evicted, _ = self._entries.popitem(last=False)

            logger.debug(
                "Embedding cache eviction",
                extra={"evicted_length": len(evicted)},
            )

        return embedding

    def __len__(self) -> int:
        return len(self._entries)
