"""
In-process backends.

Good for local development and tests:
- No services required
- Same contracts as the hosted backends, including expirations
- Everything is lost when the process exits
"""

import logging
import math
import time
from typing import Any, Callable, Optional

from .base import EqualsFilter, IndexStats, KeyValueStore, RangePage, VectorIndex, VectorMatch

logger = logging.getLogger("memorycache.stores.memory")


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed key-value store with per-key expiration."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._values: dict[str, Any] = {}
        self._expires_at: dict[str, float] = {}
        logger.info("InMemoryKeyValueStore created")

    def _purge(self, key: str) -> None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and expires_at <= self._clock():
            self._values.pop(key, None)
            self._expires_at.pop(key, None)

    def _live(self, key: str) -> bool:
        self._purge(key)
        return key in self._values

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._values[key] = value
        self._expires_at[key] = self._clock() + ttl_seconds

    async def get(self, key: str) -> Optional[str]:
        if not self._live(key):
            return None
        value = self._values[key]
        return value if isinstance(value, str) else None

    async def delete(self, key: str) -> int:
        if not self._live(key):
            return 0
        del self._values[key]
        self._expires_at.pop(key, None)
        return 1

    async def sadd(self, key: str, member: str) -> int:
        self._purge(key)
        members = self._values.setdefault(key, set())
        if member in members:
            return 0
        members.add(member)
        return 1

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        if not self._live(key):
            return False
        self._expires_at[key] = self._clock() + ttl_seconds
        return True

    async def smembers(self, key: str) -> "set[str]":
        if not self._live(key):
            return set()
        value = self._values[key]
        return set(value) if isinstance(value, set) else set()


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity. Vectors of different length or zero norm score 0."""
    if len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorIndex(VectorIndex):
    """
    Brute-force cosine similarity index.

    Keeps insertion order, which is also the range scan order. Accepts
    vectors of any length, and reports the length of its oldest stored
    vector as its dimension (the configured one while empty).
    """

    def __init__(self, dimension: int = 0):
        self._dimension = dimension
        self._vectors: dict[str, tuple[list[float], dict[str, Any]]] = {}
        logger.info(f"InMemoryVectorIndex created (dimension={dimension or 'unset'})")

    @property
    def dimension(self) -> int:
        for vector, _ in self._vectors.values():
            return len(vector)
        return self._dimension

    async def upsert(self, id: str, vector: list[float], metadata: dict[str, Any]) -> None:
        self._vectors[id] = (list(vector), dict(metadata))

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: Optional[EqualsFilter] = None,
    ) -> list[VectorMatch]:
        matches = [
            VectorMatch(id=id, score=cosine_similarity(vector, stored), metadata=dict(metadata))
            for id, (stored, metadata) in self._vectors.items()
            if filter is None or filter.matches(metadata)
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    async def delete(self, ids: list[str]) -> int:
        deleted = 0
        for id in ids:
            if self._vectors.pop(id, None) is not None:
                deleted += 1
        return deleted

    async def fetch(self, ids: list[str], include_vectors: bool = False) -> list[Optional[VectorMatch]]:
        results: list[Optional[VectorMatch]] = []
        for id in ids:
            stored = self._vectors.get(id)
            if stored is None:
                results.append(None)
                continue
            vector, metadata = stored
            results.append(VectorMatch(
                id=id,
                metadata=dict(metadata),
                vector=list(vector) if include_vectors else None,
            ))
        return results

    async def range(self, cursor: str, limit: int, include_vectors: bool = False) -> RangePage:
        start = int(cursor or 0)
        ids = list(self._vectors)
        page_ids = ids[start:start + limit]
        vectors = []
        for id in page_ids:
            vector, metadata = self._vectors[id]
            vectors.append(VectorMatch(
                id=id,
                metadata=dict(metadata),
                vector=list(vector) if include_vectors else None,
            ))
        end = start + len(page_ids)
        next_cursor = str(end) if end < len(ids) else ""
        return RangePage(vectors=vectors, next_cursor=next_cursor)

    async def info(self) -> IndexStats:
        return IndexStats(
            vector_count=len(self._vectors),
            dimension=self.dimension,
            similarity_function="COSINE",
        )
