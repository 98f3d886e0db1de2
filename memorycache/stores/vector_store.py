"""
Vector Store - long-term semantic memory.

Shapes MemoryEntries into vector index records and back:
- Stored metadata is flat: id, user_id, content, timestamp, ttl, session_id, role
- Queries are always scoped to one user with an equality filter
- Full scans go through `iter_entries`, a paginated async iterator, so
  the expiration sweep stays O(total entries) without any hidden index
"""

import logging
import math
from datetime import datetime
from typing import AsyncIterator, Optional

from ..models import MemoryEntry, MemoryResult, metadata_is_expired, parse_timestamp
from .base import EqualsFilter, IndexStats, VectorIndex, VectorMatch

logger = logging.getLogger("memorycache.stores.vector_store")

# Safety bound on query-then-delete rounds for one user
MAX_OWNER_CLEANUP_ROUNDS = 100


def owner_filter(user_id: str) -> EqualsFilter:
    return EqualsFilter(field="user_id", value=user_id)


def match_to_result(match: VectorMatch) -> MemoryResult:
    """
    Recover a search result from a stored match.

    The id always comes from the store's native match id.
    """
    metadata = dict(match.metadata)
    metadata["id"] = match.id
    content = metadata.get("content")
    return MemoryResult(
        id=match.id,
        content=content if isinstance(content, str) else "",
        score=match.score,
        metadata=metadata,
        timestamp=parse_timestamp(metadata.get("timestamp")),
    )


class MemoryVectorStore:
    """Entry-level access to the vector index."""

    def __init__(self, index: VectorIndex):
        self.index = index
        self._dimension: Optional[int] = None

    async def store(self, entry: MemoryEntry) -> str:
        """Upsert a memory entry. Returns its id."""
        await self.index.upsert(entry.id, entry.embedding, entry.to_metadata())
        logger.debug(f"Stored memory {entry.id} with {len(entry.embedding)}-dim embedding")
        return entry.id

    async def search(
        self,
        user_id: str,
        query_embedding: list[float],
        limit: int,
    ) -> list[MemoryResult]:
        """
        Nearest neighbors among one user's memories.

        Returns:
            Results in the order the index returned them (descending score)
        """
        matches = await self.index.query(query_embedding, limit, filter=owner_filter(user_id))
        return [match_to_result(m) for m in matches]

    async def get(self, memory_id: str, include_vector: bool = False) -> Optional[VectorMatch]:
        """Fetch one stored memory by id, or None if absent."""
        results = await self.index.fetch([memory_id], include_vectors=include_vector)
        return results[0] if results else None

    async def delete(self, ids: list[str]) -> int:
        return await self.index.delete(ids)

    async def iter_entries(
        self,
        page_size: int = 1000,
        include_vectors: bool = False,
    ) -> AsyncIterator[VectorMatch]:
        """Walk every stored vector, one range page at a time."""
        cursor = "0"
        while True:
            page = await self.index.range(cursor, page_size, include_vectors=include_vectors)
            for match in page.vectors:
                yield match
            if not page.next_cursor or not page.vectors:
                break
            cursor = page.next_cursor

    async def stats(self) -> IndexStats:
        return await self.index.info()

    async def dimension(self) -> int:
        """Index dimensionality as reported by the store (cached)."""
        if not self._dimension:
            stats = await self.index.info()
            self._dimension = stats.dimension
        return self._dimension

    def invalidate_dimension(self) -> None:
        self._dimension = None

    async def find_expired(self, now: datetime, page_size: int = 1000) -> tuple[int, list[str]]:
        """
        Scan the whole index for entries whose `timestamp + ttl < now`.

        Returns:
            (number of entries scanned, ids of expired entries)
        """
        scanned = 0
        expired: list[str] = []
        async for match in self.iter_entries(page_size=page_size):
            scanned += 1
            if metadata_is_expired(match.metadata, now):
                expired.append(match.id)
        return scanned, expired

    async def delete_user_memories(self, user_id: str, probe_dimension: int, batch_size: int = 1000) -> int:
        """
        Delete every memory owned by a user with a filtered query-then-delete loop.

        Args:
            user_id: Owner whose memories are removed
            probe_dimension: Length of the probe vector used for the filtered query
            batch_size: topK per round

        Returns:
            Number of memories deleted
        """
        probe = [1.0 / math.sqrt(probe_dimension)] * probe_dimension
        deleted = 0

        for _ in range(MAX_OWNER_CLEANUP_ROUNDS):
            matches = await self.index.query(probe, batch_size, filter=owner_filter(user_id))
            if not matches:
                break
            ids = [m.id for m in matches]
            removed = await self.index.delete(ids)
            deleted += removed
            if removed == 0:
                # Nothing left that the index is willing to remove
                logger.warning(f"Delete returned 0 for {len(ids)} memories of user {user_id}")
                break
        else:
            logger.warning(
                f"Stopped deleting memories for user {user_id} after {MAX_OWNER_CLEANUP_ROUNDS} rounds"
            )

        return deleted

    async def close(self) -> None:
        await self.index.close()
