"""
Base interfaces and data structures for the backing stores.

Defines the abstract contracts that the key-value backend (session state)
and the vector index backend (long-term memory) must implement. The
hosted Upstash services and the in-process backends both satisfy them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class EqualsFilter:
    """Equality predicate on one metadata field."""
    field: str
    value: str

    def to_expression(self) -> str:
        """Render as an Upstash filter expression, e.g. `user_id = 'alice'`."""
        escaped = self.value.replace("\\", "\\\\").replace("'", "\\'")
        return f"{self.field} = '{escaped}'"

    def matches(self, metadata: dict[str, Any]) -> bool:
        return metadata.get(self.field) == self.value


@dataclass
class VectorMatch:
    """One stored vector as returned by a query, fetch or range scan."""
    id: str
    score: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)
    vector: Optional[list[float]] = None


@dataclass
class RangePage:
    """A page of a cursor-based scan. An empty next_cursor means the scan is done."""
    vectors: list[VectorMatch]
    next_cursor: str = ""


@dataclass
class IndexStats:
    """Summary statistics for a vector index."""
    vector_count: int
    dimension: int
    similarity_function: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = dict(self.raw)
        data.update({
            "vectorCount": self.vector_count,
            "dimension": self.dimension,
            "similarityFunction": self.similarity_function,
        })
        return data


class KeyValueStore(ABC):
    """
    Abstract interface for key-value backends.

    Values are opaque strings; expirations are enforced by the backend.
    """

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value that expires after ttl_seconds."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value, or None if absent or expired."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Delete a key. Returns the number of keys removed."""
        pass

    @abstractmethod
    async def sadd(self, key: str, member: str) -> int:
        """Add a member to a set. Returns 1 if it was new."""
        pass

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Reset the expiration of a key. Returns False if the key is absent."""
        pass

    @abstractmethod
    async def smembers(self, key: str) -> "set[str]":
        """Return all members of a set (empty if absent)."""
        pass

    async def close(self) -> None:
        """Clean up resources."""
        pass


class VectorIndex(ABC):
    """
    Abstract interface for vector index backends.

    Implementations: Upstash Vector (hosted), in-memory (local/testing)

    `fixed_dimension` is True for indexes whose dimension is set when they
    are created and can never change.
    """

    fixed_dimension = False

    @abstractmethod
    async def upsert(self, id: str, vector: list[float], metadata: dict[str, Any]) -> None:
        """Insert or replace a vector with its metadata."""
        pass

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: Optional[EqualsFilter] = None,
    ) -> list[VectorMatch]:
        """
        Nearest-neighbor search.

        Args:
            vector: Query embedding
            top_k: Maximum number of matches
            filter: Optional metadata equality predicate

        Returns:
            Matches ordered by descending score, with metadata
        """
        pass

    @abstractmethod
    async def delete(self, ids: list[str]) -> int:
        """Delete vectors by id. Absent ids are ignored. Returns the number deleted."""
        pass

    @abstractmethod
    async def fetch(self, ids: list[str], include_vectors: bool = False) -> list[Optional[VectorMatch]]:
        """Fetch vectors by id, with None in place of absent ids."""
        pass

    @abstractmethod
    async def range(self, cursor: str, limit: int, include_vectors: bool = False) -> RangePage:
        """Return one page of a full scan starting at cursor ("0" for the first page)."""
        pass

    @abstractmethod
    async def info(self) -> IndexStats:
        """Return index statistics."""
        pass

    async def close(self) -> None:
        """Clean up resources."""
        pass
