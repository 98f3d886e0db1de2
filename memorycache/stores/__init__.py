"""
Backing stores for session state and long-term memory.

Session records live in a key-value backend, memory entries in a
vector index. Both come in a hosted (Upstash) and an in-process flavor.
"""

from .base import EqualsFilter, IndexStats, KeyValueStore, RangePage, VectorIndex, VectorMatch
from .memory_backend import InMemoryKeyValueStore, InMemoryVectorIndex
from .session_store import SessionStore
from .upstash_redis import UpstashRedisStore
from .upstash_vector import UpstashVectorIndex
from .vector_store import MemoryVectorStore

__all__ = [
    "EqualsFilter",
    "IndexStats",
    "KeyValueStore",
    "RangePage",
    "VectorIndex",
    "VectorMatch",
    "InMemoryKeyValueStore",
    "InMemoryVectorIndex",
    "SessionStore",
    "UpstashRedisStore",
    "UpstashVectorIndex",
    "MemoryVectorStore",
]
