"""
Test fixtures and sample data for MemoryCacheAI tests.
"""

import json
import re
from datetime import datetime, timedelta, timezone

from memorycache.embeddings.base import EmbeddingService
from memorycache.models import MemoryEntry, Message, Role, SessionRecord

# Words mapped onto one axis each, so related words embed identically
CONCEPTS = {
    "pets": {"cat", "cats", "dog", "dogs", "pet", "pets", "kitten", "puppy"},
    "food": {"pizza", "food", "eat", "lunch", "pasta", "dinner"},
    "weather": {"rain", "weather", "sunny", "snow"},
    "work": {"meeting", "work", "project", "deadline"},
    "travel": {"flight", "travel", "trip", "paris"},
    "music": {"music", "song", "guitar", "piano"},
    "recent": {"recent", "conversation"},
}
CONCEPT_AXES = list(CONCEPTS)
FAKE_DIMENSION = len(CONCEPT_AXES) + 1


class FakeClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def time(self) -> float:
        return self.now.timestamp()

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeEmbeddingService(EmbeddingService):
    """
    Deterministic keyword-concept embeddings.

    Each known word adds weight to its concept axis; text with no known
    words lands on a catch-all axis.
    """

    def __init__(self, name: str = "fake", model: str = "concepts-v1", dimension: int = FAKE_DIMENSION):
        self._name = name
        self._model = model
        self._dimension = dimension
        self.calls: list[list[str]] = []
        self.fail_with: Exception | None = None
        self.wrong_length = False

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in re.findall(r"[a-z]+", text.lower()):
            for axis, words in enumerate(CONCEPTS.values()):
                if word in words and axis < self._dimension - 1:
                    vector[axis] += 1.0
        if not any(vector):
            vector[-1] = 1.0
        if self.wrong_length:
            vector.append(0.0)
        return vector

    async def embed(self, text: str) -> list[float]:
        self.calls.append([text])
        if self.fail_with is not None:
            raise self.fail_with
        return self._vector(text)

    async def embed_many(self, texts: list[str]) -> list[float]:
        if not texts:
            raise ValueError("no texts provided")
        return (await self.embed_batch(texts))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_with is not None:
            raise self.fail_with
        return [self._vector(t) for t in texts]


def make_message(
    content: str = "I adopted a cat last week",
    role: Role = Role.USER,
    id: str = "msg-1",
    timestamp: datetime = None,
) -> Message:
    """Create a sample Message for testing."""
    return Message(
        id=id,
        role=role,
        content=content,
        timestamp=timestamp or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc),
    )


def make_session(
    user_id: str = "alice",
    session_id: str = "session-1",
    messages: list[Message] = None,
    context: dict = None,
) -> SessionRecord:
    """Create a sample SessionRecord for testing."""
    created = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
    return SessionRecord(
        user_id=user_id,
        session_id=session_id,
        messages=messages if messages is not None else [make_message()],
        context=context or {},
        created_at=created,
        last_activity=created,
    )


def make_memory_entry(
    id: str = "mem-1",
    user_id: str = "alice",
    content: str = "I adopted a cat last week",
    embedding: list[float] = None,
    timestamp: datetime = None,
    ttl: int = 30 * 24 * 60 * 60,
    session_id: str = "session-1",
) -> MemoryEntry:
    """Create a sample MemoryEntry for testing."""
    return MemoryEntry(
        id=id,
        user_id=user_id,
        content=content,
        embedding=embedding or [1.0] + [0.0] * (FAKE_DIMENSION - 1),
        metadata={"session_id": session_id, "role": "user"},
        timestamp=timestamp or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc),
        ttl=ttl,
    )


def json_body(request) -> object:
    """Decode the JSON body of a recorded httpx request."""
    return json.loads(request.content)
