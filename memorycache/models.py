"""
Data structures for sessions, memories and cleanup tasks.

Every entity's authoritative copy lives in a remote store; these
dataclasses are the request-scoped view of it and know how to turn
themselves into the flat JSON layouts the stores persist.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .errors import UpstreamError, ValidationError

# Session retention window enforced by the session store
SESSION_TTL_SECONDS = 24 * 60 * 60

# Long-term memory time-to-live
MEMORY_TTL_SECONDS = 30 * 24 * 60 * 60


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp from either ISO 8601 text or unix seconds.

    Returns None for missing or unparseable values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str) and value:
        try:
            # Python < 3.11 does not accept the trailing "Z"
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def _format_timestamp(value: datetime) -> str:
    return value.isoformat()


class Role(str, Enum):
    """Who wrote a message."""
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(r.value for r in cls)
            raise ValidationError(f"role must be one of: {allowed} (got {value!r})")


class TaskKind(str, Enum):
    """Cleanup task kinds, valued by their wire names."""
    EXPIRE_ALL = "cleanup_expired_memories"
    CLEANUP_OWNER = "cleanup_user_memories"
    CLEANUP_SESSION = "cleanup_session"


class SaveOutcome(str, Enum):
    """How far a save got across the two stores."""
    FULLY_COMMITTED = "fully_committed"
    SESSION_ONLY = "session_only"
    FAILED = "failed"


@dataclass(frozen=True)
class Message:
    """A single conversation message. Immutable once created."""
    id: str
    role: Role
    content: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": _format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            id=data["id"],
            role=Role(data["role"]),
            content=data.get("content", ""),
            timestamp=parse_timestamp(data.get("timestamp")) or utcnow(),
        )


@dataclass
class SessionRecord:
    """
    One conversation: the ordered transcript plus free-form context.

    Messages are append-only and kept in chronological order.
    """
    user_id: str
    session_id: str
    messages: list[Message] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)

    def append(self, message: Message) -> None:
        self.messages.append(message)
        self.last_activity = message.timestamp

    def merge_context(self, values: dict[str, Any], now: Optional[datetime] = None) -> None:
        """Overwrite the given keys, leaving all other keys untouched."""
        self.context.update(values)
        self.last_activity = now or utcnow()

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_activity = now or utcnow()

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "session_id": self.session_id,
            "messages": [m.to_dict() for m in self.messages],
            "context": self.context,
            "last_activity": _format_timestamp(self.last_activity),
            "created_at": _format_timestamp(self.created_at),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRecord":
        now = utcnow()
        return cls(
            user_id=data.get("user_id", ""),
            session_id=data["session_id"],
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
            context=dict(data.get("context") or {}),
            created_at=parse_timestamp(data.get("created_at")) or now,
            last_activity=parse_timestamp(data.get("last_activity")) or now,
        )

    @classmethod
    def from_json(cls, raw: str) -> "SessionRecord":
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise UpstreamError("session store", "decode session", str(e))
        if not isinstance(data, dict):
            raise UpstreamError("session store", "decode session", f"expected an object, got {type(data).__name__}")
        try:
            return cls.from_dict(data)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise UpstreamError("session store", "decode session", str(e))


@dataclass
class MemoryEntry:
    """
    One unit of long-term semantic memory.

    The id is shared with the originating Message, and the embedding
    length must match the dimensionality of the provider that made it.
    """
    id: str
    user_id: str
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    ttl: int = MEMORY_TTL_SECONDS

    def to_metadata(self) -> dict[str, Any]:
        """
        Flatten this entry into the metadata stored beside its vector.

        The `id` key is always written from the entry id, so metadata and
        the store's native id never disagree.
        """
        metadata = dict(self.metadata)
        metadata.update({
            "id": self.id,
            "user_id": self.user_id,
            "content": self.content,
            "timestamp": int(self.timestamp.timestamp()),
            "ttl": self.ttl,
        })
        return metadata

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.timestamp.timestamp() + self.ttl < now.timestamp()


def metadata_is_expired(metadata: dict[str, Any], now: datetime) -> bool:
    """Check `timestamp + ttl < now` on stored metadata. Entries missing either are kept."""
    timestamp = metadata.get("timestamp")
    ttl = metadata.get("ttl")
    if not isinstance(timestamp, (int, float)) or not isinstance(ttl, (int, float)):
        return False
    return timestamp + ttl < now.timestamp()


@dataclass
class MemoryResult:
    """A single memory search result."""
    id: str
    content: str
    score: float
    metadata: dict[str, Any]
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "score": self.score,
            "metadata": self.metadata,
            "timestamp": _format_timestamp(self.timestamp) if self.timestamp else None,
        }


@dataclass
class QueryResponse:
    results: list[MemoryResult]

    @property
    def total(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "total": self.total,
        }


@dataclass
class SaveResult:
    """
    What a save actually committed.

    SESSION_ONLY is a tolerated partial success: the transcript has the
    message but long-term memory does not.
    """
    outcome: SaveOutcome
    message_id: str
    session_id: str
    error: Optional[UpstreamError] = None

    @property
    def ok(self) -> bool:
        return self.outcome != SaveOutcome.FAILED


@dataclass
class CleanupTask:
    """A cleanup instruction carried by the task dispatcher and delivered back as a callback."""
    task_type: TaskKind
    user_id: str = ""
    session_id: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    ttl: int = 0

    def to_dict(self) -> dict:
        data = {
            "task_type": self.task_type.value,
            "timestamp": _format_timestamp(self.timestamp),
            "ttl": self.ttl,
        }
        if self.user_id:
            data["user_id"] = self.user_id
        if self.session_id:
            data["session_id"] = self.session_id
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "CleanupTask":
        if not isinstance(data, dict):
            raise ValidationError("cleanup task must be a JSON object")
        raw_type = data.get("task_type")
        try:
            task_type = TaskKind(raw_type)
        except ValueError:
            raise ValidationError(f"Unknown task type: {raw_type}")
        ttl = data.get("ttl") or 0
        if not isinstance(ttl, (int, float)) or isinstance(ttl, bool):
            raise ValidationError(f"ttl must be a number (got {ttl!r})")
        return cls(
            task_type=task_type,
            user_id=data.get("user_id") or "",
            session_id=data.get("session_id") or "",
            timestamp=parse_timestamp(data.get("timestamp")) or utcnow(),
            ttl=int(ttl),
        )


@dataclass
class CleanupReport:
    """Counts from a cleanup run."""
    task_type: TaskKind
    scanned: int = 0
    deleted: int = 0
    failed: int = 0
    sessions_deleted: int = 0

    def to_dict(self) -> dict:
        return {
            "task_type": self.task_type.value,
            "scanned": self.scanned,
            "deleted": self.deleted,
            "failed": self.failed,
            "sessions_deleted": self.sessions_deleted,
        }


@dataclass
class DimensionReport:
    """Comparison between stored vector dimensionality and the active provider."""
    provider: str
    provider_dimension: int
    store_dimension: Optional[int]
    mismatched_samples: list[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        if self.mismatched_samples:
            return False
        return self.store_dimension in (None, 0, self.provider_dimension)

    def to_dict(self) -> dict:
        return {
            "provider": self.provider,
            "provider_dimension": self.provider_dimension,
            "store_dimension": self.store_dimension,
            "mismatched_samples": self.mismatched_samples,
            "consistent": self.consistent,
        }
