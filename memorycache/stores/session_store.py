"""
Session Store - short-term conversational state.

Maps SessionRecords onto a key-value backend:
- `session:<id>` holds the serialized record with a 24 hour expiration
- `user_sessions:<user>` is the set of session ids ever seen for a user

The two keys expire independently, so the user set can list sessions
that have already expired or been deleted.
"""

import logging
from typing import Optional

from ..errors import UpstreamError
from ..models import SESSION_TTL_SECONDS, SessionRecord
from .base import KeyValueStore

logger = logging.getLogger("memorycache.stores.session")


def session_key(session_id: str) -> str:
    return f"session:{session_id}"


def user_sessions_key(user_id: str) -> str:
    return f"user_sessions:{user_id}"


class SessionStore:
    """Record-level access to session state."""

    def __init__(self, backend: KeyValueStore, ttl_seconds: int = SESSION_TTL_SECONDS):
        self.backend = backend
        self.ttl_seconds = ttl_seconds

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        """Return the session, or None if it does not exist."""
        raw = await self.backend.get(session_key(session_id))
        if raw is None:
            return None
        return SessionRecord.from_json(raw)

    async def save(self, record: SessionRecord) -> bool:
        """
        Persist the full record, resetting its retention window.

        Also records the session under its user and resets the user set's
        expiration to the same window. That second step is best-effort:
        once the record itself is written, an index failure is logged and
        reported through the return value instead of raised.

        Returns:
            False if the record was written but the user index was not

        Raises:
            UpstreamError: If the record itself could not be written
        """
        await self.backend.set(session_key(record.session_id), record.to_json(), self.ttl_seconds)

        indexed = True
        if record.user_id:
            user_key = user_sessions_key(record.user_id)
            try:
                await self.backend.sadd(user_key, record.session_id)
                await self.backend.expire(user_key, self.ttl_seconds)
            except UpstreamError as e:
                indexed = False
                logger.warning(
                    f"Session {record.session_id} saved but not indexed for user {record.user_id}: {e}"
                )

        logger.debug(
            f"Saved session {record.session_id} ({len(record.messages)} messages)"
        )
        return indexed

    async def delete(self, session_id: str) -> bool:
        """Delete a session. Returns False if it was already absent."""
        removed = await self.backend.delete(session_key(session_id))
        return removed > 0

    async def list_user_sessions(self, user_id: str) -> set[str]:
        return await self.backend.smembers(user_sessions_key(user_id))

    async def forget_user(self, user_id: str) -> None:
        """Drop the user's session-id set."""
        await self.backend.delete(user_sessions_key(user_id))

    async def close(self) -> None:
        await self.backend.close()
