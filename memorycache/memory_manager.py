"""
Memory Manager - Orchestrates session state and long-term memory.

This is the high-level interface every entry point uses.
It handles:
- Saving messages to the session transcript and to long-term memory
- Semantic search over a user's memories
- Session reads, context updates and deletion
- Cleanup of expired memories, users and sessions, and scheduling it

The manager holds no persistent state of its own. Each operation calls
its adapters one after another; nothing is retried or rolled back, so a
save can leave a message in the transcript without a matching memory.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from .config import Config
from .embeddings import EmbeddingService, create_embedding_service
from .errors import (
    ConfigurationError,
    MemoryNotFoundError,
    SessionNotFoundError,
    UpstreamError,
    ValidationError,
)
from .models import (
    MEMORY_TTL_SECONDS,
    CleanupReport,
    CleanupTask,
    DimensionReport,
    MemoryEntry,
    MemoryResult,
    Message,
    QueryResponse,
    Role,
    SaveOutcome,
    SaveResult,
    SessionRecord,
    TaskKind,
    new_id,
    utcnow,
)
from .stores import (
    InMemoryKeyValueStore,
    InMemoryVectorIndex,
    MemoryVectorStore,
    SessionStore,
    UpstashRedisStore,
    UpstashVectorIndex,
)
from .tasks import QStashDispatcher, TaskDispatcher

logger = logging.getLogger("memorycache.memory.manager")

DEFAULT_QUERY_LIMIT = 10
DEFAULT_MIN_SCORE = 0.5

RECENT_MEMORIES_QUERY = "recent conversation"
DEFAULT_RECENT_LIMIT = 20
RECENT_MIN_SCORE = 0.1

KEYWORD_MIN_SCORE = 0.6


def _require(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value


class MemoryManager:
    """
    Coordinates the session store, vector store, embedding provider and
    task dispatcher behind the user-facing memory operations.
    """

    def __init__(
        self,
        session_store: SessionStore,
        vector_store: MemoryVectorStore,
        embedding_service: EmbeddingService,
        dispatcher: Optional[TaskDispatcher] = None,
        memory_ttl_seconds: int = MEMORY_TTL_SECONDS,
        task_retries: int = 3,
        cleanup_cron: str = "0 2 * * *",
        default_delay_seconds: int = 3600,
        scan_page_size: int = 1000,
        owner_cleanup_batch: int = 1000,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_store = session_store
        self.vector_store = vector_store
        self.embedding_service = embedding_service
        self.dispatcher = dispatcher
        self.memory_ttl_seconds = memory_ttl_seconds
        self.task_retries = task_retries
        self.cleanup_cron = cleanup_cron
        self.default_delay_seconds = default_delay_seconds
        self.scan_page_size = scan_page_size
        self.owner_cleanup_batch = owner_cleanup_batch
        self._clock = clock
        self.reindex_required = False
        logger.info(
            f"MemoryManager created with {embedding_service.provider_name} embeddings "
            f"({embedding_service.dimension} dims)"
        )

    async def initialize(self) -> None:
        """Check the vector store against the active embedding provider."""
        try:
            report = await self.check_dimensions()
        except UpstreamError as e:
            logger.warning(f"Could not verify vector store dimensions: {e}")
            return
        if not report.consistent:
            self.reindex_required = True

    # ------------------------------------------------------------------
    # Save / query
    # ------------------------------------------------------------------

    async def _embed(self, text: str) -> list[float]:
        embedding = await self.embedding_service.embed(text)
        return self.embedding_service.check_dimension(embedding)

    async def save_memory(
        self,
        user_id: str,
        session_id: str,
        content: str,
        role: str | Role,
    ) -> SaveResult:
        """
        Save a message to the session transcript and to long-term memory.

        Steps run strictly in order: session write, embedding, vector write.
        A failed session write stops everything. A failure after it leaves
        the session write in place and reports SESSION_ONLY.
        The outcome describes the transcript and the memory; failing to list
        the session under its user is only logged by the session store.

        Args:
            user_id: Owner of the session and memory
            session_id: Session to append to (created if absent)
            content: Message text (must not be blank)
            role: "user" or "assistant"

        Returns:
            SaveResult describing what was committed

        Raises:
            ValidationError: On missing or malformed input, or when the
                session belongs to another user
        """
        _require(user_id, "user_id")
        _require(session_id, "session_id")
        _require(content, "content")
        role = Role.parse(role)

        now = self._clock()
        message = Message(id=new_id(), role=role, content=content, timestamp=now)

        # Step 1: session transcript
        try:
            record = await self.session_store.get(session_id)
            if record is None:
                record = SessionRecord(
                    user_id=user_id,
                    session_id=session_id,
                    created_at=now,
                    last_activity=now,
                )
                logger.info(f"Creating session {session_id} for user {user_id}")
            elif record.user_id and record.user_id != user_id:
                raise ValidationError(f"session {session_id} belongs to another user")
            record.append(message)
            await self.session_store.save(record)
        except UpstreamError as e:
            logger.error(f"Failed to save session {session_id}: {e}")
            return SaveResult(SaveOutcome.FAILED, message.id, session_id, error=e)

        # Steps 2-4: embedding and long-term memory
        try:
            embedding = await self._embed(content)
            entry = MemoryEntry(
                id=message.id,
                user_id=user_id,
                content=content,
                embedding=embedding,
                metadata={
                    "session_id": session_id,
                    "role": role.value,
                },
                timestamp=now,
                ttl=self.memory_ttl_seconds,
            )
            await self.vector_store.store(entry)
        except UpstreamError as e:
            logger.warning(
                f"Message {message.id} saved to session {session_id} without long-term memory: {e}"
            )
            return SaveResult(SaveOutcome.SESSION_ONLY, message.id, session_id, error=e)

        logger.info(f"Saved memory {message.id} for user {user_id} in session {session_id}")
        return SaveResult(SaveOutcome.FULLY_COMMITTED, message.id, session_id)

    async def query_memory(
        self,
        user_id: str,
        query: str,
        limit: int = 0,
        min_score: float = 0.0,
    ) -> QueryResponse:
        """
        Search a user's memories by semantic similarity.

        Args:
            user_id: Owner whose memories are searched
            query: Free-text query
            limit: Maximum results (10 when <= 0)
            min_score: Minimum similarity (0.5 when <= 0)

        Returns:
            Matches at or above min_score, in the order the store ranked them

        Raises:
            ValidationError: On missing input
            UpstreamError: If embedding or the store query fails
        """
        _require(user_id, "user_id")
        _require(query, "query")

        if limit <= 0:
            limit = DEFAULT_QUERY_LIMIT
        if min_score <= 0:
            min_score = DEFAULT_MIN_SCORE

        logger.debug(f"Querying memories: user={user_id}, limit={limit}, min_score={min_score}")

        query_embedding = await self._embed(query)
        matches = await self.vector_store.search(user_id, query_embedding, limit)

        results: list[MemoryResult] = []
        seen: set[str] = set()
        for match in matches:
            if match.score < min_score or match.id in seen:
                continue
            seen.add(match.id)
            results.append(match)

        logger.info(
            f"Query for user {user_id} returned {len(results)} of {len(matches)} matches"
        )
        return QueryResponse(results=results)

    async def get_recent_memories(self, user_id: str, limit: int = 0) -> list[MemoryResult]:
        """Broad low-threshold search standing in for a time-ordered listing."""
        if limit <= 0:
            limit = DEFAULT_RECENT_LIMIT
        response = await self.query_memory(
            user_id, RECENT_MEMORIES_QUERY, limit=limit, min_score=RECENT_MIN_SCORE
        )
        return response.results

    async def search_memories(self, user_id: str, keyword: str, limit: int = 0) -> list[MemoryResult]:
        """Keyword search with a stricter similarity threshold."""
        response = await self.query_memory(
            user_id, keyword, limit=limit, min_score=KEYWORD_MIN_SCORE
        )
        return response.results

    async def delete_memory(self, memory_id: str, user_id: str) -> None:
        """
        Delete one memory after checking it belongs to user_id.

        Raises:
            MemoryNotFoundError: If it is absent or owned by someone else,
                including when it was already deleted
        """
        _require(memory_id, "memory_id")
        _require(user_id, "user_id")

        stored = await self.vector_store.get(memory_id)
        if stored is None or stored.metadata.get("user_id") != user_id:
            raise MemoryNotFoundError(memory_id, user_id)

        await self.vector_store.delete([memory_id])
        logger.info(f"Deleted memory {memory_id} for user {user_id}")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_session(self, session_id: str) -> SessionRecord:
        """
        Fetch a session and refresh its activity time and retention window.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        _require(session_id, "session_id")

        record = await self.session_store.get(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)

        record.touch(self._clock())
        try:
            await self.session_store.save(record)
        except UpstreamError as e:
            logger.warning(f"Failed to update session activity for {session_id}: {e}")

        return record

    async def list_user_sessions(self, user_id: str) -> list[str]:
        """
        Session ids ever recorded for a user.

        The user's session set expires independently of the sessions, so
        ids may refer to sessions that no longer exist.
        """
        _require(user_id, "user_id")
        return sorted(await self.session_store.list_user_sessions(user_id))

    async def set_session_context(self, session_id: str, context: dict[str, Any]) -> SessionRecord:
        """
        Merge values into a session's context map.

        Raises:
            ValidationError: If context is not a JSON-serializable mapping
            SessionNotFoundError: If the session does not exist
        """
        _require(session_id, "session_id")
        if not isinstance(context, dict):
            raise ValidationError("context must be an object")
        try:
            json.dumps(context)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"context must be JSON serializable: {e}")

        record = await self.session_store.get(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)

        record.merge_context(context, self._clock())
        await self.session_store.save(record)
        logger.info(f"Updated context for session {session_id}: {list(context)}")
        return record

    async def delete_session(self, session_id: str, delete_memories: bool = False) -> bool:
        """
        Delete a session.

        Memories cannot be located by session id, so delete_memories
        currently leaves them in place.

        Returns:
            False if the session was already absent
        """
        _require(session_id, "session_id")

        if delete_memories:
            logger.info(
                f"Memory deletion by session is not supported; memories of session {session_id} are kept"
            )

        existed = await self.session_store.delete(session_id)
        logger.info(f"Deleted session {session_id}" if existed else f"Session {session_id} already absent")
        return existed

    # ------------------------------------------------------------------
    # Stats / provider
    # ------------------------------------------------------------------

    async def get_memory_stats(self) -> dict[str, Any]:
        stats = await self.vector_store.stats()
        return {
            "vector_db": stats.to_dict(),
            "timestamp": self._clock().isoformat(),
        }

    def get_embedding_info(self) -> dict[str, Any]:
        info = self.embedding_service.info()
        info["timestamp"] = self._clock().isoformat()
        info["reindex_required"] = self.reindex_required
        return info

    async def check_dimensions(self, sample_size: int = 0) -> DimensionReport:
        """
        Compare stored vectors with the active provider's dimensionality.

        Args:
            sample_size: Also inspect this many stored vectors (0 = stats only)

        Returns:
            DimensionReport; `consistent` is False when a provider switch
            left vectors of another length in the store
        """
        stats = await self.vector_store.stats()
        report = DimensionReport(
            provider=self.embedding_service.provider_name,
            provider_dimension=self.embedding_service.dimension,
            store_dimension=stats.dimension,
        )

        if sample_size > 0:
            inspected = 0
            async for match in self.vector_store.iter_entries(page_size=sample_size, include_vectors=True):
                if match.vector is not None and len(match.vector) != report.provider_dimension:
                    report.mismatched_samples.append(match.id)
                inspected += 1
                if inspected >= sample_size:
                    break

        if not report.consistent:
            logger.warning(
                f"Vector store dimension {report.store_dimension} does not match "
                f"{report.provider} embeddings ({report.provider_dimension}); reindex required"
            )
        return report

    def switch_embedding_provider(self, service: EmbeddingService) -> bool:
        """
        Replace the active embedding provider.

        Stored embeddings are not regenerated. When the provider, model or
        dimensionality changes, similarity search is unreliable until
        `reindex` runs, and `reindex_required` is set.

        Returns:
            Whether a reindex is now required
        """
        old = self.embedding_service
        changed = (
            old.provider_name != service.provider_name
            or old.model_name != service.model_name
            or old.dimension != service.dimension
        )
        self.embedding_service = service

        if changed:
            self.reindex_required = True
            logger.warning(
                f"Embedding provider switched from {old.provider_name} ({old.dimension} dims) "
                f"to {service.provider_name} ({service.dimension} dims); stored memories must be reindexed"
            )
        return self.reindex_required

    async def reindex(self, batch_size: int = 100) -> int:
        """
        Re-embed every stored memory with the active provider.

        Returns:
            Number of memories rewritten

        Raises:
            ConfigurationError: If the index has a fixed dimension that the
                active provider does not produce; nothing is rewritten
        """
        stats = await self.vector_store.stats()
        target = self.embedding_service.dimension
        if self.vector_store.index.fixed_dimension and stats.dimension and stats.dimension != target:
            raise ConfigurationError(
                f"Vector index dimension is fixed at {stats.dimension} but "
                f"{self.embedding_service.provider_name} produces {target}; "
                f"a new index with dimension {target} is required"
            )

        rewritten = 0
        batch = []

        async def flush() -> int:
            contents = [m.metadata["content"] for m in batch]
            embeddings = await self.embedding_service.embed_batch(contents)
            for match, embedding in zip(batch, embeddings):
                self.embedding_service.check_dimension(embedding)
                await self.vector_store.index.upsert(match.id, embedding, match.metadata)
            return len(batch)

        async for match in self.vector_store.iter_entries(page_size=self.scan_page_size):
            if not isinstance(match.metadata.get("content"), str):
                logger.warning(f"Skipping memory {match.id} without content")
                continue
            batch.append(match)
            if len(batch) >= batch_size:
                rewritten += await flush()
                batch = []
        if batch:
            rewritten += await flush()

        self.vector_store.invalidate_dimension()
        self.reindex_required = False
        logger.info(f"Reindexed {rewritten} memories with {self.embedding_service.provider_name} embeddings")
        return rewritten

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def cleanup_expired_memories(self) -> CleanupReport:
        """
        Delete every memory whose `timestamp + ttl` is in the past.

        Scans the whole vector store page by page. Failed deletions are
        logged and counted, not raised.
        """
        report = CleanupReport(TaskKind.EXPIRE_ALL)
        now = self._clock()

        report.scanned, expired = await self.vector_store.find_expired(now, page_size=self.scan_page_size)

        for start in range(0, len(expired), self.scan_page_size):
            chunk = expired[start:start + self.scan_page_size]
            try:
                report.deleted += await self.vector_store.delete(chunk)
            except UpstreamError as e:
                report.failed += len(chunk)
                logger.warning(f"Failed to delete {len(chunk)} expired memories: {e}")

        logger.info(
            f"Expired memory cleanup: scanned={report.scanned}, deleted={report.deleted}, failed={report.failed}"
        )
        return report

    async def cleanup_user_memories(self, user_id: str) -> CleanupReport:
        """
        Delete all memories and all listed sessions of one user.

        Raises:
            UpstreamError: If the memory deletion or session listing fails
        """
        _require(user_id, "user_id")
        report = CleanupReport(TaskKind.CLEANUP_OWNER)

        try:
            dimension = await self.vector_store.dimension()
        except UpstreamError as e:
            dimension = 0
            logger.warning(f"Could not get dimensions from vector store, using provider dimensions: {e}")
        if not dimension:
            dimension = self.embedding_service.dimension

        report.deleted = await self.vector_store.delete_user_memories(
            user_id, probe_dimension=dimension, batch_size=self.owner_cleanup_batch
        )

        session_ids = await self.session_store.list_user_sessions(user_id)
        for session_id in sorted(session_ids):
            try:
                if await self.session_store.delete(session_id):
                    report.sessions_deleted += 1
            except UpstreamError as e:
                report.failed += 1
                logger.warning(f"Failed to delete session {session_id}: {e}")

        if report.failed == 0:
            await self.session_store.forget_user(user_id)

        logger.info(
            f"Cleaned up user {user_id}: memories={report.deleted}, "
            f"sessions={report.sessions_deleted}, failed={report.failed}"
        )
        return report

    async def cleanup_session(self, session_id: str) -> CleanupReport:
        """Delete one session. Its memories are kept."""
        report = CleanupReport(TaskKind.CLEANUP_SESSION)
        if await self.delete_session(session_id, delete_memories=False):
            report.sessions_deleted = 1
        return report

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _require_dispatcher(self) -> TaskDispatcher:
        if self.dispatcher is None:
            raise ConfigurationError("task dispatcher is not configured (set QSTASH_TOKEN)")
        return self.dispatcher

    async def schedule_cleanup(self, callback_url: str) -> str:
        """Register the daily expired-memory cleanup. Returns the schedule id."""
        _require(callback_url, "callback_url")
        dispatcher = self._require_dispatcher()

        task = CleanupTask(TaskKind.EXPIRE_ALL, timestamp=self._clock())
        schedule_id = await dispatcher.schedule(
            callback_url, task.to_json(), self.cleanup_cron, retries=self.task_retries
        )
        logger.info(f"Scheduled daily cleanup {schedule_id} -> {callback_url}")
        return schedule_id

    async def _publish_delayed(self, callback_url: str, task: CleanupTask) -> str:
        dispatcher = self._require_dispatcher()
        return await dispatcher.publish(
            callback_url, task.to_json(), delay_seconds=task.ttl, retries=self.task_retries
        )

    async def schedule_owner_cleanup(self, callback_url: str, user_id: str, delay_seconds: int = 0) -> str:
        """Schedule a one-off cleanup of one user. Returns the message id."""
        _require(callback_url, "callback_url")
        _require(user_id, "user_id")
        if delay_seconds <= 0:
            delay_seconds = self.default_delay_seconds

        task = CleanupTask(
            TaskKind.CLEANUP_OWNER,
            user_id=user_id,
            timestamp=self._clock(),
            ttl=delay_seconds,
        )
        message_id = await self._publish_delayed(callback_url, task)
        logger.info(f"Scheduled cleanup of user {user_id} in {delay_seconds}s ({message_id})")
        return message_id

    async def schedule_session_cleanup(self, callback_url: str, session_id: str, delay_seconds: int = 0) -> str:
        """Schedule a one-off deletion of one session. Returns the message id."""
        _require(callback_url, "callback_url")
        _require(session_id, "session_id")
        if delay_seconds <= 0:
            delay_seconds = self.default_delay_seconds

        task = CleanupTask(
            TaskKind.CLEANUP_SESSION,
            session_id=session_id,
            timestamp=self._clock(),
            ttl=delay_seconds,
        )
        message_id = await self._publish_delayed(callback_url, task)
        logger.info(f"Scheduled cleanup of session {session_id} in {delay_seconds}s ({message_id})")
        return message_id

    async def cancel_schedule(self, schedule_id: str) -> None:
        _require(schedule_id, "schedule_id")
        await self._require_dispatcher().cancel(schedule_id)

    async def list_schedules(self) -> list[dict[str, Any]]:
        return await self._require_dispatcher().list_schedules()

    async def close(self) -> None:
        """Clean up resources."""
        await self.session_store.close()
        await self.vector_store.close()
        await self.embedding_service.close()
        if self.dispatcher is not None:
            await self.dispatcher.close()
        logger.info("MemoryManager closed")


async def create_memory_manager(cfg: Config) -> MemoryManager:
    """
    Factory function to create a configured MemoryManager.

    Args:
        cfg: Application configuration

    Returns:
        Initialized MemoryManager
    """
    embedding_service = create_embedding_service(
        provider=cfg.embedding.provider,
        jina_api_key=cfg.embedding.jina_api_key,
        jina_model=cfg.embedding.jina_model,
        openai_api_key=cfg.embedding.openai_api_key,
        openai_model=cfg.embedding.openai_model,
        dimensions=cfg.embedding.dimensions,
        timeout=cfg.embedding.timeout,
    )

    if cfg.app.backend == "upstash":
        if not cfg.session_store.url or not cfg.vector_store.url:
            raise ConfigurationError("Upstash Redis and Vector URLs are required for the upstash backend")
        kv_backend = UpstashRedisStore(
            url=cfg.session_store.url,
            token=cfg.session_store.token,
            timeout=cfg.session_store.timeout,
        )
        vector_index = UpstashVectorIndex(
            url=cfg.vector_store.url,
            token=cfg.vector_store.token,
            timeout=cfg.vector_store.timeout,
        )
    elif cfg.app.backend == "memory":
        kv_backend = InMemoryKeyValueStore()
        vector_index = InMemoryVectorIndex(dimension=embedding_service.dimension)
    else:
        raise ConfigurationError(f"Unknown backend: {cfg.app.backend}")

    dispatcher = None
    if cfg.tasks.token:
        dispatcher = QStashDispatcher(
            token=cfg.tasks.token,
            url=cfg.tasks.url,
            timeout=cfg.tasks.timeout,
        )
    else:
        logger.info("QSTASH_TOKEN not set; cleanup scheduling disabled")

    manager = MemoryManager(
        session_store=SessionStore(kv_backend, ttl_seconds=cfg.session_store.ttl_seconds),
        vector_store=MemoryVectorStore(vector_index),
        embedding_service=embedding_service,
        dispatcher=dispatcher,
        memory_ttl_seconds=cfg.vector_store.memory_ttl_seconds,
        task_retries=cfg.tasks.retries,
        cleanup_cron=cfg.tasks.cleanup_cron,
        default_delay_seconds=cfg.tasks.default_delay_seconds,
        scan_page_size=cfg.vector_store.scan_page_size,
        owner_cleanup_batch=cfg.vector_store.owner_cleanup_batch,
    )

    await manager.initialize()
    return manager
