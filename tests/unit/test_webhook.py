"""
Unit tests for memorycache/webhook.py

Tests parsing and dispatch of delivered cleanup tasks.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from memorycache.errors import ValidationError
from memorycache.models import CleanupReport, CleanupTask, TaskKind
from memorycache.webhook import CleanupTaskHandler


@pytest.fixture
def mock_manager():
    manager = MagicMock()
    manager.cleanup_expired_memories = AsyncMock(return_value=CleanupReport(TaskKind.EXPIRE_ALL, scanned=4, deleted=1))
    manager.cleanup_user_memories = AsyncMock(return_value=CleanupReport(TaskKind.CLEANUP_OWNER, deleted=2))
    manager.cleanup_session = AsyncMock(return_value=CleanupReport(TaskKind.CLEANUP_SESSION, sessions_deleted=1))
    return manager


class TestCleanupTaskHandler:
    """Tests for CleanupTaskHandler."""

    @pytest.mark.asyncio
    async def test_expire_all_task(self, mock_manager):
        handler = CleanupTaskHandler(mock_manager)
        body = CleanupTask(TaskKind.EXPIRE_ALL).to_json().encode()

        response = await handler.handle(body, signature="sig")

        assert response["status"] == "completed"
        assert response["task_type"] == "cleanup_expired_memories"
        assert response["report"]["scanned"] == 4
        mock_manager.cleanup_expired_memories.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_owner_task(self, mock_manager):
        handler = CleanupTaskHandler(mock_manager)

        await handler.handle(json.dumps({"task_type": "cleanup_user_memories", "user_id": "alice"}))

        mock_manager.cleanup_user_memories.assert_awaited_once_with("alice")

    @pytest.mark.asyncio
    async def test_owner_task_requires_user_id(self, mock_manager):
        handler = CleanupTaskHandler(mock_manager)

        with pytest.raises(ValidationError, match="user_id"):
            await handler.handle({"task_type": "cleanup_user_memories"})

    @pytest.mark.asyncio
    async def test_session_task(self, mock_manager):
        handler = CleanupTaskHandler(mock_manager)

        await handler.handle({"task_type": "cleanup_session", "session_id": "s1"})

        mock_manager.cleanup_session.assert_awaited_once_with("s1")

    @pytest.mark.asyncio
    async def test_session_task_falls_back_to_user_id_field(self, mock_manager):
        handler = CleanupTaskHandler(mock_manager)

        await handler.handle({"task_type": "cleanup_session", "user_id": "s1"})

        mock_manager.cleanup_session.assert_awaited_once_with("s1")

    @pytest.mark.asyncio
    async def test_session_task_requires_an_id(self, mock_manager):
        handler = CleanupTaskHandler(mock_manager)

        with pytest.raises(ValidationError, match="session_id"):
            await handler.handle({"task_type": "cleanup_session"})

    @pytest.mark.asyncio
    async def test_unknown_task_type(self, mock_manager):
        handler = CleanupTaskHandler(mock_manager)

        with pytest.raises(ValidationError, match="Unknown task type"):
            await handler.handle({"task_type": "defragment"})

    @pytest.mark.asyncio
    async def test_invalid_json(self, mock_manager):
        handler = CleanupTaskHandler(mock_manager)

        with pytest.raises(ValidationError, match="Invalid task payload"):
            await handler.handle(b"{oops")

    @pytest.mark.asyncio
    async def test_request_context_is_reset(self, mock_manager):
        from memorycache.config import request_context

        handler = CleanupTaskHandler(mock_manager)
        await handler.handle({"task_type": "cleanup_expired_memories"})

        assert request_context.get() is None

    @pytest.mark.asyncio
    async def test_end_to_end_with_manager(self, manager):
        await manager.save_memory("alice", "s1", "a cat", "user")
        handler = CleanupTaskHandler(manager)

        response = await handler.handle({"task_type": "cleanup_user_memories", "user_id": "alice"})

        assert response["report"]["deleted"] == 1
        assert response["report"]["sessions_deleted"] == 1
