"""
Cleanup callback handling.

The task dispatcher delivers scheduled CleanupTasks back to the service
as HTTP callbacks. This module turns one callback body into the matching
MemoryManager cleanup call; serving HTTP is left to the host application.

The `Upstash-Signature` header is accepted and logged but not verified.
"""

import json
import logging
from typing import Any, Optional

from .config import request_context
from .errors import ValidationError
from .memory_manager import MemoryManager
from .models import CleanupReport, CleanupTask, TaskKind, new_id

logger = logging.getLogger("memorycache.webhook")


class CleanupTaskHandler:
    """Dispatches delivered cleanup tasks to the memory manager."""

    def __init__(self, manager: MemoryManager):
        self.manager = manager

    @staticmethod
    def parse(body: bytes | str | dict) -> CleanupTask:
        """
        Parse a callback body into a CleanupTask.

        Raises:
            ValidationError: On invalid JSON or an unknown task type
        """
        if isinstance(body, dict):
            data = body
        else:
            try:
                data = json.loads(body)
            except (ValueError, UnicodeDecodeError) as e:
                raise ValidationError(f"Invalid task payload: {e}")
        return CleanupTask.from_dict(data)

    async def handle(self, body: bytes | str | dict, signature: Optional[str] = None) -> dict[str, Any]:
        """
        Run the cleanup a delivered task asks for.

        Args:
            body: Raw callback body (or an already decoded mapping)
            signature: Value of the Upstash-Signature header, if any

        Returns:
            Response dict with status, task type and the cleanup report
        """
        token = request_context.set(f"task-{new_id()[:8]}")
        try:
            task = self.parse(body)
            if signature:
                logger.debug(f"Received task signature: {signature[:16]}...")
            else:
                logger.debug("Received task without signature")

            logger.info(f"Handling cleanup task {task.task_type.value}")
            report = await self._dispatch(task)

            return {
                "status": "completed",
                "task_type": task.task_type.value,
                "report": report.to_dict(),
            }
        finally:
            request_context.reset(token)

    async def _dispatch(self, task: CleanupTask) -> CleanupReport:
        if task.task_type == TaskKind.EXPIRE_ALL:
            return await self.manager.cleanup_expired_memories()

        if task.task_type == TaskKind.CLEANUP_OWNER:
            if not task.user_id:
                raise ValidationError("cleanup_user_memories task requires user_id")
            return await self.manager.cleanup_user_memories(task.user_id)

        # Older payloads carry the session id in user_id
        session_id = task.session_id or task.user_id
        if not session_id:
            raise ValidationError("cleanup_session task requires session_id")
        return await self.manager.cleanup_session(session_id)
