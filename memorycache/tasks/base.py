"""
Abstract base class for task dispatchers.
"""

from abc import ABC, abstractmethod
from typing import Any


class TaskDispatcher(ABC):
    """Schedules one-shot or recurring callback invocations."""

    @abstractmethod
    async def publish(self, target_url: str, body: str, delay_seconds: int = 0, retries: int = 3) -> str:
        """
        Deliver body to target_url once, after delay_seconds.

        Returns:
            The dispatcher's message id
        """
        pass

    @abstractmethod
    async def schedule(self, target_url: str, body: str, cron: str, retries: int = 3) -> str:
        """
        Deliver body to target_url on a cron schedule.

        Returns:
            The dispatcher's schedule id
        """
        pass

    @abstractmethod
    async def cancel(self, schedule_id: str) -> None:
        """Remove a recurring schedule."""
        pass

    @abstractmethod
    async def list_schedules(self) -> list[dict[str, Any]]:
        """Return the dispatcher's view of all schedules."""
        pass

    async def close(self) -> None:
        """Clean up resources."""
        pass
