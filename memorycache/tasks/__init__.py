"""
Task dispatch for deferred cleanup.

The dispatcher delivers CleanupTask payloads back to this service's
callback URL, either once after a delay or on a cron schedule, and
owns delivery retries.
"""

from .base import TaskDispatcher
from .qstash_client import QStashDispatcher

__all__ = [
    "TaskDispatcher",
    "QStashDispatcher",
]
