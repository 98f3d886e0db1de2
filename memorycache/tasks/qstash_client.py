"""
QStash Task Dispatcher Implementation.

Uses the QStash v2 REST API:
- POST /v2/publish/<destination> for one-off delayed delivery
- POST /v2/schedules/<destination> for cron schedules
- DELETE /v2/schedules/<id> to cancel
- GET /v2/schedules to list

Delivery options travel as `Upstash-*` headers; the request body is
forwarded verbatim to the destination.
"""

import logging
from typing import Any

import httpx

from ..errors import UpstreamError, ValidationError
from ..http_client import RestClient
from .base import TaskDispatcher

logger = logging.getLogger("memorycache.tasks.qstash")

QSTASH_URL = "https://qstash.upstash.io"


class QStashDispatcher(RestClient, TaskDispatcher):
    """QStash-backed task dispatcher."""

    adapter_name = "task dispatcher"

    def __init__(
        self,
        token: str,
        url: str = QSTASH_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(url=url or QSTASH_URL, token=token, timeout=timeout, client=client)
        logger.info(f"QStashDispatcher configured: {self.url}")

    @staticmethod
    def _check_destination(target_url: str) -> None:
        if not target_url.startswith(("http://", "https://")):
            raise ValidationError(f"callback URL must be absolute http(s): {target_url!r}")

    async def publish(self, target_url: str, body: str, delay_seconds: int = 0, retries: int = 3) -> str:
        self._check_destination(target_url)
        headers = {"Upstash-Retries": str(retries)}
        if delay_seconds > 0:
            headers["Upstash-Delay"] = f"{delay_seconds}s"

        response = await self._request(
            "publish", "POST", f"/v2/publish/{target_url}", content=body, headers=headers
        )
        message_id = (response or {}).get("messageId") if isinstance(response, dict) else None
        if not message_id:
            raise UpstreamError(self.adapter_name, "publish", f"no messageId in response: {response!r}")

        logger.info(f"Published task {message_id} to {target_url} (delay={delay_seconds}s)")
        return message_id

    async def schedule(self, target_url: str, body: str, cron: str, retries: int = 3) -> str:
        self._check_destination(target_url)
        headers = {
            "Upstash-Cron": cron,
            "Upstash-Retries": str(retries),
        }

        response = await self._request(
            "schedule", "POST", f"/v2/schedules/{target_url}", content=body, headers=headers
        )
        schedule_id = (response or {}).get("scheduleId") if isinstance(response, dict) else None
        if not schedule_id:
            raise UpstreamError(self.adapter_name, "schedule", f"no scheduleId in response: {response!r}")

        logger.info(f"Created schedule {schedule_id} for {target_url} ({cron})")
        return schedule_id

    async def cancel(self, schedule_id: str) -> None:
        await self._request("cancel schedule", "DELETE", f"/v2/schedules/{schedule_id}")
        logger.info(f"Cancelled schedule {schedule_id}")

    async def list_schedules(self) -> list[dict[str, Any]]:
        response = await self._request("list schedules", "GET", "/v2/schedules")
        if response is None:
            return []
        if not isinstance(response, list):
            raise UpstreamError(self.adapter_name, "list schedules", f"unexpected response: {response!r}")
        return response
