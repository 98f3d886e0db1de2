"""
Upstash Redis (REST) Key-Value Backend.

Each Redis command is POSTed to the database URL as a JSON array, e.g.
`["SET", "session:abc", "{...}", "EX", 86400]`, and answered with
`{"result": ...}` or `{"error": "..."}`.
"""

import logging
from typing import Any, Optional

import httpx

from ..errors import UpstreamError
from ..http_client import RestClient
from .base import KeyValueStore

logger = logging.getLogger("memorycache.stores.redis")


class UpstashRedisStore(RestClient, KeyValueStore):
    """Key-value backend over the Upstash Redis REST API."""

    adapter_name = "session store"

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(url=url, token=token, timeout=timeout, client=client)
        logger.info("UpstashRedisStore configured")

    async def execute(self, *command: Any) -> Any:
        """
        Run a single Redis command.

        Returns:
            The command's `result` value

        Raises:
            UpstreamError: If the request fails or Redis reports an error
        """
        operation = str(command[0]).upper()
        body = await self._request(operation, "POST", "/", json=list(command))

        if not isinstance(body, dict):
            raise UpstreamError(self.adapter_name, operation, f"unexpected response: {body!r}")
        if body.get("error"):
            raise UpstreamError(self.adapter_name, operation, f"Redis error: {body['error']}")
        return body.get("result")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.execute("SET", key, value, "EX", ttl_seconds)

    async def get(self, key: str) -> Optional[str]:
        result = await self.execute("GET", key)
        if result is None:
            return None
        if not isinstance(result, str):
            raise UpstreamError(self.adapter_name, "GET", "invalid value format")
        return result

    def _integer(self, operation: str, result: Any) -> int:
        # bool is an int subclass but never a valid integer reply
        if not isinstance(result, int) or isinstance(result, bool):
            raise UpstreamError(self.adapter_name, operation, f"expected integer reply, got {result!r}")
        return result

    async def delete(self, key: str) -> int:
        return self._integer("DEL", await self.execute("DEL", key))

    async def sadd(self, key: str, member: str) -> int:
        return self._integer("SADD", await self.execute("SADD", key, member))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return self._integer("EXPIRE", await self.execute("EXPIRE", key, ttl_seconds)) == 1

    async def smembers(self, key: str) -> "set[str]":
        result = await self.execute("SMEMBERS", key)
        if not isinstance(result, list):
            return set()
        return {member for member in result if isinstance(member, str)}
