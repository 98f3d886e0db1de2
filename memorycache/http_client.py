"""
Shared plumbing for the REST adapters.

Each hosted service (Upstash Redis, Upstash Vector, QStash, Jina) is a
bearer-token JSON API. This base class owns the lazily created
`httpx.AsyncClient`, its timeout, and the translation of transport and
HTTP failures into `UpstreamError`.
"""

import logging
from typing import Any

import httpx

from .errors import UpstreamError

logger = logging.getLogger("memorycache.http")


class RestClient:
    """Base class for bearer-token JSON REST adapters."""

    # Human readable adapter name used in error messages
    adapter_name = "remote service"

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url.rstrip("/")
        self._token = token
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._token}",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        operation: str,
        method: str,
        path: str = "",
        json: Any = None,
        content: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Args:
            operation: Logical operation name, used in error messages
            method: HTTP method
            path: Path appended to the base URL
            json: JSON body (mutually exclusive with content)
            content: Raw body
            headers: Extra headers

        Returns:
            The decoded JSON response, or None for an empty body

        Raises:
            UpstreamError: On transport errors, timeouts, non-2xx status
                or a body that is not JSON
        """
        client = self._get_client()
        url = f"{self.url}{path}"
        logger.debug(f"{self.adapter_name} {operation}: {method} {url}")

        try:
            response = await client.request(
                method,
                url,
                json=json,
                content=content,
                headers=self._headers(headers),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"{self.adapter_name} {operation} timed out after {self.timeout}s")
            raise UpstreamError(self.adapter_name, operation, f"timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"{self.adapter_name} {operation} request error: {e}")
            raise UpstreamError(self.adapter_name, operation, f"request failed: {e}") from e

        if not response.is_success:
            logger.error(
                f"{self.adapter_name} {operation} failed with status {response.status_code}"
            )
            raise UpstreamError(
                self.adapter_name,
                operation,
                f"status {response.status_code}: {response.text}",
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(self.adapter_name, operation, f"invalid JSON response: {e}") from e

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
