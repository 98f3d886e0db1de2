"""
Upstash Vector Index Backend.

Hosted vector index accessed over REST:
- POST /upsert, /query, /delete, /fetch, /range
- GET /info

All responses wrap their payload in `{"result": ...}`.
"""

import logging
from typing import Any, Optional

import httpx

from ..errors import UpstreamError
from ..http_client import RestClient
from .base import EqualsFilter, IndexStats, RangePage, VectorIndex, VectorMatch

logger = logging.getLogger("memorycache.stores.vector")


class UpstashVectorIndex(RestClient, VectorIndex):
    """Vector index backend over the Upstash Vector REST API."""

    adapter_name = "vector store"
    fixed_dimension = True

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(url=url, token=token, timeout=timeout, client=client)
        logger.info("UpstashVectorIndex configured")

    async def _call(self, operation: str, method: str, path: str, json: Any = None) -> Any:
        body = await self._request(operation, method, path, json=json)
        if not isinstance(body, dict) or "result" not in body:
            raise UpstreamError(self.adapter_name, operation, f"unexpected response: {body!r}")
        return body["result"]

    def _to_match(self, operation: str, item: Any) -> VectorMatch:
        if not isinstance(item, dict) or "id" not in item:
            raise UpstreamError(self.adapter_name, operation, f"malformed match: {item!r}")
        return VectorMatch(
            id=str(item["id"]),
            score=float(item.get("score") or 0.0),
            metadata=dict(item.get("metadata") or {}),
            vector=item.get("vector"),
        )

    async def upsert(self, id: str, vector: list[float], metadata: dict[str, Any]) -> None:
        await self._call("upsert", "POST", "/upsert", json={
            "id": id,
            "vector": vector,
            "metadata": metadata,
        })

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: Optional[EqualsFilter] = None,
    ) -> list[VectorMatch]:
        request = {
            "vector": vector,
            "topK": top_k,
            "includeMetadata": True,
            "includeVectors": False,
        }
        if filter is not None:
            request["filter"] = filter.to_expression()

        logger.debug(
            f"Vector query: dim={len(vector)}, topK={top_k}, filter={request.get('filter', '')}"
        )
        result = await self._call("query", "POST", "/query", json=request)
        if not isinstance(result, list):
            raise UpstreamError(self.adapter_name, "query", f"unexpected result: {result!r}")
        return [self._to_match("query", item) for item in result]

    async def delete(self, ids: list[str]) -> int:
        if not ids:
            return 0
        result = await self._call("delete", "POST", "/delete", json=list(ids))
        if isinstance(result, dict):
            return int(result.get("deleted") or 0)
        return 0

    async def fetch(self, ids: list[str], include_vectors: bool = False) -> list[Optional[VectorMatch]]:
        if not ids:
            return []
        result = await self._call("fetch", "POST", "/fetch", json={
            "ids": list(ids),
            "includeMetadata": True,
            "includeVectors": include_vectors,
        })
        if not isinstance(result, list):
            raise UpstreamError(self.adapter_name, "fetch", f"unexpected result: {result!r}")
        return [None if item is None else self._to_match("fetch", item) for item in result]

    async def range(self, cursor: str, limit: int, include_vectors: bool = False) -> RangePage:
        result = await self._call("range", "POST", "/range", json={
            "cursor": cursor,
            "limit": limit,
            "includeMetadata": True,
            "includeVectors": include_vectors,
        })
        if not isinstance(result, dict):
            raise UpstreamError(self.adapter_name, "range", f"unexpected result: {result!r}")
        vectors = [self._to_match("range", item) for item in result.get("vectors") or []]
        return RangePage(vectors=vectors, next_cursor=str(result.get("nextCursor") or ""))

    async def info(self) -> IndexStats:
        result = await self._call("info", "GET", "/info")
        if not isinstance(result, dict):
            raise UpstreamError(self.adapter_name, "info", f"unexpected result: {result!r}")
        try:
            return IndexStats(
                vector_count=int(result.get("vectorCount") or 0),
                dimension=int(result.get("dimension") or 0),
                similarity_function=str(result.get("similarityFunction") or ""),
                raw=result,
            )
        except (TypeError, ValueError) as e:
            raise UpstreamError(self.adapter_name, "info", f"malformed stats: {e}") from e
