"""
Jina AI Embedding Provider Implementation.

Calls the Jina embeddings REST API. Input is always sent as an array,
and vectors come back normalized as floats (1024 dimensions for
jina-embeddings-v3).
"""

import logging

import httpx

from ..errors import UpstreamError
from ..http_client import RestClient
from .base import EmbeddingService

logger = logging.getLogger("memorycache.embeddings.jina")

JINA_API_URL = "https://api.jina.ai/v1"


class JinaEmbeddingService(RestClient, EmbeddingService):
    """Jina AI embedding provider."""

    adapter_name = "Jina embeddings"

    MODEL_DIMENSIONS = {
        "jina-embeddings-v3": 1024,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "jina-embeddings-v3",
        timeout: float = 30.0,
        base_url: str = JINA_API_URL,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(url=base_url, token=api_key, timeout=timeout, client=client)
        self._model = model
        self._dimension = self.MODEL_DIMENSIONS.get(model, 1024)
        logger.info(f"JinaEmbeddingService initialized: model={model}, dimensions={self._dimension}")

    @property
    def provider_name(self) -> str:
        return "jina"

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    async def _create(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            raise ValueError("no texts provided")

        payload = {
            "model": self._model,
            "input": texts,
            "normalized": True,
            "embedding_type": "float",
        }
        body = await self._request("embed", "POST", "/embeddings", json=payload)

        data = (body or {}).get("data") or []
        if not data:
            raise UpstreamError(self.adapter_name, "embed", "no embeddings returned")

        # Sort by index to maintain order
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        try:
            return [list(item["embedding"]) for item in ordered]
        except (KeyError, TypeError) as e:
            raise UpstreamError(self.adapter_name, "embed", f"malformed embedding data: {e}") from e

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        embeddings = await self._create([text])
        return embeddings[0]

    async def embed_many(self, texts: list[str]) -> list[float]:
        """Send all texts in one request and return the first embedding."""
        embeddings = await self._create(texts)
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one request."""
        if not texts:
            return []
        return await self._create(texts)

    def info(self) -> dict:
        info = super().info()
        info["api_url"] = self.url
        info["features"] = ["multilingual", "high-performance", "normalized"]
        return info
