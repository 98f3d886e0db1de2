"""
OpenAI Embedding Provider Implementation.

Uses the text-embedding-3 / ada-002 models through the official SDK.

Supports native dimension reduction via the dimensions parameter for the
text-embedding-3 family. A single text is sent as a plain string, several
texts as an array.

Models:
- text-embedding-3-small: default 1536 dimensions
- text-embedding-3-large: default 3072 dimensions (can be reduced)
- text-embedding-ada-002: fixed 1536 dimensions
"""

import logging

import openai
from openai import AsyncOpenAI

from ..errors import UpstreamError
from .base import EmbeddingService

logger = logging.getLogger("memorycache.embeddings.openai")

OPENAI_API_URL = "https://api.openai.com/v1"


class OpenAIEmbeddingService(EmbeddingService):
    """OpenAI embedding provider."""

    # Default dimensions for each model
    MODEL_DEFAULT_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
        timeout: float = 30.0,
    ):
        """
        Initialize OpenAI embedding service.

        Args:
            api_key: OpenAI API key
            model: Embedding model name
            dimensions: Override output dimensions. If None, uses the model's
                        default dimensions. Never larger than the default.
            timeout: Request timeout in seconds
        """
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._client: AsyncOpenAI | None = None

        # Determine dimensions
        default_dim = self.MODEL_DEFAULT_DIMENSIONS.get(model, 1536)
        if dimensions is not None and model != "text-embedding-ada-002":
            if dimensions > default_dim:
                logger.warning(
                    f"Requested dimensions ({dimensions}) exceeds model default ({default_dim}). "
                    f"Using {default_dim}."
                )
                self._dimension = default_dim
                self._requested_dimensions = None
            else:
                self._dimension = dimensions
                self._requested_dimensions = dimensions
        else:
            self._dimension = default_dim
            self._requested_dimensions = None

        logger.info(
            f"OpenAIEmbeddingService initialized: model={model}, dimensions={self._dimension}"
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_client(self) -> AsyncOpenAI:
        """Get or create the async OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    async def _create(self, input: str | list[str]) -> list[list[float]]:
        client = self._get_client()

        kwargs = {
            "model": self._model,
            "input": input,
            "encoding_format": "float",
        }
        if self._requested_dimensions is not None:
            kwargs["dimensions"] = self._requested_dimensions

        logger.debug(f"Requesting OpenAI embeddings ({self._model})")

        try:
            response = await client.embeddings.create(**kwargs)
        except openai.OpenAIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise UpstreamError("OpenAI embeddings", "embed", str(e)) from e

        if not response.data:
            raise UpstreamError("OpenAI embeddings", "embed", "no embeddings returned")

        # Sort by index to maintain order
        sorted_data = sorted(response.data, key=lambda x: x.index)
        return [list(item.embedding) for item in sorted_data]

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        embeddings = await self._create(text)
        return embeddings[0]

    async def embed_many(self, texts: list[str]) -> list[float]:
        """Send all texts in one request and return the first embedding."""
        if not texts:
            raise ValueError("no texts provided")
        # Single text goes out as a plain string
        input = texts[0] if len(texts) == 1 else texts
        embeddings = await self._create(input)
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts efficiently."""
        if not texts:
            return []
        return await self._create(texts)

    def info(self) -> dict:
        info = super().info()
        info["api_url"] = OPENAI_API_URL
        info["features"] = ["high-quality", "widely-supported", "english-optimized"]
        return info

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
