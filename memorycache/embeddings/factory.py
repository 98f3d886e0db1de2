"""
Embedding Provider Factory.

Creates the appropriate embedding provider based on configuration.
"""

import logging
from typing import Literal

from .base import EmbeddingService
from .jina_client import JinaEmbeddingService
from .openai_client import OpenAIEmbeddingService

logger = logging.getLogger("memorycache.embeddings.factory")


def create_embedding_service(
    provider: Literal["jina", "openai"] = "jina",
    jina_api_key: str = "",
    jina_model: str = "jina-embeddings-v3",
    openai_api_key: str = "",
    openai_model: str = "text-embedding-3-small",
    dimensions: int | None = None,
    timeout: float = 30.0,
) -> EmbeddingService:
    """
    Factory function to create the appropriate embedding service.

    Every stored embedding was produced with the provider active at write
    time. Choosing a different provider against an existing index yields
    vectors of a different length and meaningless similarity scores.

    Args:
        provider: "jina" or "openai"
        jina_api_key: Jina API key (required for jina provider)
        jina_model: Jina model name
        openai_api_key: OpenAI API key (required for openai provider)
        openai_model: OpenAI model name
        dimensions: Override output dimensions for OpenAI text-embedding-3 models
        timeout: Request timeout in seconds

    Returns:
        Configured EmbeddingService instance

    Raises:
        ValueError: If provider is not supported or not properly configured.
    """
    logger.info(f"Creating embedding provider: {provider}")

    if provider == "jina":
        if not jina_api_key:
            raise ValueError("Jina API key is required when using Jina provider")
        return JinaEmbeddingService(
            api_key=jina_api_key,
            model=jina_model or "jina-embeddings-v3",
            timeout=timeout,
        )

    elif provider == "openai":
        if not openai_api_key:
            raise ValueError("OpenAI API key is required when using OpenAI provider")
        return OpenAIEmbeddingService(
            api_key=openai_api_key,
            model=openai_model or "text-embedding-3-small",
            dimensions=dimensions,
            timeout=timeout,
        )

    else:
        raise ValueError(f"Unsupported embedding provider: {provider}")
