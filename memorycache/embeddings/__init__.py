"""
Embedding Provider Interface Module.

Provides a unified interface over embedding APIs (Jina AI, OpenAI).
Providers differ in output dimensionality, so switching between them
requires regenerating every stored embedding.
"""

from .base import EmbeddingService
from .jina_client import JinaEmbeddingService
from .openai_client import OpenAIEmbeddingService
from .factory import create_embedding_service

__all__ = [
    "EmbeddingService",
    "JinaEmbeddingService",
    "OpenAIEmbeddingService",
    "create_embedding_service",
]
