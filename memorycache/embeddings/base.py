"""
Abstract base class for embedding providers.

Defines the interface that all embedding providers must implement,
allowing the configured provider to be chosen at startup.
"""

from abc import ABC, abstractmethod

from ..errors import UpstreamError


class EmbeddingService(ABC):
    """
    Abstract interface for embedding generation.

    Implement this interface to add support for new embedding services.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the embedding provider."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model being used."""
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of embeddings produced."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        pass

    @abstractmethod
    async def embed_many(self, texts: list[str]) -> list[float]:
        """
        Send several texts in one request and return the first embedding.

        Raises:
            ValueError: If texts is empty.
        """
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate one embedding per text, in input order."""
        pass

    def info(self) -> dict:
        """Describe the provider for diagnostics."""
        return {
            "provider": self.provider_name,
            "model": self.model_name,
            "dimensions": self.dimension,
        }

    def check_dimension(self, embedding: list[float]) -> list[float]:
        """
        Verify an embedding has this provider's declared dimensionality.

        Raises:
            UpstreamError: If the length does not match.
        """
        if len(embedding) != self.dimension:
            raise UpstreamError(
                f"{self.provider_name} embeddings",
                "embed",
                f"expected {self.dimension} dimensions, got {len(embedding)}",
            )
        return embedding

    async def close(self) -> None:
        """Clean up resources."""
        pass
