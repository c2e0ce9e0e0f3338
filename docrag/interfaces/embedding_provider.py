"""Abstract base class for text-embedding service providers.

Implementations wrap OpenAI-compatible embedding APIs, Ollama
(``nomic-embed-text``), or a local ONNX model via fastembed.  The pipeline
and the retrieval orchestrator depend only on this contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider     -- text-embedding-3-small (or compatible endpoint)
#   OllamaEmbeddingProvider     -- nomic-embed-text via a local Ollama server
#   FastEmbedEmbeddingProvider  -- ONNX model on CPU, no API key
# Located in: docrag/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations split the
            input into micro-batches when the backend has a per-call limit.

        Returns
        -------
        list[list[float]]
            Exactly ``len(texts)`` vectors; ``vectors[i]`` embeds
            ``texts[i]`` regardless of how the input was batched.

        Raises
        ------
        docrag.utils.errors.EmbeddingError
            If the embedding API call fails or returns the wrong count.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Embed one text.  Convenience wrapper around :meth:`embed`."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the vector length produced by this provider.

        Example values: ``1536`` (``text-embedding-3-small``), ``768``
        (``nomic-embed-text``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials, model)."""
