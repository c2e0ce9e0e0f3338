"""Ollama embedding provider adapter (local, no API key).

Talks to Ollama's OpenAI-compatible ``/v1`` endpoint with the ``openai``
client.  Defaults to ``nomic-embed-text`` (768 dimensions);
``mxbai-embed-large`` (1024) is the other common choice.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OLLAMA_BATCH_LIMIT = 512

_MODEL_DIMENSIONS: dict[str, int] = {
    "nomic-embed-text": 768,
    "mxbai-embed-large": 1024,
    "all-minilm": 384,
}


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a local Ollama server."""

    def __init__(self, settings: Settings, batch_limit: int = _OLLAMA_BATCH_LIMIT) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",  # Ollama ignores the key but the SDK requires one
        )
        self._model = settings.ollama_embedding_model
        self._dimension = _MODEL_DIMENSIONS.get(self._model.split(":", 1)[0], 0)
        self._batch_limit = max(1, batch_limit)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), self._batch_limit):
                batch = texts[start : start + self._batch_limit]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._model,
                )
                items = sorted(response.data, key=lambda item: item.index)
                if len(items) != len(batch):
                    raise EmbeddingError(
                        message=f"Expected {len(batch)} vectors, got {len(items)}",
                        provider_name=self.get_provider_name(),
                    )
                all_embeddings.extend(item.embedding for item in items)
                logger.info("ollama_embedding_batch", model=self._model, batch_size=len(batch))
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"Ollama embedding API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not self._dimension and all_embeddings:
            self._dimension = len(all_embeddings[0])
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return f"ollama_embedding_{self._model}"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server answers."""
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
            return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
