"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Works against real OpenAI and against OpenAI-compatible endpoints
(TogetherAI, vLLM, LiteLLM) through ``openai_base_url`` and
``openai_embedding_model``.
"""

from __future__ import annotations

import openai
import structlog

from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "intfloat/multilingual-e5-large-instruct": 1024,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default and splits inputs
    larger than the per-call limit into sequential micro-batches.
    """

    def __init__(self, settings: Settings, batch_limit: int = _OPENAI_BATCH_LIMIT) -> None:
        self._api_key = settings.openai_api_key
        client_kwargs: dict = {"api_key": self._api_key or "unset"}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 0)
        self._batch_limit = max(1, batch_limit)
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        The API may return items out of order, so each micro-batch is
        re-sorted by the ``index`` field before being appended.
        """
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
                logger.info(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not self._dimension and all_embeddings:
            self._dimension = len(all_embeddings[0])
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        """Return the model dimension, or 0 until the first call for unknown models."""
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
