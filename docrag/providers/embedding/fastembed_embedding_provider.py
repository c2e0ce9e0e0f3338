"""Local ONNX-based embedding provider using fastembed.

Runs on CPU through ONNX Runtime with no PyTorch dependency and no API key.
The default model ``BAAI/bge-small-en-v1.5`` (384 dims) is small enough for
modest containers; model weights download on first use.
"""

from __future__ import annotations

import asyncio

import structlog

from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_MODEL_DIMENSIONS: dict[str, int] = {
    "BAAI/bge-small-en-v1.5": 384,
    "BAAI/bge-base-en-v1.5": 768,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "intfloat/multilingual-e5-large": 1024,
    "nomic-ai/nomic-embed-text-v1.5": 768,
}

_DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"
_BATCH_LIMIT = 64


class FastEmbedEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by fastembed (ONNX Runtime).

    The model is loaded lazily on the first :meth:`embed` call.  Inference
    is CPU-bound, so it runs in a worker thread to keep the event loop free
    for other pipeline runs.
    """

    def __init__(self, model_name: str | None = None, batch_limit: int = _BATCH_LIMIT) -> None:
        self._model_name = model_name or _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS.get(self._model_name, 0)
        self._batch_limit = max(1, batch_limit)
        self._model = None

    def _load_model(self) -> None:
        if self._model is not None:
            return
        try:
            from fastembed import TextEmbedding

            logger.info("loading_fastembed_model", model=self._model_name)
            self._model = TextEmbedding(model_name=self._model_name)
            logger.info("fastembed_model_loaded", model=self._model_name)
        except Exception as exc:
            raise EmbeddingError(
                message=f"Failed to load fastembed model '{self._model_name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        await asyncio.to_thread(self._load_model)
        try:
            vectors = await asyncio.to_thread(self._embed_sync, texts)
        except Exception as exc:
            raise EmbeddingError(
                message=f"Fastembed embedding error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if len(vectors) != len(texts):
            raise EmbeddingError(
                message=f"Expected {len(texts)} vectors, got {len(vectors)}",
                provider_name=self.get_provider_name(),
            )
        if not self._dimension and vectors:
            self._dimension = len(vectors[0])
        return vectors

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), self._batch_limit):
            batch = texts[start : start + self._batch_limit]
            # fastembed yields numpy arrays lazily
            all_embeddings.extend(v.tolist() for v in self._model.embed(batch))
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return f"fastembed_{self._model_name.split('/')[-1]}"

    def is_available(self) -> bool:
        """Return ``True`` if fastembed is installed."""
        try:
            import fastembed  # noqa: F401

            return True
        except ImportError:
            return False
