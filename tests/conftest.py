"""Shared pytest fixtures for the docrag test suite."""

from __future__ import annotations

import hashlib
import struct
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from docrag.config.settings import Settings
from docrag.interfaces.cache_provider import ICacheProvider
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.models.generation import ChatMessage, GenerationOptions, GenerationResult, TokenUsage
from docrag.pipeline.ingestion_pipeline import IngestionPipeline
from docrag.providers.cache.memory_cache import MemoryCacheProvider
from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from docrag.providers.extraction.plain_text_extractor import PlainTextExtractor
from docrag.providers.storage.local_storage_provider import LocalStorageProvider
from docrag.providers.vector_store.memory_provider import MemoryVectorStoreProvider
from docrag.services.chunker import TextChunker
from docrag.services.document_service import DocumentService
from docrag.services.event_adapter import EventIngestionAdapter
from docrag.services.extraction_service import TextExtractionService
from docrag.utils.errors import EmbeddingError, LLMError

_EMBEDDING_DIM = 128


# ---------------------------------------------------------------------------
# Deterministic fakes
# ---------------------------------------------------------------------------


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length vector by hashing *text*.

    Uses SHA-256 to hash the text, then unpacks bytes into floats and
    normalises to unit length.  Same text always gives the same vector.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    # Bytes are read as unsigned ints, not floats, so no value is NaN or inf.
    values = [v / 2**32 - 0.5 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider.

    Records the size of every ``embed`` batch.  Set ``fail_on_call`` to make
    the n-th ``embed`` call (1-based) raise :class:`EmbeddingError`.
    """

    def __init__(self, fail_on_call: int | None = None) -> None:
        self.batches: list[int] = []
        self.fail_on_call = fail_on_call
        self.single_calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(len(texts))
        if self.fail_on_call is not None and len(self.batches) == self.fail_on_call:
            raise EmbeddingError(message="simulated outage", provider_name="mock-embedding")
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.single_calls.append(text)
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class RecordingLLMProvider(ILLMProvider):
    """LLM fake that records every request and returns a fixed answer."""

    def __init__(self, answer: str = "mock answer", fail: bool = False) -> None:
        self.answer = answer
        self.fail = fail
        self.calls: list[tuple[list[ChatMessage], GenerationOptions | None]] = []

    async def generate(
        self,
        messages: list[ChatMessage],
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        self.calls.append((messages, options))
        if self.fail:
            raise LLMError(message="simulated generation failure", provider_name="mock-llm")
        return GenerationResult(
            text=self.answer,
            usage=TokenUsage(prompt_tokens=12, completion_tokens=3),
            finish_reason="stop",
            model="mock-model",
        )

    def get_provider_name(self) -> str:
        return "mock-llm"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Return a minimal resolved configuration for testing."""
    return {
        "app": {"name": "docrag", "version": "0.1.0"},
        "chunking": {"size": 1000, "overlap": 200},
        "retrieval": {
            "top_k": 5,
            "max_context_chars": 12000,
            "system_prompt": "Answer the question based on the context provided.",
        },
        "generation": {"temperature": 0.7, "max_tokens": 500},
    }


@pytest.fixture
def mock_settings(tmp_path: Path) -> Settings:
    """Return Settings with dummy keys and paths under *tmp_path*."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test-key",
        anthropic_api_key="test-anthropic-key",
        vector_store_provider="memory",
        document_db_path=str(tmp_path / "documents.db"),
        storage_root=str(tmp_path / "objects"),
        chromadb_persist_dir=str(tmp_path / "chromadb"),
        app_env="test",
    )


@pytest.fixture
def mock_cache_provider() -> Any:
    """Return a MagicMock(spec=ICacheProvider) with AsyncMock methods."""
    mock = MagicMock(spec=ICacheProvider)
    mock.delete = AsyncMock(return_value=None)
    mock.add_if_absent = AsyncMock(return_value=True)
    return mock


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def recording_llm() -> RecordingLLMProvider:
    return RecordingLLMProvider()


@pytest.fixture
def memory_vector_store() -> MemoryVectorStoreProvider:
    return MemoryVectorStoreProvider()


@pytest.fixture
def objects_dir(tmp_path: Path) -> Path:
    """Root of the local object store: ``<root>/<bucket>/<key>``."""
    root = tmp_path / "objects"
    root.mkdir()
    return root


@pytest.fixture
def put_object(objects_dir: Path):
    """Write an object into the local store and return its locator."""

    def _put(locator: str, content: str | bytes) -> str:
        path = objects_dir / locator
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)
        return locator

    return _put


@pytest_asyncio.fixture
async def document_store(tmp_path: Path) -> SQLiteDocumentStore:
    store = SQLiteDocumentStore(db_path=tmp_path / "documents.db")
    await store.initialize()
    return store


@pytest.fixture
def extraction_service(objects_dir: Path) -> TextExtractionService:
    return TextExtractionService([PlainTextExtractor(storage=LocalStorageProvider(objects_dir))])


@pytest.fixture
def pipeline(
    document_store: SQLiteDocumentStore,
    extraction_service: TextExtractionService,
    mock_embedding_provider: MockEmbeddingProvider,
    memory_vector_store: MemoryVectorStoreProvider,
) -> IngestionPipeline:
    return IngestionPipeline(
        document_store=document_store,
        extraction_service=extraction_service,
        embedding_provider=mock_embedding_provider,
        vector_store=memory_vector_store,
        chunker=TextChunker(chunk_size=1000, overlap=200),
        provider_timeout=5.0,
        embedding_batch_size=4,
    )


@pytest.fixture
def document_service(
    document_store: SQLiteDocumentStore,
    memory_vector_store: MemoryVectorStoreProvider,
    pipeline: IngestionPipeline,
) -> DocumentService:
    return DocumentService(
        document_store=document_store,
        vector_store=memory_vector_store,
        pipeline=pipeline,
        provider_timeout=5.0,
    )


@pytest.fixture
def event_adapter(
    document_store: SQLiteDocumentStore,
    document_service: DocumentService,
    pipeline: IngestionPipeline,
) -> EventIngestionAdapter:
    return EventIngestionAdapter(
        document_store=document_store,
        document_service=document_service,
        pipeline=pipeline,
        dedup_cache=MemoryCacheProvider(max_size=100, ttl=3600),
        auto_register=False,
        max_concurrent_runs=4,
    )
