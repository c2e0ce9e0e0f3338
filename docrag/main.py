"""docrag FastAPI application entry point.

Wires providers, services and routes together.  Configuration comes from
``.env``/environment (:class:`Settings`) and ``config/config.yaml``
(:func:`load_config`).  Every capability gets exactly one provider, chosen
here once at startup and never swapped while the process runs.

``build_components`` is also usable outside the web server (scripts,
tests): it returns the same flat dict of components the lifespan puts on
``app.state``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from docrag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from docrag.api.routes import router as api_router
from docrag.config.loader import load_config
from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.interfaces.notification_verifier import INotificationVerifier
from docrag.interfaces.storage_provider import IStorageProvider
from docrag.interfaces.text_extractor import ITextExtractor
from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.pipeline.ingestion_pipeline import IngestionPipeline
from docrag.providers.cache.memory_cache import MemoryCacheProvider
from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from docrag.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from docrag.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docrag.providers.extraction.image_ocr_extractor import ImageOCRExtractor
from docrag.providers.extraction.pdf_extractor import PDFExtractor
from docrag.providers.extraction.plain_text_extractor import PlainTextExtractor
from docrag.providers.extraction.web_page_extractor import WebPageExtractor
from docrag.providers.llm.anthropic_provider import AnthropicLLMProvider
from docrag.providers.llm.ollama_provider import OllamaLLMProvider
from docrag.providers.llm.openai_provider import OpenAILLMProvider
from docrag.providers.storage.http_storage_provider import HTTPStorageProvider
from docrag.providers.storage.local_storage_provider import LocalStorageProvider
from docrag.providers.vector_store.memory_provider import MemoryVectorStoreProvider
from docrag.providers.verification.unverified_verifier import UnverifiedNotificationVerifier
from docrag.services.chunker import TextChunker
from docrag.services.document_service import DocumentService
from docrag.services.event_adapter import EventIngestionAdapter
from docrag.services.extraction_service import TextExtractionService
from docrag.services.retrieval_service import RetrievalOrchestrator
from docrag.utils.errors import ConfigurationError
from docrag.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_storage_provider(app_settings: Settings, http_client: httpx.AsyncClient) -> IStorageProvider:
    if app_settings.storage_provider == "http":
        if not app_settings.storage_base_url:
            raise ConfigurationError(message="STORAGE_BASE_URL is required for the http storage provider")
        return HTTPStorageProvider(base_url=app_settings.storage_base_url, http_client=http_client)
    return LocalStorageProvider(root=app_settings.storage_root)


def _build_extractors(
    app_settings: Settings,
    storage: IStorageProvider,
    http_client: httpx.AsyncClient,
) -> list[ITextExtractor]:
    """Instantiate extractors in the configured order (first match wins)."""
    factories = {
        "text": lambda: PlainTextExtractor(storage=storage),
        "pdf": lambda: PDFExtractor(storage=storage),
        "web": lambda: WebPageExtractor(storage=storage, http_client=http_client),
        "image": lambda: ImageOCRExtractor(storage=storage),
    }
    extractors: list[ITextExtractor] = []
    for name in app_settings.extractor_names:
        extractor = factories[name]()
        if isinstance(extractor, ImageOCRExtractor) and not extractor.is_available():
            _logger.warning("extractor_unavailable", extractor=name, reason="tesseract not installed")
        extractors.append(extractor)
    return extractors


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    if app_settings.embedding_provider == "ollama":
        return OllamaEmbeddingProvider(settings=app_settings)
    if app_settings.embedding_provider == "fastembed":
        return FastEmbedEmbeddingProvider(model_name=app_settings.fastembed_model or None)
    if not app_settings.openai_api_key and not app_settings.openai_base_url:
        raise ConfigurationError(message="OPENAI_API_KEY is required for the openai embedding provider")
    return OpenAIEmbeddingProvider(settings=app_settings)


def _build_vector_store(app_settings: Settings) -> IVectorStoreProvider:
    if app_settings.vector_store_provider == "memory":
        return MemoryVectorStoreProvider()

    # Imported lazily: chromadb is heavy and unused with the memory store.
    from docrag.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    if app_settings.llm_provider == "anthropic":
        if not app_settings.anthropic_api_key:
            raise ConfigurationError(message="ANTHROPIC_API_KEY is required for the anthropic LLM provider")
        return AnthropicLLMProvider(settings=app_settings)
    if app_settings.llm_provider == "ollama":
        return OllamaLLMProvider(settings=app_settings)
    if not app_settings.openai_api_key and not app_settings.openai_base_url:
        raise ConfigurationError(message="OPENAI_API_KEY is required for the openai LLM provider")
    return OpenAILLMProvider(settings=app_settings)


def _build_verifier(app_settings: Settings) -> INotificationVerifier:
    verifier = UnverifiedNotificationVerifier()
    if (
        app_settings.app_env == "production"
        and not verifier.is_enforcing()
        and not app_settings.allow_unverified_notifications
    ):
        raise ConfigurationError(
            message=(
                "Notification signature verification is not implemented; refusing to start "
                "in production. Set ALLOW_UNVERIFIED_NOTIFICATIONS=true to accept unauthenticated "
                "notifications explicitly."
            )
        )
    return verifier


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    config: dict[str, Any] | None = None,
    *,
    embedding_provider: IEmbeddingProvider | None = None,
    vector_store: IVectorStoreProvider | None = None,
    llm_provider: ILLMProvider | None = None,
) -> dict[str, Any]:
    """Construct every provider and service.

    Provider arguments override the configured selection (used by tests
    and scripts).  Returns a flat dict of named components.

    Raises
    ------
    ConfigurationError
        On invalid chunking, missing credentials, or an unverified webhook
        in production.
    """
    app_settings.validate_chunking()
    config = config if config is not None else load_config(settings=app_settings)
    verifier = _build_verifier(app_settings)

    http_client = httpx.AsyncClient(timeout=30.0, follow_redirects=True)
    storage = _build_storage_provider(app_settings, http_client)
    extraction_service = TextExtractionService(_build_extractors(app_settings, storage, http_client))

    embedding_provider = embedding_provider or _build_embedding_provider(app_settings)
    vector_store = vector_store or _build_vector_store(app_settings)
    llm_provider = llm_provider or _build_llm_provider(app_settings)

    document_store = SQLiteDocumentStore(db_path=app_settings.document_db_path)
    chunker = TextChunker(chunk_size=app_settings.chunk_size, overlap=app_settings.chunk_overlap)
    timeout = app_settings.provider_timeout_seconds

    pipeline = IngestionPipeline(
        document_store=document_store,
        extraction_service=extraction_service,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        chunker=chunker,
        provider_timeout=timeout,
        embedding_batch_size=app_settings.embedding_batch_size,
    )
    document_service = DocumentService(
        document_store=document_store,
        vector_store=vector_store,
        pipeline=pipeline,
        provider_timeout=timeout,
    )
    event_adapter = EventIngestionAdapter(
        document_store=document_store,
        document_service=document_service,
        pipeline=pipeline,
        dedup_cache=MemoryCacheProvider(
            max_size=app_settings.event_dedup_max_size,
            ttl=app_settings.event_dedup_ttl,
        ),
        auto_register=app_settings.auto_register_documents,
        max_concurrent_runs=app_settings.max_concurrent_runs,
    )
    retrieval = RetrievalOrchestrator(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        llm_provider=llm_provider,
        config=config,
        provider_timeout=timeout,
    )

    return {
        "settings": app_settings,
        "config": config,
        "http_client": http_client,
        "storage_provider": storage,
        "extraction_service": extraction_service,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "llm_provider": llm_provider,
        "document_store": document_store,
        "pipeline": pipeline,
        "document_service": document_service,
        "event_adapter": event_adapter,
        "retrieval": retrieval,
        "notification_verifier": verifier,
    }


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    components: dict[str, Any] | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Components are built in the lifespan unless passed in prebuilt.
    """
    app_settings = app_settings or Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        built = components or build_components(app_settings)
        for key, value in built.items():
            setattr(application.state, key, value)
        await built["document_store"].initialize()

        _logger.info(
            "app_startup",
            environment=app_settings.app_env,
            extractors=built["extraction_service"].get_extractor_names(),
            embedding=built["embedding_provider"].get_provider_name(),
            vector_store=built["vector_store"].get_provider_name(),
            llm=built["llm_provider"].get_provider_name(),
        )

        yield

        http_client: httpx.AsyncClient = built["http_client"]
        await http_client.aclose()
        _logger.info("app_shutdown", message="HTTP client closed")

    application = FastAPI(
        title="docrag API",
        version="0.1.0",
        description=(
            "Ingest uploaded documents into a vector index through a staged, "
            "failure-isolated pipeline and answer questions grounded on them."
        ),
        lifespan=_lifespan,
    )

    # Last added runs first: logging sees the status the error handler produced.
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


def main() -> None:
    app_settings = Settings()
    uvicorn.run(
        "docrag.main:app",
        host=app_settings.app_host,
        port=app_settings.app_port,
        reload=(app_settings.app_env == "development"),
    )


app = create_app()

if __name__ == "__main__":
    main()
