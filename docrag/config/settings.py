"""Application settings loaded from environment variables via pydantic-settings.

Values come from two sources, highest priority first:

1. **Environment variables**, e.g. ``EMBEDDING_PROVIDER=ollama``.
2. **.env file** in the working directory (local development).

Field ``chunk_size`` maps to ``CHUNK_SIZE`` and so on.  Defaults apply when
neither source sets a value.

Every capability has exactly one active provider, picked here once at
process start.  Extraction is the exception: ``extractors`` is an ordered
list and the first extractor whose ``supports()`` accepts an input wins.
"""

from __future__ import annotations

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from docrag.utils.errors import ConfigurationError

_EMBEDDING_PROVIDERS = {"openai", "ollama", "fastembed"}
_VECTOR_STORE_PROVIDERS = {"chromadb", "memory"}
_LLM_PROVIDERS = {"openai", "anthropic", "ollama"}
_STORAGE_PROVIDERS = {"local", "http"}
_EXTRACTORS = {"text", "pdf", "web", "image"}


class Settings(BaseSettings):
    """docrag application settings.

    Environment variables override defaults.  Loaded from .env when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Provider selection ===
    extractors: str = "text,pdf,web,image"  # registration order = priority
    embedding_provider: str = "openai"
    vector_store_provider: str = "chromadb"
    llm_provider: str = "openai"
    storage_provider: str = "local"

    # === Provider credentials / endpoints ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, vLLM, ...)
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    ollama_text_model: str = "llama3.1"
    ollama_embedding_model: str = "nomic-embed-text"
    fastembed_model: str = ""

    # === Storage ===
    storage_root: str = "./data/objects"  # local provider: <root>/<bucket>/<key>
    storage_base_url: str = ""  # http provider: <base>/<bucket>/<key>

    # === Chunking ===
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # === Pipeline ===
    provider_timeout_seconds: float = 60.0
    embedding_batch_size: int = 64
    max_concurrent_runs: int = 4
    auto_register_documents: bool = False
    event_dedup_ttl: int = 3600
    event_dedup_max_size: int = 10000

    # === Retrieval ===
    retrieval_top_k: int = 5

    # === Persistence ===
    document_db_path: str = "data/documents.db"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "docrag_embeddings"

    # === Notifications ===
    allow_unverified_notifications: bool = False

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    config_path: str = "config/config.yaml"

    @field_validator("embedding_provider", "vector_store_provider", "llm_provider", "storage_provider")
    @classmethod
    def _normalize_choice(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def _check_choices(self) -> "Settings":
        choices = (
            ("embedding_provider", self.embedding_provider, _EMBEDDING_PROVIDERS),
            ("vector_store_provider", self.vector_store_provider, _VECTOR_STORE_PROVIDERS),
            ("llm_provider", self.llm_provider, _LLM_PROVIDERS),
            ("storage_provider", self.storage_provider, _STORAGE_PROVIDERS),
        )
        for field_name, value, allowed in choices:
            if value not in allowed:
                raise ValueError(
                    f"{field_name}={value!r} is not one of {sorted(allowed)}"
                )
        unknown = set(self.extractor_names) - _EXTRACTORS
        if unknown:
            raise ValueError(f"Unknown extractors: {sorted(unknown)}")
        return self

    @property
    def extractor_names(self) -> list[str]:
        """Return the configured extractor names in registration order."""
        return [name.strip().lower() for name in self.extractors.split(",") if name.strip()]

    def validate_chunking(self) -> None:
        """Raise :class:`ConfigurationError` if the chunk window is unusable."""
        if self.chunk_size <= 0:
            raise ConfigurationError(message=f"chunk_size must be positive, got {self.chunk_size}")
        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ConfigurationError(
                message=(
                    f"chunk_overlap must be in [0, chunk_size); "
                    f"got overlap={self.chunk_overlap}, size={self.chunk_size}"
                )
            )

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have credentials or an endpoint configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
