"""Custom exception hierarchy for docrag.

All application exceptions inherit from :class:`DocRagError`, which carries
an optional ``provider_name`` so error handlers can tell which backend
(e.g. "openai", "chromadb", "pdf") caused the failure.

The hierarchy follows the capability boundaries of the ingestion pipeline:

    DocRagError  (base -- catch-all for any docrag error)
    +-- ExtractionError          (text extraction: fetch, parse, timeout)
    |   +-- NoExtractorFoundError    (no registered extractor supports the input)
    +-- EmbeddingError           (embedding call failure, timeout, dimension mismatch)
    +-- VectorDBError            (vector store write/query failure, scope violation)
    +-- LLMError                 (generation failure, timeout)
    +-- NotFoundError            (unresolvable document or event target)
    +-- ConflictError            (stale transition / duplicate event)
    +-- ConfigurationError       (startup / invalid configuration)

Callers of the pipeline and the retrieval orchestrator only ever see these
types.  Provider adapters translate SDK exceptions with ``raise ... from exc``
so the original cause stays attached for logging without leaking
provider-specific error shapes to callers.
"""

from __future__ import annotations


class DocRagError(Exception):
    """Base exception for all docrag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets,
    e.g. ``[openai_embedding] API error: ...``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Capability errors
# ---------------------------------------------------------------------------

class ExtractionError(DocRagError):
    """Raised when text extraction fails (fetch, parse, or timeout)."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NoExtractorFoundError(ExtractionError):
    """Raised when no registered extractor supports the given input."""

    def __init__(self, source_kind: str, provider_name: str | None = None) -> None:
        self._source_kind = source_kind
        super().__init__(
            message=f"No extractor found for source kind '{source_kind}'",
            provider_name=provider_name,
        )

    @property
    def source_kind(self) -> str:
        return self._source_kind


class EmbeddingError(DocRagError):
    """Raised when embedding generation fails or returns malformed vectors."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorDBError(DocRagError):
    """Raised when a vector store write, query, or delete fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(DocRagError):
    """Raised when an LLM generation call fails."""

    def __init__(
        self,
        message: str = "LLM generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Document lifecycle errors
# ---------------------------------------------------------------------------

class NotFoundError(DocRagError):
    """Raised when a document or event target cannot be resolved."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConflictError(DocRagError):
    """Raised when a transition precondition is not met.

    Represents a stale or duplicate event.  The pipeline never mutates state
    when this is raised; the event adapter logs and swallows it.
    """

    def __init__(
        self,
        message: str = "Transition precondition not satisfied",
        provider_name: str | None = None,
        current_status: str | None = None,
    ) -> None:
        self._current_status = current_status
        super().__init__(message=message, provider_name=provider_name)

    @property
    def current_status(self) -> str | None:
        return self._current_status


# ---------------------------------------------------------------------------
# Infrastructure errors
# ---------------------------------------------------------------------------

class ConfigurationError(DocRagError):
    """Raised on missing or invalid configuration at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
