"""Utility modules for docrag.

- **errors** -- exception hierarchy rooted at DocRagError; one subclass per
  provider capability plus the document lifecycle errors (not found,
  conflict) raised by the pipeline and the event adapter.
- **concurrency** -- semaphore-throttled gather and the shielded
  timeout wrapper applied to every provider call.
- **logging** -- structlog setup with a dual renderer: coloured console in
  development, JSON in production.
"""

from docrag.utils.concurrency import call_with_timeout, throttled_gather
from docrag.utils.errors import (
    ConfigurationError,
    ConflictError,
    DocRagError,
    EmbeddingError,
    ExtractionError,
    LLMError,
    NoExtractorFoundError,
    NotFoundError,
    VectorDBError,
)
from docrag.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "ConflictError",
    "DocRagError",
    "EmbeddingError",
    "ExtractionError",
    "LLMError",
    "NoExtractorFoundError",
    "NotFoundError",
    "VectorDBError",
    "call_with_timeout",
    "configure_logging",
    "get_logger",
    "throttled_gather",
]
