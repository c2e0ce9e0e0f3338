"""Pydantic v2 domain models for docrag.

- ``document``   -- DocumentStatus state machine, DocumentRecord, EmbeddingRecord
- ``extraction`` -- ExtractionInput / ExtractionResult
- ``events``     -- PipelineEvent and adapter outcomes
- ``generation`` -- LLM messages, options and results
- ``retrieval``  -- query request / answer
"""

from docrag.models.document import (
    DocumentRecord,
    DocumentStatus,
    EmbeddingRecord,
    ScoredRecord,
    split_locator,
)
from docrag.models.events import (
    EventDisposition,
    EventNamePrefix,
    EventOutcome,
    EventSource,
    PipelineEvent,
)
from docrag.models.extraction import ExtractionInput, ExtractionResult, SourceKind
from docrag.models.generation import (
    ChatMessage,
    GenerationOptions,
    GenerationResult,
    TokenUsage,
)
from docrag.models.retrieval import (
    RetrievalAnswer,
    RetrievalRequest,
    RetrievalScope,
    SourceReference,
)

__all__ = [
    "ChatMessage",
    "DocumentRecord",
    "DocumentStatus",
    "EmbeddingRecord",
    "EventDisposition",
    "EventNamePrefix",
    "EventOutcome",
    "EventSource",
    "ExtractionInput",
    "ExtractionResult",
    "GenerationOptions",
    "GenerationResult",
    "PipelineEvent",
    "RetrievalAnswer",
    "RetrievalRequest",
    "RetrievalScope",
    "ScoredRecord",
    "SourceKind",
    "SourceReference",
    "TokenUsage",
    "split_locator",
]
