"""Pydantic request/response schemas for the docrag API.

Defines the public contract for the REST endpoints: document registration
and status, storage notifications, question answering, semantic search and
health.  Request schemas end with ``Request``, response schemas with
``Response``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from docrag.models.document import DocumentRecord
from docrag.models.events import EventOutcome
from docrag.models.generation import TokenUsage
from docrag.models.retrieval import RetrievalScope, SourceReference


class RegisterDocumentRequest(BaseModel):
    """An upload the surrounding application wants tracked and indexed."""

    source_locator: str = Field(..., min_length=1, description='"<bucket>/<key>"')
    user_id: str = Field(..., min_length=1)
    tenant_id: str | None = None
    checksum: str | None = None
    size: int | None = Field(default=None, ge=0)
    mime_type: str | None = None
    filename: str | None = None


class RegisterDocumentResponse(BaseModel):
    document_id: str
    status: str


class DocumentStatusResponse(BaseModel):
    """Status view of one document.  ``status`` is the human-readable label."""

    document_id: str
    user_id: str
    tenant_id: str | None = None
    source_locator: str
    filename: str
    status: str
    failure_reason: str | None = None
    size: int | None = None
    mime_type: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: DocumentRecord) -> DocumentStatusResponse:
        return cls(
            document_id=record.id,
            user_id=record.user_id,
            tenant_id=record.tenant_id,
            source_locator=record.source_locator,
            filename=record.filename,
            status=record.status.label,
            failure_reason=record.failure_reason,
            size=record.size,
            mime_type=record.mime_type,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class DocumentListResponse(BaseModel):
    documents: list[DocumentStatusResponse] = Field(default_factory=list)
    total: int = 0


class DeleteDocumentResponse(BaseModel):
    document_id: str
    embeddings_removed: int


class EventAcceptedResponse(BaseModel):
    """Returned with 202: events were normalized and queued for processing."""

    accepted: int
    event_ids: list[str] = Field(default_factory=list)


class EventOutcomesResponse(BaseModel):
    outcomes: list[EventOutcome] = Field(default_factory=list)


class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=4000)
    scope: RetrievalScope
    top_k: int | None = Field(default=None, gt=0, le=100)


class QueryResponse(BaseModel):
    answer: str
    sources: list[SourceReference] = Field(default_factory=list)
    grounded: bool = False
    usage: TokenUsage = Field(default_factory=TokenUsage)


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=4000)
    scope: RetrievalScope
    top_k: int | None = Field(default=None, gt=0, le=100)


class SearchResponse(BaseModel):
    query: str
    results: list[SourceReference] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
