"""FastAPI routes for docrag.

Service dependencies are resolved from ``app.state`` (populated in
``docrag.main``'s lifespan) through ``Depends`` helpers and ``Annotated``
aliases, so route functions never touch ``app.state`` directly.

Endpoint                                  Method  Description
----------------------------------------  ------  ---------------------------------------
/api/v1/documents                         POST    Register an upload
/api/v1/documents?user_id=                GET     List a user's documents
/api/v1/documents/{id}                    GET     Status and failure reason
/api/v1/documents/{id}                    DELETE  Delete embeddings, then the record
/api/v1/documents/{id}/reindex            POST    Re-run the pipeline (manual retry)
/api/v1/events                            POST    Storage notification webhook (202)
/api/v1/query                             POST    Retrieval-augmented answer
/api/v1/search                            POST    Scoped semantic search, no generation
/api/v1/health                            GET     Provider names and availability

Domain errors raised here propagate to ``ErrorHandlingMiddleware``, which
maps them to status codes.
"""

from __future__ import annotations

import json
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request

from docrag.api.schemas import (
    DeleteDocumentResponse,
    DocumentListResponse,
    DocumentStatusResponse,
    ErrorResponse,
    EventAcceptedResponse,
    HealthResponse,
    QueryRequest,
    QueryResponse,
    RegisterDocumentRequest,
    RegisterDocumentResponse,
    SearchRequest,
    SearchResponse,
)
from docrag.interfaces.notification_verifier import INotificationVerifier
from docrag.models.events import PipelineEvent
from docrag.models.retrieval import RetrievalRequest, SourceReference
from docrag.services.document_service import DocumentService
from docrag.services.event_adapter import EventIngestionAdapter
from docrag.services.retrieval_service import RetrievalOrchestrator
from docrag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependency injection helpers
# ---------------------------------------------------------------------------


def _get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def _get_event_adapter(request: Request) -> EventIngestionAdapter:
    return request.app.state.event_adapter


def _get_retrieval(request: Request) -> RetrievalOrchestrator:
    return request.app.state.retrieval


def _get_verifier(request: Request) -> INotificationVerifier:
    return request.app.state.notification_verifier


DocumentServiceDep = Annotated[DocumentService, Depends(_get_document_service)]
EventAdapterDep = Annotated[EventIngestionAdapter, Depends(_get_event_adapter)]
RetrievalDep = Annotated[RetrievalOrchestrator, Depends(_get_retrieval)]
VerifierDep = Annotated[INotificationVerifier, Depends(_get_verifier)]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=RegisterDocumentResponse,
    status_code=201,
    responses={409: {"model": ErrorResponse}},
    summary="Register an uploaded document",
)
async def register_document(
    body: RegisterDocumentRequest,
    documents: DocumentServiceDep,
) -> RegisterDocumentResponse:
    record = await documents.register(
        source_locator=body.source_locator,
        user_id=body.user_id,
        tenant_id=body.tenant_id,
        checksum=body.checksum,
        size=body.size,
        mime_type=body.mime_type,
        filename=body.filename,
    )
    return RegisterDocumentResponse(document_id=record.id, status=record.status.label)


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List a user's documents",
)
async def list_documents(
    documents: DocumentServiceDep,
    user_id: str = Query(..., min_length=1),
) -> DocumentListResponse:
    records = await documents.list_for_user(user_id)
    items = [DocumentStatusResponse.from_record(r) for r in records]
    return DocumentListResponse(documents=items, total=len(items))


@router.get(
    "/documents/{document_id}",
    response_model=DocumentStatusResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get document status",
)
async def get_document(
    document_id: str,
    documents: DocumentServiceDep,
    user_id: str | None = Query(default=None),
) -> DocumentStatusResponse:
    record = await documents.get(document_id, user_id=user_id)
    return DocumentStatusResponse.from_record(record)


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteDocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document and its embeddings",
)
async def delete_document(
    document_id: str,
    documents: DocumentServiceDep,
    user_id: str | None = Query(default=None),
) -> DeleteDocumentResponse:
    removed = await documents.delete_document(document_id, user_id=user_id)
    return DeleteDocumentResponse(document_id=document_id, embeddings_removed=removed)


@router.post(
    "/documents/{document_id}/reindex",
    response_model=DocumentStatusResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Re-run the ingestion pipeline for a document",
)
async def reindex_document(
    document_id: str,
    documents: DocumentServiceDep,
    user_id: str | None = Query(default=None),
) -> DocumentStatusResponse:
    """Run the stage the current status allows.  Returns the final record.

    In-flight or completed documents answer 409 with no side effects.
    """
    record = await documents.reindex(document_id, user_id=user_id)
    return DocumentStatusResponse.from_record(record)


# ---------------------------------------------------------------------------
# Storage notifications
# ---------------------------------------------------------------------------


async def _process_events(adapter: EventIngestionAdapter, events: list[PipelineEvent]) -> None:
    outcomes = await adapter.handle_many(events)
    _logger.info(
        "events_processed",
        count=len(outcomes),
        dispositions=[o.disposition.value for o in outcomes],
    )


@router.post(
    "/events",
    response_model=EventAcceptedResponse,
    status_code=202,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Receive storage-change notifications",
)
async def receive_events(
    request: Request,
    background_tasks: BackgroundTasks,
    adapter: EventAdapterDep,
    verifier: VerifierDep,
) -> EventAcceptedResponse:
    """Verify, normalize and queue notifications; processing runs after the response."""
    body = await request.body()
    if not verifier.verify(request.headers, body):
        raise HTTPException(status_code=401, detail="Notification signature rejected")

    try:
        payload: Any = json.loads(body or b"{}")
        events = adapter.normalize(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if events:
        background_tasks.add_task(_process_events, adapter, events)
    return EventAcceptedResponse(accepted=len(events), event_ids=[e.event_id for e in events])


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


@router.post(
    "/query",
    response_model=QueryResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Answer a question from the caller's documents",
)
async def query(body: QueryRequest, retrieval: RetrievalDep) -> QueryResponse:
    answer = await retrieval.answer(
        RetrievalRequest(query=body.query, scope=body.scope, top_k=body.top_k)
    )
    return QueryResponse(
        answer=answer.answer,
        sources=answer.sources,
        grounded=answer.grounded,
        usage=answer.usage,
    )


@router.post(
    "/search",
    response_model=SearchResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Semantic search over the caller's documents",
)
async def search(body: SearchRequest, retrieval: RetrievalDep) -> SearchResponse:
    hits = await retrieval.search(body.query, body.scope, body.top_k)
    results = [
        SourceReference(
            document_id=h.record.document_id,
            content=h.record.content,
            score=h.score,
            chunk_id=h.record.id,
        )
        for h in hits
    ]
    return SearchResponse(query=body.query, results=results)


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health(request: Request) -> HealthResponse:
    state = request.app.state
    providers: dict[str, Any] = {
        "embedding": {
            "name": state.embedding_provider.get_provider_name(),
            "available": state.embedding_provider.is_available(),
        },
        "vector_store": {
            "name": state.vector_store.get_provider_name(),
            "available": state.vector_store.is_available(),
        },
        "llm": {
            "name": state.llm_provider.get_provider_name(),
            "available": state.llm_provider.is_available(),
        },
        "extractors": state.extraction_service.get_extractor_names(),
        "supported_types": state.extraction_service.supported_types(),
        "notifications_verified": state.notification_verifier.is_enforcing(),
    }
    core_up = providers["vector_store"]["available"] and providers["embedding"]["available"]
    return HealthResponse(
        status="healthy" if core_up else "degraded",
        version=state.config.get("app", {}).get("version", "0.0.0"),
        providers=providers,
    )
