"""API middleware: CORS, request logging, and error handling.

Starlette runs middleware last-added-first, so ``main`` adds
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware``; the logger
then sees the final status code even when an error was converted.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from docrag.api.schemas import ErrorResponse
from docrag.utils.errors import (
    ConfigurationError,
    ConflictError,
    DocRagError,
    EmbeddingError,
    ExtractionError,
    LLMError,
    NotFoundError,
    VectorDBError,
)
from docrag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# Most specific first.  Provider failures are upstream faults (502).
_STATUS_BY_ERROR: tuple[tuple[type[DocRagError], int], ...] = (
    (NotFoundError, 404),
    (ConflictError, 409),
    (EmbeddingError, 502),
    (VectorDBError, 502),
    (LLMError, 502),
    (ExtractionError, 502),
    (ConfigurationError, 500),
)


def status_for(exc: DocRagError) -> int:
    for error_cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Defaults to ``["*"]`` for development; pass explicit origins in
    production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``DocRagError`` subclasses into :class:`ErrorResponse` JSON.

    The client sees the error type and message only; the provider name and
    cause chain stay in the server log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except DocRagError as exc:
            status_code = status_for(exc)
            log = _logger.warning if status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.message,
            )
            return JSONResponse(
                status_code=status_code,
                content=body.model_dump(),
            )
