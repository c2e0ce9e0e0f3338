"""docrag API layer: routes, schemas, and middleware."""

from docrag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from docrag.api.routes import router
from docrag.api.schemas import ErrorResponse, HealthResponse, QueryRequest, QueryResponse

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ErrorResponse",
    "HealthResponse",
    "QueryRequest",
    "QueryResponse",
]
