"""Retrieval/generation request and response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from docrag.models.generation import TokenUsage


class RetrievalScope(BaseModel):
    """Whose documents a query may see.  At least one field is required."""

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    tenant_id: str | None = None

    @model_validator(mode="after")
    def _require_one(self) -> "RetrievalScope":
        if not self.user_id and not self.tenant_id:
            raise ValueError("scope requires user_id or tenant_id")
        return self

    def as_filter(self) -> dict[str, Any]:
        """Metadata equality filter passed to the vector store."""
        scope: dict[str, Any] = {}
        if self.user_id:
            scope["user_id"] = self.user_id
        if self.tenant_id:
            scope["tenant_id"] = self.tenant_id
        return scope


class RetrievalRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str = Field(min_length=1)
    scope: RetrievalScope
    top_k: int | None = Field(default=None, gt=0, le=100)


class SourceReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    content: str
    score: float
    chunk_id: str | None = None


class RetrievalAnswer(BaseModel):
    """Answer plus the chunks it was grounded on.

    ``grounded`` is ``False`` when retrieval found nothing in scope; that is
    a normal answer, not an error.
    """

    model_config = ConfigDict(frozen=True)

    answer: str
    sources: list[SourceReference] = Field(default_factory=list)
    grounded: bool = False
    usage: TokenUsage = Field(default_factory=TokenUsage)
