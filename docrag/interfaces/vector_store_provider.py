"""Abstract base class for vector-store providers.

Stores :class:`~docrag.models.document.EmbeddingRecord` objects and runs
similarity search over them.  Implementations: ChromaDB (persistent,
cosine) and an in-memory store (numpy cosine) for development and tests.

**Filter syntax** is a flat metadata equality mapping, e.g.
``{"user_id": "u-1"}`` or ``{"document_id": "abc"}``.  Every key must match.

**Scope rule**: :meth:`query` must be given a filter containing
``user_id`` or ``tenant_id``.  A query without one is rejected with
:class:`~docrag.utils.errors.VectorDBError` before touching the backend, so
no caller can read across users by forgetting a filter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from docrag.models.document import EmbeddingRecord, ScoredRecord
from docrag.utils.errors import VectorDBError

SCOPE_KEYS = ("user_id", "tenant_id")


def require_scope(filters: dict[str, Any] | None, provider_name: str) -> dict[str, Any]:
    """Return *filters* if it carries a scope key, else raise ``VectorDBError``."""
    if not filters or not any(filters.get(key) for key in SCOPE_KEYS):
        raise VectorDBError(
            message="Scope filter violation: query requires a user_id or tenant_id filter",
            provider_name=provider_name,
        )
    return filters


# Concrete implementations: ChromaDBProvider, MemoryVectorStoreProvider
# Located in: docrag/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for vector-store services.

    Implementations must tolerate concurrent writes from independent
    pipeline runs; runs for different documents never write the same ids.
    """

    @abstractmethod
    async def upsert(self, records: list[EmbeddingRecord]) -> int:
        """Insert or replace *records* by id.

        Returns
        -------
        int
            The number of records written.

        Raises
        ------
        docrag.utils.errors.VectorDBError
            If the write fails.
        """

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, Any],
    ) -> list[ScoredRecord]:
        """Return up to *top_k* records most similar to *vector*.

        Parameters
        ----------
        vector:
            The query embedding.
        top_k:
            Maximum number of results.
        filters:
            Metadata equality filter.  Must contain a scope key (see module
            docstring); it is applied inside the backend query.

        Returns
        -------
        list[ScoredRecord]
            Sorted by ``score`` descending.  Higher means more similar.
        """

    @abstractmethod
    async def delete(
        self,
        ids: list[str] | None = None,
        filters: dict[str, Any] | None = None,
    ) -> int:
        """Delete records by id and/or by metadata filter.

        At least one of *ids* or *filters* must be given.

        Returns
        -------
        int
            The number of records removed.
        """

    @abstractmethod
    async def count(self, filters: dict[str, Any] | None = None) -> int:
        """Return how many records match *filters* (all records when ``None``)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
