"""Abstract base class for Document Record persistence.

The store is the concurrency guard for the ingestion pipeline: every status
change goes through :meth:`IDocumentStore.transition`, a single conditional
update that succeeds only if the current status is one of the allowed
predecessors.  Two concurrent runs on the same document cannot both win.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.document import DocumentRecord, DocumentStatus


class IDocumentStore(ABC):
    """Contract for persisting :class:`DocumentRecord` objects."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables or directories if needed.  Safe to call twice."""

    @abstractmethod
    async def create(self, record: DocumentRecord) -> DocumentRecord:
        """Insert a new record.

        Raises
        ------
        docrag.utils.errors.ConflictError
            If a live record already exists for the same ``source_locator``.
        """

    @abstractmethod
    async def get(self, document_id: str) -> DocumentRecord | None:
        """Return the record (deleted ones included) or ``None``."""

    @abstractmethod
    async def get_by_locator(self, source_locator: str, include_deleted: bool = False) -> DocumentRecord | None:
        """Return the live record for *source_locator*.

        With *include_deleted* a stamped-deleted record is returned when no
        live one exists, newest first.
        """

    @abstractmethod
    async def list_for_user(self, user_id: str, include_deleted: bool = False) -> list[DocumentRecord]:
        """Return a user's records, newest first."""

    @abstractmethod
    async def transition(
        self,
        document_id: str,
        expected: frozenset[DocumentStatus],
        target: DocumentStatus,
        *,
        extracted_text: str | None = None,
        failure_reason: str | None = None,
        clear_extracted_text: bool = False,
    ) -> DocumentRecord:
        """Atomically move *document_id* to *target* if its status is in *expected*.

        ``failure_reason`` is written when *target* is a failure status and
        cleared otherwise.  ``extracted_text`` is written when given;
        ``clear_extracted_text`` nulls it.  Deleted records never transition.

        Raises
        ------
        docrag.utils.errors.NotFoundError
            If the record does not exist.
        docrag.utils.errors.ConflictError
            If the record's status is not in *expected* or it is deleted.
        """

    @abstractmethod
    async def mark_deleted(self, document_id: str) -> DocumentRecord:
        """Stamp ``deleted_at``.  Idempotent; raises ``NotFoundError`` if absent."""

    @abstractmethod
    async def delete(self, document_id: str) -> bool:
        """Remove the record row.  Returns ``False`` if it did not exist."""
