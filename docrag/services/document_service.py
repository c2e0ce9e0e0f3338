"""Document registration and lifecycle operations.

Registration is how the surrounding application tells docrag about an
upload: it creates a ``Processing`` record for a ``bucket/key`` locator and
returns the generated id.  A later storage notification for the same
locator resolves to that record.

Both deletion paths stamp the record deleted first, so an in-flight pipeline
run can no longer reach ``Complete`` and rolls its own writes back, then
remove the Embedding Records.  User deletion drops the row last.  If the
purge fails the stamped record stays resolvable by locator, so a retried
deletion or a redelivered ``ObjectRemoved`` finishes the purge.
"""

from __future__ import annotations

import posixpath
import uuid
from typing import TYPE_CHECKING

from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.document import DocumentRecord, split_locator
from docrag.utils.concurrency import call_with_timeout
from docrag.utils.errors import NotFoundError, VectorDBError
from docrag.utils.logging import get_logger

if TYPE_CHECKING:
    from docrag.pipeline.ingestion_pipeline import IngestionPipeline


class DocumentService:
    """Registers, lists, reindexes and deletes documents."""

    def __init__(
        self,
        document_store: IDocumentStore,
        vector_store: IVectorStoreProvider,
        pipeline: IngestionPipeline,
        provider_timeout: float | None = 60.0,
    ) -> None:
        self._store = document_store
        self._vector_store = vector_store
        self._pipeline = pipeline
        self._timeout = provider_timeout
        self._logger = get_logger(__name__)

    async def register(
        self,
        source_locator: str,
        user_id: str,
        tenant_id: str | None = None,
        checksum: str | None = None,
        size: int | None = None,
        mime_type: str | None = None,
        filename: str | None = None,
    ) -> DocumentRecord:
        """Create a ``Processing`` record and return it.

        Raises
        ------
        ConflictError
            If a live record already exists for *source_locator*.
        """
        _, key = split_locator(source_locator)
        record = DocumentRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            tenant_id=tenant_id,
            source_locator=source_locator,
            filename=filename or posixpath.basename(key),
            checksum=checksum,
            size=size,
            mime_type=mime_type,
        )
        return await self._store.create(record)

    async def get(self, document_id: str, user_id: str | None = None) -> DocumentRecord:
        """Return a live record, optionally checking ownership.

        A record owned by someone else is reported as missing.
        """
        record = await self._store.get(document_id)
        if record is None or record.is_deleted or (user_id and record.user_id != user_id):
            raise NotFoundError(message=f"Document {document_id} not found")
        return record

    async def list_for_user(self, user_id: str) -> list[DocumentRecord]:
        return await self._store.list_for_user(user_id)

    async def reindex(self, document_id: str, user_id: str | None = None) -> DocumentRecord:
        """Run whichever pipeline stage the record's status allows."""
        await self.get(document_id, user_id=user_id)
        return await self._pipeline.run(document_id)

    async def delete_document(self, document_id: str, user_id: str | None = None) -> int:
        """Delete a document's embeddings, then the record itself.

        A record already stamped deleted by an earlier, failed attempt is
        accepted so the purge can be retried.  Returns the number of
        Embedding Records removed.
        """
        record = await self._store.get(document_id)
        if record is None or (user_id and record.user_id != user_id):
            raise NotFoundError(message=f"Document {document_id} not found")
        await self._store.mark_deleted(document_id)
        removed = await self._purge_embeddings(document_id)
        await self._store.delete(document_id)
        self._logger.info("document_deleted", document_id=document_id, embeddings_removed=removed)
        return removed

    async def remove_source(self, record: DocumentRecord) -> int:
        """Handle a removed source object: stamp the record deleted, drop its vectors.

        The record is marked first so an in-flight run can no longer reach
        ``Complete``; it will roll its own writes back.  Calling this again
        for an already stamped record repeats the purge.
        """
        await self._store.mark_deleted(record.id)
        removed = await self._purge_embeddings(record.id)
        self._logger.info("document_source_removed", document_id=record.id, embeddings_removed=removed)
        return removed

    async def _purge_embeddings(self, document_id: str) -> int:
        return await call_with_timeout(
            self._vector_store.delete(filters={"document_id": document_id}),
            self._timeout,
            lambda msg: VectorDBError(message=msg),
            operation="vector_delete",
        )
