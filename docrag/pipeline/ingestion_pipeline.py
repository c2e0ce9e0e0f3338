"""Ingestion pipeline: drives one Document Record through extraction and embedding.

Stages and their status moves::

    start_extraction   {Processing, Text Extraction Failed}
                           -> Text Extraction Started
                           -> Text Extraction Complete | Text Extraction Failed
    start_embedding    {Text Extraction Complete}
                           -> AI Embeddings Started
                           -> Complete | AI Embeddings Failed

Every move is one conditional update in the document store
(``IDocumentStore.transition``).  If the precondition does not hold the
store raises :class:`ConflictError` and nothing is changed; this is what
makes duplicate and reordered events harmless.

Failure isolation: each stage catches provider errors at its boundary,
writes ``failure_reason`` together with the Failed status, and returns the
failed record.  Only ``ConflictError`` and ``NotFoundError`` escape, because
they mean "this run should not have happened", not "this document failed".

The embedding stage is all-or-nothing per document.  Records are upserted
batch by batch; if any batch fails, every record of the document is deleted
before the stage is marked failed.  An upsert that outlives its deadline
keeps running, so it gets a guard task that deletes its batch once it
lands; the next attempt for that document waits for those guards.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator, Sequence

from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.document import DocumentRecord, DocumentStatus, EmbeddingRecord
from docrag.models.extraction import ExtractionInput
from docrag.services.chunker import TextChunk, TextChunker
from docrag.services.extraction_service import TextExtractionService
from docrag.utils.concurrency import call_with_timeout
from docrag.utils.errors import (
    ConflictError,
    DocRagError,
    EmbeddingError,
    ExtractionError,
    NotFoundError,
    VectorDBError,
)
from docrag.utils.logging import get_logger

_Status = DocumentStatus


def _batched(items: Sequence[TextChunk], size: int) -> Iterator[Sequence[TextChunk]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _failure_reason(exc: BaseException) -> str:
    """Caller-facing reason: error type plus message, never a traceback."""
    message = exc.message if isinstance(exc, DocRagError) else str(exc)
    return f"{type(exc).__name__}: {message}"


class IngestionPipeline:
    """Advances Document Records through the extraction and embedding stages.

    Parameters
    ----------
    document_store:
        Persistence for Document Records; owns the atomic transitions.
    extraction_service:
        First-match dispatcher over the registered extractors.
    embedding_provider:
        The active embedding backend.
    vector_store:
        The active vector store.
    chunker:
        Splits extracted text into fixed windows before embedding.
    provider_timeout:
        Per-call deadline in seconds for every provider call.
    embedding_batch_size:
        Chunks per embedding call.  Each call gets its own deadline.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        extraction_service: TextExtractionService,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        chunker: TextChunker,
        provider_timeout: float | None = 60.0,
        embedding_batch_size: int = 64,
    ) -> None:
        self._store = document_store
        self._extraction = extraction_service
        self._embedding = embedding_provider
        self._vector_store = vector_store
        self._chunker = chunker
        self._timeout = provider_timeout
        self._batch_size = max(1, embedding_batch_size)
        # Guards for upserts that outlived their deadline, per document.
        self._late_writes: dict[str, set[asyncio.Future]] = {}
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, document_id: str) -> DocumentRecord:
        """Run whichever stage the document's current status allows.

        ``Processing`` and ``Text Extraction Failed`` start extraction;
        ``AI Embeddings Failed`` re-arms the embedding stage from the stored
        text.  Any other status raises :class:`ConflictError` without side
        effects: the document is in flight or already done.
        """
        record = await self._require(document_id)
        status = record.status
        if status in _Status.predecessors(_Status.EXTRACTION_STARTED):
            return await self.start_extraction(document_id)
        if status is _Status.EMBEDDING_FAILED:
            return await self.retry_embedding(document_id)
        raise ConflictError(
            message=f"Document {document_id} is '{status.value}'; nothing to run",
            current_status=status.value,
        )

    # ------------------------------------------------------------------
    # Extraction stage
    # ------------------------------------------------------------------

    async def start_extraction(self, document_id: str) -> DocumentRecord:
        """Extract text, then chain into :meth:`start_embedding` on success."""
        record = await self._store.transition(
            document_id,
            _Status.predecessors(_Status.EXTRACTION_STARTED),
            _Status.EXTRACTION_STARTED,
            clear_extracted_text=True,
        )
        self._logger.info(
            "extraction_start",
            document_id=document_id,
            source_locator=record.source_locator,
        )

        try:
            source = ExtractionInput.for_document(record)
            result = await call_with_timeout(
                self._extraction.extract(source),
                self._timeout,
                lambda msg: ExtractionError(message=msg),
                operation="extract_text",
            )
        except ExtractionError as exc:
            return await self._fail(document_id, _Status.EXTRACTION_STARTED, _Status.EXTRACTION_FAILED, exc)
        except Exception as exc:
            self._logger.exception("extraction_unexpected_error", document_id=document_id)
            return await self._fail(document_id, _Status.EXTRACTION_STARTED, _Status.EXTRACTION_FAILED, exc)

        await self._store.transition(
            document_id,
            frozenset({_Status.EXTRACTION_STARTED}),
            _Status.EXTRACTION_COMPLETE,
            extracted_text=result.text,
        )
        self._logger.info(
            "extraction_complete",
            document_id=document_id,
            extractor=result.extractor,
            chars=len(result.text),
        )
        return await self.start_embedding(document_id)

    # ------------------------------------------------------------------
    # Embedding stage
    # ------------------------------------------------------------------

    async def retry_embedding(self, document_id: str) -> DocumentRecord:
        """Move ``AI Embeddings Failed`` back to ``Text Extraction Complete`` and embed."""
        await self._store.transition(
            document_id,
            frozenset({_Status.EMBEDDING_FAILED}),
            _Status.EXTRACTION_COMPLETE,
        )
        self._logger.info("embedding_retry", document_id=document_id)
        return await self.start_embedding(document_id)

    async def start_embedding(self, document_id: str) -> DocumentRecord:
        """Chunk the stored text, embed every chunk, write one record per chunk."""
        record = await self._store.transition(
            document_id,
            _Status.predecessors(_Status.EMBEDDING_STARTED),
            _Status.EMBEDDING_STARTED,
        )
        chunks = self._chunker.chunk(record.extracted_text or "")
        self._logger.info("embedding_start", document_id=document_id, chunks=len(chunks))

        try:
            written = await self._embed_and_store(record, chunks)
        except (EmbeddingError, VectorDBError) as exc:
            reason = await self._rollback(document_id, exc)
            return await self._fail(
                document_id, _Status.EMBEDDING_STARTED, _Status.EMBEDDING_FAILED, exc, reason=reason
            )
        except Exception as exc:
            self._logger.exception("embedding_unexpected_error", document_id=document_id)
            reason = await self._rollback(document_id, exc)
            return await self._fail(
                document_id, _Status.EMBEDDING_STARTED, _Status.EMBEDDING_FAILED, exc, reason=reason
            )

        try:
            record = await self._store.transition(
                document_id,
                frozenset({_Status.EMBEDDING_STARTED}),
                _Status.COMPLETE,
            )
        except (ConflictError, NotFoundError):
            # Source removed or deleted while embedding; the records must not outlive it.
            self._logger.warning("embedding_result_discarded", document_id=document_id)
            await self._rollback(document_id, None)
            raise

        self._logger.info("embedding_complete", document_id=document_id, records=written)
        return record

    async def _embed_and_store(self, record: DocumentRecord, chunks: list[TextChunk]) -> int:
        if not await self._settle_late_writes(record.id):
            raise VectorDBError(
                message=f"Earlier vector writes for document {record.id} are still in flight",
                provider_name=self._vector_store.get_provider_name(),
            )
        # Clear leftovers from an earlier attempt that produced more chunks.
        await self._bounded(
            self._vector_store.delete(filters={"document_id": record.id}),
            VectorDBError,
            "vector_delete",
        )

        written = 0
        for batch in _batched(chunks, self._batch_size):
            vectors = await self._bounded(
                self._embedding.embed([c.text for c in batch]),
                EmbeddingError,
                "embed",
            )
            self._check_vectors(len(batch), vectors)
            records = [self._to_record(record, chunk, vector) for chunk, vector in zip(batch, vectors)]
            written += await self._bounded(
                self._vector_store.upsert(records),
                VectorDBError,
                "vector_upsert",
                on_detach=self._undo_when_landed(record.id, [r.id for r in records]),
            )
            self._logger.debug(
                "embedding_batch_stored",
                document_id=record.id,
                written=written,
                total=len(chunks),
            )
        return written

    def _check_vectors(self, expected: int, vectors: list[list[float]]) -> None:
        provider = self._embedding.get_provider_name()
        if len(vectors) != expected:
            raise EmbeddingError(
                message=f"Provider returned {len(vectors)} vectors for {expected} chunks",
                provider_name=provider,
            )
        dimension = self._embedding.get_dimension()
        lengths = {len(v) for v in vectors}
        if len(lengths) > 1 or (dimension and lengths != {dimension}) or 0 in lengths:
            raise EmbeddingError(
                message=f"Embedding dimension mismatch: got {sorted(lengths)}, expected {dimension or 'uniform'}",
                provider_name=provider,
            )

    @staticmethod
    def _to_record(document: DocumentRecord, chunk: TextChunk, vector: list[float]) -> EmbeddingRecord:
        return EmbeddingRecord(
            id=EmbeddingRecord.make_id(document.id, chunk.index),
            document_id=document.id,
            user_id=document.user_id,
            tenant_id=document.tenant_id,
            chunk_index=chunk.index,
            content=chunk.text,
            vector=vector,
            metadata={
                "source": document.id,
                "source_locator": document.source_locator,
                "filename": document.filename,
                "char_start": chunk.start,
                "char_end": chunk.end,
            },
        )

    async def _rollback(self, document_id: str, cause: BaseException | None) -> str | None:
        """Delete every Embedding Record of the document.

        Returns a failure reason that mentions the rollback problem when the
        delete itself fails, otherwise ``None``.  Upserts that timed out
        earlier are waited for first; any still running are deleted by their
        guard when they land.
        """
        await self._settle_late_writes(document_id)
        try:
            removed = await self._bounded(
                self._vector_store.delete(filters={"document_id": document_id}),
                VectorDBError,
                "vector_rollback",
            )
        except Exception as exc:
            self._logger.error(
                "embedding_rollback_failed",
                document_id=document_id,
                error=str(exc),
            )
            if cause is None:
                return None
            return f"{_failure_reason(cause)} (rollback failed: {_failure_reason(exc)})"
        self._logger.info("embedding_rolled_back", document_id=document_id, removed=removed)
        return None

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    async def _bounded(  # noqa: ANN202
        self,
        awaitable,  # noqa: ANN001
        error_cls: type[DocRagError],
        operation: str,
        on_detach: Callable[[asyncio.Future], None] | None = None,
    ):
        return await call_with_timeout(
            awaitable,
            self._timeout,
            lambda msg: error_cls(message=msg),
            operation=operation,
            on_detach=on_detach,
        )

    # ------------------------------------------------------------------
    # Timed-out vector writes
    # ------------------------------------------------------------------

    def _undo_when_landed(self, document_id: str, ids: list[str]) -> Callable[[asyncio.Future], None]:
        """Detach hook for an upsert: delete *ids* once the late write finishes."""

        def _hook(write: asyncio.Future) -> None:
            guard = asyncio.ensure_future(self._remove_late_write(document_id, write, ids))
            self._late_writes.setdefault(document_id, set()).add(guard)
            guard.add_done_callback(lambda done: self._forget_late_write(document_id, done))

        return _hook

    async def _remove_late_write(self, document_id: str, write: asyncio.Future, ids: list[str]) -> None:
        # A failed write may still have stored part of its batch.
        await asyncio.wait({write})
        try:
            await call_with_timeout(
                self._vector_store.delete(ids=ids),
                self._timeout,
                lambda msg: VectorDBError(message=msg),
                operation="vector_late_cleanup",
            )
        except DocRagError as exc:
            self._logger.error(
                "late_write_cleanup_failed",
                document_id=document_id,
                records=len(ids),
                error=str(exc),
            )
            return
        self._logger.info("late_write_removed", document_id=document_id, records=len(ids))

    def _forget_late_write(self, document_id: str, guard: asyncio.Future) -> None:
        pending = self._late_writes.get(document_id)
        if pending is None:
            return
        pending.discard(guard)
        if not pending:
            del self._late_writes[document_id]

    async def _settle_late_writes(self, document_id: str) -> bool:
        """Wait up to one deadline for the document's late writes to be undone.

        Returns ``True`` when none remain.
        """
        pending = set(self._late_writes.get(document_id, ()))
        if not pending:
            return True
        self._logger.info("awaiting_late_writes", document_id=document_id, pending=len(pending))
        timeout = self._timeout if self._timeout and self._timeout > 0 else None
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        return not still_running

    async def _fail(
        self,
        document_id: str,
        current: DocumentStatus,
        target: DocumentStatus,
        exc: BaseException,
        reason: str | None = None,
    ) -> DocumentRecord:
        reason = reason or _failure_reason(exc)
        self._logger.error(
            "stage_failed",
            document_id=document_id,
            status=target.value,
            error_type=type(exc).__name__,
            provider=getattr(exc, "provider_name", None),
            reason=reason,
        )
        return await self._store.transition(
            document_id,
            frozenset({current}),
            target,
            failure_reason=reason,
        )

    async def _require(self, document_id: str) -> DocumentRecord:
        record = await self._store.get(document_id)
        if record is None or record.is_deleted:
            raise NotFoundError(message=f"Document {document_id} not found")
        return record
