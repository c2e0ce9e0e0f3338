"""Document and embedding models plus the ingestion state machine.

``DocumentStatus`` is a closed ``str`` enum whose *values* are the
human-readable labels exposed to callers ("Processing", "Text Extraction
Started", ...).  Those labels are a public contract: renaming one needs a
data migration for every persisted record.

The allowed moves live in ``_TRANSITIONS``.  The pipeline never trusts a
caller-supplied status; it asks :meth:`DocumentStatus.predecessors` for the
set of statuses a target may be entered from and hands that set to the
document store, which applies the move as one conditional update.

All models are frozen; updated copies are produced with
``model_copy(update={...})``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# DocumentStatus -- the ingestion state machine.
# ---------------------------------------------------------------------------
class DocumentStatus(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Processing status of a document.

    Happy path::

        PENDING -> EXTRACTION_STARTED -> EXTRACTION_COMPLETE
                -> EMBEDDING_STARTED -> COMPLETE

    Failure branches: EXTRACTION_STARTED -> EXTRACTION_FAILED and
    EMBEDDING_STARTED -> EMBEDDING_FAILED.  Both failures can be retried:
    EXTRACTION_FAILED re-enters EXTRACTION_STARTED, EMBEDDING_FAILED re-arms
    EXTRACTION_COMPLETE (the extracted text is kept).

    ``EMBEDDING_COMPLETE`` is the same milestone as ``COMPLETE``.  The
    pipeline writes ``COMPLETE``; the label is kept so that records written
    with it still parse, and such records may only advance to ``COMPLETE``.
    """

    PENDING = "Processing"
    EXTRACTION_STARTED = "Text Extraction Started"
    EXTRACTION_COMPLETE = "Text Extraction Complete"
    EXTRACTION_FAILED = "Text Extraction Failed"
    EMBEDDING_STARTED = "AI Embeddings Started"
    EMBEDDING_COMPLETE = "AI Embeddings Complete"
    EMBEDDING_FAILED = "AI Embeddings Failed"
    COMPLETE = "Complete"

    @property
    def label(self) -> str:
        return self.value

    @property
    def is_failure(self) -> bool:
        return self in _FAILURES

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    def can_transition_to(self, target: DocumentStatus) -> bool:
        """Return ``True`` if *target* is reachable from this status in one move."""
        return target in _TRANSITIONS[self]

    @classmethod
    def predecessors(cls, target: DocumentStatus) -> frozenset[DocumentStatus]:
        """Return every status from which *target* may be entered."""
        return frozenset(src for src, targets in _TRANSITIONS.items() if target in targets)


_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({DocumentStatus.EXTRACTION_STARTED}),
    DocumentStatus.EXTRACTION_STARTED: frozenset(
        {DocumentStatus.EXTRACTION_COMPLETE, DocumentStatus.EXTRACTION_FAILED}
    ),
    DocumentStatus.EXTRACTION_FAILED: frozenset({DocumentStatus.EXTRACTION_STARTED}),
    DocumentStatus.EXTRACTION_COMPLETE: frozenset({DocumentStatus.EMBEDDING_STARTED}),
    DocumentStatus.EMBEDDING_STARTED: frozenset(
        {DocumentStatus.COMPLETE, DocumentStatus.EMBEDDING_FAILED}
    ),
    DocumentStatus.EMBEDDING_FAILED: frozenset({DocumentStatus.EXTRACTION_COMPLETE}),
    DocumentStatus.EMBEDDING_COMPLETE: frozenset({DocumentStatus.COMPLETE}),
    DocumentStatus.COMPLETE: frozenset(),
}

_FAILURES = frozenset({DocumentStatus.EXTRACTION_FAILED, DocumentStatus.EMBEDDING_FAILED})
_TERMINAL = _FAILURES | {DocumentStatus.COMPLETE, DocumentStatus.EMBEDDING_COMPLETE}


# ---------------------------------------------------------------------------
# DocumentRecord -- one uploaded source tracked through the pipeline.
# ---------------------------------------------------------------------------
class DocumentRecord(BaseModel):
    """Persisted tracking record for one uploaded source object.

    ``source_locator`` is ``"<bucket>/<key>"``.  By convention the key starts
    with the owning user id (``"<user_id>/<filename>"``), which is how
    unregistered uploads can be auto-registered from a storage event.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    tenant_id: str | None = None
    source_locator: str
    filename: str = ""
    status: DocumentStatus = DocumentStatus.PENDING
    extracted_text: str | None = None
    failure_reason: str | None = None
    size: int | None = Field(default=None, ge=0)
    checksum: str | None = None
    mime_type: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def bucket(self) -> str:
        return split_locator(self.source_locator)[0]

    @property
    def key(self) -> str:
        return split_locator(self.source_locator)[1]


def split_locator(locator: str) -> tuple[str, str]:
    """Split ``"bucket/key/with/slashes"`` into ``("bucket", "key/with/slashes")``.

    A locator with no slash is treated as a key in the default bucket ``""``.
    """
    locator = locator.lstrip("/")
    if "/" not in locator:
        return "", locator
    bucket, key = locator.split("/", 1)
    return bucket, key


# ---------------------------------------------------------------------------
# EmbeddingRecord -- one embedded chunk of a document.
# ---------------------------------------------------------------------------
class EmbeddingRecord(BaseModel):
    """One stored vector for a text chunk, owned by a :class:`DocumentRecord`.

    Records are write-once.  Ids are deterministic
    (``"<document_id>-<chunk_index>"``) so a retried embedding stage
    overwrites rather than duplicates.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    user_id: str
    tenant_id: str | None = None
    chunk_index: int = Field(ge=0)
    content: str
    vector: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)

    @staticmethod
    def make_id(document_id: str, chunk_index: int) -> str:
        return f"{document_id}-{chunk_index}"

    def scope_metadata(self) -> dict[str, Any]:
        """Metadata as persisted: caller metadata plus the fields filters rely on."""
        meta: dict[str, Any] = dict(self.metadata)
        meta.setdefault("source", self.document_id)
        meta["document_id"] = self.document_id
        meta["user_id"] = self.user_id
        meta["chunk_index"] = self.chunk_index
        if self.tenant_id:
            meta["tenant_id"] = self.tenant_id
        return meta


class ScoredRecord(BaseModel):
    """A vector store hit: the stored record and its similarity score.

    Scores are monotonic (higher is more similar).  ``vector`` on the
    returned record may be empty when the backend does not return it.
    """

    model_config = ConfigDict(frozen=True)

    record: EmbeddingRecord
    score: float
