"""SQLite-backed Document Record store.

Persists :class:`DocumentRecord` rows to a local SQLite database using
``aiosqlite`` for async I/O.  Status changes are single conditional
``UPDATE ... WHERE status IN (...)`` statements; SQLite executes each one
atomically, so the row count tells the caller whether it won the
transition.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from docrag.interfaces.document_store import IDocumentStore
from docrag.models.document import DocumentRecord, DocumentStatus
from docrag.utils.errors import ConflictError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    tenant_id       TEXT,
    source_locator  TEXT NOT NULL,
    filename        TEXT NOT NULL DEFAULT '',
    status          TEXT NOT NULL,
    extracted_text  TEXT,
    failure_reason  TEXT,
    size            INTEGER,
    checksum        TEXT,
    mime_type       TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    deleted_at      TEXT
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_user ON documents(user_id);",
    # One live record per storage object; removed objects may be re-uploaded.
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_documents_live_locator "
    "ON documents(source_locator) WHERE deleted_at IS NULL;",
]

_COLUMNS = (
    "id, user_id, tenant_id, source_locator, filename, status, extracted_text, "
    "failure_reason, size, checksum, mime_type, created_at, updated_at, deleted_at"
)

_INSERT_SQL = f"""\
INSERT INTO documents ({_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_BY_ID_SQL = f"SELECT {_COLUMNS} FROM documents WHERE id = ?;"


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteDocumentStore(IDocumentStore):
    """SQLite persistence for Document Records."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout

    async def initialize(self) -> None:
        """Create the documents table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    async def create(self, record: DocumentRecord) -> DocumentRecord:
        row = (
            record.id,
            record.user_id,
            record.tenant_id,
            record.source_locator,
            record.filename,
            record.status.value,
            record.extracted_text,
            record.failure_reason,
            record.size,
            record.checksum,
            record.mime_type,
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
            record.deleted_at.isoformat() if record.deleted_at else None,
        )
        try:
            async with self._connect() as db:
                await db.execute(_INSERT_SQL, row)
                await db.commit()
        except sqlite3.IntegrityError as exc:
            raise ConflictError(
                message=f"A document is already registered for {record.source_locator}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "document_registered",
            document_id=record.id,
            user_id=record.user_id,
            source_locator=record.source_locator,
        )
        return record

    async def get(self, document_id: str) -> DocumentRecord | None:
        return await self._fetch_one(_SELECT_BY_ID_SQL, (document_id,))

    async def get_by_locator(self, source_locator: str, include_deleted: bool = False) -> DocumentRecord | None:
        if not include_deleted:
            return await self._fetch_one(
                f"SELECT {_COLUMNS} FROM documents "
                "WHERE source_locator = ? AND deleted_at IS NULL;",
                (source_locator,),
            )
        # Live record first, then the most recently stamped one.
        return await self._fetch_one(
            f"SELECT {_COLUMNS} FROM documents WHERE source_locator = ? "
            "ORDER BY deleted_at IS NOT NULL, deleted_at DESC LIMIT 1;",
            (source_locator,),
        )

    async def list_for_user(self, user_id: str, include_deleted: bool = False) -> list[DocumentRecord]:
        sql = f"SELECT {_COLUMNS} FROM documents WHERE user_id = ?"
        if not include_deleted:
            sql += " AND deleted_at IS NULL"
        sql += " ORDER BY created_at DESC;"
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, (user_id,))
            rows = await cursor.fetchall()
        return [self._row_to_record(r) for r in rows]

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
        if not expected:
            raise ValueError("expected statuses must not be empty")
        illegal = [s.value for s in expected if not s.can_transition_to(target)]
        if illegal:
            raise ValueError(f"{illegal} cannot transition to {target.value!r}")

        assignments = ["status = ?", "updated_at = ?", "failure_reason = ?"]
        params: list[Any] = [
            target.value,
            _now(),
            failure_reason if target.is_failure else None,
        ]
        if extracted_text is not None:
            assignments.append("extracted_text = ?")
            params.append(extracted_text)
        elif clear_extracted_text:
            assignments.append("extracted_text = NULL")

        placeholders = ", ".join("?" for _ in expected)
        sql = (
            f"UPDATE documents SET {', '.join(assignments)} "
            f"WHERE id = ? AND deleted_at IS NULL AND status IN ({placeholders});"
        )
        params.append(document_id)
        params.extend(s.value for s in expected)

        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            updated = cursor.rowcount
            await db.commit()
            cursor = await db.execute(_SELECT_BY_ID_SQL, (document_id,))
            row = await cursor.fetchone()

        if row is None:
            raise NotFoundError(
                message=f"Document {document_id} not found",
                provider_name=self.get_provider_name(),
            )
        record = self._row_to_record(row)
        if updated == 0:
            current = "deleted" if record.is_deleted else record.status.value
            raise ConflictError(
                message=(
                    f"Document {document_id} is '{current}', "
                    f"cannot move to '{target.value}'"
                ),
                provider_name=self.get_provider_name(),
                current_status=current,
            )

        logger.debug(
            "document_status_written",
            document_id=document_id,
            status=target.value,
        )
        return record

    async def mark_deleted(self, document_id: str) -> DocumentRecord:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            await db.execute(
                "UPDATE documents SET deleted_at = ?, updated_at = ? "
                "WHERE id = ? AND deleted_at IS NULL;",
                (_now(), _now(), document_id),
            )
            await db.commit()
            cursor = await db.execute(_SELECT_BY_ID_SQL, (document_id,))
            row = await cursor.fetchone()
        if row is None:
            raise NotFoundError(
                message=f"Document {document_id} not found",
                provider_name=self.get_provider_name(),
            )
        logger.info("document_marked_deleted", document_id=document_id)
        return self._row_to_record(row)

    async def delete(self, document_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM documents WHERE id = ?;", (document_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        logger.info("document_deleted", document_id=document_id, existed=deleted)
        return deleted

    def get_provider_name(self) -> str:
        return "sqlite_documents"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _connect(self) -> aiosqlite.Connection:
        return aiosqlite.connect(str(self._db_path), timeout=self._timeout)

    async def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> DocumentRecord | None:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
        return self._row_to_record(row) if row is not None else None

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> DocumentRecord:
        data = dict(row)
        return DocumentRecord(
            id=data["id"],
            user_id=data["user_id"],
            tenant_id=data["tenant_id"],
            source_locator=data["source_locator"],
            filename=data["filename"] or "",
            status=DocumentStatus(data["status"]),
            extracted_text=data["extracted_text"],
            failure_reason=data["failure_reason"],
            size=data["size"],
            checksum=data["checksum"],
            mime_type=data["mime_type"],
            created_at=_parse_ts(data["created_at"]),
            updated_at=_parse_ts(data["updated_at"]),
            deleted_at=_parse_ts(data["deleted_at"]),
        )
