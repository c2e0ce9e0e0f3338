"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Uses cosine distance; scores are reported as ``1 - distance`` so that higher
means more similar.  Fully local, no external service required.

The chromadb client is synchronous.  Every call is pushed to a worker
thread so one run's vector I/O never blocks another run's event loop time.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

# Telemetry off before chromadb is imported; some versions read the env var
# at import time and ignore the client setting.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from docrag.interfaces.vector_store_provider import IVectorStoreProvider, require_scope
from docrag.models.document import EmbeddingRecord, ScoredRecord
from docrag.utils.errors import VectorDBError

logger = structlog.get_logger(logger_name=__name__)

# Fields stored in chroma metadata that map back onto EmbeddingRecord attributes.
_RECORD_FIELDS = ("document_id", "user_id", "tenant_id", "chunk_index")


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Prevents ChromaDB from loading its default ONNX model.

    docrag always passes pre-computed vectors, so the collection's own
    embedding function must never run.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "docrag uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "docrag_embeddings",
        upsert_batch_size: int = 500,
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._upsert_batch_size = max(1, upsert_batch_size)
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections persisted by older chromadb versions reject a new
        # embedding function; reopen them without one.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(self, records: list[EmbeddingRecord]) -> int:
        """Upsert records in batches of ``upsert_batch_size`` to bound memory."""
        if not records:
            return 0
        try:
            await asyncio.to_thread(self._upsert_sync, records)
        except Exception as exc:
            raise VectorDBError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chromadb_upsert", count=len(records))
        return len(records)

    def _upsert_sync(self, records: list[EmbeddingRecord]) -> None:
        for start in range(0, len(records), self._upsert_batch_size):
            batch = records[start : start + self._upsert_batch_size]
            self._collection.upsert(
                ids=[r.id for r in batch],
                embeddings=[r.vector for r in batch],
                documents=[r.content for r in batch],
                metadatas=[self._to_metadata(r) for r in batch],
            )

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, Any],
    ) -> list[ScoredRecord]:
        require_scope(filters, self.get_provider_name())
        try:
            results = await asyncio.to_thread(self._query_sync, vector, top_k, filters)
        except Exception as exc:
            raise VectorDBError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "chromadb_query",
            top_k=top_k,
            results_count=len(results),
            top_score=results[0].score if results else 0.0,
        )
        return results

    def _query_sync(
        self, vector: list[float], top_k: int, filters: dict[str, Any]
    ) -> list[ScoredRecord]:
        total = self._collection.count()
        if total == 0 or top_k <= 0:
            return []
        raw = self._collection.query(
            query_embeddings=[vector],
            n_results=min(top_k, total),
            where=self._translate_filters(filters),
            include=["documents", "metadatas", "distances"],
        )
        if not raw["ids"] or not raw["ids"][0]:
            return []

        ids = raw["ids"][0]
        documents = raw["documents"][0] if raw.get("documents") else [""] * len(ids)
        metadatas = raw["metadatas"][0] if raw.get("metadatas") else [{}] * len(ids)
        distances = raw["distances"][0] if raw.get("distances") else [1.0] * len(ids)

        scored = [
            ScoredRecord(
                record=self._from_metadata(rid, doc or "", meta or {}),
                score=1.0 - float(distance),
            )
            for rid, doc, meta, distance in zip(ids, documents, metadatas, distances, strict=True)
        ]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    async def delete(
        self,
        ids: list[str] | None = None,
        filters: dict[str, Any] | None = None,
    ) -> int:
        if not ids and not filters:
            raise ValueError("delete requires ids or filters")
        try:
            deleted = await asyncio.to_thread(self._delete_sync, ids, filters)
        except Exception as exc:
            raise VectorDBError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chromadb_delete", deleted_count=deleted, filters=filters)
        return deleted

    def _delete_sync(self, ids: list[str] | None, filters: dict[str, Any] | None) -> int:
        where = self._translate_filters(filters) if filters else None
        existing = self._collection.get(ids=ids or None, where=where, include=[])
        matched = existing["ids"] or []
        if matched:
            self._collection.delete(ids=matched)
        return len(matched)

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        try:
            if not filters:
                return await asyncio.to_thread(self._collection.count)
            existing = await asyncio.to_thread(
                self._collection.get, where=self._translate_filters(filters), include=[]
            )
        except Exception as exc:
            raise VectorDBError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(existing["ids"] or [])

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:  # noqa: BLE001
            return False

    # ------------------------------------------------------------------
    # Translation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_metadata(record: EmbeddingRecord) -> dict[str, str | int | float | bool]:
        """ChromaDB metadata values must be scalars and never ``None``."""
        meta: dict[str, str | int | float | bool] = {}
        for key, value in record.scope_metadata().items():
            if value is None:
                continue
            meta[key] = value if isinstance(value, (str, int, float, bool)) else str(value)
        return meta

    @staticmethod
    def _from_metadata(record_id: str, text: str, meta: dict[str, Any]) -> EmbeddingRecord:
        extra = {k: v for k, v in meta.items() if k not in _RECORD_FIELDS}
        return EmbeddingRecord(
            id=record_id,
            document_id=str(meta.get("document_id", "")),
            user_id=str(meta.get("user_id", "")),
            tenant_id=meta.get("tenant_id"),
            chunk_index=int(meta.get("chunk_index", 0)),
            content=text,
            vector=[],
            metadata=extra,
        )

    @staticmethod
    def _translate_filters(filters: dict[str, Any]) -> dict[str, Any]:
        """Translate a flat equality mapping into a chroma ``where`` clause."""
        clauses = [{key: {"$eq": value}} for key, value in filters.items()]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
