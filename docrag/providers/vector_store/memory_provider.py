"""In-memory vector store using numpy cosine similarity.

Holds every record in a dict for the life of the process.  Intended for
development, demos and tests; nothing is persisted.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import structlog

from docrag.interfaces.vector_store_provider import IVectorStoreProvider, require_scope
from docrag.models.document import EmbeddingRecord, ScoredRecord
from docrag.utils.errors import VectorDBError

logger = structlog.get_logger(logger_name=__name__)


class MemoryVectorStoreProvider(IVectorStoreProvider):
    """Dict-backed vector store with brute-force cosine search.

    All methods complete without awaiting, so each call is atomic with
    respect to other coroutines on the same loop.
    """

    def __init__(self) -> None:
        self._records: dict[str, EmbeddingRecord] = {}

    async def upsert(self, records: list[EmbeddingRecord]) -> int:
        for record in records:
            self._records[record.id] = record
        logger.debug("memory_store_upsert", count=len(records), total=len(self._records))
        return len(records)

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, Any],
    ) -> list[ScoredRecord]:
        require_scope(filters, self.get_provider_name())
        candidates = [r for r in self._records.values() if self._matches(r, filters)]
        if not candidates or top_k <= 0:
            return []

        query_vec = np.asarray(vector, dtype=np.float64)
        matrix = np.asarray([r.vector for r in candidates], dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[1] != query_vec.shape[0]:
            raise VectorDBError(
                message=(
                    f"Query dimension {query_vec.shape[0]} does not match "
                    f"stored dimension {matrix.shape[-1]}"
                ),
                provider_name=self.get_provider_name(),
            )

        norms = np.linalg.norm(matrix, axis=1) * max(np.linalg.norm(query_vec), 1e-12)
        scores = matrix @ query_vec / np.maximum(norms, 1e-12)
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [ScoredRecord(record=candidates[i], score=float(scores[i])) for i in order]

    async def delete(
        self,
        ids: list[str] | None = None,
        filters: dict[str, Any] | None = None,
    ) -> int:
        if not ids and not filters:
            raise ValueError("delete requires ids or filters")
        id_set = set(ids or [])
        doomed = [
            rid
            for rid, record in self._records.items()
            if (not id_set or rid in id_set) and (not filters or self._matches(record, filters))
        ]
        for rid in doomed:
            del self._records[rid]
        logger.debug("memory_store_delete", deleted_count=len(doomed))
        return len(doomed)

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        if not filters:
            return len(self._records)
        return sum(1 for r in self._records.values() if self._matches(r, filters))

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True

    @staticmethod
    def _matches(record: EmbeddingRecord, filters: dict[str, Any]) -> bool:
        meta = record.scope_metadata()
        return all(meta.get(key) == value for key, value in filters.items())
