"""Query-time retrieval and answer generation.

Flow for one request::

    query text --embed_single--> vector
    vector + scope filter --vector_store.query--> scored chunks (best first)
    best chunk per document, within the context budget --> context block
    system prompt + "Context / Question" user message --llm.generate--> answer

The scope filter is built from the request and passed into the vector
store query itself; nothing is filtered after the fact.  An empty result
set is not an error: the LLM is still called with an empty context and the
answer is returned with ``grounded=False``.  Provider failures surface as
``EmbeddingError``, ``VectorDBError`` or ``LLMError``; no partial answer is
ever returned.
"""

from __future__ import annotations

from typing import Any

from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.document import ScoredRecord
from docrag.models.generation import ChatMessage, GenerationOptions
from docrag.models.retrieval import (
    RetrievalAnswer,
    RetrievalRequest,
    RetrievalScope,
    SourceReference,
)
from docrag.utils.concurrency import call_with_timeout
from docrag.utils.errors import EmbeddingError, LLMError, VectorDBError
from docrag.utils.logging import get_logger

_DEFAULT_SYSTEM_PROMPT = "Answer the question based on the context provided."
_DEFAULT_MAX_CONTEXT_CHARS = 12000


def dedupe_by_document(hits: list[ScoredRecord]) -> list[ScoredRecord]:
    """Keep the best-scoring chunk per document, preserving descending order."""
    seen: set[str] = set()
    unique: list[ScoredRecord] = []
    for hit in sorted(hits, key=lambda h: h.score, reverse=True):
        if hit.record.document_id in seen:
            continue
        seen.add(hit.record.document_id)
        unique.append(hit)
    return unique


def build_prompt(context: str, question: str) -> str:
    return f"Context:\n{context}\n\nQuestion: {question}\n\nAnswer:"


class RetrievalOrchestrator:
    """Answers a query from the caller's own indexed documents.

    Parameters
    ----------
    embedding_provider, vector_store, llm_provider:
        The active capability providers.
    config:
        Resolved configuration from :func:`docrag.config.load_config`.  Reads
        ``retrieval.top_k``, ``retrieval.max_context_chars``,
        ``retrieval.system_prompt`` and the ``generation`` block.
    provider_timeout:
        Per-call deadline in seconds.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        llm_provider: ILLMProvider,
        config: dict[str, Any] | None = None,
        provider_timeout: float | None = 60.0,
    ) -> None:
        self._embedding = embedding_provider
        self._vector_store = vector_store
        self._llm = llm_provider
        self._timeout = provider_timeout
        self._logger = get_logger(__name__)

        config = config or {}
        retrieval = config.get("retrieval", {})
        self._default_top_k = int(retrieval.get("top_k", 5))
        self._max_context_chars = int(retrieval.get("max_context_chars", _DEFAULT_MAX_CONTEXT_CHARS))
        self._system_prompt = retrieval.get("system_prompt") or _DEFAULT_SYSTEM_PROMPT
        self._options = GenerationOptions(**config.get("generation", {}))

    async def answer(self, request: RetrievalRequest) -> RetrievalAnswer:
        """Retrieve context for *request* and generate an answer."""
        hits = await self.search(request.query, request.scope, request.top_k)
        context, used = self._assemble_context(hits)

        messages = [
            ChatMessage(role="system", content=self._system_prompt),
            ChatMessage(role="user", content=build_prompt(context, request.query)),
        ]
        result = await call_with_timeout(
            self._llm.generate(messages, self._options),
            self._timeout,
            lambda msg: LLMError(message=msg, provider_name=self._llm.get_provider_name()),
            operation="generate",
        )

        sources = [
            SourceReference(
                document_id=hit.record.document_id,
                content=hit.record.content,
                score=hit.score,
                chunk_id=hit.record.id,
            )
            for hit in used
        ]
        self._logger.info(
            "query_answered",
            scope=request.scope.as_filter(),
            sources=len(sources),
            grounded=bool(sources),
            total_tokens=result.usage.total_tokens,
        )
        return RetrievalAnswer(
            answer=result.text,
            sources=sources,
            grounded=bool(sources),
            usage=result.usage,
        )

    async def search(
        self,
        query: str,
        scope: RetrievalScope,
        top_k: int | None = None,
    ) -> list[ScoredRecord]:
        """Embed *query* and return in-scope hits, one per document, best first."""
        top_k = top_k or self._default_top_k
        vector = await call_with_timeout(
            self._embedding.embed_single(query),
            self._timeout,
            lambda msg: EmbeddingError(message=msg, provider_name=self._embedding.get_provider_name()),
            operation="embed_query",
        )
        hits = await call_with_timeout(
            self._vector_store.query(vector, top_k, filters=scope.as_filter()),
            self._timeout,
            lambda msg: VectorDBError(message=msg, provider_name=self._vector_store.get_provider_name()),
            operation="vector_query",
        )
        unique = dedupe_by_document(hits)
        self._logger.debug("query_retrieved", hits=len(hits), documents=len(unique), top_k=top_k)
        return unique

    def _assemble_context(self, hits: list[ScoredRecord]) -> tuple[str, list[ScoredRecord]]:
        parts: list[str] = []
        used: list[ScoredRecord] = []
        budget = self._max_context_chars
        for hit in hits:
            content = hit.record.content
            if used and len(content) > budget:
                break
            # The best hit is always included, truncated if needed.
            parts.append(content[:budget])
            used.append(hit)
            budget -= len(parts[-1])
            if budget <= 0:
                break
        return "\n\n---\n\n".join(parts), used
