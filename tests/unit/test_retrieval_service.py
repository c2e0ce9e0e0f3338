"""Unit tests for RetrievalOrchestrator and its prompt helpers."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.document import EmbeddingRecord, ScoredRecord
from docrag.models.retrieval import RetrievalRequest, RetrievalScope
from docrag.providers.vector_store.memory_provider import MemoryVectorStoreProvider
from docrag.services.retrieval_service import (
    RetrievalOrchestrator,
    build_prompt,
    dedupe_by_document,
)
from docrag.utils.errors import EmbeddingError, LLMError, VectorDBError

from tests.conftest import MockEmbeddingProvider, RecordingLLMProvider, _hash_to_vector


def _hit(doc_id: str, idx: int, score: float, content: str | None = None) -> ScoredRecord:
    return ScoredRecord(
        record=EmbeddingRecord(
            id=f"{doc_id}-{idx}",
            document_id=doc_id,
            user_id="u1",
            chunk_index=idx,
            content=content or f"{doc_id} chunk {idx}",
            vector=[],
        ),
        score=score,
    )


async def _index(store: MemoryVectorStoreProvider, doc_id: str, texts: list[str], user_id: str = "u1") -> None:
    await store.upsert(
        [
            EmbeddingRecord(
                id=EmbeddingRecord.make_id(doc_id, i),
                document_id=doc_id,
                user_id=user_id,
                chunk_index=i,
                content=text,
                vector=_hash_to_vector(text),
            )
            for i, text in enumerate(texts)
        ]
    )


def _request(query: str = "What is the refund policy?", user_id: str = "u1", top_k: int | None = 3) -> RetrievalRequest:
    return RetrievalRequest(query=query, scope=RetrievalScope(user_id=user_id), top_k=top_k)


@pytest.fixture
def orchestrator(mock_embedding_provider, memory_vector_store, recording_llm, mock_config) -> RetrievalOrchestrator:
    return RetrievalOrchestrator(
        embedding_provider=mock_embedding_provider,
        vector_store=memory_vector_store,
        llm_provider=recording_llm,
        config=mock_config,
        provider_timeout=5.0,
    )


class TestHelpers:
    def test_build_prompt(self) -> None:
        assert build_prompt("ctx", "q?") == "Context:\nctx\n\nQuestion: q?\n\nAnswer:"

    def test_dedupe_keeps_best_chunk_per_document(self) -> None:
        hits = [_hit("a", 0, 0.5), _hit("b", 0, 0.9), _hit("a", 1, 0.8), _hit("b", 1, 0.1)]
        unique = dedupe_by_document(hits)
        assert [(h.record.document_id, h.record.chunk_index) for h in unique] == [("b", 0), ("a", 1)]


class TestAnswer:
    @pytest.mark.asyncio
    async def test_empty_index_still_calls_llm(self, orchestrator, recording_llm) -> None:
        answer = await orchestrator.answer(_request())

        assert answer.sources == []
        assert answer.grounded is False
        assert answer.answer == "mock answer"
        assert len(recording_llm.calls) == 1
        messages, options = recording_llm.calls[0]
        assert messages[0].role == "system"
        assert messages[0].content == "Answer the question based on the context provided."
        assert messages[1].content == "Context:\n\n\nQuestion: What is the refund policy?\n\nAnswer:"
        assert options.max_tokens == 500
        assert options.temperature == 0.7

    @pytest.mark.asyncio
    async def test_grounded_answer_cites_sources(self, orchestrator, memory_vector_store, recording_llm) -> None:
        await _index(memory_vector_store, "policy", ["Refunds within 30 days.", "Shipping is free."])
        await _index(memory_vector_store, "faq", ["Contact support by email."])

        answer = await orchestrator.answer(_request("Refunds within 30 days."))

        assert answer.grounded is True
        assert [s.document_id for s in answer.sources][0] == "policy"
        assert answer.sources[0].content == "Refunds within 30 days."
        assert answer.sources[0].chunk_id == "policy-0"
        assert len({s.document_id for s in answer.sources}) == len(answer.sources)
        prompt = recording_llm.calls[0][0][1].content
        assert "Refunds within 30 days." in prompt
        assert answer.usage.total_tokens == 15

    @pytest.mark.asyncio
    async def test_other_users_documents_never_reach_the_prompt(
        self, orchestrator, memory_vector_store, recording_llm
    ) -> None:
        await _index(memory_vector_store, "secret", ["Refunds within 30 days."], user_id="u2")

        answer = await orchestrator.answer(_request("Refunds within 30 days.", user_id="u1"))

        assert answer.sources == []
        assert "Refunds" not in recording_llm.calls[0][0][1].content.split("Question:")[0]

    @pytest.mark.asyncio
    async def test_scope_filter_passed_to_store(self, mock_embedding_provider, recording_llm) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.query = AsyncMock(return_value=[])
        store.get_provider_name.return_value = "mock-store"
        orchestrator = RetrievalOrchestrator(mock_embedding_provider, store, recording_llm)

        await orchestrator.answer(
            RetrievalRequest(query="q", scope=RetrievalScope(user_id="u1", tenant_id="t1"), top_k=7)
        )

        _, top_k = store.query.call_args.args
        assert top_k == 7
        assert store.query.call_args.kwargs["filters"] == {"user_id": "u1", "tenant_id": "t1"}

    @pytest.mark.asyncio
    async def test_default_top_k_from_config(self, mock_embedding_provider, recording_llm) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.query = AsyncMock(return_value=[])
        store.get_provider_name.return_value = "mock-store"
        orchestrator = RetrievalOrchestrator(
            mock_embedding_provider, store, recording_llm, config={"retrieval": {"top_k": 9}}
        )

        await orchestrator.answer(_request(top_k=None))

        assert store.query.call_args.args[1] == 9

    @pytest.mark.asyncio
    async def test_context_budget(self, mock_embedding_provider, recording_llm) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.query = AsyncMock(
            return_value=[_hit("a", 0, 0.9, "A" * 60), _hit("b", 0, 0.8, "B" * 30), _hit("c", 0, 0.7, "C" * 30)]
        )
        store.get_provider_name.return_value = "mock-store"
        orchestrator = RetrievalOrchestrator(
            mock_embedding_provider, store, recording_llm, config={"retrieval": {"max_context_chars": 100}}
        )

        answer = await orchestrator.answer(_request())

        assert [s.document_id for s in answer.sources] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_best_hit_truncated_to_budget(self, mock_embedding_provider, recording_llm) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.query = AsyncMock(return_value=[_hit("a", 0, 0.9, "A" * 500)])
        store.get_provider_name.return_value = "mock-store"
        orchestrator = RetrievalOrchestrator(
            mock_embedding_provider, store, recording_llm, config={"retrieval": {"max_context_chars": 50}}
        )

        answer = await orchestrator.answer(_request())

        assert answer.grounded is True
        assert "A" * 50 + "\n\nQuestion:" in recording_llm.calls[0][0][1].content


class TestFailures:
    @pytest.mark.asyncio
    async def test_llm_failure_propagates(self, mock_embedding_provider, memory_vector_store) -> None:
        orchestrator = RetrievalOrchestrator(
            mock_embedding_provider, memory_vector_store, RecordingLLMProvider(fail=True)
        )
        with pytest.raises(LLMError):
            await orchestrator.answer(_request())

    @pytest.mark.asyncio
    async def test_embedding_failure_skips_llm(self, memory_vector_store, recording_llm) -> None:
        embedding = MockEmbeddingProvider()
        embedding.embed_single = AsyncMock(side_effect=EmbeddingError(message="down"))
        orchestrator = RetrievalOrchestrator(embedding, memory_vector_store, recording_llm)

        with pytest.raises(EmbeddingError):
            await orchestrator.answer(_request())
        assert recording_llm.calls == []

    @pytest.mark.asyncio
    async def test_vector_store_failure(self, mock_embedding_provider, recording_llm) -> None:
        store = MagicMock(spec=IVectorStoreProvider)
        store.query = AsyncMock(side_effect=VectorDBError(message="offline"))
        store.get_provider_name.return_value = "mock-store"
        orchestrator = RetrievalOrchestrator(mock_embedding_provider, store, recording_llm)

        with pytest.raises(VectorDBError, match="offline"):
            await orchestrator.answer(_request())

    @pytest.mark.asyncio
    async def test_generation_timeout(self, mock_embedding_provider, memory_vector_store) -> None:
        llm = RecordingLLMProvider()

        async def hang(messages, options=None):
            await asyncio.sleep(10)

        llm.generate = hang
        orchestrator = RetrievalOrchestrator(
            mock_embedding_provider, memory_vector_store, llm, provider_timeout=0.05
        )

        with pytest.raises(LLMError, match="generate timed out"):
            await orchestrator.answer(_request())
