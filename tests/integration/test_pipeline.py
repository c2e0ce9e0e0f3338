"""End-to-end ingestion and retrieval through the fully wired component graph.

Real SQLite document store, real local object storage and the in-memory
vector index; only the embedding and LLM providers are fakes.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from docrag.config.settings import Settings
from docrag.main import build_components
from docrag.models.document import DocumentStatus
from docrag.models.events import EventDisposition
from docrag.models.retrieval import RetrievalRequest, RetrievalScope
from docrag.providers.vector_store.memory_provider import MemoryVectorStoreProvider

from tests.conftest import MockEmbeddingProvider, RecordingLLMProvider


def _created(key: str, sequencer: str, bucket: str = "uploads") -> dict:
    return {
        "eventName": "ObjectCreated:Put",
        "s3": {"bucket": {"name": bucket}, "object": {"key": key, "sequencer": sequencer}},
    }


def _removed(key: str, sequencer: str, bucket: str = "uploads") -> dict:
    return {
        "eventName": "ObjectRemoved:Delete",
        "s3": {"bucket": {"name": bucket}, "object": {"key": key, "sequencer": sequencer}},
    }


@pytest_asyncio.fixture
async def system(tmp_path: Path, mock_config) -> dict[str, Any]:
    settings = Settings(
        _env_file=None,
        openai_api_key="sk-test-key",
        vector_store_provider="memory",
        document_db_path=str(tmp_path / "documents.db"),
        storage_root=str(tmp_path / "objects"),
        provider_timeout_seconds=0.2,
        embedding_batch_size=4,
        app_env="test",
    )
    components = build_components(
        settings,
        mock_config,
        embedding_provider=MockEmbeddingProvider(),
        vector_store=MemoryVectorStoreProvider(),
        llm_provider=RecordingLLMProvider(),
    )
    await components["document_store"].initialize()
    yield components
    await components["http_client"].aclose()


@pytest.fixture
def write_object(tmp_path: Path):
    def _write(locator: str, text: str) -> None:
        path = tmp_path / "objects" / locator
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    return _write


async def _deliver(system: dict[str, Any], *records: dict):
    adapter = system["event_adapter"]
    return await adapter.handle_many(adapter.normalize({"Records": list(records)}))


class TestIngestionFlow:
    @pytest.mark.asyncio
    async def test_upload_reaches_complete(self, system, write_object) -> None:
        write_object("uploads/u1/handbook.txt", "x" * 5000)
        record = await system["document_service"].register("uploads/u1/handbook.txt", user_id="u1")

        [outcome] = await _deliver(system, _created("u1/handbook.txt", "01"))

        assert outcome.disposition is EventDisposition.PROCESSED
        final = await system["document_service"].get(record.id)
        assert final.status.label == "Complete"
        assert final.failure_reason is None
        assert await system["vector_store"].count({"document_id": record.id}) == 6

    @pytest.mark.asyncio
    async def test_redelivery_changes_nothing(self, system, write_object) -> None:
        write_object("uploads/u1/handbook.txt", "x" * 5000)
        record = await system["document_service"].register("uploads/u1/handbook.txt", user_id="u1")
        await _deliver(system, _created("u1/handbook.txt", "01"))
        before = await system["document_store"].get(record.id)
        batches = list(system["embedding_provider"].batches)

        [outcome] = await _deliver(system, _created("u1/handbook.txt", "01"))

        assert outcome.disposition is EventDisposition.DUPLICATE
        after = await system["document_store"].get(record.id)
        assert after.updated_at == before.updated_at
        assert system["embedding_provider"].batches == batches
        assert await system["vector_store"].count({"document_id": record.id}) == 6

    @pytest.mark.asyncio
    async def test_extraction_timeout_isolated_from_other_uploads(self, system, write_object) -> None:
        storage = system["storage_provider"]
        read_object = storage.read_object

        async def slow_for_one_key(bucket: str, key: str) -> bytes:
            if key.endswith("slow.txt"):
                await asyncio.sleep(10)
            return await read_object(bucket, key)

        storage.read_object = slow_for_one_key
        write_object("uploads/u1/slow.txt", "never read")
        write_object("uploads/u1/fast.txt", "y" * 1500)
        slow = await system["document_service"].register("uploads/u1/slow.txt", user_id="u1")
        fast = await system["document_service"].register("uploads/u1/fast.txt", user_id="u1")

        outcomes = await _deliver(system, _created("u1/slow.txt", "01"), _created("u1/fast.txt", "02"))

        assert [o.disposition for o in outcomes] == [EventDisposition.PROCESSED, EventDisposition.PROCESSED]
        slow_final = await system["document_store"].get(slow.id)
        assert slow_final.status.label == "Text Extraction Failed"
        assert "timed out" in slow_final.failure_reason
        assert await system["vector_store"].count({"document_id": slow.id}) == 0
        assert (await system["document_store"].get(fast.id)).status is DocumentStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_failed_run_can_be_redelivered(self, system, write_object) -> None:
        record = await system["document_service"].register("uploads/u1/late.txt", user_id="u1")
        [first] = await _deliver(system, _created("u1/late.txt", "01"))
        assert first.status == DocumentStatus.EXTRACTION_FAILED.value

        write_object("uploads/u1/late.txt", "arrived eventually")
        [second] = await _deliver(system, _created("u1/late.txt", "01"))

        assert second.disposition is EventDisposition.PROCESSED
        assert (await system["document_store"].get(record.id)).status is DocumentStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_embedding_outage_rolls_back(self, system, write_object) -> None:
        system["embedding_provider"].fail_on_call = 2
        write_object("uploads/u1/handbook.txt", "x" * 5000)
        record = await system["document_service"].register("uploads/u1/handbook.txt", user_id="u1")

        await _deliver(system, _created("u1/handbook.txt", "01"))

        final = await system["document_store"].get(record.id)
        assert final.status.label == "AI Embeddings Failed"
        assert final.failure_reason.startswith("EmbeddingError:")
        assert final.extracted_text == "x" * 5000
        assert await system["vector_store"].count({"document_id": record.id}) == 0

        system["embedding_provider"].fail_on_call = None
        retried = await system["document_service"].reindex(record.id, user_id="u1")
        assert retried.status is DocumentStatus.COMPLETE
        assert await system["vector_store"].count({"document_id": record.id}) == 6

    @pytest.mark.asyncio
    async def test_removal_cascades_to_embeddings(self, system, write_object) -> None:
        write_object("uploads/u1/handbook.txt", "x" * 2000)
        record = await system["document_service"].register("uploads/u1/handbook.txt", user_id="u1")
        await _deliver(system, _created("u1/handbook.txt", "01"))
        assert await system["vector_store"].count({"document_id": record.id}) == 3

        [outcome] = await _deliver(system, _removed("u1/handbook.txt", "02"))

        assert outcome.disposition is EventDisposition.REMOVED
        assert await system["vector_store"].count({"document_id": record.id}) == 0
        assert (await system["document_store"].get(record.id)).is_deleted


class TestRetrievalFlow:
    @pytest.mark.asyncio
    async def test_empty_index_answers_without_sources(self, system) -> None:
        answer = await system["retrieval"].answer(
            RetrievalRequest(
                query="What is the refund policy?",
                scope=RetrievalScope(user_id="u1"),
                top_k=3,
            )
        )

        assert answer.sources == []
        assert answer.grounded is False
        messages, _ = system["llm_provider"].calls[0]
        assert messages[1].content.startswith("Context:\n\n\nQuestion: What is the refund policy?")

    @pytest.mark.asyncio
    async def test_scope_isolation_between_users(self, system, write_object) -> None:
        policy = "Refunds are accepted within 30 days of purchase."
        write_object("uploads/u1/policy.txt", policy)
        write_object("uploads/u2/policy.txt", policy)
        mine = await system["document_service"].register("uploads/u1/policy.txt", user_id="u1")
        theirs = await system["document_service"].register("uploads/u2/policy.txt", user_id="u2")
        await _deliver(system, _created("u1/policy.txt", "01"), _created("u2/policy.txt", "02"))

        answer = await system["retrieval"].answer(
            RetrievalRequest(query=policy, scope=RetrievalScope(user_id="u1"), top_k=3)
        )

        assert [s.document_id for s in answer.sources] == [mine.id]
        assert theirs.id not in {s.document_id for s in answer.sources}
        assert answer.sources[0].chunk_id == f"{mine.id}-0"
