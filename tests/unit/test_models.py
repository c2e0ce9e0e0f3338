"""Unit tests for docrag domain models and the document status machine."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from docrag.models.document import (
    DocumentRecord,
    DocumentStatus,
    EmbeddingRecord,
    split_locator,
)
from docrag.models.events import PipelineEvent
from docrag.models.extraction import ExtractionInput, SourceKind
from docrag.models.generation import ChatMessage, TokenUsage, split_system
from docrag.models.retrieval import RetrievalRequest, RetrievalScope


class TestDocumentStatusLabels:
    def test_labels_are_public_contract(self) -> None:
        assert [s.label for s in DocumentStatus] == [
            "Processing",
            "Text Extraction Started",
            "Text Extraction Complete",
            "Text Extraction Failed",
            "AI Embeddings Started",
            "AI Embeddings Complete",
            "AI Embeddings Failed",
            "Complete",
        ]

    def test_lookup_by_label(self) -> None:
        assert DocumentStatus("AI Embeddings Failed") is DocumentStatus.EMBEDDING_FAILED


class TestTransitions:
    def test_happy_path(self) -> None:
        path = [
            DocumentStatus.PENDING,
            DocumentStatus.EXTRACTION_STARTED,
            DocumentStatus.EXTRACTION_COMPLETE,
            DocumentStatus.EMBEDDING_STARTED,
            DocumentStatus.COMPLETE,
        ]
        for current, nxt in zip(path, path[1:]):
            assert current.can_transition_to(nxt)

    def test_failure_branches(self) -> None:
        assert DocumentStatus.EXTRACTION_STARTED.can_transition_to(DocumentStatus.EXTRACTION_FAILED)
        assert DocumentStatus.EMBEDDING_STARTED.can_transition_to(DocumentStatus.EMBEDDING_FAILED)

    def test_failures_are_retriable(self) -> None:
        assert DocumentStatus.EXTRACTION_FAILED.can_transition_to(DocumentStatus.EXTRACTION_STARTED)
        assert DocumentStatus.EMBEDDING_FAILED.can_transition_to(DocumentStatus.EXTRACTION_COMPLETE)

    def test_complete_has_no_successors(self) -> None:
        assert not any(DocumentStatus.COMPLETE.can_transition_to(s) for s in DocumentStatus)

    def test_no_skipping_stages(self) -> None:
        assert not DocumentStatus.PENDING.can_transition_to(DocumentStatus.EMBEDDING_STARTED)
        assert not DocumentStatus.EXTRACTION_STARTED.can_transition_to(DocumentStatus.COMPLETE)

    def test_predecessors_of_extraction_started(self) -> None:
        assert DocumentStatus.predecessors(DocumentStatus.EXTRACTION_STARTED) == frozenset(
            {DocumentStatus.PENDING, DocumentStatus.EXTRACTION_FAILED}
        )

    def test_predecessors_of_embedding_started(self) -> None:
        assert DocumentStatus.predecessors(DocumentStatus.EMBEDDING_STARTED) == frozenset(
            {DocumentStatus.EXTRACTION_COMPLETE}
        )

    def test_terminal_and_failure_flags(self) -> None:
        assert DocumentStatus.COMPLETE.is_terminal
        assert DocumentStatus.EXTRACTION_FAILED.is_terminal
        assert DocumentStatus.EXTRACTION_FAILED.is_failure
        assert not DocumentStatus.EXTRACTION_STARTED.is_terminal
        assert not DocumentStatus.COMPLETE.is_failure


class TestDocumentRecord:
    def test_defaults(self) -> None:
        record = DocumentRecord(id="d1", user_id="u1", source_locator="uploads/u1/a.txt")
        assert record.status is DocumentStatus.PENDING
        assert record.bucket == "uploads"
        assert record.key == "u1/a.txt"
        assert not record.is_deleted

    def test_frozen(self) -> None:
        record = DocumentRecord(id="d1", user_id="u1", source_locator="b/k")
        with pytest.raises(ValidationError):
            record.status = DocumentStatus.COMPLETE  # type: ignore[misc]

    def test_negative_size_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DocumentRecord(id="d1", user_id="u1", source_locator="b/k", size=-1)


class TestSplitLocator:
    @pytest.mark.parametrize(
        ("locator", "expected"),
        [
            ("bucket/key.txt", ("bucket", "key.txt")),
            ("bucket/a/b/c.pdf", ("bucket", "a/b/c.pdf")),
            ("/bucket/key", ("bucket", "key")),
            ("lonely.txt", ("", "lonely.txt")),
        ],
    )
    def test_split(self, locator: str, expected: tuple[str, str]) -> None:
        assert split_locator(locator) == expected


class TestEmbeddingRecord:
    def test_deterministic_id(self) -> None:
        assert EmbeddingRecord.make_id("doc-1", 3) == "doc-1-3"

    def test_scope_metadata_carries_filter_fields(self) -> None:
        record = EmbeddingRecord(
            id="doc-1-0",
            document_id="doc-1",
            user_id="u1",
            tenant_id="t1",
            chunk_index=0,
            content="hello",
            vector=[0.1, 0.2],
            metadata={"filename": "a.txt"},
        )
        meta = record.scope_metadata()
        assert meta["source"] == "doc-1"
        assert meta["document_id"] == "doc-1"
        assert meta["user_id"] == "u1"
        assert meta["tenant_id"] == "t1"
        assert meta["filename"] == "a.txt"

    def test_scope_metadata_omits_empty_tenant(self) -> None:
        record = EmbeddingRecord(
            id="x-0", document_id="x", user_id="u", chunk_index=0, content="c", vector=[1.0]
        )
        assert "tenant_id" not in record.scope_metadata()


class TestExtractionInput:
    def test_storage_input_from_document(self) -> None:
        doc = DocumentRecord(id="d", user_id="u", source_locator="uploads/u/My File.PDF")
        source = ExtractionInput.for_document(doc)
        assert source.kind is SourceKind.STORAGE
        assert source.bucket == "uploads"
        assert source.key == "u/My File.PDF"
        assert source.suffix == ".pdf"

    def test_url_input_from_document(self) -> None:
        doc = DocumentRecord(id="d", user_id="u", source_locator="https://example.com/page.html?x=1")
        source = ExtractionInput.for_document(doc)
        assert source.kind is SourceKind.URL
        assert source.name == "page.html"

    def test_file_input_from_document(self) -> None:
        doc = DocumentRecord(id="d", user_id="u", source_locator="file:///tmp/notes.md")
        source = ExtractionInput.for_document(doc)
        assert source.kind is SourceKind.FILE
        assert source.path == "/tmp/notes.md"

    def test_location_required(self) -> None:
        with pytest.raises(ValidationError):
            ExtractionInput(kind=SourceKind.URL)


class TestPipelineEvent:
    def test_prefix_helpers(self) -> None:
        created = PipelineEvent(
            source="storage-object", name_prefix="ObjectCreated", object_locator="b/k", event_id="e1"
        )
        removed = created.model_copy(update={"name_prefix": "ObjectRemoved"})
        assert created.is_created and not created.is_removed
        assert removed.is_removed and not removed.is_created


class TestRetrievalModels:
    def test_scope_requires_user_or_tenant(self) -> None:
        with pytest.raises(ValidationError):
            RetrievalScope()

    def test_scope_filter(self) -> None:
        assert RetrievalScope(user_id="u1").as_filter() == {"user_id": "u1"}
        assert RetrievalScope(tenant_id="t1").as_filter() == {"tenant_id": "t1"}

    def test_empty_query_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetrievalRequest(query="", scope=RetrievalScope(user_id="u1"))


class TestGenerationModels:
    def test_split_system(self) -> None:
        system, rest = split_system(
            [
                ChatMessage(role="system", content="be brief"),
                ChatMessage(role="user", content="hi"),
            ]
        )
        assert system == "be brief"
        assert [m.role for m in rest] == ["user"]

    def test_total_tokens(self) -> None:
        assert TokenUsage(prompt_tokens=10, completion_tokens=5).total_tokens == 15
