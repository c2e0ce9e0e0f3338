"""Application services sitting between the HTTP layer and the providers.

- ``chunker``            -- fixed-window text chunking
- ``extraction_service`` -- first-match dispatch over text extractors
- ``document_service``   -- registration, listing, reindex and deletion
- ``event_adapter``      -- storage notifications -> pipeline runs
- ``retrieval_service``  -- query embedding, scoped search, answer generation
"""

from docrag.services.chunker import TextChunk, TextChunker
from docrag.services.document_service import DocumentService
from docrag.services.event_adapter import EventIngestionAdapter
from docrag.services.extraction_service import TextExtractionService
from docrag.services.retrieval_service import RetrievalOrchestrator

__all__ = [
    "DocumentService",
    "EventIngestionAdapter",
    "RetrievalOrchestrator",
    "TextChunk",
    "TextChunker",
    "TextExtractionService",
]
