"""Abstract base class for text extractors.

Extraction differs from the other capabilities: several extractors are
registered at once and the choice depends on the shape of each input.
:class:`~docrag.services.extraction_service.TextExtractionService` walks the
registered extractors in order and uses the first one whose
:meth:`supports` returns ``True``.  Registration order is the only priority.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.extraction import ExtractionInput, ExtractionResult


# Concrete implementations: PlainTextExtractor, PDFExtractor,
# WebPageExtractor, ImageOCRExtractor
# Located in: docrag/providers/extraction/
class ITextExtractor(ABC):
    """Contract for turning a raw source into plain text."""

    @abstractmethod
    def supports(self, source: ExtractionInput) -> bool:
        """Return ``True`` if this extractor can handle *source*.

        Must be cheap and side-effect free: it inspects the input kind,
        name and MIME type only, never the content.
        """

    @abstractmethod
    async def extract_text(self, source: ExtractionInput) -> ExtractionResult:
        """Read *source* and return its text with provenance metadata.

        Raises
        ------
        docrag.utils.errors.ExtractionError
            If fetching or parsing fails.
        """

    @abstractmethod
    def supported_kinds(self) -> list[str]:
        """Return a short description of what this extractor accepts.

        Example: ``["storage:.pdf", "file:.pdf"]``.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"pdf"``."""
