"""PDF text extractor using PyMuPDF (fitz).

Reads the text layer page by page.  Scanned PDFs without a text layer come
back empty and are reported as an extraction failure by the extraction
service; route them through OCR upstream if that matters.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from docrag.models.extraction import ExtractionInput, ExtractionResult
from docrag.providers.extraction.base import ByteSourceExtractor
from docrag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PDFExtractor(ByteSourceExtractor):
    """Extracts the text layer of PDF documents."""

    suffixes = frozenset({".pdf"})
    mime_prefixes = ("application/pdf",)

    async def extract_text(self, source: ExtractionInput) -> ExtractionResult:
        data = await self._read_bytes(source)
        try:
            pages, meta = await asyncio.to_thread(self._extract_pages, data)
        except (RuntimeError, ValueError) as exc:
            # PyMuPDF raises RuntimeError subclasses (FileDataError) for corrupt input.
            raise ExtractionError(
                message=f"Failed to parse PDF {source.display}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text = "\n\n".join(p for p in pages if p.strip())
        logger.info(
            "pdf_extracted",
            source=source.display,
            pages=len(pages),
            chars=len(text),
        )
        return ExtractionResult(
            text=text,
            source=source.display,
            extractor=self.get_provider_name(),
            metadata={"page_count": len(pages), **meta},
        )

    @staticmethod
    def _extract_pages(data: bytes) -> tuple[list[str], dict[str, str]]:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text("text") for page in doc]
            raw_meta = doc.metadata or {}
        meta = {k: v for k, v in raw_meta.items() if k in ("title", "author") and v}
        return pages, meta

    def get_provider_name(self) -> str:
        return "pdf"
