"""Plain-text extractor for text-like files and storage objects."""

from __future__ import annotations

import structlog

from docrag.models.extraction import ExtractionInput, ExtractionResult
from docrag.providers.extraction.base import ByteSourceExtractor, decode_text

logger = structlog.get_logger(logger_name=__name__)


class PlainTextExtractor(ByteSourceExtractor):
    """Returns the decoded content of ``.txt``, ``.md``, ``.csv`` and similar."""

    suffixes = frozenset(
        {".txt", ".text", ".md", ".markdown", ".rst", ".csv", ".tsv", ".json", ".log", ".yaml", ".yml"}
    )
    mime_prefixes = ("text/plain", "text/markdown", "text/csv", "application/json")

    async def extract_text(self, source: ExtractionInput) -> ExtractionResult:
        data = await self._read_bytes(source)
        text = decode_text(data)
        logger.info("plain_text_extracted", source=source.display, chars=len(text))
        return ExtractionResult(
            text=text,
            source=source.display,
            extractor=self.get_provider_name(),
            metadata={"bytes": len(data)},
        )

    def get_provider_name(self) -> str:
        return "plain_text"
