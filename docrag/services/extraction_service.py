"""Text extraction dispatch across registered extractors.

Architecture: first-match dispatch
----------------------------------
Extractors are held in registration order.  For each input the service asks
every extractor ``supports(input)`` and hands the input to the first one
that accepts.  There is no fallback to the next extractor if the chosen one
fails: "supports" is a statement about input shape, so a failure is a real
failure of that document, not a hint to try another parser.

No matching extractor raises :class:`NoExtractorFoundError`, which the
pipeline records as a terminal extraction failure.
"""

from __future__ import annotations

from docrag.interfaces.text_extractor import ITextExtractor
from docrag.models.extraction import ExtractionInput, ExtractionResult
from docrag.utils.errors import ExtractionError, NoExtractorFoundError
from docrag.utils.logging import get_logger


class TextExtractionService:
    """Routes each input to the first extractor that supports it."""

    def __init__(self, extractors: list[ITextExtractor]) -> None:
        self._extractors = list(extractors)
        self._logger = get_logger(__name__)

    def select(self, source: ExtractionInput) -> ITextExtractor:
        """Return the extractor that will handle *source*.

        Raises
        ------
        NoExtractorFoundError
            If no registered extractor supports the input.
        """
        for extractor in self._extractors:
            if extractor.supports(source):
                return extractor
        kind = source.kind.value
        if source.suffix:
            kind = f"{kind}:{source.suffix}"
        raise NoExtractorFoundError(source_kind=kind)

    async def extract(self, source: ExtractionInput) -> ExtractionResult:
        """Extract text from *source* with the selected extractor.

        Any failure surfaces as :class:`ExtractionError`; unexpected exceptions
        from an extractor are wrapped so callers only see the taxonomy.
        Whitespace-only output counts as a failure: there is nothing to embed.
        """
        extractor = self.select(source)
        name = extractor.get_provider_name()
        self._logger.info("extraction_dispatched", extractor=name, source=source.display)

        try:
            result = await extractor.extract_text(source)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(
                message=f"Unexpected {type(exc).__name__} while extracting {source.display}: {exc}",
                provider_name=name,
            ) from exc

        if not result.text.strip():
            raise ExtractionError(
                message=f"No text could be extracted from {source.display}",
                provider_name=name,
            )
        return result

    def supported_types(self) -> list[str]:
        """Return every input kind handled, in registration order, deduplicated."""
        seen: dict[str, None] = {}
        for extractor in self._extractors:
            for kind in extractor.supported_kinds():
                seen.setdefault(kind, None)
        return list(seen)

    def get_extractor_names(self) -> list[str]:
        return [e.get_provider_name() for e in self._extractors]
