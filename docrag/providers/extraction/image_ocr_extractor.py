"""Image OCR extractor backed by Tesseract via pytesseract.

Handles scanned documents and photos uploaded as images.  Needs both the
``pytesseract`` wrapper and the ``tesseract`` binary; when either is
missing :meth:`supports` returns ``False`` and image inputs fall through to
``NoExtractorFoundError``.
"""

from __future__ import annotations

import asyncio
import io
import shutil

import structlog
from PIL import Image, UnidentifiedImageError

from docrag.interfaces.storage_provider import IStorageProvider
from docrag.models.extraction import ExtractionInput, ExtractionResult
from docrag.providers.extraction.base import ByteSourceExtractor
from docrag.utils.errors import ExtractionError

# pytesseract is optional at runtime; the binary is installed by the image.
try:
    import pytesseract

    _PYTESSERACT_AVAILABLE = True
except ImportError:
    pytesseract = None  # type: ignore[assignment]
    _PYTESSERACT_AVAILABLE = False

logger = structlog.get_logger(logger_name=__name__)


class ImageOCRExtractor(ByteSourceExtractor):
    """OCR for ``.png``, ``.jpg``, ``.tiff`` and other raster images."""

    suffixes = frozenset({".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp", ".webp", ".gif"})
    mime_prefixes = ("image/",)

    def __init__(self, storage: IStorageProvider | None = None, language: str = "eng") -> None:
        super().__init__(storage=storage)
        self._language = language

    def is_available(self) -> bool:
        return _PYTESSERACT_AVAILABLE and shutil.which("tesseract") is not None

    def supports(self, source: ExtractionInput) -> bool:
        return self.is_available() and super().supports(source)

    async def extract_text(self, source: ExtractionInput) -> ExtractionResult:
        if not _PYTESSERACT_AVAILABLE:
            raise ExtractionError(
                message="pytesseract is not installed",
                provider_name=self.get_provider_name(),
            )
        data = await self._read_bytes(source)
        try:
            text, size = await asyncio.to_thread(self._ocr, data)
        except UnidentifiedImageError as exc:
            raise ExtractionError(
                message=f"Unreadable image {source.display}",
                provider_name=self.get_provider_name(),
            ) from exc
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
            raise ExtractionError(
                message=f"Tesseract failed on {source.display}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("image_ocr_extracted", source=source.display, chars=len(text))
        return ExtractionResult(
            text=text,
            source=source.display,
            extractor=self.get_provider_name(),
            metadata={"width": size[0], "height": size[1], "language": self._language},
        )

    def _ocr(self, data: bytes) -> tuple[str, tuple[int, int]]:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            text = pytesseract.image_to_string(img, lang=self._language)
            return text.strip(), img.size

    def get_provider_name(self) -> str:
        return "image_ocr"
