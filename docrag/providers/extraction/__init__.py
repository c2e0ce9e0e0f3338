"""Text extractors (ITextExtractor).

Registered in the order given by ``Settings.extractors``; the first one
whose ``supports()`` accepts an input handles it.
"""

from docrag.providers.extraction.image_ocr_extractor import ImageOCRExtractor
from docrag.providers.extraction.pdf_extractor import PDFExtractor
from docrag.providers.extraction.plain_text_extractor import PlainTextExtractor
from docrag.providers.extraction.web_page_extractor import WebPageExtractor

__all__ = ["ImageOCRExtractor", "PDFExtractor", "PlainTextExtractor", "WebPageExtractor"]
