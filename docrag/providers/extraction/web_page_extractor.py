"""Web page extractor using httpx and trafilatura.

Handles ``url`` inputs by fetching the page, and HTML files or storage
objects by reading their bytes.  Either way trafilatura strips navigation,
ads and boilerplate and returns the main content as plain text.
"""

from __future__ import annotations

import httpx
import structlog
import trafilatura

from docrag.interfaces.storage_provider import IStorageProvider
from docrag.models.extraction import ExtractionInput, ExtractionResult, SourceKind
from docrag.providers.extraction.base import ByteSourceExtractor, decode_text
from docrag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 20.0
_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; docrag/0.1)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


class WebPageExtractor(ByteSourceExtractor):
    """Main-content extraction for web pages and HTML documents."""

    suffixes = frozenset({".html", ".htm", ".xhtml"})
    mime_prefixes = ("text/html", "application/xhtml+xml")

    def __init__(
        self,
        storage: IStorageProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(storage=storage)
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(_DEFAULT_TIMEOUT),
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )

    def supports(self, source: ExtractionInput) -> bool:
        if source.kind is SourceKind.URL:
            return (source.url or "").startswith(("http://", "https://"))
        return super().supports(source)

    def supported_kinds(self) -> list[str]:
        return ["url:http", "url:https", *super().supported_kinds()]

    async def extract_text(self, source: ExtractionInput) -> ExtractionResult:
        if source.kind is SourceKind.URL:
            html = await self._fetch(source.url or "")
        else:
            html = decode_text(await self._read_bytes(source))

        text = trafilatura.extract(html, include_comments=False, include_tables=True)
        if not text:
            logger.warning("trafilatura_extraction_empty", source=source.display)
            raise ExtractionError(
                message=f"No readable content in {source.display}",
                provider_name=self.get_provider_name(),
            )

        metadata: dict[str, str] = {}
        doc_meta = trafilatura.extract_metadata(html)
        if doc_meta is not None and doc_meta.title:
            metadata["title"] = doc_meta.title

        logger.info("web_page_extracted", source=source.display, chars=len(text))
        return ExtractionResult(
            text=text,
            source=source.display,
            extractor=self.get_provider_name(),
            metadata=metadata,
        )

    async def _fetch(self, url: str) -> str:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ExtractionError(
                message=f"Timeout fetching {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ExtractionError(
                message=f"HTTP {exc.response.status_code} for {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(
                message=f"HTTP error fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return response.text

    def get_provider_name(self) -> str:
        return "web_page"

    async def aclose(self) -> None:
        await self._client.aclose()
