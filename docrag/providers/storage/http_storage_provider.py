"""HTTP object storage reader.

Fetches ``<base_url>/<bucket>/<key>`` with httpx.  Works with any store that
serves objects over plain GET: a MinIO/S3 bucket with a read policy, a CDN,
or a signing proxy in front of a private bucket.
"""

from __future__ import annotations

from urllib.parse import quote

import httpx
import structlog

from docrag.interfaces.storage_provider import IStorageProvider
from docrag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 30.0


class HTTPStorageProvider(IStorageProvider):
    """Reads objects over HTTP GET."""

    def __init__(self, base_url: str, http_client: httpx.AsyncClient | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(_DEFAULT_TIMEOUT),
            follow_redirects=True,
        )

    async def read_object(self, bucket: str, key: str) -> bytes:
        url = self.object_url(bucket, key)
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ExtractionError(
                message=f"Timeout fetching {bucket}/{key}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ExtractionError(
                message=f"HTTP {exc.response.status_code} for {bucket}/{key}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(
                message=f"HTTP error fetching {bucket}/{key}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("http_storage_read", url=url, size=len(response.content))
        return response.content

    def object_url(self, bucket: str, key: str) -> str:
        parts = [quote(bucket, safe="")] if bucket else []
        parts.append(quote(key, safe="/"))
        return f"{self._base_url}/{'/'.join(parts)}"

    def get_provider_name(self) -> str:
        return "http_storage"

    async def aclose(self) -> None:
        await self._client.aclose()
