"""Local-filesystem object storage reader.

Objects live at ``<root>/<bucket>/<key>``.  Suitable for development and
for deployments where the upload bucket is mounted into the container.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from docrag.interfaces.storage_provider import IStorageProvider
from docrag.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class LocalStorageProvider(IStorageProvider):
    """Reads objects from a directory tree on disk."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    async def read_object(self, bucket: str, key: str) -> bytes:
        path = self._resolve(bucket, key)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise ExtractionError(
                message=f"Object not found: {bucket}/{key}",
                provider_name=self.get_provider_name(),
            ) from exc
        except OSError as exc:
            raise ExtractionError(
                message=f"Failed to read {bucket}/{key}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("local_storage_read", bucket=bucket, key=key, size=len(data))
        return data

    def get_provider_name(self) -> str:
        return "local_storage"

    def _resolve(self, bucket: str, key: str) -> Path:
        path = (self._root / bucket / key).resolve()
        # Keys such as "../../etc/passwd" must not escape the root.
        if not path.is_relative_to(self._root):
            raise ExtractionError(
                message=f"Object key escapes storage root: {bucket}/{key}",
                provider_name=self.get_provider_name(),
            )
        return path
