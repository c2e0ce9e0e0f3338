"""Abstract base class for object storage readers.

The pipeline only ever *reads* uploaded objects; writes happen in the
surrounding application.  Implementations: local filesystem and plain HTTP.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IStorageProvider(ABC):
    """Read-only contract for the object store holding uploads."""

    @abstractmethod
    async def read_object(self, bucket: str, key: str) -> bytes:
        """Return the raw bytes of ``bucket/key``.

        Raises
        ------
        docrag.utils.errors.ExtractionError
            If the object is missing or cannot be read.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"local_storage"``."""
