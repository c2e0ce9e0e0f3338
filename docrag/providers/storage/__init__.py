"""Object storage readers (IStorageProvider)."""

from docrag.providers.storage.http_storage_provider import HTTPStorageProvider
from docrag.providers.storage.local_storage_provider import LocalStorageProvider

__all__ = ["HTTPStorageProvider", "LocalStorageProvider"]
