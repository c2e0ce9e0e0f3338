"""Extraction input and result models.

An :class:`ExtractionInput` describes *where* the text lives; extractors
inspect ``kind`` plus the name or MIME type to decide whether they support
it.  Three kinds exist:

* ``url``     -- a web page fetched over HTTP.
* ``file``    -- a path on the local filesystem.
* ``storage`` -- an object in the storage backend (bucket + key).
"""

from __future__ import annotations

import mimetypes
from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from docrag.models.document import DocumentRecord, split_locator


class SourceKind(str, Enum):  # noqa: UP042
    URL = "url"
    FILE = "file"
    STORAGE = "storage"


class ExtractionInput(BaseModel):
    """Where to read a document's raw content from."""

    model_config = ConfigDict(frozen=True)

    kind: SourceKind
    url: str | None = None
    path: str | None = None
    bucket: str | None = None
    key: str | None = None
    user_id: str | None = None
    mime_type: str | None = None

    @model_validator(mode="after")
    def _require_location(self) -> "ExtractionInput":
        if self.kind is SourceKind.URL and not self.url:
            raise ValueError("url input requires 'url'")
        if self.kind is SourceKind.FILE and not self.path:
            raise ValueError("file input requires 'path'")
        if self.kind is SourceKind.STORAGE and not self.key:
            raise ValueError("storage input requires 'key'")
        return self

    @property
    def name(self) -> str:
        """Best-effort file name, used for extension checks."""
        if self.kind is SourceKind.URL:
            return PurePosixPath((self.url or "").split("?", 1)[0]).name
        if self.kind is SourceKind.FILE:
            return PurePosixPath(self.path or "").name
        return PurePosixPath(self.key or "").name

    @property
    def suffix(self) -> str:
        return PurePosixPath(self.name).suffix.lower()

    @property
    def effective_mime_type(self) -> str | None:
        """Declared MIME type, else one guessed from the name."""
        if self.mime_type:
            return self.mime_type.split(";", 1)[0].strip().lower()
        guessed, _ = mimetypes.guess_type(self.name)
        return guessed

    @property
    def display(self) -> str:
        if self.kind is SourceKind.URL:
            return self.url or ""
        if self.kind is SourceKind.FILE:
            return self.path or ""
        return f"{self.bucket}/{self.key}" if self.bucket else (self.key or "")

    @classmethod
    def for_document(cls, document: DocumentRecord) -> "ExtractionInput":
        """Build the input for a registered document.

        Locators starting with ``http://`` or ``https://`` are web pages and
        ``file://`` locators are local paths; everything else is a storage
        object.
        """
        locator = document.source_locator
        if locator.startswith(("http://", "https://")):
            return cls(kind=SourceKind.URL, url=locator, user_id=document.user_id,
                       mime_type=document.mime_type)
        if locator.startswith("file://"):
            return cls(kind=SourceKind.FILE, path=locator[len("file://"):],
                       user_id=document.user_id, mime_type=document.mime_type)
        bucket, key = split_locator(locator)
        return cls(
            kind=SourceKind.STORAGE,
            bucket=bucket,
            key=key,
            user_id=document.user_id,
            mime_type=document.mime_type,
        )


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ExtractionResult(BaseModel):
    """Text pulled out of a source plus provenance metadata."""

    model_config = ConfigDict(frozen=True)

    text: str
    source: str
    extractor: str
    extracted_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)
