"""Shared plumbing for extractors that read files or storage objects.

Concrete extractors decide *whether* they support an input and *how* to
turn bytes into text; reading the bytes is the same for all of them.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from docrag.interfaces.storage_provider import IStorageProvider
from docrag.interfaces.text_extractor import ITextExtractor
from docrag.models.extraction import ExtractionInput, SourceKind
from docrag.utils.errors import ExtractionError


class ByteSourceExtractor(ITextExtractor):
    """Base class for extractors handling ``file`` and ``storage`` inputs.

    Parameters
    ----------
    storage:
        Reader for ``storage`` inputs.  Without one, storage inputs are not
        supported by this extractor.
    """

    suffixes: frozenset[str] = frozenset()
    mime_prefixes: tuple[str, ...] = ()

    def __init__(self, storage: IStorageProvider | None = None) -> None:
        self._storage = storage

    def supports(self, source: ExtractionInput) -> bool:
        if source.kind is SourceKind.STORAGE and self._storage is None:
            return False
        if source.kind not in (SourceKind.FILE, SourceKind.STORAGE):
            return False
        if source.suffix in self.suffixes:
            return True
        mime = source.effective_mime_type
        return bool(mime) and mime.startswith(self.mime_prefixes)

    def supported_kinds(self) -> list[str]:
        kinds = [SourceKind.FILE.value]
        if self._storage is not None:
            kinds.append(SourceKind.STORAGE.value)
        return [f"{kind}:{suffix}" for kind in kinds for suffix in sorted(self.suffixes)]

    async def _read_bytes(self, source: ExtractionInput) -> bytes:
        if source.kind is SourceKind.FILE:
            try:
                return await asyncio.to_thread(Path(source.path or "").read_bytes)
            except OSError as exc:
                raise ExtractionError(
                    message=f"Failed to read file {source.path}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
        if source.kind is SourceKind.STORAGE and self._storage is not None:
            return await self._storage.read_object(source.bucket or "", source.key or "")
        raise ExtractionError(
            message=f"{self.get_provider_name()} cannot read {source.kind.value} inputs",
            provider_name=self.get_provider_name(),
        )


def decode_text(data: bytes) -> str:
    """Decode bytes as UTF-8 (BOM tolerated), falling back to Latin-1."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")
