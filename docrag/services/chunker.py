"""Fixed-window text chunking with overlap.

Splits extracted text into windows of ``chunk_size`` characters, each
starting ``chunk_size - overlap`` characters after the previous one, so
consecutive chunks share ``overlap`` characters of context.  A sentence that
straddles a boundary is therefore whole in at least one chunk as long as it
is shorter than the overlap.

Window count for a text of length ``n``::

    n <= chunk_size  ->  1
    otherwise        ->  ceil((n - overlap) / (chunk_size - overlap))

The last window may be shorter than ``chunk_size``.  Character windows keep
the count a pure function of the text length, which the ingestion pipeline
relies on for deterministic record ids across retries.
"""

from __future__ import annotations

import math
from typing import NamedTuple

import structlog

from docrag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class TextChunk(NamedTuple):
    index: int
    text: str
    start: int
    end: int


class TextChunker:
    """Splits text into overlapping fixed-size character windows.

    Parameters
    ----------
    chunk_size:
        Window length in characters.  Must be positive.
    overlap:
        Characters shared by consecutive windows.  Must be in
        ``[0, chunk_size)``.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ConfigurationError(message=f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0 or overlap >= chunk_size:
            raise ConfigurationError(
                message=f"overlap must be in [0, {chunk_size}), got {overlap}"
            )
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def window_count(self, length: int) -> int:
        """Return how many windows :meth:`chunk` produces for *length* characters."""
        if length <= 0:
            return 0
        if length <= self._chunk_size:
            return 1
        step = self._chunk_size - self._overlap
        return math.ceil((length - self._overlap) / step)

    def chunk(self, text: str) -> list[TextChunk]:
        """Split *text* into windows.  Blank input returns an empty list."""
        if not text or not text.strip():
            return []

        step = self._chunk_size - self._overlap
        count = self.window_count(len(text))
        chunks = []
        for index in range(count):
            start = index * step
            end = min(start + self._chunk_size, len(text))
            chunks.append(TextChunk(index=index, text=text[start:end], start=start, end=end))

        logger.debug(
            "text_chunked",
            chars=len(text),
            chunks=len(chunks),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks
