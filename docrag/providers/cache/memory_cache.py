"""In-memory cache provider using cachetools.TTLCache.

Backs the event adapter's dedup set in single-process deployments.  Swap for
a shared backend via :class:`ICacheProvider` when several workers consume
the same notification stream.
"""

from __future__ import annotations

import threading
from typing import Any

import structlog
from cachetools import TTLCache

from docrag.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Time-to-live in seconds for every entry.
    """

    def __init__(self, max_size: int = 1000, ttl: float = 3600) -> None:
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)
        # TTLCache is not thread-safe; handlers may run in a threadpool.
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def add_if_absent(self, key: str, value: Any = True) -> bool:
        with self._lock:
            if key in self._cache:
                logger.debug("cache_claim_held", key=key)
                return False
            self._cache[key] = value
        logger.debug("cache_claimed", key=key)
        return True

    async def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)
