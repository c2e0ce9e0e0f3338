"""Abstract base class for cache service providers.

Used by the event adapter as the explicit dedup set of processed event ids.
Implementations may use an in-memory TTL cache or a shared backend such as
Redis when several adapter processes consume the same notifications.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for the claim set the event adapter deduplicates with.

    All operations are async so network-backed stores fit without blocking
    the event loop.  Entries expire after a time-to-live chosen by the
    implementation.
    """

    @abstractmethod
    async def add_if_absent(self, key: str, value: Any = True) -> bool:
        """Store *key* only if absent.  Returns ``True`` if it was stored.

        Lets a consumer claim an event id in one step so two concurrent
        deliveries of the same notification cannot both proceed.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key* (no-op if absent)."""
