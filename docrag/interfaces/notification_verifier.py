"""Abstract base class for storage-notification authenticity checks.

The event webhook is a trust boundary: anyone who can reach it can trigger
ingestion runs.  No signature scheme ships with docrag.  A deployment must
provide an implementation that matches its notification source before it
is exposed publicly; until then the process refuses to start in production
unless ``ALLOW_UNVERIFIED_NOTIFICATIONS`` is set explicitly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping


class INotificationVerifier(ABC):
    """Contract for authenticating an inbound notification."""

    @abstractmethod
    def verify(self, headers: Mapping[str, str], body: bytes) -> bool:
        """Return ``True`` if the notification is authentic."""

    @abstractmethod
    def is_enforcing(self) -> bool:
        """Return ``True`` if :meth:`verify` actually checks anything."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier."""
