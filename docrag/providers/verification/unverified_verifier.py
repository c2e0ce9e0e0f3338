"""Pass-through notification verifier.

Accepts every notification and says so in the logs.  It exists so the
webhook has an explicit, visible seam where a real signature check belongs;
``docrag.main`` refuses to start with it in production unless
``ALLOW_UNVERIFIED_NOTIFICATIONS=true``.
"""

from __future__ import annotations

from typing import Mapping

import structlog

from docrag.interfaces.notification_verifier import INotificationVerifier

logger = structlog.get_logger(logger_name=__name__)


class UnverifiedNotificationVerifier(INotificationVerifier):
    """Accepts all notifications without checking a signature."""

    def verify(self, headers: Mapping[str, str], body: bytes) -> bool:
        logger.warning("notification_signature_unverified", body_bytes=len(body))
        return True

    def is_enforcing(self) -> bool:
        return False

    def get_provider_name(self) -> str:
        return "unverified"
