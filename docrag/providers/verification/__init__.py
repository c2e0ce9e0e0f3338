from docrag.providers.verification.unverified_verifier import UnverifiedNotificationVerifier

__all__ = ["UnverifiedNotificationVerifier"]
