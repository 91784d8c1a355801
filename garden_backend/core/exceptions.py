"""Exceptions raised by the session and garden services.

Auth failures carry the platform's error category and a user-facing message
derived from it. Garden failures propagate to the caller unchanged apart from
being mapped onto this hierarchy.
"""

from typing import Optional


class GardenBackendError(Exception):
    """Base exception for all garden backend errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class AuthError(GardenBackendError):
    """Authentication or account operation rejected.

    Attributes:
        category: Platform error category (e.g. ``email-already-in-use``), if known
    """

    def __init__(self, message: str, category: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details)
        self.category = category

    @classmethod
    def from_category(cls, category: str) -> "AuthError":
        return cls(message_from_category(category), category=category)


class NotFoundError(GardenBackendError):
    """Raised when a requested record does not exist."""

    pass


class TransientNetworkError(GardenBackendError):
    """Raised when the platform could not be reached. Never retried here."""

    pass


def message_from_category(category: str) -> str:
    """Turn an error category into a readable message.

    ``auth/email-already-in-use`` and ``email_already_in_use`` both become
    ``email already in use``.
    """
    if not category:
        return "unknown error"
    name = category.split("/", 1)[1] if "/" in category else category
    return name.replace("-", " ").replace("_", " ").strip()
