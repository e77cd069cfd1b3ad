"""
Error types raised while creating and serving pastes.
"""


class PasteError(Exception):
    """Base exception for all paste-related errors."""

    status_code: int = 500


class IdentifierAllocationError(PasteError):
    """Raised when the random identifier could not be generated."""


class CookieParsingError(PasteError):
    """Raised when the uid cookie does not hold an integer."""

    status_code = 400


class PersistenceError(PasteError):
    """Raised when the database rejects a read or write."""


class PasteNotFoundError(PasteError):
    """Raised when no paste exists for the requested identifier."""

    status_code = 404


class PasteLockedError(PasteError):
    """Raised when a password-protected paste is requested."""

    status_code = 403
