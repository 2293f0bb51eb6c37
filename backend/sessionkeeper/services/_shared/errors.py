"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP directly. They serve as stable contracts between the store
adapters, the session managers and the application services.

The translation to HTTP responses (RFC 7807) is handled by
``sessionkeeper/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from datetime import datetime

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer or BaseService will later translate them to APIError.
    """

    pass


class SessionError(ServiceError):
    """
    Base class for session lifecycle failures.

    :cvar code: Stable machine-readable identifier.
    :cvar retryable: Whether the caller may retry the same request.
    """

    code = "session_error"
    retryable = False
    default_message = "Session error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


# --------------------------------------------------------------------------- #
# Terminal errors
# --------------------------------------------------------------------------- #


class InvalidToken(SessionError):
    """The presented credential does not exist, expired or is malformed."""

    code = "invalid_token"
    default_message = "Refresh token is no longer valid. Please sign in."


class TokenReused(SessionError):
    """
    A superseded refresh credential was presented again.

    Raising this error always follows revocation of the user's whole session set.

    :param user_id: Owner of the reused credential.
    """

    code = "token_reused"
    default_message = "Refresh token reuse detected. Please sign in again."

    def __init__(self, user_id: str, message: str | None = None) -> None:
        super().__init__(message)
        self.user_id = user_id


class LockedOut(SessionError):
    """
    The account is cooling down after too many failed logins.

    :param account_id: Normalized account identifier.
    :param locked_until: End of the cooldown window, when known.
    """

    code = "locked_out"
    default_message = "Account temporarily locked due to too many failed attempts."

    def __init__(self, account_id: str, locked_until: datetime | None = None) -> None:
        super().__init__()
        self.account_id = account_id
        self.locked_until = locked_until


# --------------------------------------------------------------------------- #
# Retryable errors
# --------------------------------------------------------------------------- #


class StoreUnavailable(SessionError):
    """The store could not be reached or answered with an error."""

    code = "store_unavailable"
    retryable = True
    default_message = "Session store temporarily unavailable."


class RotationAbortedPartialWrite(SessionError):
    """The new refresh record could not be confirmed; the old one is still valid."""

    code = "rotation_aborted"
    retryable = True
    default_message = "Token rotation could not be confirmed. Retry the refresh."
