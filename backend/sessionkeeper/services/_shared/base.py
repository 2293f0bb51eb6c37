# sessionkeeper/services/_shared/base.py
from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus

from sessionkeeper.core import errors as api_errors
from sessionkeeper.services._shared.errors import (
    InvalidToken,
    LockedOut,
    ServiceError,
    SessionError,
    TokenReused,
)

# Seconds a client should wait before retrying a retryable failure
RETRY_AFTER_SECONDS = 1


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data (auth, request ids, etc.).

    :param actor_id: Authenticated user identifier.
    :param request_id: Correlation id for logging/tracing.
    """

    actor_id: str | None = None
    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Carry the request-scoped :class:`ServiceContext`.
    * Centralize error translation to the API layer.
    * Keep services thin, orchestration-only, no web leakage.
    """

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        """
        Initialize the base service.

        :param ctx: Optional request-scoped context (auth, tracing).
        :type ctx: ServiceContext | None
        """
        self.ctx = ctx or ServiceContext()

    # -------------------------- Error handling ------------------------------

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, LockedOut):
            # → 423 Locked
            until = exc.locked_until.isoformat() if exc.locked_until else None
            return api_errors.APIError(
                message=exc.message,
                status_code=HTTPStatus.LOCKED,
                code=exc.code,
                details={"locked_until": until, "retryable": False},
            )

        if isinstance(exc, InvalidToken | TokenReused):
            # → 401 Unauthorized, client must sign in again
            return api_errors.APIError(
                message=exc.message,
                status_code=HTTPStatus.UNAUTHORIZED,
                code=exc.code,
                details={"retryable": False},
            )

        if isinstance(exc, SessionError) and exc.retryable:
            # → 503 with Retry-After
            return api_errors.APIError(
                message=exc.message,
                status_code=HTTPStatus.SERVICE_UNAVAILABLE,
                code=exc.code,
                details={"retryable": True},
                headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
            )

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=400,
                code="bad_request",
            )

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
