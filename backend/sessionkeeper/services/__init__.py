"""Service layer public API.

This package exposes the essential building blocks for the service layer so that
callers can import from :mod:`sessionkeeper.services` without knowing internal structure.

Re-exports
----------
- Base primitives (from ``sessionkeeper.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Session service (from ``sessionkeeper.services.sessions``)
    * :class:`SessionService`
    * DTOs: :class:`SessionSettings`, :class:`SessionTokens`, :class:`SessionView`,
      :class:`LockoutStatus`
"""

from __future__ import annotations

from ._shared.base import BaseService, ServiceContext
from .sessions import (
    LockoutStatus,
    SessionService,
    SessionSettings,
    SessionTokens,
    SessionView,
)

__all__ = [
    "BaseService",
    "ServiceContext",
    "SessionService",
    "SessionSettings",
    "SessionTokens",
    "SessionView",
    "LockoutStatus",
]
