"""
sessionkeeper.services._shared.ports
====================================

Collection of *ports* (hexagonal interfaces) that define the contracts
for credential issuing, time and the TTL key-value store.

These ports decouple the session services from concrete implementations
of token signing and storage.

Modules
-------
- :mod:`token_provider`:
    Defines :class:`~.TokenProvider` : abstraction for access credential issuing
    and verification.

- :mod:`store`:
    Defines :class:`~.StoreClient` and the tagged results
    (:class:`~.Found`, :class:`~.NotFound`, :class:`~.Ok`,
    :class:`~.Unavailable`, :class:`~.Error`).

- :mod:`clock`:
    Defines :class:`~.Clock` : wall-clock source for expiry computations.

Design Notes
------------
Concrete adapters (Redis, flask-jwt-extended) implement these interfaces
under ``sessionkeeper.infra``.
"""

from __future__ import annotations

from .clock import Clock, SystemClock
from .store import (
    Error,
    Found,
    Health,
    HealthReport,
    NotFound,
    Ok,
    StoreBatch,
    StoreClient,
    Unavailable,
)
from .token_provider import CredentialClaims, StubTokenProvider, TokenProvider

__all__ = [
    "Clock",
    "SystemClock",
    "TokenProvider",
    "StubTokenProvider",
    "CredentialClaims",
    "StoreClient",
    "StoreBatch",
    "Found",
    "NotFound",
    "Ok",
    "Unavailable",
    "Error",
    "Health",
    "HealthReport",
]
