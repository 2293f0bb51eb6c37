"""Key layout, secret handling and store-result checks shared by the session managers."""

from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Any, TypeVar

from sessionkeeper.services._shared.errors import InvalidToken, StoreUnavailable
from sessionkeeper.services._shared.ports.store import (
    Error,
    Health,
    HealthReport,
    StoreClient,
    Unavailable,
)

T = TypeVar("T")

# Redis key prefixes
REFRESH_PREFIX = "rt:"
SUPERSEDED_PREFIX = "rtsup:"
SESSION_PREFIX = "sess:"
BLACKLIST_PREFIX = "bl:"
LOCKOUT_PREFIX = "lock:"
LOCKOUT_TIME_PREFIX = "locktime:"

SECRET_BYTES = 64


def refresh_key(user_id: str, credential_id: str) -> str:
    return f"{REFRESH_PREFIX}{user_id}:{credential_id}"


def superseded_key(user_id: str, credential_id: str) -> str:
    return f"{SUPERSEDED_PREFIX}{user_id}:{credential_id}"


def session_key(user_id: str) -> str:
    return f"{SESSION_PREFIX}{user_id}"


def blacklist_key(credential_id: str) -> str:
    return f"{BLACKLIST_PREFIX}{credential_id}"


def lockout_keys(account_id: str) -> tuple[str, str]:
    """Return ``(counter_key, locked_until_key)`` for a normalized account."""
    return f"{LOCKOUT_PREFIX}{account_id}", f"{LOCKOUT_TIME_PREFIX}{account_id}"


def normalize_account(account_id: str) -> str:
    return account_id.strip().lower()


def hash_secret(secret: str) -> str:
    """Hash a refresh secret; raw secrets are never stored."""
    return hashlib.sha256(secret.encode()).hexdigest()


def new_refresh_secret(user_id: str) -> str:
    """
    Generate a high-entropy refresh secret for ``user_id``.

    Format: ``{user_id}.{token}``. The prefix only routes the lookup; the stored
    credential id hashes the whole string.
    """
    return f"{user_id}.{secrets.token_urlsafe(SECRET_BYTES)}"


def parse_refresh_secret(secret: str) -> tuple[str, str]:
    """
    Split a presented secret into ``(user_id, credential_id)``.

    :raises InvalidToken: If the secret is malformed.
    """
    user_id, sep, token = (secret or "").rpartition(".")
    if not sep or not user_id or not token:
        raise InvalidToken("Malformed refresh token.")
    return user_id, hash_secret(secret)


def expect(result: T | Unavailable | Error, op: str) -> T:
    """
    Return ``result`` unless it is a store failure.

    :raises StoreUnavailable: On :class:`Unavailable` or :class:`Error`.
    """
    if isinstance(result, Unavailable | Error):
        raise StoreUnavailable(f"{op} failed: {result.reason}")
    return result


def ensure_store_available(store: StoreClient, log: logging.Logger, **context: Any) -> HealthReport:
    """
    Probe the store live right before a write sequence.

    :raises StoreUnavailable: When the probe fails.
    """
    report = store.health()
    if report.status is Health.UNAVAILABLE:
        raise StoreUnavailable(f"store health probe failed: {report.detail}")
    if report.status is Health.DEGRADED:
        log.warning("store.degraded_write", extra={**context, "latency_ms": report.latency_ms})
    return report
