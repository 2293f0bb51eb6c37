# sessionkeeper/services/sessions/dto.py
from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

# ---------------------------- Stored records ------------------------------ #


@dataclass(frozen=True, slots=True)
class RefreshRecord:
    """
    Server-side state of one issued refresh secret.

    :param user_id: Owner of the session.
    :type user_id: str
    :param credential_id: SHA-256 hex digest of the refresh secret.
    :type credential_id: str
    :param created_at: Issue time (UTC); orders the session set.
    :type created_at: datetime
    :param expires_at: Absolute expiry (UTC).
    :type expires_at: datetime
    :param device_info: Optional client description (user agent).
    :type device_info: str | None
    :param ip_address: Optional client address at issue time.
    :type ip_address: str | None
    """

    user_id: str
    credential_id: str
    created_at: datetime
    expires_at: datetime
    device_info: str | None = None
    ip_address: str | None = None

    def to_json(self) -> str:
        return json.dumps(
            {
                "user_id": self.user_id,
                "credential_id": self.credential_id,
                "created_at": self.created_at.isoformat(),
                "expires_at": self.expires_at.isoformat(),
                "device_info": self.device_info,
                "ip_address": self.ip_address,
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> RefreshRecord:
        data: dict[str, Any] = json.loads(raw)
        return cls(
            user_id=str(data["user_id"]),
            credential_id=str(data["credential_id"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            device_info=data.get("device_info"),
            ip_address=data.get("ip_address"),
        )

    @property
    def created_score(self) -> float:
        """Session-set score: creation time in epoch milliseconds."""
        return self.created_at.timestamp() * 1000


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class SessionTokens:
    """
    Credential pair handed to the client.

    :param access_credential: Signed short-lived access credential.
    :type access_credential: str
    :param refresh_credential: Opaque single-use refresh secret.
    :type refresh_credential: str
    :param expires_in: Access credential lifetime in seconds.
    :type expires_in: int
    """

    access_credential: str
    refresh_credential: str
    expires_in: int


@dataclass(frozen=True, slots=True)
class SessionView:
    """Public view of a live session (no credential hashes)."""

    created_at: datetime
    expires_at: datetime
    device_info: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True, slots=True)
class LockoutStatus:
    """
    Failed-login bookkeeping for one account.

    :param is_locked: Whether the cooldown marker is present.
    :param failed_attempts: Failures counted in the current window.
    :param remaining_attempts: Failures left before the lock engages.
    :param locked_until: End of the cooldown, when locked.
    """

    is_locked: bool
    failed_attempts: int
    remaining_attempts: int
    locked_until: datetime | None = None


# ------------------------------ Settings ---------------------------------- #


@dataclass(frozen=True, slots=True)
class SessionSettings:
    """
    Tunables for the session subsystem.

    :param refresh_ttl: Refresh record lifetime.
    :param access_ttl: Access credential lifetime.
    :param max_sessions_per_user: Session set cap.
    :param lockout_threshold: Failures that engage the lock.
    :param lockout_cooldown: Lock duration.
    :param lockout_window: Rolling window of the failure counter.
    :param store_op_timeout: Per-command store timeout (seconds).
    :param store_degraded_latency: Ping latency (seconds) reported as degraded.
    """

    refresh_ttl: timedelta = timedelta(days=7)
    access_ttl: timedelta = timedelta(minutes=15)
    max_sessions_per_user: int = 5
    lockout_threshold: int = 5
    lockout_cooldown: timedelta = timedelta(minutes=15)
    lockout_window: timedelta = timedelta(minutes=15)
    store_op_timeout: float = 2.0
    store_degraded_latency: float = 0.25

    def __post_init__(self) -> None:
        if self.max_sessions_per_user < 1:
            raise ValueError("MAX_SESSIONS_PER_USER must be at least 1")
        if self.lockout_threshold < 1:
            raise ValueError("LOCKOUT_THRESHOLD must be at least 1")

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> SessionSettings:
        """Build settings from a Flask-style config mapping (durations in seconds)."""
        defaults = cls()

        def _seconds(name: str, default: timedelta) -> timedelta:
            value = cfg.get(name)
            return default if value is None else timedelta(seconds=float(value))

        return cls(
            refresh_ttl=_seconds("REFRESH_TTL", defaults.refresh_ttl),
            access_ttl=_seconds("ACCESS_TTL", defaults.access_ttl),
            max_sessions_per_user=int(
                cfg.get("MAX_SESSIONS_PER_USER", defaults.max_sessions_per_user)
            ),
            lockout_threshold=int(cfg.get("LOCKOUT_THRESHOLD", defaults.lockout_threshold)),
            lockout_cooldown=_seconds("LOCKOUT_COOLDOWN", defaults.lockout_cooldown),
            lockout_window=_seconds("LOCKOUT_WINDOW", defaults.lockout_window),
            store_op_timeout=float(cfg.get("STORE_OP_TIMEOUT", defaults.store_op_timeout)),
            store_degraded_latency=float(
                cfg.get("STORE_DEGRADED_LATENCY", defaults.store_degraded_latency)
            ),
        )
