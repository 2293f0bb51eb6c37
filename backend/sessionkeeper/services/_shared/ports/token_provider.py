from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol

from sessionkeeper.services._shared.errors import InvalidToken
from sessionkeeper.services._shared.ports.clock import Clock, SystemClock


@dataclass(frozen=True, slots=True)
class CredentialClaims:
    """
    Verified content of an access credential.

    :ivar user_id: Subject the credential was issued to.
    :ivar jti: Unique credential identifier (blacklist key).
    :ivar expires_at: Natural expiry (UTC).
    :ivar extra: Any additional claims carried by the credential.
    """

    user_id: str
    jti: str
    expires_at: datetime
    extra: dict[str, Any] = field(default_factory=dict)


class TokenProvider(Protocol):
    """Port for issuing and verifying signed access credentials."""

    def issue(
        self,
        *,
        user_id: str,
        expires_delta: timedelta,
        claims: dict[str, Any] | None = None,
    ) -> str: ...

    def verify(self, token: str) -> CredentialClaims:
        """Return the verified claims or raise :class:`InvalidToken`."""
        ...


class StubTokenProvider(TokenProvider):
    """Deterministic token provider used in unit tests."""

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock = clock or SystemClock()
        self._seq = 0
        self._issued: dict[str, CredentialClaims] = {}

    def issue(
        self,
        *,
        user_id: str,
        expires_delta: timedelta,
        claims: dict[str, Any] | None = None,
    ) -> str:
        self._seq += 1
        jti = f"jti-{self._seq}"
        token = f"access.{user_id}.{jti}"
        self._issued[token] = CredentialClaims(
            user_id=user_id,
            jti=jti,
            expires_at=self.clock.now() + expires_delta,
            extra=dict(claims or {}),
        )
        return token

    def verify(self, token: str) -> CredentialClaims:
        claims = self._issued.get(token)
        if claims is None:
            raise InvalidToken("Invalid access token.")
        if claims.expires_at <= self.clock.now():
            raise InvalidToken("Access token expired.")
        return claims
