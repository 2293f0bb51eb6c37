# sessionkeeper/services/sessions/service.py
from __future__ import annotations

import logging
from typing import Any

from sessionkeeper.services._shared.base import BaseService, ServiceContext
from sessionkeeper.services._shared.errors import InvalidToken
from sessionkeeper.services._shared.ports.clock import Clock, SystemClock
from sessionkeeper.services._shared.ports.store import HealthReport, StoreClient
from sessionkeeper.services._shared.ports.token_provider import CredentialClaims, TokenProvider
from sessionkeeper.services.sessions.blacklist import BlacklistManager
from sessionkeeper.services.sessions.common import (
    ensure_store_available,
    hash_secret,
    new_refresh_secret,
    parse_refresh_secret,
)
from sessionkeeper.services.sessions.dto import (
    LockoutStatus,
    RefreshRecord,
    SessionSettings,
    SessionTokens,
    SessionView,
)
from sessionkeeper.services.sessions.lockout import LockoutTracker
from sessionkeeper.services.sessions.rotation import RotationProtocol
from sessionkeeper.services.sessions.session_set import SessionSetManager

log = logging.getLogger(__name__)


class SessionService(BaseService):
    """
    Session lifecycle façade (issue / refresh / logout / lockout / blacklist).

    This service issues access credentials via a pluggable TokenProvider,
    keeps refresh sessions in the TTL store (bounded per user, single-use
    rotation with reuse detection) and enforces early revocation of access
    credentials through the blacklist.

    Every store failure surfaces as :class:`StoreUnavailable` (retryable); it is
    never reported as "not found" or "not blacklisted".
    """

    def __init__(
        self,
        *,
        store: StoreClient,
        token_provider: TokenProvider,
        settings: SessionSettings | None = None,
        clock: Clock | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param store: Tagged-result TTL store client.
        :param token_provider: Adapter for issuing/verifying access credentials.
        :param settings: Lifetimes, caps and lockout tunables.
        :param clock: Wall-clock source (defaults to UTC system time).
        :param ctx: Request-scoped context.
        """
        super().__init__(ctx=ctx)
        self.store = store
        self.tokens = token_provider
        self.cfg = settings or SessionSettings()
        self.clock = clock or SystemClock()

        self.sessions = SessionSetManager(store, max_sessions=self.cfg.max_sessions_per_user)
        self.blacklist = BlacklistManager(store)
        self.lockout = LockoutTracker(
            store,
            self.clock,
            threshold=self.cfg.lockout_threshold,
            cooldown=self.cfg.lockout_cooldown,
            window=self.cfg.lockout_window,
        )
        self.rotation = RotationProtocol(
            store, self.sessions, self.clock, refresh_ttl=self.cfg.refresh_ttl
        )

    # ------------------------------------------------------------------ #
    # Issue
    # ------------------------------------------------------------------ #

    def issue_session(
        self,
        user_id: str | int,
        device_info: str | None = None,
        *,
        ip_address: str | None = None,
        claims: dict[str, Any] | None = None,
    ) -> SessionTokens:
        """
        Start a new session after the caller has authenticated ``user_id``.

        The refresh record is stored (and the session set bounded) *before* any
        credential is handed out.

        :raises StoreUnavailable: If the record or the set could not be written.
        """
        uid = str(user_id)
        ensure_store_available(self.store, log, user_id=uid)

        secret = new_refresh_secret(uid)
        now = self.clock.now()
        record = RefreshRecord(
            user_id=uid,
            credential_id=hash_secret(secret),
            created_at=now,
            expires_at=now + self.cfg.refresh_ttl,
            device_info=device_info,
            ip_address=ip_address,
        )
        evicted = self.sessions.add_member(record, self.cfg.refresh_ttl)

        log.info(
            "session.issued",
            extra={"user_id": uid, "event": "issue", "count": len(evicted)},
        )
        return self._pair(uid, secret, claims)

    # ------------------------------------------------------------------ #
    # Refresh with rotation
    # ------------------------------------------------------------------ #

    def refresh(
        self,
        refresh_secret: str,
        *,
        device_info: str | None = None,
        ip_address: str | None = None,
        claims: dict[str, Any] | None = None,
    ) -> SessionTokens:
        """
        Rotate ``refresh_secret`` and emit a new credential pair.

        :raises InvalidToken: Unknown/expired secret (sign in again).
        :raises TokenReused: Superseded secret; every session of the user was revoked.
        :raises StoreUnavailable: Retryable; the presented secret is untouched.
        :raises RotationAbortedPartialWrite: Retryable; the presented secret is still valid.
        """
        result = self.rotation.rotate(
            refresh_secret, device_info=device_info, ip_address=ip_address
        )
        return self._pair(result.record.user_id, result.secret, claims)

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, access_credential: str, refresh_secret: str | None = None) -> None:
        """
        End the current session.

        The access credential is blacklisted for its remaining lifetime; the
        refresh record (when given) is deleted and dropped from the session set.
        An already-expired access credential needs no blacklist entry.

        :raises InvalidToken: If ``refresh_secret`` belongs to another user.
        """
        claims = self._verify_or_none(access_credential)
        if claims is not None:
            self.blacklist.blacklist(claims.jti, claims.expires_at - self.clock.now())

        if refresh_secret:
            owner, credential_id = parse_refresh_secret(refresh_secret)
            if claims is not None and owner != claims.user_id:
                raise InvalidToken("Refresh token does not belong to this session.")
            self.sessions.remove_member(owner, credential_id)

        log.info(
            "session.logout",
            extra={"user_id": claims.user_id if claims else None, "event": "logout"},
        )

    def logout_all(self, user_id: str | int, access_credential: str | None = None) -> int:
        """
        Revoke every refresh session of ``user_id`` (logout from all devices).

        :returns: Number of sessions revoked.
        """
        uid = str(user_id)
        if access_credential:
            claims = self._verify_or_none(access_credential)
            if claims is not None:
                self.blacklist.blacklist(claims.jti, claims.expires_at - self.clock.now())
        revoked = self.sessions.revoke_all(uid)
        log.info("session.logout_all", extra={"user_id": uid, "event": "logout", "count": revoked})
        return revoked

    def list_sessions(self, user_id: str | int) -> list[SessionView]:
        """Live sessions of ``user_id``, oldest first, without credential hashes."""
        return [
            SessionView(
                created_at=r.created_at,
                expires_at=r.expires_at,
                device_info=r.device_info,
                ip_address=r.ip_address,
            )
            for r in self.sessions.records(str(user_id))
        ]

    # ------------------------------------------------------------------ #
    # Lockout / blacklist delegation
    # ------------------------------------------------------------------ #

    def record_failed_login(self, account_id: str) -> LockoutStatus:
        return self.lockout.record_failed_login(account_id)

    def record_successful_login(self, account_id: str) -> None:
        self.lockout.record_successful_login(account_id)

    def is_locked_out(self, account_id: str) -> bool:
        return self.lockout.is_locked_out(account_id)

    def lockout_status(self, account_id: str) -> LockoutStatus:
        return self.lockout.status(account_id)

    def ensure_not_locked_out(self, account_id: str) -> None:
        self.lockout.ensure_not_locked_out(account_id)

    def is_blacklisted(self, credential_id: str) -> bool:
        return self.blacklist.is_blacklisted(credential_id)

    def health(self) -> HealthReport:
        """Live store probe."""
        return self.store.health()

    # ------------------------------------------------------------------ #
    # Utilities
    # ------------------------------------------------------------------ #

    def _pair(self, user_id: str, secret: str, claims: dict[str, Any] | None) -> SessionTokens:
        access = self.tokens.issue(
            user_id=user_id,
            expires_delta=self.cfg.access_ttl,
            claims=claims,
        )
        return SessionTokens(
            access_credential=access,
            refresh_credential=secret,
            expires_in=int(self.cfg.access_ttl.total_seconds()),
        )

    def _verify_or_none(self, access_credential: str) -> CredentialClaims | None:
        try:
            return self.tokens.verify(access_credential)
        except InvalidToken:
            log.info("session.logout_unverified_access", extra={"event": "logout"})
            return None
