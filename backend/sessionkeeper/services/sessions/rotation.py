# sessionkeeper/services/sessions/rotation.py
"""
Single-use, loss-safe refresh credential rotation.

The protocol never relies on store transactions. Correctness under partial
execution and arbitrary interleaving comes from the ordering alone:

``VALIDATING → STORING_NEW → VERIFYING_NEW → DELETING_OLD → DONE``

- The new record is written (and read back) before anything about the old
  record is touched, so an abort at any earlier step leaves the old secret
  fully valid.
- Completing a rotation claims a *supersede marker* for the old credential
  with ``SET NX``. A later presentation of that secret, or a concurrent
  rotation that loses the claim, is a reuse event: the user's whole session
  set is revoked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from sessionkeeper.services._shared.errors import (
    InvalidToken,
    RotationAbortedPartialWrite,
    StoreUnavailable,
    TokenReused,
)
from sessionkeeper.services._shared.ports.clock import Clock
from sessionkeeper.services._shared.ports.store import (
    ClaimResult,
    Found,
    NotFound,
    Ok,
    StoreClient,
    Unavailable,
)
from sessionkeeper.services.sessions.common import (
    ensure_store_available,
    expect,
    hash_secret,
    new_refresh_secret,
    parse_refresh_secret,
    refresh_key,
    superseded_key,
)
from sessionkeeper.services.sessions.dto import RefreshRecord
from sessionkeeper.services.sessions.session_set import SessionSetManager

log = logging.getLogger(__name__)

_MIN_MARKER_TTL = timedelta(seconds=1)
_CLAIM_ATTEMPTS = 2


class RotationState(str, Enum):
    VALIDATING = "validating"
    STORING_NEW = "storing_new"
    VERIFYING_NEW = "verifying_new"
    DELETING_OLD = "deleting_old"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(slots=True)
class RotationResult:
    """
    Outcome of a completed rotation.

    :ivar secret: New refresh secret (returned to the client once).
    :ivar record: Stored record for ``secret``.
    :ivar trail: States visited, in order.
    """

    secret: str
    record: RefreshRecord
    trail: list[RotationState] = field(default_factory=list)


class RotationProtocol:
    """Run the rotation state machine against the store."""

    def __init__(
        self,
        store: StoreClient,
        sessions: SessionSetManager,
        clock: Clock,
        *,
        refresh_ttl: timedelta,
    ) -> None:
        self.store = store
        self.sessions = sessions
        self.clock = clock
        self.refresh_ttl = refresh_ttl

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    def rotate(
        self,
        presented_secret: str,
        *,
        device_info: str | None = None,
        ip_address: str | None = None,
        trail: list[RotationState] | None = None,
    ) -> RotationResult:
        """
        Replace ``presented_secret`` with a new refresh secret.

        :param trail: Optional list receiving every state entered, including
            ``ABORTED`` when the protocol stops early.
        :raises InvalidToken: Unknown, expired or malformed secret (terminal).
        :raises TokenReused: Superseded secret; the session set was revoked.
        :raises StoreUnavailable: Store unreachable before the new record was confirmed.
        :raises RotationAbortedPartialWrite: New record unconfirmed; old secret still valid.
        """
        trail = trail if trail is not None else []
        try:
            return self._run(presented_secret, device_info, ip_address, trail)
        except (InvalidToken, TokenReused, StoreUnavailable, RotationAbortedPartialWrite):
            trail.append(RotationState.ABORTED)
            raise

    def _run(
        self,
        presented_secret: str,
        device_info: str | None,
        ip_address: str | None,
        trail: list[RotationState],
    ) -> RotationResult:
        # 1) Validate the presented secret
        trail.append(RotationState.VALIDATING)
        user_id, old_id = parse_refresh_secret(presented_secret)
        ensure_store_available(self.store, log, user_id=user_id)
        old, old_ttl = self._validate(user_id, old_id)

        # 2) Store the new record; the old one stays untouched
        trail.append(RotationState.STORING_NEW)
        new_secret = new_refresh_secret(user_id)
        now = self.clock.now()
        new = RefreshRecord(
            user_id=user_id,
            credential_id=hash_secret(new_secret),
            created_at=now,
            expires_at=now + self.refresh_ttl,
            device_info=device_info or old.device_info,
            ip_address=ip_address or old.ip_address,
        )
        try:
            self.sessions.add_member(new, self.refresh_ttl, exclude={old_id})
        except StoreUnavailable:
            log.warning(
                "session.rotation_store_failed",
                extra={"user_id": user_id, "state": RotationState.STORING_NEW.value},
            )
            self._discard(new)
            raise

        # 3) Read the new record back before trusting the write
        trail.append(RotationState.VERIFYING_NEW)
        check = self.store.get(refresh_key(user_id, new.credential_id))
        if not isinstance(check, Found):
            log.warning(
                "session.rotation_unconfirmed",
                extra={
                    "user_id": user_id,
                    "state": RotationState.VERIFYING_NEW.value,
                    "detail": type(check).__name__,
                },
            )
            self._discard(new)
            raise RotationAbortedPartialWrite()

        # 4) Supersede the old credential
        trail.append(RotationState.DELETING_OLD)
        self._supersede(old, old_ttl, new)

        trail.append(RotationState.DONE)
        log.info("session.rotated", extra={"user_id": user_id, "state": RotationState.DONE.value})
        return RotationResult(secret=new_secret, record=new, trail=trail)

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    def _validate(self, user_id: str, credential_id: str) -> tuple[RefreshRecord, timedelta]:
        self._check_superseded(user_id, credential_id)

        result = expect(self.store.get(refresh_key(user_id, credential_id)), "rotation.lookup")
        if isinstance(result, NotFound):
            # The marker is claimed before the old record is deleted, so a
            # rotation that finished between the two reads is visible now.
            self._check_superseded(user_id, credential_id)
            raise InvalidToken()

        record = RefreshRecord.from_json(result.value)
        now = self.clock.now()
        if record.expires_at <= now:
            raise InvalidToken("Refresh token expired. Please sign in.")
        remaining = result.ttl if result.ttl is not None else record.expires_at - now
        return record, remaining

    def _check_superseded(self, user_id: str, credential_id: str) -> None:
        marker = expect(
            self.store.get(superseded_key(user_id, credential_id)), "rotation.marker"
        )
        if isinstance(marker, Found):
            self.handle_reuse(user_id)

    def _claim(self, old: RefreshRecord, old_ttl: timedelta, new: RefreshRecord) -> ClaimResult:
        """
        Claim the supersede marker for ``old`` on behalf of ``new``.

        A failed claim is retried: the first attempt may have landed even though
        its reply was lost, in which case the marker already names ``new``.

        :returns: :class:`Ok` when this rotation holds the marker, :class:`Found`
            when a concurrent rotation does, or the last store failure.
        """
        key = superseded_key(old.user_id, old.credential_id)
        marker_ttl = max(old_ttl, _MIN_MARKER_TTL)
        claim: ClaimResult = Unavailable("not attempted")
        for _ in range(_CLAIM_ATTEMPTS):
            claim = self.store.set_if_absent(key, new.credential_id, marker_ttl)
            if isinstance(claim, Found) and claim.value == new.credential_id:
                return Ok(True)
            if isinstance(claim, Ok | Found):
                return claim
        return claim

    def _supersede(self, old: RefreshRecord, old_ttl: timedelta, new: RefreshRecord) -> None:
        """
        Claim the supersede marker, then drop the old record.

        Losing the claim means a concurrent rotation of the same secret already
        won: this call is treated as reuse. Store failures past this point are
        logged only; the new record is confirmed, and the old record is still
        deleted so its secret can never be rotated a second time.
        """
        claim = self._claim(old, old_ttl, new)
        if isinstance(claim, Found):
            self.handle_reuse(old.user_id)
        if not isinstance(claim, Ok):
            log.error(
                "session.supersede_marker_failed",
                extra={"user_id": old.user_id, "state": RotationState.DELETING_OLD.value},
            )

        try:
            self.sessions.remove_member(old.user_id, old.credential_id)
        except StoreUnavailable:
            log.error(
                "session.delete_old_failed",
                extra={"user_id": old.user_id, "state": RotationState.DELETING_OLD.value},
            )

    def _discard(self, record: RefreshRecord) -> None:
        """Best-effort removal of a new record whose secret never left the process."""
        try:
            self.sessions.remove_member(record.user_id, record.credential_id)
        except StoreUnavailable:
            log.warning(
                "session.discard_failed",
                extra={"user_id": record.user_id, "state": RotationState.ABORTED.value},
            )

    def handle_reuse(self, user_id: str) -> None:
        """
        React to a reused refresh credential: revoke every session of ``user_id``.

        :raises TokenReused: Always, once the session set is revoked.
        :raises StoreUnavailable: If the revocation itself could not complete.
        """
        log.warning(
            "session.token_reused",
            extra={"user_id": user_id, "event": "token_reused"},
        )
        try:
            revoked = self.sessions.revoke_all(user_id)
        except StoreUnavailable:
            log.error("session.reuse_revocation_failed", extra={"user_id": user_id})
            raise
        log.warning(
            "session.revoked_all",
            extra={"user_id": user_id, "event": "token_reused", "count": revoked},
        )
        raise TokenReused(user_id)


__all__ = ["RotationProtocol", "RotationResult", "RotationState"]
