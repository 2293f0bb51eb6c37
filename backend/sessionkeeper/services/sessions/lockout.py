from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sessionkeeper.services._shared.errors import LockedOut
from sessionkeeper.services._shared.ports.clock import Clock
from sessionkeeper.services._shared.ports.store import Found, NotFound, StoreBatch, StoreClient
from sessionkeeper.services.sessions.common import expect, lockout_keys, normalize_account
from sessionkeeper.services.sessions.dto import LockoutStatus

log = logging.getLogger(__name__)


class LockoutTracker:
    """
    Failed-login counters and cooldown windows per account identifier.

    The counter lives in a rolling window; once it reaches the threshold a
    ``locked_until`` marker is written with the cooldown as its TTL.
    """

    def __init__(
        self,
        store: StoreClient,
        clock: Clock,
        *,
        threshold: int,
        cooldown: timedelta,
        window: timedelta,
    ) -> None:
        self.store = store
        self.clock = clock
        self.threshold = threshold
        self.cooldown = cooldown
        self.window = window

    def _locked_until(self, lock_time_key: str) -> datetime | None:
        result = expect(self.store.get(lock_time_key), "lockout.marker")
        if isinstance(result, NotFound):
            return None
        return datetime.fromisoformat(result.value)

    def _locked_status(self, locked_until: datetime) -> LockoutStatus:
        return LockoutStatus(
            is_locked=True,
            failed_attempts=self.threshold,
            remaining_attempts=0,
            locked_until=locked_until,
        )

    def record_failed_login(self, account_id: str) -> LockoutStatus:
        """Count one failure; engage the lock once the threshold is reached."""
        account = normalize_account(account_id)
        counter_key, lock_time_key = lockout_keys(account)

        locked_until = self._locked_until(lock_time_key)
        if locked_until is not None:
            return self._locked_status(locked_until)

        result = expect(self.store.increment(counter_key, self.window), "lockout.increment")
        attempts = int(result.value)

        if attempts >= self.threshold:
            locked_until = self.clock.now() + self.cooldown
            # the counter restarts from zero once the cooldown ends
            batch = (
                StoreBatch()
                .set_with_ttl(lock_time_key, locked_until.isoformat(), self.cooldown)
                .delete(counter_key)
            )
            expect(self.store.execute(batch), "lockout.lock")
            log.warning(
                "account.locked",
                extra={"event": "lockout", "count": attempts},
            )
            return LockoutStatus(
                is_locked=True,
                failed_attempts=attempts,
                remaining_attempts=0,
                locked_until=locked_until,
            )

        return LockoutStatus(
            is_locked=False,
            failed_attempts=attempts,
            remaining_attempts=self.threshold - attempts,
        )

    def record_successful_login(self, account_id: str) -> None:
        """Clear both the counter and the cooldown marker."""
        expect(self.store.delete(*lockout_keys(normalize_account(account_id))), "lockout.clear")

    def is_locked_out(self, account_id: str) -> bool:
        _, lock_time_key = lockout_keys(normalize_account(account_id))
        result = expect(self.store.get(lock_time_key), "lockout.marker")
        return isinstance(result, Found)

    def status(self, account_id: str) -> LockoutStatus:
        counter_key, lock_time_key = lockout_keys(normalize_account(account_id))
        locked_until = self._locked_until(lock_time_key)
        if locked_until is not None:
            return self._locked_status(locked_until)

        result = expect(self.store.get(counter_key), "lockout.counter")
        attempts = int(result.value) if isinstance(result, Found) else 0
        return LockoutStatus(
            is_locked=False,
            failed_attempts=attempts,
            remaining_attempts=max(0, self.threshold - attempts),
        )

    def ensure_not_locked_out(self, account_id: str) -> None:
        """:raises LockedOut: While the cooldown marker is present."""
        account = normalize_account(account_id)
        locked_until = self._locked_until(lockout_keys(account)[1])
        if locked_until is not None:
            raise LockedOut(account, locked_until)
