from __future__ import annotations

import logging
from datetime import timedelta

from sessionkeeper.services._shared.ports.store import Found, StoreClient
from sessionkeeper.services.sessions.common import blacklist_key, expect

log = logging.getLogger(__name__)


class BlacklistManager:
    """
    Deny-list for **access credentials** by identifier (jti).

    Entries live exactly as long as the credential would have: a naturally
    expired credential needs no entry.
    """

    def __init__(self, store: StoreClient) -> None:
        self.store = store

    def blacklist(self, credential_id: str, remaining_lifetime: timedelta) -> bool:
        """
        Reject ``credential_id`` until its natural expiry.

        :returns: ``False`` when the credential had already expired (no entry written).
        :raises StoreUnavailable: If the marker could not be written.
        """
        if remaining_lifetime <= timedelta(0):
            return False
        # small marker with TTL; idempotent
        expect(
            self.store.set_with_ttl(blacklist_key(credential_id), "1", remaining_lifetime),
            "blacklist.add",
        )
        log.info("credential.blacklisted", extra={"event": "blacklist"})
        return True

    def is_blacklisted(self, credential_id: str) -> bool:
        """
        :raises StoreUnavailable: If the check cannot be answered (never fails open).
        """
        result = expect(self.store.get(blacklist_key(credential_id)), "blacklist.check")
        return isinstance(result, Found)
