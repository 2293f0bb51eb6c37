# sessionkeeper/services/sessions/session_set.py
from __future__ import annotations

import logging
from collections.abc import Collection
from datetime import timedelta

from sessionkeeper.services._shared.ports.store import (
    Found,
    NotFound,
    StoreBatch,
    StoreClient,
)
from sessionkeeper.services.sessions.common import expect, refresh_key, session_key
from sessionkeeper.services.sessions.dto import RefreshRecord

log = logging.getLogger(__name__)

# PTTL replies for a missing key and for a key without expiry
_MISSING = -2
_NO_EXPIRY = -1


class SessionSetManager:
    """
    Bounded, ordered set of live refresh credential ids per user.

    The set is a Redis sorted set scored by each member's recorded creation
    time, so "oldest" always means "created first". Its TTL is re-derived from
    the members after every mutation: it never expires before a member it still
    tracks and never outlives all of them.

    Every store failure raises :class:`StoreUnavailable`; callers must not report
    success over a set they could not bring back into shape.
    """

    def __init__(self, store: StoreClient, *, max_sessions: int) -> None:
        """
        :param store: Tagged-result store client.
        :param max_sessions: ``MAX_SESSIONS_PER_USER``.
        """
        self.store = store
        self.max_sessions = max_sessions

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def _rows(self, user_id: str) -> list[tuple[str, float]]:
        result = expect(self.store.set_members(session_key(user_id)), "session_set.members")
        if isinstance(result, NotFound):
            return []
        return list(result.value)

    def members(self, user_id: str) -> list[str]:
        """Credential ids ordered oldest first."""
        return [member for member, _ in self._rows(user_id)]

    def records(self, user_id: str) -> list[RefreshRecord]:
        """Live refresh records of ``user_id``, oldest first; vanished members are skipped."""
        out: list[RefreshRecord] = []
        for credential_id in self.members(user_id):
            result = expect(
                self.store.get(refresh_key(user_id, credential_id)), "session_set.record"
            )
            if isinstance(result, Found):
                out.append(RefreshRecord.from_json(result.value))
        return out

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def add_member(
        self,
        record: RefreshRecord,
        ttl: timedelta,
        *,
        exclude: Collection[str] = (),
    ) -> list[str]:
        """
        Persist ``record`` and track it in its owner's set, then bound the set.

        The record write and the set insert go out as one checked batch. The
        member score is the creation time, bumped past the newest member when
        timestamps collide so issue order always decides eviction.

        :param record: New refresh record.
        :param ttl: Record lifetime.
        :param exclude: Members neither counted nor evicted by the cap (the
            credential a rotation is about to supersede).
        :returns: Evicted credential ids.
        """
        score = self._next_score(record)
        batch = (
            StoreBatch()
            .set_with_ttl(refresh_key(record.user_id, record.credential_id), record.to_json(), ttl)
            .set_add(session_key(record.user_id), record.credential_id, score)
        )
        expect(self.store.execute(batch), "session_set.add")
        evicted = self.enforce_cap(record.user_id, exclude=exclude)
        self.resync_ttl(record.user_id)
        return evicted

    def _next_score(self, record: RefreshRecord) -> float:
        rows = self._rows(record.user_id)
        if rows and rows[-1][1] >= record.created_score:
            return rows[-1][1] + 1
        return record.created_score

    def remove_member(self, user_id: str, credential_id: str, *, delete_record: bool = True) -> None:
        """Drop ``credential_id`` from the set (and its record), then resync the TTL."""
        batch = StoreBatch()
        if delete_record:
            batch.delete(refresh_key(user_id, credential_id))
        batch.set_remove(session_key(user_id), credential_id)
        expect(self.store.execute(batch), "session_set.remove")
        self.resync_ttl(user_id)

    def enforce_cap(self, user_id: str, *, exclude: Collection[str] = ()) -> list[str]:
        """
        Evict the oldest members until at most ``max_sessions`` remain.

        Eviction deletes both the record and the membership.

        :returns: Evicted credential ids, oldest first.
        """
        counted = [(member, score) for member, score in self._rows(user_id) if member not in exclude]
        overflow = len(counted) - self.max_sessions
        if overflow <= 0:
            return []

        victims = [member for member, _ in sorted(counted, key=lambda row: row[1])[:overflow]]
        batch = StoreBatch()
        for member in victims:
            batch.delete(refresh_key(user_id, member))
        batch.set_remove(session_key(user_id), *victims)
        expect(self.store.execute(batch), "session_set.evict")

        log.info(
            "session.evicted",
            extra={"user_id": user_id, "event": "evict", "count": len(victims)},
        )
        return victims

    def resync_ttl(self, user_id: str) -> timedelta | None:
        """
        Reapply the set TTL as the longest remaining member TTL.

        Members whose record is gone are pruned; an empty set is deleted. A
        member whose record never expires keeps the set persistent.

        :returns: The applied TTL, or ``None`` when the set was deleted or made
            persistent.
        """
        key = session_key(user_id)
        members = self.members(user_id)
        if not members:
            expect(self.store.delete(key), "session_set.drop")
            return None

        batch = StoreBatch()
        for member in members:
            batch.ttl(refresh_key(user_id, member))
        replies = expect(self.store.execute(batch), "session_set.ttl").value

        stale = [m for m, pttl in zip(members, replies, strict=True) if int(pttl) == _MISSING]
        live = [int(pttl) for pttl in replies if int(pttl) >= 0]
        unbounded = any(int(pttl) == _NO_EXPIRY for pttl in replies)
        if stale:
            expect(self.store.set_remove(key, *stale), "session_set.prune")
        if unbounded:
            expect(self.store.execute(StoreBatch().persist(key)), "session_set.persist")
            return None
        if not live:
            expect(self.store.delete(key), "session_set.drop")
            return None

        longest = timedelta(milliseconds=max(live))
        expect(self.store.expire(key, longest), "session_set.expire")
        return longest

    def revoke_all(self, user_id: str) -> int:
        """Delete every tracked record and the set itself. :returns: Members revoked."""
        members = self.members(user_id)
        batch = StoreBatch()
        for member in members:
            batch.delete(refresh_key(user_id, member))
        batch.delete(session_key(user_id))
        expect(self.store.execute(batch), "session_set.revoke_all")
        return len(members)
