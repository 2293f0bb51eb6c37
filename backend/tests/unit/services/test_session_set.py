# tests/unit/services/test_session_set.py
"""
Unit tests for SessionSetManager on fakeredis:
- insertion order by creation time (ties keep issue order)
- cap enforcement (oldest evicted, excluded members untouched)
- set TTL resync, stale-member pruning and members without expiry
- bulk revocation
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sessionkeeper.services._shared.errors import StoreUnavailable
from sessionkeeper.services.sessions.common import refresh_key, session_key
from sessionkeeper.services.sessions.dto import RefreshRecord
from sessionkeeper.services.sessions.session_set import SessionSetManager

TTL = timedelta(hours=1)


@pytest.fixture()
def sessions(flaky) -> SessionSetManager:
    return SessionSetManager(flaky, max_sessions=3)


def _record(clock, user: str, cid: str) -> RefreshRecord:
    clock.advance(timedelta(seconds=1))
    now = clock.now()
    return RefreshRecord(user_id=user, credential_id=cid, created_at=now, expires_at=now + TTL)


def test_members_are_ordered_oldest_first(sessions, clock):
    for cid in ("a", "b", "c"):
        sessions.add_member(_record(clock, "u1", cid), TTL)

    assert sessions.members("u1") == ["a", "b", "c"]
    assert [r.credential_id for r in sessions.records("u1")] == ["a", "b", "c"]


def test_cap_evicts_oldest_record_and_membership(sessions, clock, fake_redis):
    for cid in ("a", "b", "c"):
        sessions.add_member(_record(clock, "u1", cid), TTL)

    evicted = sessions.add_member(_record(clock, "u1", "d"), TTL)

    assert evicted == ["a"]
    assert sessions.members("u1") == ["b", "c", "d"]
    assert fake_redis.exists(refresh_key("u1", "a")) == 0


def test_excluded_member_is_not_counted_or_evicted(sessions, clock):
    for cid in ("a", "b", "c"):
        sessions.add_member(_record(clock, "u1", cid), TTL)

    evicted = sessions.add_member(_record(clock, "u1", "d"), TTL, exclude={"a"})

    assert evicted == []
    assert sessions.members("u1") == ["a", "b", "c", "d"]


def test_set_ttl_follows_longest_member(sessions, clock, fake_redis):
    sessions.add_member(_record(clock, "u1", "short"), timedelta(minutes=5))
    sessions.add_member(_record(clock, "u1", "long"), timedelta(minutes=50))

    pttl = fake_redis.pttl(session_key("u1"))
    assert timedelta(minutes=49) < timedelta(milliseconds=pttl) <= timedelta(minutes=50)


def test_resync_prunes_members_whose_record_vanished(sessions, clock, fake_redis):
    sessions.add_member(_record(clock, "u1", "a"), TTL)
    sessions.add_member(_record(clock, "u1", "b"), TTL)
    fake_redis.delete(refresh_key("u1", "a"))

    sessions.resync_ttl("u1")

    assert sessions.members("u1") == ["b"]


def test_removing_last_member_drops_the_set(sessions, clock, fake_redis):
    sessions.add_member(_record(clock, "u1", "a"), TTL)

    sessions.remove_member("u1", "a")

    assert fake_redis.exists(session_key("u1")) == 0
    assert fake_redis.exists(refresh_key("u1", "a")) == 0


def test_revoke_all_deletes_every_record(sessions, clock, fake_redis):
    for cid in ("a", "b"):
        sessions.add_member(_record(clock, "u1", cid), TTL)
    sessions.add_member(_record(clock, "u2", "z"), TTL)

    assert sessions.revoke_all("u1") == 2
    assert sessions.members("u1") == []
    assert fake_redis.keys("rt:u1:*") == []
    assert sessions.members("u2") == ["z"]


def test_failed_batch_raises_store_unavailable(sessions, clock, flaky):
    flaky.fail("execute")
    with pytest.raises(StoreUnavailable):
        sessions.add_member(_record(clock, "u1", "a"), TTL)


def test_unreadable_set_is_not_reported_empty(sessions, flaky):
    flaky.fail("set_members")
    with pytest.raises(StoreUnavailable):
        sessions.members("u1")


def test_same_instant_members_are_evicted_in_insertion_order(sessions, clock):
    now = clock.now()
    # ids sort against insertion order, so only the score can keep it
    for cid in ("z", "y", "x", "w"):
        record = RefreshRecord(
            user_id="u1", credential_id=cid, created_at=now, expires_at=now + TTL
        )
        sessions.add_member(record, TTL)

    assert sessions.members("u1") == ["y", "x", "w"]


def test_member_without_expiry_keeps_the_set_persistent(sessions, clock, fake_redis):
    sessions.add_member(_record(clock, "u1", "a"), TTL)
    fake_redis.persist(refresh_key("u1", "a"))

    assert sessions.resync_ttl("u1") is None

    assert sessions.members("u1") == ["a"]
    assert fake_redis.pttl(session_key("u1")) == -1
