# tests/unit/infra/test_store_client.py
"""
Unit tests for RedisStoreClient using fakeredis.

These tests exercise the tagged results of every primitive:
- Found / NotFound are only ever reported for keys that do or do not exist
- connection loss becomes Unavailable, server errors become Error
- batches check every per-step reply
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sessionkeeper.services._shared.ports import (
    Error,
    Found,
    Health,
    NotFound,
    Ok,
    StoreBatch,
    Unavailable,
)


def test_get_reports_value_and_remaining_ttl(store):
    assert isinstance(store.set_with_ttl("k", "v", timedelta(seconds=30)), Ok)

    result = store.get("k")
    assert isinstance(result, Found)
    assert result.value == "v"
    assert timedelta(seconds=25) < result.ttl <= timedelta(seconds=30)


def test_get_missing_key_is_not_found(store):
    assert isinstance(store.get("nope"), NotFound)
    assert isinstance(store.ttl("nope"), NotFound)


def test_set_if_absent_claims_once(store):
    first = store.set_if_absent("marker", "a", timedelta(seconds=10))
    second = store.set_if_absent("marker", "b", timedelta(seconds=10))

    assert isinstance(first, Ok)
    assert isinstance(second, Found)
    assert second.value == "a"


def test_increment_counts_and_sets_window(store, fake_redis):
    assert store.increment("c", timedelta(seconds=60)).value == 1
    assert store.increment("c", timedelta(seconds=60)).value == 2
    assert 0 < fake_redis.pttl("c") <= 60_000


def test_set_members_ordered_by_score(store):
    store.set_add("s", "late", 30)
    store.set_add("s", "early", 10)
    store.set_add("s", "mid", 20)

    result = store.set_members("s")
    assert isinstance(result, Found)
    assert [m for m, _ in result.value] == ["early", "mid", "late"]

    store.set_remove("s", "early", "mid", "late")
    assert isinstance(store.set_members("s"), NotFound)


def test_delete_and_expire(store, fake_redis):
    store.set_with_ttl("a", "1", timedelta(seconds=60))
    store.expire("a", timedelta(seconds=5))
    assert fake_redis.pttl("a") <= 5_000

    assert store.delete("a", "b").value == 1
    assert isinstance(store.get("a"), NotFound)


def test_execute_batch_returns_every_reply(store, fake_redis):
    batch = (
        StoreBatch()
        .set_with_ttl("rec", "x", timedelta(seconds=60))
        .set_add("set", "rec", 1.0)
        .ttl("rec")
    )
    result = store.execute(batch)

    assert isinstance(result, Ok)
    assert len(result.value) == 3
    assert fake_redis.zscore("set", "rec") == 1.0


def test_execute_batch_with_failing_step_is_error(store, fake_redis):
    fake_redis.set("plain", "string")
    # ZADD against a string key fails with WRONGTYPE
    batch = StoreBatch().set_with_ttl("ok", "1", timedelta(seconds=60)).set_add("plain", "m", 1)

    result = store.execute(batch)
    assert isinstance(result, Error)


def test_persist_step_removes_expiry(store, fake_redis):
    fake_redis.set("k", "v", px=60_000)

    assert isinstance(store.execute(StoreBatch().persist("k")), Ok)
    assert fake_redis.pttl("k") == -1


def test_empty_batch_is_ok(store):
    assert store.execute(StoreBatch()) == Ok([])


def test_health_is_a_live_probe(store, redis_server):
    assert store.health().status is Health.HEALTHY

    redis_server.connected = False
    report = store.health()
    assert report.status is Health.UNAVAILABLE
    assert report.latency_ms is None


def test_degraded_when_latency_exceeds_threshold(store):
    store.degraded_latency = -1.0
    assert store.health().status is Health.DEGRADED


@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.get("k"),
        lambda s: s.set_if_absent("k", "v", timedelta(seconds=1)),
        lambda s: s.execute(StoreBatch().delete("k")),
    ],
)
def test_connection_loss_is_unavailable_never_not_found(store, redis_server, call):
    redis_server.connected = False
    assert isinstance(call(store), Unavailable)
