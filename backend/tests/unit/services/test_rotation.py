# tests/unit/services/test_rotation.py
"""
Rotation protocol tests.

Covers single-use rotation, reuse detection, the concurrent-loser path and
the failure points of the state machine (store unreachable, unconfirmed new
record, failing cleanup of the old record).
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sessionkeeper.services._shared.errors import (
    InvalidToken,
    RotationAbortedPartialWrite,
    StoreUnavailable,
    TokenReused,
)
from sessionkeeper.services._shared.ports import Found, NotFound, Ok
from sessionkeeper.services.sessions.common import (
    parse_refresh_secret,
    refresh_key,
    superseded_key,
)
from sessionkeeper.services.sessions.rotation import RotationState

S = RotationState


# ------------------------------ Helpers ----------------------------------- #
def _issue(service, clock, user="u1"):
    clock.advance(timedelta(seconds=1))
    return service.issue_session(user, "pytest/1.0").refresh_credential


def _old_record_key(secret: str) -> str:
    user_id, credential_id = parse_refresh_secret(secret)
    return refresh_key(user_id, credential_id)


# -------------------------------- Tests ----------------------------------- #
def test_rotation_walks_every_state_and_is_single_use(service, clock, fake_redis):
    secret = _issue(service, clock)
    trail: list[RotationState] = []

    result = service.rotation.rotate(secret, trail=trail)

    assert trail == [S.VALIDATING, S.STORING_NEW, S.VERIFYING_NEW, S.DELETING_OLD, S.DONE]
    assert result.secret != secret
    assert fake_redis.exists(_old_record_key(secret)) == 0
    assert service.sessions.members("u1") == [result.record.credential_id]


def test_rotated_secret_keeps_device_info(service, clock):
    secret = _issue(service, clock)
    result = service.rotation.rotate(secret, ip_address="10.0.0.1")
    assert result.record.device_info == "pytest/1.0"
    assert result.record.ip_address == "10.0.0.1"


def test_reusing_a_rotated_secret_revokes_every_session(service, clock):
    first = _issue(service, clock)
    other_device = _issue(service, clock)
    rotated = service.refresh(first)

    with pytest.raises(TokenReused):
        service.refresh(first)

    assert service.list_sessions("u1") == []
    for secret in (other_device, rotated.refresh_credential):
        with pytest.raises(InvalidToken):
            service.refresh(secret)


def test_unknown_and_malformed_secrets_are_invalid(service):
    with pytest.raises(InvalidToken):
        service.refresh("u1.not-a-real-secret")
    with pytest.raises(InvalidToken, match="Malformed"):
        service.refresh("no-separator")


def test_record_dropped_by_its_ttl_is_invalid(service, clock, settings, fake_redis):
    secret = _issue(service, clock)
    clock.advance(settings.refresh_ttl + timedelta(seconds=1))

    assert fake_redis.exists(_old_record_key(secret)) == 0
    with pytest.raises(InvalidToken):
        service.refresh(secret)


def test_record_past_its_recorded_expiry_is_invalid(service, clock, settings, fake_redis):
    secret = _issue(service, clock)
    # key outlives the recorded expiry
    fake_redis.pexpire(_old_record_key(secret), 30 * 24 * 3600 * 1000)
    clock.advance(settings.refresh_ttl + timedelta(seconds=1))

    with pytest.raises(InvalidToken, match="expired"):
        service.refresh(secret)


def test_store_down_aborts_before_touching_anything(service, clock, flaky):
    secret = _issue(service, clock)
    flaky.fail("health")
    trail: list[RotationState] = []

    with pytest.raises(StoreUnavailable):
        service.rotation.rotate(secret, trail=trail)

    assert trail == [S.VALIDATING, S.ABORTED]
    # the presented secret still works once the store is back
    assert service.refresh(secret).refresh_credential != secret


def test_unconfirmed_new_record_keeps_old_secret_valid(service, clock, flaky, fake_redis):
    secret = _issue(service, clock)
    old_key = _old_record_key(secret)
    # reading back any record other than the old one answers NotFound
    flaky.fail("get", NotFound(), match=lambda key: key.startswith("rt:") and key != old_key)
    trail: list[RotationState] = []

    with pytest.raises(RotationAbortedPartialWrite) as exc:
        service.rotation.rotate(secret, trail=trail)

    assert exc.value.retryable is True
    assert trail == [S.VALIDATING, S.STORING_NEW, S.VERIFYING_NEW, S.ABORTED]
    assert fake_redis.exists(old_key) == 1
    assert len(service.sessions.members("u1")) == 1

    # client retry with the same secret succeeds
    retried = service.refresh(secret)
    assert retried.refresh_credential != secret


def test_failed_store_of_new_record_keeps_old_secret_valid(service, clock, flaky):
    secret = _issue(service, clock)
    flaky.fail("execute")

    with pytest.raises(StoreUnavailable):
        service.refresh(secret)

    assert service.refresh(secret).refresh_credential != secret


def test_losing_the_supersede_claim_is_reuse(service, clock, flaky):
    secret = _issue(service, clock)
    # a concurrent rotation of the same secret already claimed the marker
    flaky.fail("set_if_absent", Found(value="winner"))

    with pytest.raises(TokenReused):
        service.refresh(secret)

    assert service.list_sessions("u1") == []


def test_failing_to_delete_old_record_still_completes(service, clock, flaky, fake_redis):
    secret = _issue(service, clock)
    old_key = _old_record_key(secret)
    flaky.fail(
        "execute",
        match=lambda batch: any(
            step.command == "delete" and old_key in step.args for step in batch.steps
        ),
    )
    trail: list[RotationState] = []

    result = service.rotation.rotate(secret, trail=trail)

    assert trail[-1] is S.DONE
    assert fake_redis.exists(old_key) == 1
    # the leftover record is still single-use: the supersede marker wins
    with pytest.raises(TokenReused):
        service.refresh(secret)
    assert result.secret


def test_revocation_failure_after_reuse_is_retryable(service, clock, flaky):
    secret = _issue(service, clock)
    service.refresh(secret)
    flaky.fail("execute")

    with pytest.raises(StoreUnavailable):
        service.refresh(secret)


def test_replay_racing_a_finished_rotation_is_reuse(service, clock, flaky):
    secret = _issue(service, clock)
    service.refresh(secret)
    # the replay read the marker before the winning rotation claimed it
    flaky.fail("get", NotFound(), match=lambda key: key.startswith("rtsup:"))

    with pytest.raises(TokenReused):
        service.refresh(secret)

    assert service.list_sessions("u1") == []


def test_claim_is_retried_after_a_failed_attempt(service, clock, flaky, fake_redis):
    secret = _issue(service, clock)
    flaky.fail("set_if_absent")

    service.refresh(secret)

    assert fake_redis.exists(superseded_key(*parse_refresh_secret(secret))) == 1
    with pytest.raises(TokenReused):
        service.refresh(secret)


def test_claim_applied_before_its_reply_was_lost_counts_as_won(service, clock, flaky, store):
    secret = _issue(service, clock)
    # the write lands, then the reply is lost
    flaky.fail(
        "set_if_absent",
        match=lambda key, value, ttl: isinstance(store.set_if_absent(key, value, ttl), Ok),
    )
    trail: list[RotationState] = []

    result = service.rotation.rotate(secret, trail=trail)

    assert trail[-1] is S.DONE
    assert service.sessions.members("u1") == [result.record.credential_id]
    with pytest.raises(TokenReused):
        service.refresh(secret)


def test_unclaimable_marker_still_retires_the_old_secret(service, clock, flaky):
    secret = _issue(service, clock)
    flaky.fail("set_if_absent", times=None)

    rotated = service.refresh(secret)
    flaky.heal()

    with pytest.raises(InvalidToken):
        service.refresh(secret)
    assert service.refresh(rotated.refresh_credential).refresh_credential
