"""
Redis implementation of the tagged-result :class:`StoreClient` port.

Every primitive answers :class:`Found`, :class:`NotFound`, :class:`Ok`,
:class:`Unavailable` (connection drop or timeout) or :class:`Error` (any other
server error); redis-py exceptions never escape. Batches run through one
non-transactional pipeline and every per-step reply is checked.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, TypeVar

import redis  # type: ignore[import-untyped]
from redis.exceptions import (  # type: ignore[import-untyped]
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)

from sessionkeeper.services._shared.ports.store import (
    ClaimResult,
    Error,
    Found,
    Health,
    HealthReport,
    NotFound,
    Ok,
    ReadResult,
    StoreBatch,
    StoreClient,
    Unavailable,
    WriteResult,
    ttl_to_ms,
)

log = logging.getLogger(__name__)

R = TypeVar("R")

# PTTL sentinels
_PTTL_MISSING = -2
_PTTL_PERSISTENT = -1


def _s(value: Any) -> Any:
    """Decode ``bytes`` replies (clients built without ``decode_responses``)."""
    if isinstance(value, bytes | bytearray):
        return value.decode()
    return value


@dataclass(slots=True)
class RedisStoreClient(StoreClient):
    """
    Redis adapter returning tagged results for every primitive.

    Connection drops and timeouts become :class:`Unavailable`; any other
    ``RedisError`` becomes :class:`Error`. Neither is ever reported as
    :class:`NotFound`.

    :param r: A Redis client. Its ``socket_timeout`` bounds every command.
    :param degraded_latency: Ping latency (seconds) above which :meth:`health`
        reports ``DEGRADED``.
    """

    r: redis.Redis
    degraded_latency: float = 0.25

    @classmethod
    def from_url(
        cls, url: str, *, op_timeout: float = 2.0, degraded_latency: float = 0.25
    ) -> RedisStoreClient:
        """Build a client whose commands and connects time out after ``op_timeout``."""
        client = redis.Redis.from_url(
            url,
            socket_timeout=op_timeout,
            socket_connect_timeout=op_timeout,
        )
        return cls(r=client, degraded_latency=degraded_latency)

    # -------------------- helpers --------------------

    def _guard(self, op: str, fn: Callable[[], R]) -> R | Unavailable | Error:
        try:
            return fn()
        except (RedisConnectionError, RedisTimeoutError) as exc:
            log.warning("store.unavailable", extra={"event": op, "detail": str(exc)})
            return Unavailable(f"{op}: {exc}")
        except RedisError as exc:
            log.warning("store.error", extra={"event": op, "detail": str(exc)})
            return Error(f"{op}: {exc}")

    @staticmethod
    def _ttl_from_pttl(pttl: int) -> timedelta | None:
        if pttl is None or int(pttl) < 0:
            return None
        return timedelta(milliseconds=int(pttl))

    # -------------------- reads ----------------------

    def get(self, key: str) -> ReadResult:
        def _run() -> ReadResult:
            pipe = self.r.pipeline(transaction=False)
            pipe.get(key)
            pipe.pttl(key)
            value, pttl = pipe.execute()
            if value is None or pttl == _PTTL_MISSING:
                return NotFound()
            return Found(value=_s(value), ttl=self._ttl_from_pttl(pttl))

        return self._guard("get", _run)

    def ttl(self, key: str) -> ReadResult:
        def _run() -> ReadResult:
            pttl = int(self.r.pttl(key))
            if pttl == _PTTL_MISSING:
                return NotFound()
            remaining = self._ttl_from_pttl(pttl)
            return Found(value=remaining, ttl=remaining)

        return self._guard("ttl", _run)

    def set_members(self, key: str) -> ReadResult:
        """Return ``Found([(member, score), ...])`` ordered by ascending score."""

        def _run() -> ReadResult:
            pipe = self.r.pipeline(transaction=False)
            pipe.zrange(key, 0, -1, withscores=True)
            pipe.pttl(key)
            rows, pttl = pipe.execute()
            if not rows:
                return NotFound()
            members = [(_s(member), float(score)) for member, score in rows]
            return Found(value=members, ttl=self._ttl_from_pttl(pttl))

        return self._guard("set_members", _run)

    # -------------------- writes ---------------------

    def set_with_ttl(self, key: str, value: str, ttl: timedelta) -> WriteResult:
        def _run() -> WriteResult:
            acked = self.r.set(key, value, px=ttl_to_ms(ttl))
            return Ok(acked) if acked else Error("set: write not acknowledged")

        return self._guard("set_with_ttl", _run)

    def set_if_absent(self, key: str, value: str, ttl: timedelta) -> ClaimResult:
        """``SET NX``: :class:`Ok` when this call created the key, :class:`Found` otherwise."""

        def _run() -> ClaimResult:
            created = self.r.set(key, value, px=ttl_to_ms(ttl), nx=True)
            if created:
                return Ok(True)
            return Found(value=_s(self.r.get(key)))

        return self._guard("set_if_absent", _run)

    def delete(self, *keys: str) -> WriteResult:
        if not keys:
            return Ok(0)
        return self._guard("delete", lambda: Ok(int(self.r.delete(*keys))))

    def expire(self, key: str, ttl: timedelta) -> WriteResult:
        return self._guard("expire", lambda: Ok(bool(self.r.pexpire(key, ttl_to_ms(ttl)))))

    def increment(self, key: str, window: timedelta) -> ReadResult:
        """Atomically ``INCR`` and restart the key's rolling ``window``."""

        def _run() -> ReadResult:
            pipe = self.r.pipeline(transaction=True)
            pipe.incr(key)
            pipe.pexpire(key, ttl_to_ms(window))
            count, _ = pipe.execute()
            return Found(value=int(count), ttl=window)

        return self._guard("increment", _run)

    def set_add(self, key: str, member: str, score: float) -> WriteResult:
        return self._guard("set_add", lambda: Ok(int(self.r.zadd(key, {member: score}))))

    def set_remove(self, key: str, *members: str) -> WriteResult:
        if not members:
            return Ok(0)
        return self._guard("set_remove", lambda: Ok(int(self.r.zrem(key, *members))))

    # -------------------- batches --------------------

    def execute(self, batch: StoreBatch) -> Ok | Unavailable | Error:
        """
        Run ``batch`` through one pipeline and inspect every per-step reply.

        A short reply list or any error entry fails the whole batch; earlier
        steps may already have been applied, which callers must tolerate.
        """
        if not batch.steps:
            return Ok([])

        def _run() -> Ok | Unavailable | Error:
            pipe = self.r.pipeline(transaction=False)
            for step in batch.steps:
                getattr(pipe, step.command)(*step.args, **step.kwargs)
            replies = pipe.execute(raise_on_error=False)

            if len(replies) != len(batch.steps):
                return Error(f"batch: expected {len(batch.steps)} replies, got {len(replies)}")
            for step, reply in zip(batch.steps, replies, strict=True):
                if isinstance(reply, RedisConnectionError | RedisTimeoutError):
                    return Unavailable(f"batch {step.command}: {reply}")
                if isinstance(reply, Exception):
                    return Error(f"batch {step.command}: {reply}")
                if step.command == "set" and not reply:
                    return Error("batch set: write not acknowledged")
            return Ok([_s(reply) for reply in replies])

        return self._guard("execute", _run)

    # -------------------- health ---------------------

    def health(self) -> HealthReport:
        """Probe the store with a live ``PING`` (never a cached flag)."""
        started = time.perf_counter()
        try:
            self.r.ping()
        except (RedisConnectionError, RedisTimeoutError) as exc:
            return HealthReport(status=Health.UNAVAILABLE, detail=str(exc))
        except RedisError as exc:
            return HealthReport(status=Health.UNAVAILABLE, detail=f"ping failed: {exc}")
        latency_ms = round((time.perf_counter() - started) * 1000, 2)
        if latency_ms > self.degraded_latency * 1000:
            log.warning("store.degraded", extra={"latency_ms": latency_ms})
            return HealthReport(status=Health.DEGRADED, latency_ms=latency_ms)
        return HealthReport(status=Health.HEALTHY, latency_ms=latency_ms)
