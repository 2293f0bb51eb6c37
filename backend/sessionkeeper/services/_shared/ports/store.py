"""
Tagged results and the port for the TTL key-value store.

Every store primitive answers with one of the result classes below instead of
``None``/exceptions, so callers can never confuse "the key does not exist"
(:class:`NotFound`) with "we cannot currently tell" (:class:`Unavailable` /
:class:`Error`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class Found:
    """
    The key exists.

    :ivar value: Decoded value (``str``, ``int`` or a list, depending on the primitive).
    :ivar ttl: Remaining time-to-live, ``None`` when the key never expires.
    """

    value: Any
    ttl: timedelta | None = None


@dataclass(frozen=True, slots=True)
class NotFound:
    """The key legitimately does not exist."""


@dataclass(frozen=True, slots=True)
class Ok:
    """A write succeeded; ``value`` carries the raw reply when useful."""

    value: Any = None


@dataclass(frozen=True, slots=True)
class Unavailable:
    """The store could not be reached (connection drop, timeout)."""

    reason: str = "store unavailable"


@dataclass(frozen=True, slots=True)
class Error:
    """The store answered with an error, or a batch came back incomplete."""

    reason: str = "store error"


ReadResult = Found | NotFound | Unavailable | Error
WriteResult = Ok | Unavailable | Error
ClaimResult = Ok | Found | Unavailable | Error
Failure = (Unavailable, Error)


def is_failure(result: object) -> bool:
    """Return ``True`` when ``result`` means "cannot tell"."""
    return isinstance(result, Failure)


class Health(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class HealthReport:
    """Outcome of a live liveness probe."""

    status: Health
    latency_ms: float | None = None
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class BatchStep:
    """One queued primitive: redis-py method name plus its arguments."""

    command: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


class StoreBatch:
    """
    Ordered list of store primitives executed together.

    The batch only *describes* work; :meth:`StoreClient.execute` runs it and
    checks every per-step reply.
    """

    def __init__(self) -> None:
        self.steps: list[BatchStep] = []

    def __len__(self) -> int:
        return len(self.steps)

    def _add(self, command: str, *args: Any, **kwargs: Any) -> StoreBatch:
        self.steps.append(BatchStep(command=command, args=args, kwargs=kwargs))
        return self

    def set_with_ttl(self, key: str, value: str, ttl: timedelta) -> StoreBatch:
        return self._add("set", key, value, px=ttl_to_ms(ttl))

    def delete(self, *keys: str) -> StoreBatch:
        return self._add("delete", *keys)

    def expire(self, key: str, ttl: timedelta) -> StoreBatch:
        return self._add("pexpire", key, ttl_to_ms(ttl))

    def persist(self, key: str) -> StoreBatch:
        return self._add("persist", key)

    def ttl(self, key: str) -> StoreBatch:
        return self._add("pttl", key)

    def set_add(self, key: str, member: str, score: float) -> StoreBatch:
        return self._add("zadd", key, {member: score})

    def set_remove(self, key: str, *members: str) -> StoreBatch:
        return self._add("zrem", key, *members)


def ttl_to_ms(ttl: timedelta) -> int:
    """Convert a TTL to whole milliseconds, never below 1 ms."""
    return max(1, int(ttl.total_seconds() * 1000))


class StoreClient(Protocol):
    """Port for the TTL key-value store (implemented in ``sessionkeeper.infra.redis``)."""

    def get(self, key: str) -> ReadResult: ...

    def set_with_ttl(self, key: str, value: str, ttl: timedelta) -> WriteResult: ...

    def set_if_absent(self, key: str, value: str, ttl: timedelta) -> ClaimResult: ...

    def delete(self, *keys: str) -> WriteResult: ...

    def expire(self, key: str, ttl: timedelta) -> WriteResult: ...

    def ttl(self, key: str) -> ReadResult: ...

    def increment(self, key: str, window: timedelta) -> ReadResult: ...

    def set_add(self, key: str, member: str, score: float) -> WriteResult: ...

    def set_remove(self, key: str, *members: str) -> WriteResult: ...

    def set_members(self, key: str) -> ReadResult: ...

    def execute(self, batch: StoreBatch) -> Ok | Unavailable | Error: ...

    def health(self) -> HealthReport: ...


__all__ = [
    "Found",
    "NotFound",
    "Ok",
    "Unavailable",
    "Error",
    "ReadResult",
    "WriteResult",
    "ClaimResult",
    "is_failure",
    "Health",
    "HealthReport",
    "BatchStep",
    "StoreBatch",
    "StoreClient",
    "ttl_to_ms",
]
