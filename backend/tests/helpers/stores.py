"""Store doubles for exercising failure paths of the session services."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sessionkeeper.services._shared.ports import Health, HealthReport, StoreClient, Unavailable


@dataclass(slots=True)
class _Fault:
    result: Any
    remaining: int | None
    match: Callable[..., bool] | None


class FlakyStore:
    """Wrap a real :class:`StoreClient` and replace selected replies.

    Faults are registered per primitive name (``"get"``, ``"execute"``,
    ``"health"``...). A fault fires when its optional ``match`` predicate
    accepts the call arguments; it then answers ``result`` instead of
    delegating, ``times`` times (``None`` = forever).

    Every call is recorded in :attr:`calls` as ``(name, args)``.
    """

    def __init__(self, inner: StoreClient) -> None:
        self.inner = inner
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._faults: dict[str, list[_Fault]] = {}

    def fail(
        self,
        op: str,
        result: Any = None,
        *,
        times: int | None = 1,
        match: Callable[..., bool] | None = None,
    ) -> FlakyStore:
        if result is None:
            result = (
                HealthReport(status=Health.UNAVAILABLE, detail="injected")
                if op == "health"
                else Unavailable("injected")
            )
        self._faults.setdefault(op, []).append(_Fault(result, times, match))
        return self

    def down(self) -> FlakyStore:
        """Make every primitive report the store as unreachable."""
        for op in (
            "get",
            "set_with_ttl",
            "set_if_absent",
            "delete",
            "expire",
            "ttl",
            "increment",
            "set_add",
            "set_remove",
            "set_members",
            "execute",
            "health",
        ):
            self.fail(op, times=None)
        return self

    def heal(self) -> None:
        self._faults.clear()

    def calls_to(self, op: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == op]

    def _injected(self, op: str, args: tuple[Any, ...]) -> tuple[bool, Any]:
        for fault in self._faults.get(op, []):
            if fault.remaining == 0:
                continue
            if fault.match is not None and not fault.match(*args):
                continue
            if fault.remaining is not None:
                fault.remaining -= 1
            return True, fault.result
        return False, None

    def __getattr__(self, name: str) -> Any:
        target = getattr(self.inner, name)
        if not callable(target):
            return target

        def _call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append((name, args))
            hit, result = self._injected(name, args)
            if hit:
                return result
            return target(*args, **kwargs)

        return _call
