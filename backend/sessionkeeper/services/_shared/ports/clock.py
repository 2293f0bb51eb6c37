from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Wall-clock source used for record timestamps and expiry checks."""

    def now(self) -> datetime: ...


class SystemClock(Clock):
    """Timezone-aware UTC wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)

