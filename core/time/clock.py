"""
UnitEcon Core Time - Explicit Clock Protocol
==============================================
Report timestamps and state `last_updated` values are read from an
injected Clock, never from datetime.now() inside engine logic.

Production wires SystemClock. Tests wire FixedClock, usually through
a ManualScheduler that advances it together with virtual time.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


# ══════════════════════════════════════════════════════════════
# CLOCK PROTOCOL
# ══════════════════════════════════════════════════════════════

class Clock(Protocol):
    """Injectable time source."""

    def now_utc(self) -> datetime:
        """Return current UTC time."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IMPLEMENTATIONS
# ══════════════════════════════════════════════════════════════

class SystemClock:
    """Production clock - real system time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Test clock - returns a fixed timestamp until advanced.

    Usage:
        clock = FixedClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        clock.advance(0.5)
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._fixed_dt = fixed_dt

    def now_utc(self) -> datetime:
        return self._fixed_dt

    def advance(self, seconds: float) -> None:
        """Move the clock forward by `seconds`."""
        if seconds < 0:
            raise ValueError("FixedClock cannot move backwards.")
        self._fixed_dt = self._fixed_dt + timedelta(seconds=seconds)


def isoformat_utc(clock: Clock) -> str:
    """ISO-8601 string of the clock's current UTC time."""
    return clock.now_utc().isoformat()
