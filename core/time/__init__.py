"""
UnitEcon Core Time - Public API
=================================
Explicit clock protocol and the schedulable-task abstraction.
Doctrine: NO datetime.now() or ad hoc timers in engine logic.
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
    isoformat_utc,
)
from core.time.scheduler import (
    AsyncioScheduler,
    ManualScheduler,
    ManualTask,
    ScheduledTask,
    Scheduler,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "isoformat_utc",
    "Scheduler",
    "ScheduledTask",
    "AsyncioScheduler",
    "ManualScheduler",
    "ManualTask",
]
