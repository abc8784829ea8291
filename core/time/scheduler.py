"""
UnitEcon Core Time - Schedulable Tasks
========================================
The sync engine has exactly two suspension points:

- a zero-delay "next turn" task that drains the update queue
- a fixed-delay debounce task that fires the sync cycle

Both go through a Scheduler so the reset-on-new-trigger and
drop-while-running behaviour can be driven without wall-clock waits.

AsyncioScheduler  -> production, backed by an asyncio event loop.
ManualScheduler   -> tests, virtual time advanced explicitly.

Every scheduled task is a cancellable handle. Cancelling a task that
already ran (or was already cancelled) is a no-op.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from typing import Any, Callable, List, Optional, Protocol, Tuple

from core.time.clock import FixedClock

logger = logging.getLogger("unitecon.scheduler")


# ══════════════════════════════════════════════════════════════
# PROTOCOLS
# ══════════════════════════════════════════════════════════════

class ScheduledTask(Protocol):
    """Handle to a pending callback."""

    def cancel(self) -> None:
        ...  # pragma: no cover

    def cancelled(self) -> bool:
        ...  # pragma: no cover


class Scheduler(Protocol):
    """Cooperative single-threaded task scheduler."""

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> ScheduledTask:
        """Run callback on the next turn of the loop."""
        ...  # pragma: no cover

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> ScheduledTask:
        """Run callback once `delay` seconds have elapsed."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# ASYNCIO (production)
# ══════════════════════════════════════════════════════════════

class AsyncioScheduler:
    """
    Scheduler backed by an asyncio event loop.

    asyncio.Handle / TimerHandle already satisfy ScheduledTask.
    When no loop is given, the running loop is resolved on first use.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> ScheduledTask:
        return self.loop.call_soon(callback, *args)

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> ScheduledTask:
        return self.loop.call_later(delay, callback, *args)


# ══════════════════════════════════════════════════════════════
# MANUAL (tests)
# ══════════════════════════════════════════════════════════════

class ManualTask:
    """Pending callback owned by a ManualScheduler."""

    __slots__ = ("due", "callback", "args", "_cancelled", "_done")

    def __init__(self, due: float, callback: Callable[..., Any], args: Tuple) -> None:
        self.due = due
        self.callback = callback
        self.args = args
        self._cancelled = False
        self._done = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._done

    def run(self) -> None:
        self._done = True
        self.callback(*self.args)


class ManualScheduler:
    """
    Virtual-time scheduler.

    Nothing runs until the test calls run_pending() or advance().
    Tasks run in (due time, scheduling order). Exceptions raised by a
    task propagate to the caller; tasks not yet run stay queued.

    If a FixedClock is attached it is advanced in step with virtual time,
    so timestamps taken inside a task match the task's due time.
    """

    def __init__(self, clock: Optional[FixedClock] = None) -> None:
        self._clock = clock
        self._now = 0.0
        self._seq = itertools.count()
        self._heap: List[Tuple[float, int, ManualTask]] = []

    @property
    def now(self) -> float:
        return self._now

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> ManualTask:
        return self.call_later(0.0, callback, *args)

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> ManualTask:
        if delay < 0:
            raise ValueError("delay must be >= 0.")
        task = ManualTask(self._now + delay, callback, args)
        heapq.heappush(self._heap, (task.due, next(self._seq), task))
        return task

    def pending_count(self) -> int:
        """Number of tasks still waiting to run (cancelled ones excluded)."""
        return sum(1 for _, _, t in self._heap if not t.cancelled())

    def run_pending(self) -> int:
        """Run every task due at the current virtual time."""
        return self._run_until(self._now)

    def advance(self, seconds: float) -> int:
        """Move virtual time forward, running tasks as they fall due."""
        if seconds < 0:
            raise ValueError("Cannot advance by a negative amount.")
        return self._run_until(self._now + seconds)

    def run_until_idle(self, max_tasks: int = 10_000) -> int:
        """Run everything, jumping virtual time to each next due task."""
        ran = 0
        while self._next_live() is not None:
            if ran >= max_tasks:
                raise RuntimeError(
                    f"ManualScheduler did not go idle after {max_tasks} tasks."
                )
            due = self._next_live().due
            ran += self._run_until(due)
        return ran

    def _next_live(self) -> Optional[ManualTask]:
        while self._heap and self._heap[0][2].cancelled():
            heapq.heappop(self._heap)
        return self._heap[0][2] if self._heap else None

    def _set_time(self, when: float) -> None:
        if when > self._now:
            if self._clock is not None:
                self._clock.advance(when - self._now)
            self._now = when

    def _run_until(self, deadline: float) -> int:
        ran = 0
        while True:
            task = self._next_live()
            if task is None or task.due > deadline:
                break
            heapq.heappop(self._heap)
            self._set_time(task.due)
            ran += 1
            task.run()
        self._set_time(deadline)
        return ran
