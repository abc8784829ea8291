"""
UnitEcon Command Layer - Next-Turn Update Queue
=================================================
Bursts of synchronous update requests (slider drags, batched edits)
are appended here and drained together on the next loop turn.

Flow:
    enqueue(update)   → append; schedule one drain if none is pending
    drain()           → apply every queued update in arrival order

Within one drain every entry except the last is flagged
skip_auxiliary=True, so only the final state of the batch triggers
auxiliary side effects. An entry enqueued with skip_auxiliary=True
keeps the flag even when it is last.

If an apply raises, the drain stops and the exception propagates.
Entries not yet applied stay queued and a new drain is scheduled.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Generic, Optional, TypeVar

from core.time.scheduler import ScheduledTask, Scheduler

logger = logging.getLogger("unitecon.commands")

U = TypeVar("U")

ApplyFn = Callable[[Any, bool], None]


@dataclass(frozen=True)
class QueuedUpdate(Generic[U]):
    update: U
    skip_auxiliary: bool = False


class UpdateQueue(Generic[U]):
    """FIFO of pending updates, drained on the next scheduler turn."""

    def __init__(self, scheduler: Scheduler, apply: ApplyFn):
        self._scheduler = scheduler
        self._apply = apply
        self._items: Deque[QueuedUpdate[U]] = deque()
        self._drain_task: Optional[ScheduledTask] = None
        self._processing = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    def __len__(self) -> int:
        return len(self._items)

    def enqueue(self, update: U, skip_auxiliary: bool = False) -> None:
        self._items.append(QueuedUpdate(update, skip_auxiliary))

        # The running drain picks this entry up itself
        if self._processing:
            return

        if self._drain_task is None:
            self._drain_task = self._scheduler.call_soon(self.drain)

    def drain(self) -> int:
        """Apply every queued update. Returns how many were applied."""
        self._drain_task = None
        if self._processing or not self._items:
            return 0

        self._processing = True
        applied = 0
        try:
            while self._items:
                entry = self._items.popleft()
                skip = bool(self._items) or entry.skip_auxiliary
                self._apply(entry.update, skip)
                applied += 1
        finally:
            self._processing = False
            if self._items and self._drain_task is None:
                self._drain_task = self._scheduler.call_soon(self.drain)

        if applied > 1:
            logger.debug(f"Drained {applied} queued updates in one batch")
        return applied

    def clear(self) -> None:
        self._items.clear()
        if self._drain_task is not None:
            self._drain_task.cancel()
            self._drain_task = None
