"""
UnitEcon Command Layer
========================
Every mutation produces exactly one Outcome.
REJECTED commands carry a structured reason.
State updates are queued and drained in arrival order.
"""

from core.commands.outcomes import (
    CommandOutcome,
    CommandStatus,
)
from core.commands.queue import (
    QueuedUpdate,
    UpdateQueue,
)
from core.commands.rejection import (
    ReasonCode,
    RejectionReason,
)

__all__ = [
    # ── Outcomes ──────────────────────────────────────────────
    "CommandOutcome",
    "CommandStatus",
    # ── Rejection ─────────────────────────────────────────────
    "RejectionReason",
    "ReasonCode",
    # ── Queue ─────────────────────────────────────────────────
    "QueuedUpdate",
    "UpdateQueue",
]
