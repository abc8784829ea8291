"""
UnitEcon Finance Engine - Error Taxonomy
==========================================
ValidationError       → payload failed entity rules; that mutation only
ImportRejectedError   → import document refused; prior Dataset untouched
ComputationError      → fault while deriving a report; degraded, not raised
PersistenceError      → gateway failure; in-memory Dataset preserved
StateTransitionError  → malformed command or failed state update;
                        state rolled back and the error re-raised
"""

from __future__ import annotations

from core.storage.errors import PersistenceError
from engines.finance.validation import ValidationResult


class FinanceError(Exception):
    """Base class for finance engine errors."""


class ValidationError(FinanceError):
    def __init__(self, entity: str, result: ValidationResult):
        self.entity = entity
        self.result = result
        super().__init__(f"{entity} validation failed: {', '.join(result.errors)}")


class ComputationError(FinanceError):
    pass


class ImportRejectedError(FinanceError):
    """An import document was refused; the message is user-facing."""


class StateTransitionError(FinanceError):
    def __init__(self, kind: str, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__(f"State transition failed ({kind}): {reason}")


__all__ = [
    "FinanceError",
    "ValidationError",
    "ComputationError",
    "PersistenceError",
    "ImportRejectedError",
    "StateTransitionError",
]
