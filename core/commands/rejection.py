"""
UnitEcon Command Layer - Rejection Model
==========================================
Structured reasons for rejected mutation commands.

Every rejection must be:
- Deterministic (same input → same rejection)
- Machine-readable (code)
- Human-readable (message)
"""

from __future__ import annotations

from dataclasses import dataclass


# ══════════════════════════════════════════════════════════════
# REJECTION REASON
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for command rejection.

    Fields:
        code:        Machine-readable rejection code (e.g. 'VALIDATION_FAILED').
        message:     Human-readable explanation, the same text surfaced
                     in the coordinator's `error` field.
        policy_name: Name of the check that caused rejection.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


# ══════════════════════════════════════════════════════════════
# STANDARD REJECTION CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """
    Known rejection codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Payload ───────────────────────────────────────────────
    VALIDATION_FAILED = "VALIDATION_FAILED"

    # ── Scenarios ─────────────────────────────────────────────
    SCENARIO_NOT_FOUND = "SCENARIO_NOT_FOUND"

    # ── Lifecycle ─────────────────────────────────────────────
    COORDINATOR_DISPOSED = "COORDINATOR_DISPOSED"
