"""
UnitEcon Core Config - Public API
===================================
Sync and costing settings.
Doctrine: no magic numbers in engine logic.
"""

from core.config.rules import (
    DEFAULT_COSTING,
    DEFAULT_DATA_KEY,
    DEFAULT_SCENARIOS_KEY,
    CostingConstants,
    SyncConfig,
)

__all__ = [
    "SyncConfig",
    "CostingConstants",
    "DEFAULT_COSTING",
    "DEFAULT_DATA_KEY",
    "DEFAULT_SCENARIOS_KEY",
]
