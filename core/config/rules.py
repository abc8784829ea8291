"""
UnitEcon Core Config - Engine Settings
========================================
Doctrine: no magic numbers in engine logic.
Debounce windows, storage keys and calendar conversion factors are
configuration, passed into the coordinator and the computation engine.

Sources, in order of precedence for from_env():
    UNITECON_* environment variables → defaults below.
Django deployments pass settings.UNITECON_SYNC to from_mapping().
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional


DEFAULT_DATA_KEY = "finance_data"
DEFAULT_SCENARIOS_KEY = "finance_scenarios"


# ══════════════════════════════════════════════════════════════
# SYNC CONFIG
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SyncConfig:
    """
    Settings of the sync coordinator.

    debounce_ms:            quiet period before a sync cycle fires
    data_key:               gateway key of the serialized Dataset
    scenarios_key:          gateway key of the serialized scenario map
    validation_cache_size:  max Dataset hashes kept in the validation cache
    """

    debounce_ms: int = 500
    data_key: str = DEFAULT_DATA_KEY
    scenarios_key: str = DEFAULT_SCENARIOS_KEY
    validation_cache_size: int = 128

    def __post_init__(self) -> None:
        if not isinstance(self.debounce_ms, int) or self.debounce_ms < 0:
            raise ValueError(
                f"debounce_ms must be a non-negative integer, got {self.debounce_ms!r}."
            )
        if not self.data_key or not self.scenarios_key:
            raise ValueError("data_key and scenarios_key must be non-empty.")
        if self.data_key == self.scenarios_key:
            raise ValueError("data_key and scenarios_key must differ.")
        if self.validation_cache_size < 1:
            raise ValueError("validation_cache_size must be >= 1.")

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "SyncConfig":
        """
        Build from a mapping with upper- or lower-case keys.
        Unknown keys raise, so typos in settings fail loudly.
        """
        if not values:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in values.items():
            name = key.lower()
            if name not in known:
                raise ValueError(f"Unknown sync setting '{key}'.")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SyncConfig":
        env = os.environ if environ is None else environ
        kwargs: dict = {}
        if "UNITECON_SYNC_DEBOUNCE_MS" in env:
            kwargs["debounce_ms"] = int(env["UNITECON_SYNC_DEBOUNCE_MS"])
        if "UNITECON_DATA_KEY" in env:
            kwargs["data_key"] = env["UNITECON_DATA_KEY"]
        if "UNITECON_SCENARIOS_KEY" in env:
            kwargs["scenarios_key"] = env["UNITECON_SCENARIOS_KEY"]
        if "UNITECON_VALIDATION_CACHE_SIZE" in env:
            kwargs["validation_cache_size"] = int(env["UNITECON_VALIDATION_CACHE_SIZE"])
        return cls(**kwargs)


# ══════════════════════════════════════════════════════════════
# COSTING CONSTANTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CostingConstants:
    """
    Calendar conversion factors of the P&L model.

    days_per_month:  daily → monthly factor for revenue, COGS and utilities
    weeks_per_month: weekly → monthly factor for labor hours
    """

    days_per_month: int = 30
    weeks_per_month: float = 4.33

    def __post_init__(self) -> None:
        if self.days_per_month <= 0:
            raise ValueError("days_per_month must be positive.")
        if self.weeks_per_month <= 0:
            raise ValueError("weeks_per_month must be positive.")


DEFAULT_COSTING = CostingConstants()
