"""
UnitEcon Finance Engine - Scenarios
=====================================
A scenario is a named set of percentage deltas applied on top of the
base Dataset. Scenarios never modify the canonical Dataset; the
canonical report is always the base Dataset's report.

Delta semantics (all relative, in percent):
    menu_price_delta_percent          price          × (1 + d/100)
    ingredient_cost_delta_percent     unit_cost_per_kg × (1 + d/100)
    waste_delta_percent               waste_percent  × (1 + d/100)
    electric_rate_delta_percent       rate_per_kwh   × (1 + d/100)
    labor_productivity_delta_percent  hours_per_day  ÷ (1 + d/100)

Packaging lines are not affected by ingredient cost deltas.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from core.config.rules import CostingConstants
from core.time.clock import Clock
from engines.finance.compute import compute
from engines.finance.dataset import Dataset, ScenarioMap, clone, is_number
from engines.finance.validation import ValidationResult

logger = logging.getLogger("unitecon.compute")

DELTA_KEYS = frozenset({
    "menu_price_delta_percent",
    "ingredient_cost_delta_percent",
    "electric_rate_delta_percent",
    "labor_productivity_delta_percent",
    "waste_delta_percent",
})

# A delta of -100% or less would zero or invert the figure it scales.
MIN_DELTA_PERCENT = -100


def validate_scenario(scenario: Any) -> ValidationResult:
    if not isinstance(scenario, Mapping):
        return ValidationResult(False, ("Scenario must be an object",))
    errors = []
    if not isinstance(scenario.get("id"), str) or not scenario.get("id"):
        errors.append("Scenario ID is required")
    if not isinstance(scenario.get("name"), str) or not scenario.get("name"):
        errors.append("Scenario name is required")

    deltas = scenario.get("deltas", {})
    if not isinstance(deltas, Mapping):
        errors.append("Deltas must be a mapping")
    else:
        for key, value in deltas.items():
            if key not in DELTA_KEYS:
                errors.append(f"Unknown delta '{key}'")
            elif not is_number(value):
                errors.append(f"Delta '{key}' must be a valid number")
            elif value <= MIN_DELTA_PERCENT:
                errors.append(f"Delta '{key}' must be greater than {MIN_DELTA_PERCENT}")
    return ValidationResult(not errors, tuple(errors))


def _factor(deltas: Mapping[str, Any], key: str) -> float:
    value = deltas.get(key, 0)
    return 1 + (value if is_number(value) else 0) / 100


def _scale(item: Dict[str, Any], key: str, factor: float) -> None:
    if is_number(item.get(key)):
        item[key] = item[key] * factor


def apply_scenario(dataset: Mapping[str, Any], scenario: Mapping[str, Any]) -> Dataset:
    """Return a new Dataset with the scenario's deltas applied."""
    deltas = scenario.get("deltas") or {}
    result: Dataset = clone(dict(dataset))
    if not deltas:
        return result

    price = _factor(deltas, "menu_price_delta_percent")
    ingredient = _factor(deltas, "ingredient_cost_delta_percent")
    waste = _factor(deltas, "waste_delta_percent")
    electric = _factor(deltas, "electric_rate_delta_percent")
    productivity = _factor(deltas, "labor_productivity_delta_percent")

    for menu in result.get("menus") or []:
        if not isinstance(menu, dict):
            continue
        _scale(menu, "price", price)
        for line in menu.get("bom") or []:
            if not isinstance(line, dict) or line.get("packaging") is not None:
                continue
            _scale(line, "unit_cost_per_kg", ingredient)
            _scale(line, "waste_percent", waste)

    for utility in result.get("utilities") or []:
        if isinstance(utility, dict) and utility.get("type") == "electric":
            _scale(utility, "rate_per_kwh", electric)

    if productivity > 0:
        for item in result.get("labor") or []:
            if isinstance(item, dict):
                _scale(item, "hours_per_day", 1 / productivity)

    return result


@dataclass(frozen=True)
class ScenarioSummary:
    scenario_id: str
    name: str
    revenue: float
    operating_profit: float
    prime_cost_pct: float
    bep_units: float
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "scenario_id": self.scenario_id,
            "name": self.name,
            "revenue": self.revenue,
            "operating_profit": self.operating_profit,
            "prime_cost_pct": self.prime_cost_pct,
            "bep_units": self.bep_units,
            "error": self.error,
        }


def compare_scenarios(
    dataset: Mapping[str, Any],
    scenarios: ScenarioMap,
    *,
    clock: Optional[Clock] = None,
    constants: Optional[CostingConstants] = None,
) -> Dict[str, ScenarioSummary]:
    """Daily headline figures of every scenario, keyed by scenario id."""
    summaries: Dict[str, ScenarioSummary] = {}
    for scenario_id, scenario in scenarios.items():
        report = compute(
            apply_scenario(dataset, scenario), clock=clock, constants=constants,
        )
        summaries[scenario_id] = ScenarioSummary(
            scenario_id=scenario_id,
            name=scenario.get("name", scenario_id),
            revenue=report.kpis.revenue,
            operating_profit=report.kpis.operating_profit,
            prime_cost_pct=report.kpis.prime_cost_pct,
            bep_units=report.kpis.bep_units,
            error=report.error,
        )
    logger.debug(f"Compared {len(summaries)} scenarios")
    return summaries
