"""
UnitEcon Finance Engine - Computation Engine
==============================================
compute(dataset) → FinancialReport

A pure derivation: the same Dataset always yields the same figures.
Only `computed_at` depends on the injected clock.

Pipeline:
    precheck → revenue → variable cost → COGS → monthly costs
             → P&L (daily, monthly) → KPIs → per-menu economics
             → sensitivity → version tag

Degenerate-input policy (never an exception):
- negative channel-mix components count as 0
- an ingredient line with yield_percent <= 0 contributes 0
- negative waste_percent counts as 0
- a utility missing a required field for its type costs 0
- a menu with a non-numeric price or channel mix earns no revenue

compute() never raises. A Dataset failing the precheck, or any
unexpected fault, yields the all-zero default report with `error` set.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from core.config.rules import DEFAULT_COSTING, CostingConstants
from core.hashing.hasher import content_hash, version_tag
from core.time.clock import Clock, SystemClock
from engines.finance.dataset import (
    CHANNELS,
    UTILITY_FIELDS,
    is_computable,
    is_number,
)

logger = logging.getLogger("unitecon.compute")

INVALID_DATA_ERROR = "Computation failed due to invalid data"
SENSITIVITY_VARIABLE = "ingredient_cost"

# Simplified projection, not derived from the Dataset:
# ingredient cost change (%) → operating profit impact (%).
SENSITIVITY_CURVE: Tuple[Tuple[float, float], ...] = (
    (-10, 15),
    (-5, 7.5),
    (0, 0),
    (5, -7.5),
    (10, -15),
)


# ══════════════════════════════════════════════════════════════
# REPORT SHAPES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PnLFigures:
    revenue: float = 0.0
    cogs: float = 0.0
    gross_profit: float = 0.0
    operating_expenses: float = 0.0
    operating_profit: float = 0.0


@dataclass(frozen=True)
class PnL:
    daily: PnLFigures = field(default_factory=PnLFigures)
    monthly: PnLFigures = field(default_factory=PnLFigures)


@dataclass(frozen=True)
class KPIs:
    revenue: float = 0.0
    gross_profit: float = 0.0
    operating_profit: float = 0.0
    net_profit: float = 0.0
    prime_cost_pct: float = 0.0
    food_cost_pct: float = 0.0
    labor_pct: float = 0.0
    cm_pct: float = 0.0
    bep_units: float = 0.0
    bep_per_day: float = 0.0
    safety_margin: float = 0.0
    avg_ticket: float = 0.0


@dataclass(frozen=True)
class MenuEconomics:
    id: Any
    name: Any
    price: float
    variable_cost: float
    contribution_margin: float
    cm_pct: float


@dataclass(frozen=True)
class SensitivityPoint:
    change: float
    impact: float


@dataclass(frozen=True)
class Sensitivity:
    variable: str = SENSITIVITY_VARIABLE
    series: Tuple[SensitivityPoint, ...] = ()


@dataclass(frozen=True)
class FinancialReport:
    """
    Derived, never hand-edited. Replaced wholesale on every sync.

    data_version is the short content tag of the input Dataset.
    error is None for a successful computation.
    """

    pnl: PnL
    kpis: KPIs
    menus: Tuple[MenuEconomics, ...]
    sensitivity: Sensitivity
    computed_at: str
    data_version: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["menus"] = list(data["menus"])
        data["sensitivity"]["series"] = list(data["sensitivity"]["series"])
        return data

    def fingerprint(self) -> str:
        """Content hash of everything except computed_at."""
        data = self.to_dict()
        data.pop("computed_at")
        return content_hash(data)


# ══════════════════════════════════════════════════════════════
# UNIT ECONOMICS
# ══════════════════════════════════════════════════════════════

def _number_or_zero(value: Any) -> float:
    return value if is_number(value) else 0


def variable_cost_per_unit(menu: Any) -> float:
    """Ingredient plus packaging cost of one unit of a menu."""
    if not isinstance(menu, Mapping) or not isinstance(menu.get("bom"), list):
        return 0.0

    total = 0.0
    for line in menu["bom"]:
        if not isinstance(line, Mapping):
            continue

        if line.get("packaging") is not None:
            packaging = line["packaging"]
            if not isinstance(packaging, Mapping):
                continue
            qty_unit = packaging.get("qty_unit")
            unit_cost = packaging.get("unit_cost")
            if is_number(qty_unit) and is_number(unit_cost):
                total += qty_unit * unit_cost
            continue

        qty_g = line.get("qty_g")
        unit_cost_per_kg = line.get("unit_cost_per_kg")
        yield_percent = line.get("yield_percent")
        waste_percent = line.get("waste_percent")
        if not all(is_number(v) for v in (qty_g, unit_cost_per_kg, yield_percent, waste_percent)):
            continue
        if yield_percent <= 0:
            continue

        waste_multiplier = 1 + max(0, waste_percent) / 100
        needed_kg = (qty_g / 1000) * waste_multiplier / (yield_percent / 100)
        total += needed_kg * unit_cost_per_kg
    return total


def daily_revenue(dataset: Mapping[str, Any]) -> float:
    forecast = dataset["sales_model"]["forecast_daily_units"]
    total = 0.0
    for menu in dataset["menus"]:
        if not isinstance(menu, Mapping) or not is_number(menu.get("price")):
            continue
        mix = menu.get("channel_mix")
        if not isinstance(mix, Mapping):
            continue
        shares = [mix.get(channel) for channel in CHANNELS]
        if not all(is_number(s) for s in shares):
            logger.debug(f"Skipping revenue of menu {menu.get('id')!r}: bad channel mix")
            continue
        total += menu["price"] * forecast * sum(max(0, s) for s in shares)
    return total


def daily_cogs(dataset: Mapping[str, Any]) -> float:
    forecast = dataset["sales_model"]["forecast_daily_units"]
    return sum(variable_cost_per_unit(menu) * forecast for menu in dataset["menus"])


def monthly_fixed_costs(dataset: Mapping[str, Any]) -> float:
    return sum(
        _number_or_zero(cost.get("amount_per_month"))
        for cost in dataset["fixed_costs"]
        if isinstance(cost, Mapping)
    )


def monthly_labor_costs(
    dataset: Mapping[str, Any], constants: CostingConstants = DEFAULT_COSTING
) -> float:
    total = 0.0
    for item in dataset["labor"]:
        if not isinstance(item, Mapping):
            continue
        monthly_hours = (
            _number_or_zero(item.get("hours_per_day"))
            * _number_or_zero(item.get("days_per_week"))
            * constants.weeks_per_month
        )
        total += _number_or_zero(item.get("wage_per_hour")) * monthly_hours
    return total


def daily_utility_cost(item: Any) -> float:
    """Product of the type's required fields; 0 when any is missing or zero."""
    if not isinstance(item, Mapping):
        return 0.0
    required = UTILITY_FIELDS.get(item.get("type"))
    if not required:
        return 0.0
    cost = 1.0
    for name in required:
        value = item.get(name)
        if not is_number(value) or not value:
            return 0.0
        cost *= value
    return cost


def monthly_utility_costs(
    dataset: Mapping[str, Any], constants: CostingConstants = DEFAULT_COSTING
) -> float:
    return sum(
        daily_utility_cost(item) * constants.days_per_month
        for item in dataset["utilities"]
    )


# ══════════════════════════════════════════════════════════════
# REPORT SECTIONS
# ══════════════════════════════════════════════════════════════

def _pnl(dataset: Mapping[str, Any], constants: CostingConstants) -> PnL:
    days = constants.days_per_month
    revenue = daily_revenue(dataset)
    cogs = daily_cogs(dataset)
    monthly_opex = (
        monthly_fixed_costs(dataset)
        + monthly_labor_costs(dataset, constants)
        + monthly_utility_costs(dataset, constants)
    )

    gross_profit = revenue - cogs
    opex = monthly_opex / days
    operating_profit = gross_profit - opex

    return PnL(
        daily=PnLFigures(revenue, cogs, gross_profit, opex, operating_profit),
        monthly=PnLFigures(
            revenue=revenue * days,
            cogs=cogs * days,
            gross_profit=gross_profit * days,
            operating_expenses=monthly_opex,
            operating_profit=operating_profit * days,
        ),
    )


def _pct(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def _kpis(dataset: Mapping[str, Any], pnl: PnL, constants: CostingConstants) -> KPIs:
    menus = dataset["menus"]
    daily = pnl.daily
    revenue = daily.revenue

    total_cm = 0.0
    total_price = 0.0
    for menu in menus:
        if not isinstance(menu, Mapping) or not is_number(menu.get("price")):
            continue
        total_cm += menu["price"] - variable_cost_per_unit(menu)
        total_price += menu["price"]
    avg_cm = total_cm / len(menus)
    avg_price = total_price / len(menus)

    bep_units = pnl.monthly.operating_expenses / avg_cm if avg_cm > 0 else 0.0
    bep_per_day = bep_units / constants.days_per_month

    direct_labor = sum(
        item["wage_per_hour"] * item["hours_per_day"]
        for item in dataset["labor"]
        if isinstance(item, Mapping)
        and item.get("type") == "direct"
        and is_number(item.get("wage_per_hour"))
        and is_number(item.get("hours_per_day"))
    )
    food_cost = daily.cogs
    prime_cost = food_cost + direct_labor

    forecast = dataset["sales_model"]["forecast_daily_units"]
    safety_margin = (forecast - bep_per_day) / forecast * 100 if forecast > 0 else 0.0
    avg_ticket = revenue / forecast if forecast > 0 else 0.0

    return KPIs(
        revenue=revenue,
        gross_profit=daily.gross_profit,
        operating_profit=daily.operating_profit,
        net_profit=daily.operating_profit,
        prime_cost_pct=_pct(prime_cost, revenue),
        food_cost_pct=_pct(food_cost, revenue),
        labor_pct=_pct(direct_labor, revenue),
        cm_pct=_pct(avg_cm, avg_price),
        bep_units=bep_units,
        bep_per_day=bep_per_day,
        safety_margin=safety_margin,
        avg_ticket=avg_ticket,
    )


def _menu_economics(dataset: Mapping[str, Any]) -> Tuple[MenuEconomics, ...]:
    rows = []
    for menu in dataset["menus"]:
        if not isinstance(menu, Mapping):
            continue
        price = _number_or_zero(menu.get("price"))
        variable_cost = variable_cost_per_unit(menu)
        margin = price - variable_cost
        rows.append(MenuEconomics(
            id=menu.get("id"),
            name=menu.get("name"),
            price=price,
            variable_cost=variable_cost,
            contribution_margin=margin,
            cm_pct=margin / price * 100 if price else 0.0,
        ))
    return tuple(rows)


def _sensitivity() -> Sensitivity:
    return Sensitivity(
        variable=SENSITIVITY_VARIABLE,
        series=tuple(SensitivityPoint(c, i) for c, i in SENSITIVITY_CURVE),
    )


def _data_version(dataset: Any) -> str:
    try:
        return version_tag(dataset)
    except (TypeError, ValueError):
        return "unknown"


# ══════════════════════════════════════════════════════════════
# ENTRY POINTS
# ══════════════════════════════════════════════════════════════

def default_report(
    dataset: Any = None,
    *,
    clock: Optional[Clock] = None,
    error: str = INVALID_DATA_ERROR,
) -> FinancialReport:
    """All-zero report tagged with an error string."""
    clock = clock or SystemClock()
    return FinancialReport(
        pnl=PnL(),
        kpis=KPIs(),
        menus=(),
        sensitivity=Sensitivity(),
        computed_at=clock.now_utc().isoformat(),
        data_version=_data_version(dataset),
        error=error,
    )


def compute(
    dataset: Any,
    *,
    clock: Optional[Clock] = None,
    constants: Optional[CostingConstants] = None,
) -> FinancialReport:
    """Derive the FinancialReport of a Dataset. Never raises."""
    clock = clock or SystemClock()
    constants = constants or DEFAULT_COSTING
    try:
        if not is_computable(dataset):
            logger.warning("Dataset failed the computation precheck")
            return default_report(dataset, clock=clock)

        pnl = _pnl(dataset, constants)
        return FinancialReport(
            pnl=pnl,
            kpis=_kpis(dataset, pnl, constants),
            menus=_menu_economics(dataset),
            sensitivity=_sensitivity(),
            computed_at=clock.now_utc().isoformat(),
            data_version=_data_version(dataset),
        )
    except Exception as exc:
        logger.error(f"Computation failed: {exc}", exc_info=True)
        return default_report(dataset, clock=clock, error=f"Computation failed: {exc}")
