"""
UnitEcon Finance Engine - Dataset Shapes and Defaults
=======================================================
The Dataset is plain JSON-like data: dicts, lists, str, numbers.
It carries no behaviour. The TypedDicts below document its shape;
nothing enforces them at runtime (see validation.py for that).

Dataset
├── meta          {currency, vat_percent, open_days, operating_hours}
├── menus         [MenuItem]
├── sales_model   SalesModel
├── utilities     [UtilityItem]   tagged by type: electric | lpg | water
├── labor         [LaborItem]     type: direct | indirect
└── fixed_costs   [FixedCost]

A BOM line is either an ingredient line or a packaging line. A line
carrying a non-null "packaging" is costed as packaging only.
"""

from __future__ import annotations

import copy
import math
from typing import Any, Dict, List, Mapping, Optional, TypedDict


UTILITY_TYPES = frozenset({"electric", "lpg", "water"})
LABOR_TYPES = frozenset({"direct", "indirect"})
CHANNELS = ("dine_in", "takeaway", "delivery")

# Required numeric fields per utility type.
UTILITY_FIELDS: Dict[str, tuple] = {
    "electric": ("kw", "hours_per_day", "rate_per_kwh"),
    "lpg": ("kg_per_batch", "batches_per_day", "rate_per_kg"),
    "water": ("m3_per_day", "rate_per_m3"),
}

COLLECTION_KEYS = ("menus", "utilities", "labor", "fixed_costs")


# ══════════════════════════════════════════════════════════════
# SHAPES
# ══════════════════════════════════════════════════════════════

class ChannelMix(TypedDict):
    dine_in: float
    takeaway: float
    delivery: float


class Packaging(TypedDict):
    qty_unit: float
    unit_cost: float


class BOMItem(TypedDict, total=False):
    item: str
    qty_g: float
    unit_cost_per_kg: float
    yield_percent: float
    waste_percent: float
    packaging: Packaging


class MenuItem(TypedDict):
    id: str
    name: str
    price: float
    channel_mix: ChannelMix
    bom: List[BOMItem]


class OperatingHours(TypedDict):
    open: str
    close: str


class SalesModel(TypedDict, total=False):
    forecast_daily_units: float
    seasonality: Dict[str, float]
    payment_fee_percent: float
    delivery_commission_percent: float
    open_days: List[str]
    operating_hours: OperatingHours


class UtilityItem(TypedDict, total=False):
    id: str
    type: str
    device: str
    kw: float
    hours_per_day: float
    rate_per_kwh: float
    kg_per_batch: float
    batches_per_day: float
    rate_per_kg: float
    m3_per_day: float
    rate_per_m3: float


class LaborItem(TypedDict):
    id: str
    role: str
    type: str
    wage_per_hour: float
    hours_per_day: float
    days_per_week: float


class FixedCost(TypedDict):
    id: str
    name: str
    amount_per_month: float


class Meta(TypedDict, total=False):
    currency: str
    vat_percent: float
    open_days: List[str]
    operating_hours: OperatingHours


class ScenarioDeltas(TypedDict, total=False):
    menu_price_delta_percent: float
    ingredient_cost_delta_percent: float
    electric_rate_delta_percent: float
    labor_productivity_delta_percent: float
    waste_delta_percent: float


class Scenario(TypedDict):
    id: str
    name: str
    deltas: ScenarioDeltas


Dataset = Dict[str, Any]
ScenarioMap = Dict[str, Scenario]

BASE_SCENARIO_ID = "base"


# ══════════════════════════════════════════════════════════════
# HELPERS
# ══════════════════════════════════════════════════════════════

def is_number(value: Any) -> bool:
    """True for int/float values that are not bool and not NaN."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def is_computable(dataset: Any) -> bool:
    """
    Structural precheck of the computation engine.

    Requires a non-empty menu list, a sales model with a numeric
    non-negative forecast, and list-typed utilities/labor/fixed_costs.
    """
    if not isinstance(dataset, Mapping):
        return False

    menus = dataset.get("menus")
    if not isinstance(menus, list) or not menus:
        return False

    sales_model = dataset.get("sales_model")
    if not isinstance(sales_model, Mapping):
        return False
    forecast = sales_model.get("forecast_daily_units")
    if not is_number(forecast) or forecast < 0:
        return False

    return all(
        isinstance(dataset.get(key), list)
        for key in ("utilities", "labor", "fixed_costs")
    )


def clone(value: Any) -> Any:
    """Deep copy so callers never share nested structures."""
    return copy.deepcopy(value)


def find_menu(dataset: Mapping[str, Any], menu_id: str) -> Optional[Dict[str, Any]]:
    for menu in dataset.get("menus") or []:
        if isinstance(menu, Mapping) and menu.get("id") == menu_id:
            return menu
    return None


# ══════════════════════════════════════════════════════════════
# BUILT-IN DEFAULTS
# ══════════════════════════════════════════════════════════════

_OPEN_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
_OPERATING_HOURS = {"open": "07:00", "close": "15:00"}


def default_dataset() -> Dataset:
    """A one-menu chicken rice shop. Returns a fresh copy on every call."""
    return {
        "meta": {
            "currency": "THB",
            "vat_percent": 7,
            "open_days": list(_OPEN_DAYS),
            "operating_hours": dict(_OPERATING_HOURS),
        },
        "menus": [
            {
                "id": "khao_man_gai",
                "name": "Khao Man Gai",
                "price": 50,
                "channel_mix": {"dine_in": 0.7, "takeaway": 0.2, "delivery": 0.1},
                "bom": [
                    {
                        "item": "chicken_thigh",
                        "qty_g": 120,
                        "unit_cost_per_kg": 70,
                        "yield_percent": 85,
                        "waste_percent": 5,
                    },
                    {
                        "item": "rice",
                        "qty_g": 180,
                        "unit_cost_per_kg": 30,
                        "yield_percent": 95,
                        "waste_percent": 2,
                    },
                    {
                        "item": "sauce",
                        "qty_g": 30,
                        "unit_cost_per_kg": 60,
                        "yield_percent": 100,
                        "waste_percent": 0,
                    },
                    {
                        "item": "packaging",
                        "packaging": {"qty_unit": 1, "unit_cost": 2.5},
                    },
                ],
            }
        ],
        "sales_model": {
            "forecast_daily_units": 120,
            "seasonality": {
                "Jan": 0.9, "Feb": 0.95, "Mar": 1.0, "Apr": 1.1,
                "May": 1.0, "Jun": 0.9, "Jul": 0.9, "Aug": 1.1,
                "Sep": 1.0, "Oct": 1.0, "Nov": 1.1, "Dec": 1.2,
            },
            "payment_fee_percent": 1.5,
            "delivery_commission_percent": 25,
            "open_days": list(_OPEN_DAYS),
            "operating_hours": dict(_OPERATING_HOURS),
        },
        "utilities": [
            {
                "id": "ac_main",
                "type": "electric",
                "device": "Air conditioner",
                "kw": 2.5,
                "hours_per_day": 6,
                "rate_per_kwh": 5,
            },
            {
                "id": "rice_cooker",
                "type": "electric",
                "device": "Rice cooker",
                "kw": 1.8,
                "hours_per_day": 3,
                "rate_per_kwh": 5,
            },
            {
                "id": "gas_stove",
                "type": "lpg",
                "device": "Gas stove",
                "kg_per_batch": 0.25,
                "batches_per_day": 2,
                "rate_per_kg": 29.33,
            },
        ],
        "labor": [
            {
                "id": "kitchen_chef",
                "role": "Chef",
                "type": "direct",
                "wage_per_hour": 45,
                "hours_per_day": 8,
                "days_per_week": 6,
            },
            {
                "id": "cashier",
                "role": "Cashier",
                "type": "indirect",
                "wage_per_hour": 40,
                "hours_per_day": 6,
                "days_per_week": 6,
            },
        ],
        "fixed_costs": [
            {"id": "rent", "name": "Rent", "amount_per_month": 0},
            {"id": "internet", "name": "Internet", "amount_per_month": 700},
            {"id": "maintenance", "name": "Maintenance", "amount_per_month": 1000},
            {"id": "depreciation", "name": "Depreciation", "amount_per_month": 1500},
        ],
    }


def default_scenarios() -> ScenarioMap:
    return {
        BASE_SCENARIO_ID: {"id": BASE_SCENARIO_ID, "name": "Base", "deltas": {}},
        "S1": {
            "id": "S1",
            "name": "Scenario 1",
            "deltas": {
                "menu_price_delta_percent": 5,
                "ingredient_cost_delta_percent": 8,
            },
        },
    }
