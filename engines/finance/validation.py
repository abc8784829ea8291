"""
UnitEcon Finance Engine - Validator
=====================================
Stateless checks per entity kind. Every function returns a frozen
ValidationResult and never raises on malformed input.

errors   → hard failures (type and range violations). Block the mutation.
warnings → plausibility checks. Never block anything.

validate_all() walks the whole Dataset and prefixes every message with
the entity and its 1-based position, e.g. "Menu 2: Price must be ...".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Mapping, Tuple

from engines.finance.dataset import (
    CHANNELS,
    LABOR_TYPES,
    UTILITY_TYPES,
    is_number,
)

MIN_PRICE = 0.01
MAX_PRICE = 10000
MAX_QUANTITY_G = 10000
MAX_UNIT_COST_PER_KG = 1000
MAX_YIELD_PERCENT = 100
MAX_WASTE_PERCENT = 50
MAX_CHANNEL_MIX_TOTAL = 1.5
MAX_DAILY_UNITS = 1000
MAX_PAYMENT_FEE_PERCENT = 10
MAX_DELIVERY_COMMISSION_PERCENT = 50
MAX_WAGE_PER_HOUR = 1000
MAX_HOURS_PER_DAY = 24
MAX_DAYS_PER_WEEK = 7
MAX_FIXED_COST_PER_MONTH = 100000

NO_DATA_MESSAGE = "No data available for validation"


# ══════════════════════════════════════════════════════════════
# RESULT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.is_valid != (len(self.errors) == 0):
            raise ValueError("is_valid must be True exactly when errors is empty.")

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


class _Collector:
    def __init__(self) -> None:
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def error(self, message: str) -> None:
        self.errors.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def merge(self, result: ValidationResult, prefix: str = "") -> None:
        self.errors.extend(f"{prefix}{e}" for e in result.errors)
        self.warnings.extend(f"{prefix}{w}" for w in result.warnings)

    def result(self) -> ValidationResult:
        return ValidationResult(
            is_valid=not self.errors,
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
        )


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _not_an_object(kind: str) -> ValidationResult:
    return ValidationResult(False, (f"{kind} must be an object",), ())


# ══════════════════════════════════════════════════════════════
# ENTITY VALIDATORS
# ══════════════════════════════════════════════════════════════

def validate_menu_item(menu: Any) -> ValidationResult:
    if not isinstance(menu, Mapping):
        return _not_an_object("Menu item")
    out = _Collector()

    if not _non_empty_str(menu.get("id")):
        out.error("Menu ID is required and must be a string")
    if not _non_empty_str(menu.get("name")):
        out.error("Menu name is required and must be a string")

    price = menu.get("price")
    if not is_number(price):
        out.error("Price must be a valid number")
    else:
        if price < MIN_PRICE:
            out.error(f"Price must be at least {MIN_PRICE}")
        if price > MAX_PRICE:
            out.warn(f"Price seems high: {price}. Please verify.")

    mix = menu.get("channel_mix")
    if not isinstance(mix, Mapping):
        out.error("Channel mix is required")
    else:
        total = 0.0
        for channel in CHANNELS:
            value = mix.get(channel, 0)
            if not is_number(value):
                out.error(f"Channel mix {channel} must be a valid number")
                continue
            if value < 0:
                out.error(f"Channel mix {channel} cannot be negative")
            total += value
        if total <= 0:
            out.error("Channel mix total must be greater than 0")
        if total > MAX_CHANNEL_MIX_TOTAL:
            out.warn(f"Channel mix total ({round(total, 4)}) seems high. Please verify.")

    bom = menu.get("bom")
    if not isinstance(bom, list):
        out.error("BOM must be a list")
    else:
        for index, line in enumerate(bom, start=1):
            out.merge(validate_bom_item(line), prefix=f"BOM item {index}: ")

    return out.result()


def validate_bom_item(line: Any) -> ValidationResult:
    if not isinstance(line, Mapping):
        return _not_an_object("BOM item")
    out = _Collector()

    if not _non_empty_str(line.get("item")):
        out.error("Item name is required")

    # Packaging lines are costed per unit; ingredient fields are ignored
    if line.get("packaging") is not None:
        packaging = line.get("packaging")
        if not isinstance(packaging, Mapping):
            out.error("Packaging must be an object")
            return out.result()
        qty_unit = packaging.get("qty_unit")
        if not is_number(qty_unit):
            out.error("Packaging quantity must be a valid number")
        elif qty_unit < 0:
            out.error("Packaging quantity cannot be negative")
        unit_cost = packaging.get("unit_cost")
        if not is_number(unit_cost):
            out.error("Packaging unit cost must be a valid number")
        elif unit_cost < 0:
            out.error("Packaging unit cost cannot be negative")
        return out.result()

    qty_g = line.get("qty_g")
    if not is_number(qty_g):
        out.error("Quantity (grams) must be a valid number")
    else:
        if qty_g < 0:
            out.error("Quantity must be at least 0")
        if qty_g > MAX_QUANTITY_G:
            out.warn(f"Quantity seems high: {qty_g}g. Please verify.")

    unit_cost = line.get("unit_cost_per_kg")
    if not is_number(unit_cost):
        out.error("Unit cost per kg must be a valid number")
    else:
        if unit_cost < 0:
            out.error("Unit cost cannot be negative")
        if unit_cost > MAX_UNIT_COST_PER_KG:
            out.warn(f"Unit cost seems high: {unit_cost}/kg. Please verify.")

    yield_percent = line.get("yield_percent")
    if not is_number(yield_percent):
        out.error("Yield percentage must be a valid number")
    else:
        if yield_percent <= 0:
            out.error("Yield percentage must be greater than 0")
        if yield_percent > MAX_YIELD_PERCENT:
            out.warn(f"Yield percentage ({yield_percent}%) seems high. Please verify.")

    waste_percent = line.get("waste_percent")
    if not is_number(waste_percent):
        out.error("Waste percentage must be a valid number")
    else:
        if waste_percent < 0:
            out.error("Waste percentage cannot be negative")
        if waste_percent > MAX_WASTE_PERCENT:
            out.warn(f"Waste percentage ({waste_percent}%) seems high. Please verify.")

    return out.result()


def validate_sales_model(model: Any) -> ValidationResult:
    if not isinstance(model, Mapping):
        return _not_an_object("Sales model")
    out = _Collector()

    units = model.get("forecast_daily_units")
    if not is_number(units):
        out.error("Daily units forecast must be a valid number")
    else:
        if units < 0:
            out.error("Daily units forecast cannot be negative")
        elif units == 0:
            out.warn("Daily units forecast is 0. Revenue will be 0.")
        if units > MAX_DAILY_UNITS:
            out.warn(f"Daily units forecast ({units}) seems high. Please verify.")

    fee = model.get("payment_fee_percent")
    if not is_number(fee):
        out.error("Payment fee percentage must be a valid number")
    else:
        if fee < 0:
            out.error("Payment fee percentage cannot be negative")
        if fee > MAX_PAYMENT_FEE_PERCENT:
            out.warn(f"Payment fee ({fee}%) seems high. Please verify.")

    commission = model.get("delivery_commission_percent")
    if not is_number(commission):
        out.error("Delivery commission percentage must be a valid number")
    else:
        if commission < 0:
            out.error("Delivery commission percentage cannot be negative")
        if commission > MAX_DELIVERY_COMMISSION_PERCENT:
            out.warn(f"Delivery commission ({commission}%) seems high. Please verify.")

    seasonality = model.get("seasonality")
    if seasonality is not None:
        if not isinstance(seasonality, Mapping):
            out.error("Seasonality must be a mapping of month to multiplier")
        else:
            for month, factor in seasonality.items():
                if not is_number(factor) or factor < 0:
                    out.error(f"Seasonality for {month} must be a non-negative number")

    return out.result()


def validate_labor_item(item: Any) -> ValidationResult:
    if not isinstance(item, Mapping):
        return _not_an_object("Labor item")
    out = _Collector()

    if not _non_empty_str(item.get("id")):
        out.error("Labor ID is required")
    if not _non_empty_str(item.get("role")):
        out.error("Role is required")
    if item.get("type") not in LABOR_TYPES:
        out.error('Type must be either "direct" or "indirect"')

    wage = item.get("wage_per_hour")
    if not is_number(wage):
        out.error("Wage per hour must be a valid number")
    else:
        if wage < 0:
            out.error("Wage cannot be negative")
        if wage > MAX_WAGE_PER_HOUR:
            out.warn(f"Wage ({wage}/hour) seems high. Please verify.")

    hours = item.get("hours_per_day")
    if not is_number(hours):
        out.error("Hours per day must be a valid number")
    else:
        if hours < 0:
            out.error("Hours per day must be at least 0")
        if hours > MAX_HOURS_PER_DAY:
            out.error(f"Hours per day cannot exceed {MAX_HOURS_PER_DAY}")

    days = item.get("days_per_week")
    if not is_number(days):
        out.error("Days per week must be a valid number")
    else:
        if days < 0:
            out.error("Days per week must be at least 0")
        if days > MAX_DAYS_PER_WEEK:
            out.error(f"Days per week cannot exceed {MAX_DAYS_PER_WEEK}")

    return out.result()


# (field, label, must be strictly positive)
_UTILITY_RULES = {
    "electric": (
        ("kw", "KW rating", True),
        ("hours_per_day", "Hours per day", False),
        ("rate_per_kwh", "Rate per KWh", False),
    ),
    "lpg": (
        ("kg_per_batch", "KG per batch", True),
        ("batches_per_day", "Batches per day", False),
        ("rate_per_kg", "Rate per KG", False),
    ),
    "water": (
        ("m3_per_day", "M3 per day", False),
        ("rate_per_m3", "Rate per M3", False),
    ),
}

_UTILITY_DEVICE_LABEL = {"electric": "electric", "lpg": "LPG", "water": "water"}


def validate_utility_item(item: Any) -> ValidationResult:
    if not isinstance(item, Mapping):
        return _not_an_object("Utility item")
    out = _Collector()

    if not _non_empty_str(item.get("id")):
        out.error("Utility ID is required")
    kind = item.get("type")
    if kind not in UTILITY_TYPES:
        out.error('Type must be "electric", "lpg", or "water"')
    if not _non_empty_str(item.get("device")):
        out.error("Device name is required")

    for name, label, strictly_positive in _UTILITY_RULES.get(kind, ()):
        value = item.get(name)
        if not is_number(value):
            out.error(f"{label} is required for {_UTILITY_DEVICE_LABEL[kind]} devices")
        elif strictly_positive and value <= 0:
            out.error(f"{label} must be greater than 0")
        elif value < 0:
            out.error(f"{label} cannot be negative")
        elif name == "hours_per_day" and value > MAX_HOURS_PER_DAY:
            out.error(f"Hours per day must be between 0 and {MAX_HOURS_PER_DAY}")

    return out.result()


def validate_fixed_cost(item: Any) -> ValidationResult:
    if not isinstance(item, Mapping):
        return _not_an_object("Fixed cost")
    out = _Collector()

    if not _non_empty_str(item.get("id")):
        out.error("Fixed cost ID is required")
    if not _non_empty_str(item.get("name")):
        out.error("Fixed cost name is required")

    amount = item.get("amount_per_month")
    if not is_number(amount):
        out.error("Amount per month must be a valid number")
    else:
        if amount < 0:
            out.error("Amount per month cannot be negative")
        if amount > MAX_FIXED_COST_PER_MONTH:
            out.warn(f"Amount per month ({amount}) seems high. Please verify.")

    return out.result()


# ══════════════════════════════════════════════════════════════
# AGGREGATES
# ══════════════════════════════════════════════════════════════

def validate_collection(
    items: Iterable[Any], validator: Callable[[Any], ValidationResult]
) -> ValidationResult:
    """Validate every item; messages are concatenated without prefixes."""
    out = _Collector()
    for item in items:
        out.merge(validator(item))
    return out.result()


_ITEM_COLLECTIONS = (
    ("labor", "Labor", validate_labor_item),
    ("utilities", "Utility", validate_utility_item),
    ("fixed_costs", "Fixed Cost", validate_fixed_cost),
)


def validate_all(dataset: Any) -> ValidationResult:
    """Validate every entity of a Dataset."""
    if not isinstance(dataset, Mapping) or not dataset:
        return ValidationResult(False, (NO_DATA_MESSAGE,), ())
    out = _Collector()

    menus = dataset.get("menus")
    if isinstance(menus, list):
        for index, menu in enumerate(menus, start=1):
            out.merge(validate_menu_item(menu), prefix=f"Menu {index}: ")

    sales_model = dataset.get("sales_model")
    if sales_model:
        out.merge(validate_sales_model(sales_model), prefix="Sales Model: ")

    for key, label, validator in _ITEM_COLLECTIONS:
        items = dataset.get(key)
        if isinstance(items, list):
            for index, item in enumerate(items, start=1):
                out.merge(validator(item), prefix=f"{label} {index}: ")

    return out.result()
