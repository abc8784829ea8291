"""
UnitEcon Finance Engine - Mutation Commands
=============================================
The closed set of typed mutations accepted by the SyncCoordinator.

Each command:
- is a frozen dataclass, structurally checked in __post_init__
  (a malformed command raises ValueError at construction)
- names its entity for error messages ("Menu", "Labor", ...)
- is validated against the current Dataset by validate_mutation()
- is applied by apply_mutation(), which returns a NEW Dataset and
  never touches its input

Scenario commands and import/reset are not Dataset mutations and are
handled by the coordinator directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Mapping, Tuple, Union

from engines.finance.dataset import Dataset, clone, find_menu
from engines.finance.validation import (
    ValidationResult,
    validate_collection,
    validate_fixed_cost,
    validate_labor_item,
    validate_menu_item,
    validate_sales_model,
    validate_utility_item,
)

FINANCE_MENU_UPDATE = "finance.menu.update"
FINANCE_MENU_ADD = "finance.menu.add"
FINANCE_MENU_DELETE = "finance.menu.delete"
FINANCE_SALES_MODEL_UPDATE = "finance.sales_model.update"
FINANCE_UTILITIES_UPDATE = "finance.utilities.update"
FINANCE_LABOR_UPDATE = "finance.labor.update"
FINANCE_FIXED_COSTS_UPDATE = "finance.fixed_costs.update"
FINANCE_DATA_IMPORT = "finance.data.import"
FINANCE_DATA_RESET = "finance.data.reset"
FINANCE_SCENARIO_SELECT = "finance.scenario.select"
FINANCE_SCENARIO_UPSERT = "finance.scenario.upsert"

NEW_MENU_CHANNEL_MIX = {"dine_in": 0.7, "takeaway": 0.2, "delivery": 0.1}


def _require_mapping(name: str, value: Any) -> None:
    if not isinstance(value, Mapping):
        raise ValueError(f"{name} must be a mapping, got {type(value).__name__}.")


def _as_tuple(command: Any, name: str) -> None:
    value = getattr(command, name)
    if isinstance(value, list):
        object.__setattr__(command, name, tuple(value))
    elif not isinstance(value, tuple):
        raise ValueError(f"{name} must be a list or tuple, got {type(value).__name__}.")


# ══════════════════════════════════════════════════════════════
# MENU COMMANDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class UpdateMenu:
    """Merge `changes` into a menu; adds the menu when the id is unknown."""

    menu_id: str
    changes: Mapping[str, Any]

    command_type: ClassVar[str] = FINANCE_MENU_UPDATE
    entity: ClassVar[str] = "Menu"

    def __post_init__(self):
        if not isinstance(self.menu_id, str) or not self.menu_id:
            raise ValueError("menu_id must be a non-empty string.")
        _require_mapping("changes", self.changes)
        if "id" in self.changes and self.changes["id"] != self.menu_id:
            raise ValueError("changes may not alter the menu id.")

    def merged(self, dataset: Mapping[str, Any]) -> dict:
        """The menu as it will be after this command."""
        existing = find_menu(dataset, self.menu_id)
        if existing is None:
            base = {
                "id": self.menu_id,
                "name": f"New menu {self.menu_id}",
                "price": 0,
                "channel_mix": dict(NEW_MENU_CHANNEL_MIX),
                "bom": [],
            }
        else:
            base = clone(existing)
        base.update(clone(dict(self.changes)))
        base["id"] = self.menu_id
        return base


@dataclass(frozen=True)
class AddMenu:
    """Append a menu. An id that already exists is left as it is."""

    menu: Mapping[str, Any]

    command_type: ClassVar[str] = FINANCE_MENU_ADD
    entity: ClassVar[str] = "Menu"

    def __post_init__(self):
        _require_mapping("menu", self.menu)


@dataclass(frozen=True)
class DeleteMenu:
    menu_id: str

    command_type: ClassVar[str] = FINANCE_MENU_DELETE
    entity: ClassVar[str] = "Menu"

    def __post_init__(self):
        if not isinstance(self.menu_id, str) or not self.menu_id:
            raise ValueError("menu_id must be a non-empty string.")


# ══════════════════════════════════════════════════════════════
# MODEL & COLLECTION COMMANDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class UpdateSalesModel:
    changes: Mapping[str, Any]

    command_type: ClassVar[str] = FINANCE_SALES_MODEL_UPDATE
    entity: ClassVar[str] = "Sales model"

    def __post_init__(self):
        _require_mapping("changes", self.changes)

    def merged(self, dataset: Mapping[str, Any]) -> dict:
        current = dataset.get("sales_model")
        base = clone(dict(current)) if isinstance(current, Mapping) else {}
        base.update(clone(dict(self.changes)))
        return base


@dataclass(frozen=True)
class UpdateUtilities:
    """Replace the utilities collection."""

    items: Tuple[Mapping[str, Any], ...]

    command_type: ClassVar[str] = FINANCE_UTILITIES_UPDATE
    entity: ClassVar[str] = "Utility"

    def __post_init__(self):
        _as_tuple(self, "items")


@dataclass(frozen=True)
class UpdateLabor:
    """Replace the labor collection."""

    items: Tuple[Mapping[str, Any], ...]

    command_type: ClassVar[str] = FINANCE_LABOR_UPDATE
    entity: ClassVar[str] = "Labor"

    def __post_init__(self):
        _as_tuple(self, "items")


@dataclass(frozen=True)
class UpdateFixedCosts:
    """Replace the fixed cost collection."""

    items: Tuple[Mapping[str, Any], ...]

    command_type: ClassVar[str] = FINANCE_FIXED_COSTS_UPDATE
    entity: ClassVar[str] = "Fixed cost"

    def __post_init__(self):
        _as_tuple(self, "items")


Mutation = Union[
    UpdateMenu,
    AddMenu,
    DeleteMenu,
    UpdateSalesModel,
    UpdateUtilities,
    UpdateLabor,
    UpdateFixedCosts,
]

MUTATION_TYPES = (
    UpdateMenu,
    AddMenu,
    DeleteMenu,
    UpdateSalesModel,
    UpdateUtilities,
    UpdateLabor,
    UpdateFixedCosts,
)


# ══════════════════════════════════════════════════════════════
# VALIDATE / APPLY
# ══════════════════════════════════════════════════════════════

_VALID = ValidationResult(True)


def validate_mutation(dataset: Mapping[str, Any], command: Mutation) -> ValidationResult:
    """Entity rules for the payload of a command against the current Dataset."""
    if isinstance(command, UpdateMenu):
        return validate_menu_item(command.merged(dataset))
    if isinstance(command, AddMenu):
        return validate_menu_item(command.menu)
    if isinstance(command, DeleteMenu):
        return _VALID
    if isinstance(command, UpdateSalesModel):
        return validate_sales_model(command.merged(dataset))
    if isinstance(command, UpdateUtilities):
        return validate_collection(command.items, validate_utility_item)
    if isinstance(command, UpdateLabor):
        return validate_collection(command.items, validate_labor_item)
    if isinstance(command, UpdateFixedCosts):
        return validate_collection(command.items, validate_fixed_cost)
    raise TypeError(f"Unsupported mutation: {type(command).__name__}")


def _menus(dataset: Dataset) -> list:
    menus = dataset.get("menus")
    if not isinstance(menus, list):
        menus = []
        dataset["menus"] = menus
    return menus


def apply_mutation(dataset: Mapping[str, Any], command: Mutation) -> Dataset:
    """Return a new Dataset with the command applied."""
    result: Dataset = clone(dict(dataset))

    if isinstance(command, UpdateMenu):
        menus = _menus(result)
        merged = command.merged(dataset)
        for index, menu in enumerate(menus):
            if isinstance(menu, Mapping) and menu.get("id") == command.menu_id:
                menus[index] = merged
                break
        else:
            menus.append(merged)
        return result

    if isinstance(command, AddMenu):
        menus = _menus(result)
        if find_menu(result, command.menu.get("id")) is None:
            menus.append(clone(dict(command.menu)))
        return result

    if isinstance(command, DeleteMenu):
        result["menus"] = [
            m for m in _menus(result)
            if not (isinstance(m, Mapping) and m.get("id") == command.menu_id)
        ]
        return result

    if isinstance(command, UpdateSalesModel):
        result["sales_model"] = command.merged(dataset)
        return result

    if isinstance(command, UpdateUtilities):
        result["utilities"] = [clone(dict(i)) for i in command.items]
        return result

    if isinstance(command, UpdateLabor):
        result["labor"] = [clone(dict(i)) for i in command.items]
        return result

    if isinstance(command, UpdateFixedCosts):
        result["fixed_costs"] = [clone(dict(i)) for i in command.items]
        return result

    raise TypeError(f"Unsupported mutation: {type(command).__name__}")

