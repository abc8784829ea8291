"""
UnitEcon Finance Engine - Validator Tests
"""

from __future__ import annotations

import pytest

from engines.finance.dataset import default_dataset
from engines.finance.validation import (
    NO_DATA_MESSAGE,
    ValidationResult,
    validate_all,
    validate_bom_item,
    validate_collection,
    validate_fixed_cost,
    validate_labor_item,
    validate_menu_item,
    validate_sales_model,
    validate_utility_item,
)


def _menu(**overrides):
    menu = {
        "id": "khao_man_gai",
        "name": "Khao Man Gai",
        "price": 50,
        "channel_mix": {"dine_in": 0.7, "takeaway": 0.2, "delivery": 0.1},
        "bom": [],
    }
    menu.update(overrides)
    return menu


class TestValidationResult:
    def test_consistency_enforced(self):
        with pytest.raises(ValueError):
            ValidationResult(True, ("broken",))
        with pytest.raises(ValueError):
            ValidationResult(False, ())

    def test_to_dict(self):
        result = ValidationResult(False, ("e",), ("w",))
        assert result.to_dict() == {"is_valid": False, "errors": ["e"], "warnings": ["w"]}


class TestMenuValidation:
    def test_valid_menu(self):
        result = validate_menu_item(_menu())
        assert result.is_valid
        assert result.warnings == ()

    def test_price_below_minimum(self):
        result = validate_menu_item(_menu(price=0))
        assert result.errors == ("Price must be at least 0.01",)

    def test_high_price_is_only_a_warning(self):
        result = validate_menu_item(_menu(price=20000))
        assert result.is_valid
        assert result.warnings == ("Price seems high: 20000. Please verify.",)

    def test_missing_id_and_name(self):
        result = validate_menu_item(_menu(id="", name=None))
        assert "Menu ID is required and must be a string" in result.errors
        assert "Menu name is required and must be a string" in result.errors

    def test_channel_mix_total_must_be_positive(self):
        result = validate_menu_item(
            _menu(channel_mix={"dine_in": 0, "takeaway": 0, "delivery": 0})
        )
        assert result.errors == ("Channel mix total must be greater than 0",)

    def test_negative_channel_share(self):
        result = validate_menu_item(
            _menu(channel_mix={"dine_in": -0.1, "takeaway": 0.5, "delivery": 0.6})
        )
        assert result.errors == ("Channel mix dine_in cannot be negative",)

    def test_bom_errors_are_prefixed(self):
        bom = [{"item": "rice", "qty_g": 100, "unit_cost_per_kg": 30,
                "yield_percent": 0, "waste_percent": 2}]
        result = validate_menu_item(_menu(bom=bom))
        assert result.errors == ("BOM item 1: Yield percentage must be greater than 0",)

    def test_bom_must_be_a_list(self):
        assert "BOM must be a list" in validate_menu_item(_menu(bom="rice")).errors

    def test_not_a_mapping(self):
        assert not validate_menu_item(["menu"]).is_valid


class TestBomValidation:
    def test_packaging_line_checks_packaging_only(self):
        line = {"item": "box", "packaging": {"qty_unit": 1, "unit_cost": 2.5}}
        assert validate_bom_item(line).is_valid

    def test_packaging_negative_cost(self):
        line = {"item": "box", "packaging": {"qty_unit": 1, "unit_cost": -1}}
        assert validate_bom_item(line).errors == ("Packaging unit cost cannot be negative",)

    def test_null_packaging_validates_as_ingredient(self):
        line = {"item": "rice", "packaging": None, "qty_g": 100,
                "unit_cost_per_kg": 50, "yield_percent": 90, "waste_percent": 5}
        assert validate_bom_item(line).is_valid

        line["unit_cost_per_kg"] = -1
        assert validate_bom_item(line).errors == ("Unit cost cannot be negative",)

    def test_non_object_packaging(self):
        line = {"item": "box", "packaging": "paper"}
        assert validate_bom_item(line).errors == ("Packaging must be an object",)

    def test_ingredient_errors(self):
        line = {"item": "rice", "qty_g": "a lot", "unit_cost_per_kg": -1,
                "yield_percent": 90, "waste_percent": -5}
        assert validate_bom_item(line).errors == (
            "Quantity (grams) must be a valid number",
            "Unit cost cannot be negative",
            "Waste percentage cannot be negative",
        )

    def test_ingredient_warnings(self):
        line = {"item": "saffron", "qty_g": 20000, "unit_cost_per_kg": 5000,
                "yield_percent": 120, "waste_percent": 60}
        result = validate_bom_item(line)
        assert result.is_valid
        assert len(result.warnings) == 4


class TestSalesModelValidation:
    def test_default_is_valid(self):
        assert validate_sales_model(default_dataset()["sales_model"]).is_valid

    def test_negative_forecast(self):
        result = validate_sales_model({
            "forecast_daily_units": -1,
            "payment_fee_percent": 0,
            "delivery_commission_percent": 0,
        })
        assert result.errors == ("Daily units forecast cannot be negative",)

    def test_zero_forecast_warns(self):
        result = validate_sales_model({
            "forecast_daily_units": 0,
            "payment_fee_percent": 0,
            "delivery_commission_percent": 0,
        })
        assert result.is_valid
        assert result.warnings == ("Daily units forecast is 0. Revenue will be 0.",)

    def test_seasonality_values(self):
        result = validate_sales_model({
            "forecast_daily_units": 10,
            "payment_fee_percent": 0,
            "delivery_commission_percent": 0,
            "seasonality": {"Jan": 1.0, "Feb": -0.5},
        })
        assert result.errors == ("Seasonality for Feb must be a non-negative number",)

    def test_missing_fees(self):
        result = validate_sales_model({"forecast_daily_units": 10})
        assert "Payment fee percentage must be a valid number" in result.errors
        assert "Delivery commission percentage must be a valid number" in result.errors


class TestLaborValidation:
    def test_hours_and_days_caps(self):
        result = validate_labor_item({
            "id": "cook", "role": "Cook", "type": "direct",
            "wage_per_hour": 45, "hours_per_day": 25, "days_per_week": 8,
        })
        assert result.errors == (
            "Hours per day cannot exceed 24",
            "Days per week cannot exceed 7",
        )

    def test_unknown_type(self):
        result = validate_labor_item({
            "id": "cook", "role": "Cook", "type": "contract",
            "wage_per_hour": 45, "hours_per_day": 8, "days_per_week": 6,
        })
        assert result.errors == ('Type must be either "direct" or "indirect"',)


class TestUtilityValidation:
    def test_electric_requires_kw(self):
        result = validate_utility_item({
            "id": "ac", "type": "electric", "device": "AC",
            "hours_per_day": 6, "rate_per_kwh": 5,
        })
        assert result.errors == ("KW rating is required for electric devices",)

    def test_kw_must_be_positive(self):
        result = validate_utility_item({
            "id": "ac", "type": "electric", "device": "AC",
            "kw": 0, "hours_per_day": 6, "rate_per_kwh": 5,
        })
        assert result.errors == ("KW rating must be greater than 0",)

    def test_valid_water(self):
        assert validate_utility_item({
            "id": "tap", "type": "water", "device": "Tap",
            "m3_per_day": 1.5, "rate_per_m3": 15,
        }).is_valid

    def test_unknown_type(self):
        result = validate_utility_item({"id": "x", "type": "solar", "device": "Panel"})
        assert result.errors == ('Type must be "electric", "lpg", or "water"',)


class TestFixedCostValidation:
    def test_negative_amount(self):
        result = validate_fixed_cost({"id": "rent", "name": "Rent", "amount_per_month": -1})
        assert result.errors == ("Amount per month cannot be negative",)

    def test_high_amount_warns(self):
        result = validate_fixed_cost({"id": "rent", "name": "Rent", "amount_per_month": 250000})
        assert result.is_valid
        assert result.warnings


class TestAggregates:
    def test_default_dataset_is_valid(self):
        result = validate_all(default_dataset())
        assert result.is_valid
        assert result.errors == ()

    @pytest.mark.parametrize("dataset", [None, {}, []])
    def test_no_data(self, dataset):
        result = validate_all(dataset)
        assert result.errors == (NO_DATA_MESSAGE,)

    def test_messages_carry_entity_and_position(self):
        dataset = default_dataset()
        dataset["menus"].append(_menu(id="second", price=0))
        dataset["labor"][1]["hours_per_day"] = 30
        dataset["fixed_costs"][0]["amount_per_month"] = -5

        result = validate_all(dataset)

        assert result.errors == (
            "Menu 2: Price must be at least 0.01",
            "Labor 2: Hours per day cannot exceed 24",
            "Fixed Cost 1: Amount per month cannot be negative",
        )

    def test_collection_messages_are_not_prefixed(self):
        result = validate_collection(
            [{"id": "", "name": "Rent", "amount_per_month": 1}], validate_fixed_cost,
        )
        assert result.errors == ("Fixed cost ID is required",)
