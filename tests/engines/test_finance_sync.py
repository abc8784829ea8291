"""
UnitEcon Finance Engine - Sync Coordinator Tests
==================================================
Driven by a ManualScheduler over virtual time: nothing runs until the
test advances the scheduler, so debounce windows are exact.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from core.commands import ReasonCode
from core.config import SyncConfig
from core.hashing import canonical_serialize
from core.storage import InMemoryGateway
from core.time import FixedClock, ManualScheduler
from engines.finance import sync as sync_module
from engines.finance.commands import UpdateMenu
from engines.finance.compute import FinancialReport, compute
from engines.finance.dataset import default_dataset, default_scenarios
from engines.finance.errors import StateTransitionError
from engines.finance.sync import (
    CoordinatorState,
    DataUpdate,
    ErrorUpdate,
    LoadingUpdate,
    ScenarioUpdate,
    SyncCoordinator,
    transition,
)
from engines.finance.validation import validate_all

NOW = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)
DEBOUNCE = 0.5


class _Harness:
    def __init__(self, gateway=None, **kwargs):
        self.clock = FixedClock(NOW)
        self.scheduler = ManualScheduler(self.clock)
        self.gateway = gateway if gateway is not None else InMemoryGateway()
        self.coordinator = SyncCoordinator(
            gateway=self.gateway,
            scheduler=self.scheduler,
            clock=self.clock,
            config=SyncConfig(debounce_ms=500),
            **kwargs,
        )
        self.snapshots = []
        self.coordinator.subscribe(self.snapshots.append)

    def start(self):
        self.coordinator.init()
        self.scheduler.run_until_idle()
        return self

    @property
    def state(self) -> CoordinatorState:
        return self.coordinator.get_state()

    def settle(self):
        self.scheduler.advance(DEBOUNCE)
        self.scheduler.run_until_idle()


def _price(coordinator, menu_id="khao_man_gai"):
    for menu in coordinator.get_dataset()["menus"]:
        if menu["id"] == menu_id:
            return menu["price"]
    return None


class _CountingValidator:
    def __init__(self):
        self.calls = 0

    def __call__(self, dataset):
        self.calls += 1
        return validate_all(dataset)


class _FailingGateway(InMemoryGateway):
    def save(self, key, value):
        raise OSError("disk full")


# ══════════════════════════════════════════════════════════════
# LIFECYCLE
# ══════════════════════════════════════════════════════════════

class TestInit:
    def test_first_run_uses_defaults_and_persists_both_blobs(self):
        h = _Harness().start()

        assert h.coordinator.get_dataset() == default_dataset()
        assert h.coordinator.get_scenarios() == default_scenarios()
        assert h.gateway.write_count() == 2
        assert h.gateway.load("finance_data") == canonical_serialize(default_dataset())
        assert h.coordinator.sync_count == 1

    def test_published_state_after_init(self):
        h = _Harness().start()
        state = h.state

        assert state.dataset == default_dataset()
        assert state.current_scenario_id == "base"
        assert isinstance(state.report, FinancialReport)
        assert state.report.error is None
        assert state.validation_results[0].is_valid
        assert state.is_loading is False
        assert state.error is None
        assert state.last_updated == NOW.isoformat()

    def test_nothing_published_before_the_next_turn(self):
        h = _Harness()
        h.coordinator.init()
        assert h.snapshots == []
        assert h.state.dataset is None

        h.scheduler.run_pending()
        assert h.snapshots
        assert h.state.dataset is not None

    def test_stored_blobs_are_loaded_without_rewrite(self):
        dataset = default_dataset()
        dataset["menus"][0]["price"] = 65
        gateway = InMemoryGateway({
            "finance_data": json.dumps(dataset),
            "finance_scenarios": json.dumps(default_scenarios()),
        })
        h = _Harness(gateway).start()

        assert _price(h.coordinator) == 65
        assert gateway.write_count() == 0
        assert h.state.report.kpis.revenue == pytest.approx(65 * 120)

    def test_corrupt_blob_falls_back_to_defaults(self):
        gateway = InMemoryGateway({"finance_data": "{broken", "finance_scenarios": "[]"})
        h = _Harness(gateway).start()

        assert h.coordinator.get_dataset() == default_dataset()
        assert h.coordinator.get_scenarios() == default_scenarios()
        assert h.state.error is None

    def test_load_failure_reports_error(self):
        class _Unreadable(InMemoryGateway):
            def load(self, key):
                raise OSError("no medium")

        h = _Harness(_Unreadable()).start()

        assert h.coordinator.get_dataset() == default_dataset()
        assert h.state.error == "Failed to initialize: load 'finance_scenarios' failed: no medium"
        assert h.state.report is not None

    def test_init_twice_is_ignored(self):
        h = _Harness().start()
        h.coordinator.init()
        h.scheduler.run_until_idle()
        assert h.gateway.write_count() == 2


class TestDispose:
    def test_dispose_cancels_pending_sync(self):
        h = _Harness().start()
        h.coordinator.update_menu("khao_man_gai", {"price": 60})
        assert h.coordinator.has_pending_sync

        h.coordinator.dispose()
        h.scheduler.run_until_idle()

        assert not h.coordinator.has_pending_sync
        assert h.gateway.write_count() == 2
        assert not h.coordinator.is_healthy()

    def test_dispose_sends_final_snapshot_then_drops_subscribers(self):
        h = _Harness().start()
        before = len(h.snapshots)
        h.coordinator.dispose()
        assert len(h.snapshots) == before + 1

        h.coordinator.dispose()
        assert len(h.snapshots) == before + 1

    def test_mutations_after_dispose_are_rejected(self):
        h = _Harness().start()
        h.coordinator.dispose()

        outcome = h.coordinator.update_menu("khao_man_gai", {"price": 60})

        assert outcome.is_rejected
        assert outcome.reason.code == ReasonCode.COORDINATOR_DISPOSED
        assert _price(h.coordinator) == 50

    def test_mutation_before_init_raises(self):
        h = _Harness()
        with pytest.raises(StateTransitionError, match="not initialized"):
            h.coordinator.update_menu("khao_man_gai", {"price": 60})


# ══════════════════════════════════════════════════════════════
# COMMAND PATH
# ══════════════════════════════════════════════════════════════

class TestMutations:
    def test_accepted_mutation_commits_synchronously(self):
        h = _Harness().start()

        outcome = h.coordinator.update_menu("khao_man_gai", {"price": 60})

        assert outcome.is_accepted
        assert _price(h.coordinator) == 60
        assert h.state.dataset["menus"][0]["price"] == 50

        h.scheduler.run_pending()
        assert h.state.dataset["menus"][0]["price"] == 60

    def test_invalid_mutation_leaves_dataset_untouched(self):
        h = _Harness().start()
        before = canonical_serialize(h.coordinator.get_dataset())

        outcome = h.coordinator.update_menu("khao_man_gai", {"price": -5})

        assert outcome.is_rejected
        assert outcome.reason.code == ReasonCode.VALIDATION_FAILED
        assert outcome.reason.policy_name == "entity_validation"
        assert canonical_serialize(h.coordinator.get_dataset()) == before
        assert not h.coordinator.has_pending_sync

        h.scheduler.run_until_idle()
        assert h.state.error == "Menu validation failed: Price must be at least 0.01"
        assert h.state.is_loading is False

    def test_next_mutation_clears_error(self):
        h = _Harness().start()
        h.coordinator.update_menu("khao_man_gai", {"price": -5})
        h.scheduler.run_pending()
        assert h.state.error

        h.coordinator.update_menu("khao_man_gai", {"price": 55})
        h.scheduler.run_pending()
        assert h.state.error is None

    def test_no_op_mutation_schedules_nothing(self):
        h = _Harness().start()
        outcome = h.coordinator.update_menu("khao_man_gai", {"price": 50})
        assert outcome.is_accepted
        assert not h.coordinator.has_pending_sync

    def test_malformed_command_raises(self):
        h = _Harness().start()

        with pytest.raises(StateTransitionError):
            h.coordinator.update_menu("khao_man_gai", {"id": "renamed"})
        with pytest.raises(StateTransitionError):
            h.coordinator.update_labor("cook")

        h.scheduler.run_until_idle()
        assert h.state.error.startswith("Invalid command (finance.labor.update)")

    def test_apply_failure_rolls_back_and_raises(self, monkeypatch):
        h = _Harness().start()
        before = h.coordinator.get_dataset()

        def boom(dataset, command):
            raise RuntimeError("boom")

        monkeypatch.setattr(sync_module, "apply_mutation", boom)

        with pytest.raises(StateTransitionError, match="boom"):
            h.coordinator.execute(UpdateMenu("khao_man_gai", {"price": 60}))

        assert h.coordinator.get_dataset() == before
        h.scheduler.run_until_idle()
        assert h.state.error == "Failed to apply finance.menu.update: boom"
        assert h.state.is_loading is False

    def test_each_entity_kind(self):
        h = _Harness().start()
        c = h.coordinator
        menu = {"id": "pad_thai", "name": "Pad Thai", "price": 60,
                "channel_mix": {"dine_in": 1, "takeaway": 0, "delivery": 0}, "bom": []}

        assert c.add_menu(menu).is_accepted
        assert c.update_sales_model({"forecast_daily_units": 100}).is_accepted
        assert c.update_utilities([]).is_accepted
        assert c.update_labor([]).is_accepted
        assert c.update_fixed_costs([{"id": "rent", "name": "Rent", "amount_per_month": 9000}]).is_accepted
        assert c.delete_menu("khao_man_gai").is_accepted
        h.settle()

        dataset = c.get_dataset()
        assert [m["id"] for m in dataset["menus"]] == ["pad_thai"]
        assert dataset["sales_model"]["forecast_daily_units"] == 100
        assert h.state.report.kpis.revenue == pytest.approx(6000)
        assert h.state.report.pnl.monthly.operating_expenses == pytest.approx(9000)

    def test_get_dataset_returns_copy(self):
        h = _Harness().start()
        h.coordinator.get_dataset()["menus"].clear()
        assert len(h.coordinator.get_dataset()["menus"]) == 1


# ══════════════════════════════════════════════════════════════
# SYNC PATH
# ══════════════════════════════════════════════════════════════

class TestDebounce:
    def test_burst_coalesces_into_one_sync(self):
        h = _Harness().start()

        for price in (51, 52, 53, 54, 55):
            h.coordinator.update_menu("khao_man_gai", {"price": price})
            h.scheduler.advance(0.1)

        assert h.coordinator.sync_count == 1
        h.settle()

        assert h.coordinator.sync_count == 2
        assert h.state.report.kpis.revenue == pytest.approx(55 * 120)
        assert h.gateway.write_count("finance_data") == 2
        assert json.loads(h.gateway.load("finance_data"))["menus"][0]["price"] == 55

    def test_sync_waits_for_quiet_window(self):
        h = _Harness().start()
        h.coordinator.update_menu("khao_man_gai", {"price": 60})

        h.scheduler.advance(0.25)
        assert h.coordinator.sync_count == 1
        h.scheduler.advance(0.25)
        assert h.coordinator.sync_count == 2

    def test_loading_flag_set_during_burst(self):
        h = _Harness().start()
        h.snapshots.clear()
        h.coordinator.update_menu("khao_man_gai", {"price": 60})
        h.scheduler.run_pending()

        assert any(s.is_loading for s in h.snapshots)
        assert h.state.is_loading is False

    def test_a_b_a_within_window_is_a_no_op(self):
        h = _Harness().start()
        report = h.state.report

        h.coordinator.update_menu("khao_man_gai", {"price": 60})
        h.coordinator.update_menu("khao_man_gai", {"price": 50})
        h.settle()

        assert h.coordinator.sync_count == 1
        assert h.gateway.write_count() == 2
        assert h.state.report is report

    def test_data_update_from_outside_rearms_sync(self):
        h = _Harness().start()
        dataset = default_dataset()
        dataset["menus"][0]["price"] = 70

        h.coordinator.post_update(DataUpdate(dataset, default_scenarios()))
        h.scheduler.run_pending()
        assert h.coordinator.has_pending_sync
        assert _price(h.coordinator) == 70

        h.settle()
        assert h.state.report.kpis.revenue == pytest.approx(70 * 120)
        assert json.loads(h.gateway.load("finance_data"))["menus"][0]["price"] == 70

    def test_data_update_followed_in_same_turn_is_still_adopted(self):
        h = _Harness().start()
        dataset = default_dataset()
        dataset["menus"][0]["price"] = 70

        h.coordinator.post_update(DataUpdate(dataset, default_scenarios()))
        h.coordinator.clear_error()
        h.scheduler.run_pending()

        assert _price(h.coordinator) == 70
        assert h.state.dataset["menus"][0]["price"] == 70
        assert h.coordinator.has_pending_sync

        h.settle()
        assert h.state.report.kpis.revenue == pytest.approx(70 * 120)
        assert json.loads(h.gateway.load("finance_data"))["menus"][0]["price"] == 70

    def test_command_data_update_does_not_reschedule(self):
        h = _Harness().start()
        h.coordinator.update_menu("khao_man_gai", {"price": 60})
        h.settle()
        syncs = h.coordinator.sync_count

        h.scheduler.run_until_idle()
        assert not h.coordinator.has_pending_sync
        assert h.coordinator.sync_count == syncs


class TestIdempotentPersistence:
    def test_force_save_twice_writes_once(self):
        h = _Harness().start()
        h.coordinator.update_menu("khao_man_gai", {"price": 60})

        assert h.coordinator.force_save() is True
        assert h.coordinator.force_save() is False
        assert h.gateway.write_count("finance_data") == 2

    def test_sync_now_without_changes_is_fast_path(self):
        h = _Harness().start()
        assert h.coordinator.sync_now() is True
        assert h.coordinator.sync_now() is True
        assert h.coordinator.sync_count == 1
        assert h.gateway.write_count() == 2

    def test_scenario_only_change_persists_scenarios_only(self):
        h = _Harness().start()
        h.coordinator.upsert_scenario({"id": "S2", "name": "Rent hike", "deltas": {}})
        h.settle()

        assert h.gateway.write_count("finance_data") == 1
        assert h.gateway.write_count("finance_scenarios") == 2
        assert "S2" in json.loads(h.gateway.load("finance_scenarios"))


class TestValidationCache:
    def test_same_content_validated_once(self):
        validator = _CountingValidator()
        h = _Harness(validator=validator).start()
        assert validator.calls == 1

        first = h.coordinator.validate()
        second = h.coordinator.validate()

        assert validator.calls == 1
        assert first is second
        assert first is h.state.validation_results[0]

    def test_new_content_is_validated_again(self):
        validator = _CountingValidator()
        h = _Harness(validator=validator).start()
        h.coordinator.update_menu("khao_man_gai", {"price": 60})
        h.settle()
        assert validator.calls == 2

        h.coordinator.update_menu("khao_man_gai", {"price": 50})
        h.settle()
        assert validator.calls == 2


class TestSyncFailures:
    def test_persistence_failure_is_not_fatal(self):
        h = _Harness(_FailingGateway()).start()

        assert h.state.error == "Auto-save failed: save 'finance_data' failed: disk full"
        assert h.state.report is not None
        assert h.state.report.error is None
        assert h.coordinator.get_dataset() == default_dataset()

    def test_computation_failure_is_not_fatal(self):
        def broken_compute(dataset, **kwargs):
            raise RuntimeError("engine offline")

        h = _Harness(compute_fn=broken_compute).start()

        assert h.state.error == "Computation failed: engine offline"
        assert h.state.report is None
        assert h.gateway.write_count() == 2
        assert h.state.validation_results[0].is_valid

    def test_force_save_failure(self):
        h = _Harness(_FailingGateway()).start()
        assert h.coordinator.force_save() is False
        h.scheduler.run_until_idle()
        assert h.state.error.startswith("Force save failed: save 'finance_data'")

    def test_reentrant_sync_is_dropped(self):
        results = []

        class _Reentrant(InMemoryGateway):
            def save(self, key, value):
                super().save(key, value)
                results.append(h.coordinator.is_syncing)
                results.append(h.coordinator.sync_now("nested"))

        h = _Harness(_Reentrant())
        h.start()

        assert results == [True, False, True, False]
        assert h.coordinator.sync_count == 1
        assert not h.coordinator.is_syncing

    def test_mutation_during_sync_is_dropped_not_queued(self):
        nested = []

        def compute_and_edit(dataset, **kwargs):
            if nested == ["armed"]:
                nested.append(h.coordinator.update_menu("khao_man_gai", {"price": 65}))
            return compute(dataset, **kwargs)

        h = _Harness(compute_fn=compute_and_edit).start()
        nested.append("armed")
        h.coordinator.update_menu("khao_man_gai", {"price": 60})
        h.settle()

        assert nested[1].is_accepted
        assert _price(h.coordinator) == 65
        assert not h.coordinator.has_pending_sync
        assert h.coordinator.sync_count == 2
        assert h.state.is_loading is False
        assert json.loads(h.gateway.load("finance_data"))["menus"][0]["price"] == 60

        h.scheduler.advance(DEBOUNCE * 4)
        h.scheduler.run_until_idle()
        assert h.coordinator.sync_count == 2


# ══════════════════════════════════════════════════════════════
# STATE UPDATES
# ══════════════════════════════════════════════════════════════

class TestStateUpdates:
    def test_invalid_scenario_update_restores_state(self):
        h = _Harness().start()
        before = h.state

        h.coordinator.post_update(ScenarioUpdate("nope"))
        with pytest.raises(ValueError, match="Invalid scenario ID: nope"):
            h.scheduler.run_pending()
        assert h.state == before

        h.scheduler.run_pending()
        assert h.state.error == "State update failed (SCENARIO_UPDATE): Invalid scenario ID: nope"

    def test_unknown_update_type(self):
        h = _Harness().start()
        h.coordinator.post_update(object())
        with pytest.raises(StateTransitionError):
            h.scheduler.run_pending()

    def test_unchanged_state_is_not_republished(self):
        h = _Harness().start()
        count = len(h.snapshots)
        h.coordinator.post_update(LoadingUpdate(False))
        h.scheduler.run_pending()
        assert len(h.snapshots) == count

    def test_clear_error(self):
        h = _Harness().start()
        h.coordinator.post_update(ErrorUpdate("stale"))
        h.scheduler.run_pending()
        assert h.state.error == "stale"
        assert not h.coordinator.is_healthy()

        h.coordinator.clear_error()
        h.scheduler.run_pending()
        assert h.state.error is None
        assert h.coordinator.is_healthy()

    def test_failing_subscriber_does_not_block_others(self):
        h = _Harness()
        h.coordinator.subscribe(lambda state: 1 / 0)
        later = []
        h.coordinator.subscribe(later.append)
        h.start()

        assert later
        assert later[-1] == h.state

    def test_transition_rules(self):
        state = CoordinatorState()
        loading = transition(state, LoadingUpdate(True))
        assert loading.is_loading is True

        failed = transition(loading, ErrorUpdate("bad"))
        assert failed.error == "bad"
        assert failed.is_loading is False

        cleared = transition(failed, LoadingUpdate(True))
        assert cleared.error is None

        with pytest.raises(ValueError, match="Invalid data update payload"):
            transition(state, DataUpdate(None, {}))


# ══════════════════════════════════════════════════════════════
# SCENARIOS, IMPORT / EXPORT, RESET
# ══════════════════════════════════════════════════════════════

class TestScenarios:
    def test_set_current_scenario(self):
        h = _Harness().start()
        assert h.coordinator.set_current_scenario("S1").is_accepted
        assert h.coordinator.current_scenario_id == "S1"
        h.scheduler.run_pending()
        assert h.state.current_scenario_id == "S1"

    def test_unknown_scenario(self):
        h = _Harness().start()
        outcome = h.coordinator.set_current_scenario("S9")

        assert outcome.reason.code == ReasonCode.SCENARIO_NOT_FOUND
        h.scheduler.run_pending()
        assert h.state.error == "Scenario S9 not found"
        assert h.state.current_scenario_id == "base"

    def test_upsert_rejects_bad_deltas(self):
        h = _Harness().start()
        outcome = h.coordinator.upsert_scenario(
            {"id": "S2", "name": "Bad", "deltas": {"rent_delta_percent": 5}},
        )
        assert outcome.is_rejected
        assert outcome.reason.message == "Scenario validation failed: Unknown delta 'rent_delta_percent'"
        assert "S2" not in h.coordinator.get_scenarios()

    def test_upsert_brackets_loading(self):
        h = _Harness().start()
        h.snapshots.clear()
        outcome = h.coordinator.upsert_scenario(
            {"id": "S2", "name": "Price bump", "deltas": {"menu_price_delta_percent": 10}},
        )
        assert outcome.is_accepted

        h.scheduler.run_pending()
        assert h.snapshots[0].is_loading is True
        assert "S2" in h.state.scenarios
        h.settle()
        assert h.state.is_loading is False

    def test_upsert_failure_rolls_back_and_raises(self, monkeypatch):
        h = _Harness().start()
        before = h.coordinator.get_scenarios()

        def boom(reason):
            raise RuntimeError("scheduler gone")

        monkeypatch.setattr(h.coordinator, "_schedule_sync", boom)

        with pytest.raises(StateTransitionError, match="scheduler gone"):
            h.coordinator.upsert_scenario({"id": "S2", "name": "Rent hike", "deltas": {}})

        assert h.coordinator.get_scenarios() == before
        h.scheduler.run_until_idle()
        assert h.state.error == "Failed to apply finance.scenario.upsert: scheduler gone"
        assert h.state.is_loading is False
        assert "S2" not in h.state.scenarios

    def test_compare(self):
        h = _Harness().start()
        summaries = h.coordinator.compare_scenarios()
        assert summaries["S1"].revenue > summaries["base"].revenue


class TestImportExport:
    def test_round_trip(self):
        source = _Harness().start()
        source.coordinator.update_menu("khao_man_gai", {"price": 75})
        document = source.coordinator.export_data()

        target = _Harness().start()
        result = target.coordinator.import_data(document)
        target.settle()

        assert result.success is True
        assert _price(target.coordinator) == 75
        assert target.state.report.kpis.revenue == pytest.approx(75 * 120)
        assert json.loads(target.gateway.load("finance_data"))["menus"][0]["price"] == 75

    def test_import_missing_sales_model_is_rejected(self):
        h = _Harness().start()
        document = json.loads(h.coordinator.export_data())
        del document["data"]["sales_model"]
        before = h.coordinator.get_dataset()

        result = h.coordinator.import_data(json.dumps(document))

        assert result.success is False
        assert result.error == "Imported data failed validation"
        assert h.coordinator.get_dataset() == before
        h.scheduler.run_until_idle()
        assert h.state.error == "Imported data failed validation"

    def test_export_readiness(self):
        h = _Harness().start()
        assert h.coordinator.validate_data_for_export().is_valid

        h.coordinator.update_menu("khao_man_gai", {"price": 60})
        readiness = h.coordinator.validate_data_for_export()
        assert readiness.issues == ("Report is out of date with the current data",)

    def test_fresh_export_syncs_first(self):
        h = _Harness().start()
        h.coordinator.update_menu("khao_man_gai", {"price": 60})

        document = json.loads(h.coordinator.export_fresh_data())

        assert document["is_fresh_export"] is True
        assert document["export_quality"] == "excellent"
        assert document["validation"] == {"is_valid": True, "issues": []}
        assert document["report"]["kpis"]["revenue"] == pytest.approx(60 * 120)
        assert document["data_version"] == document["report"]["data_version"]


class TestReset:
    def test_reset_restores_defaults(self):
        h = _Harness().start()
        h.coordinator.update_menu("khao_man_gai", {"price": 60})
        h.coordinator.set_current_scenario("S1")
        h.settle()

        assert h.coordinator.reset().is_accepted
        h.settle()

        assert h.coordinator.get_dataset() == default_dataset()
        assert h.state.current_scenario_id == "base"
        assert h.state.report.kpis.revenue == pytest.approx(50 * 120)
