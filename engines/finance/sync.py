"""
UnitEcon Finance Engine - Sync Coordinator
============================================
Owns the canonical Dataset and keeps the derived FinancialReport
consistent with it.

Two paths, both single-threaded and driven by an injected Scheduler:

Command path  (Idle → Applying → Idle)
    mutation → validate payload → commit Dataset → publish snapshot
             → schedule debounced sync → CommandOutcome

Sync path     (Quiescent → Syncing → Quiescent)
    debounce fires → read Dataset → fast path if unchanged
                   → persist → compute + publish report
                   → validate (hash-cached) → clear loading

Canonical vs published state:
- The Dataset and scenarios are committed synchronously: the next
  command always builds on the previous one, even before subscribers
  have heard about it.
- The published CoordinatorState changes only through state updates
  drained from the UpdateQueue on the next scheduler turn. Every
  applied update is delivered to subscribers as a full snapshot.

Failure rules:
- Payload fails entity validation → Dataset untouched, REJECTED
  outcome, `error` set, no sync scheduled.
- Exception while applying a command → Dataset and scenarios restored,
  `error` set, StateTransitionError raised.
- Exception while applying a state update → previous snapshot
  restored, `error` reported (unless the update was itself an error
  report), exception re-raised.
- Persistence, computation or validation failure in a sync → logged,
  Dataset preserved, non-fatal `error`. Other sync steps still run.
- A sync trigger arriving while a sync runs is dropped, not queued.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from core.caching import ContentCache
from core.commands import CommandOutcome, ReasonCode, RejectionReason, UpdateQueue
from core.config.rules import DEFAULT_COSTING, CostingConstants, SyncConfig
from core.events import StateChannel, Subscriber
from core.hashing import canonical_serialize, content_hash
from core.storage import PersistenceError, PersistenceGateway
from core.time import Clock, ScheduledTask, Scheduler, SystemClock, isoformat_utc
from engines.finance.commands import (
    FINANCE_DATA_IMPORT,
    FINANCE_DATA_RESET,
    FINANCE_SCENARIO_SELECT,
    FINANCE_SCENARIO_UPSERT,
    AddMenu,
    DeleteMenu,
    Mutation,
    UpdateFixedCosts,
    UpdateLabor,
    UpdateMenu,
    UpdateSalesModel,
    UpdateUtilities,
    apply_mutation,
    validate_mutation,
)
from engines.finance.compute import FinancialReport, compute
from engines.finance.dataset import (
    BASE_SCENARIO_ID,
    Dataset,
    ScenarioMap,
    clone,
    default_dataset,
    default_scenarios,
)
from engines.finance.errors import (
    ComputationError,
    ImportRejectedError,
    StateTransitionError,
    ValidationError,
)
from engines.finance.scenarios import ScenarioSummary, compare_scenarios, validate_scenario
from engines.finance.transfer import build_export_document, parse_import_document
from engines.finance.validation import ValidationResult, validate_all

logger = logging.getLogger("unitecon.sync")

ValidatorFn = Callable[[Any], ValidationResult]
ComputeFn = Callable[..., FinancialReport]


# ══════════════════════════════════════════════════════════════
# PUBLISHED STATE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CoordinatorState:
    """
    Immutable snapshot delivered to subscribers.

    dataset and scenarios reference the committed structures; treat
    them as read-only.
    """

    dataset: Optional[Dataset] = None
    scenarios: ScenarioMap = field(default_factory=dict)
    current_scenario_id: str = BASE_SCENARIO_ID
    report: Optional[FinancialReport] = None
    validation_results: Tuple[ValidationResult, ...] = ()
    is_loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[str] = None


# ── State updates ─────────────────────────────────────────────

@dataclass(frozen=True)
class DataUpdate:
    dataset: Any
    scenarios: Any
    # True when the coordinator already holds this data as canonical
    committed: bool = False
    kind: ClassVar[str] = "DATA_UPDATE"


@dataclass(frozen=True)
class ScenarioUpdate:
    scenario_id: str
    kind: ClassVar[str] = "SCENARIO_UPDATE"


@dataclass(frozen=True)
class ReportUpdate:
    report: Any
    kind: ClassVar[str] = "REPORT_UPDATE"


@dataclass(frozen=True)
class ValidationUpdate:
    results: Any
    kind: ClassVar[str] = "VALIDATION_UPDATE"


@dataclass(frozen=True)
class ErrorUpdate:
    error: Optional[str]
    kind: ClassVar[str] = "ERROR_UPDATE"


@dataclass(frozen=True)
class LoadingUpdate:
    is_loading: bool
    kind: ClassVar[str] = "LOADING_UPDATE"


StateUpdate = Union[
    DataUpdate, ScenarioUpdate, ReportUpdate, ValidationUpdate, ErrorUpdate, LoadingUpdate,
]


def _fallback_scenario(scenarios: Mapping[str, Any]) -> str:
    if BASE_SCENARIO_ID in scenarios or not scenarios:
        return BASE_SCENARIO_ID
    return sorted(scenarios)[0]


def transition(state: CoordinatorState, update: Any) -> CoordinatorState:
    """Next state for one update. Raises on an invalid payload."""
    if isinstance(update, DataUpdate):
        if not isinstance(update.dataset, Mapping) or not isinstance(update.scenarios, Mapping):
            raise ValueError("Invalid data update payload")
        current = state.current_scenario_id
        if current not in update.scenarios:
            current = _fallback_scenario(update.scenarios)
        return replace(
            state,
            dataset=update.dataset,
            scenarios=update.scenarios,
            current_scenario_id=current,
        )

    if isinstance(update, ScenarioUpdate):
        if update.scenario_id not in state.scenarios:
            raise ValueError(f"Invalid scenario ID: {update.scenario_id}")
        return replace(state, current_scenario_id=update.scenario_id)

    if isinstance(update, ReportUpdate):
        if not isinstance(update.report, FinancialReport):
            raise ValueError("Invalid computation result payload")
        return replace(state, report=update.report)

    if isinstance(update, ValidationUpdate):
        if not isinstance(update.results, tuple) or not all(
            isinstance(r, ValidationResult) for r in update.results
        ):
            raise ValueError("Validation results must be a tuple of ValidationResult")
        return replace(state, validation_results=update.results)

    if isinstance(update, ErrorUpdate):
        return replace(state, error=update.error, is_loading=False)

    if isinstance(update, LoadingUpdate):
        # Entering a loading cycle clears the previous error
        if update.is_loading:
            return replace(state, is_loading=True, error=None)
        return replace(state, is_loading=False)

    raise StateTransitionError(
        type(update).__name__, f"Unsupported update type: {type(update).__name__}"
    )


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ImportResult:
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ExportReadiness:
    is_valid: bool
    issues: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, "issues": list(self.issues)}


# ══════════════════════════════════════════════════════════════
# COORDINATOR
# ══════════════════════════════════════════════════════════════

class SyncCoordinator:
    """
    Reactive computation-and-synchronization engine.

    Lifecycle: construct → init() → mutations / syncs → dispose().
    All collaborators are injected; nothing is global.
    """

    def __init__(
        self,
        *,
        gateway: PersistenceGateway,
        scheduler: Scheduler,
        clock: Optional[Clock] = None,
        config: Optional[SyncConfig] = None,
        constants: Optional[CostingConstants] = None,
        validator: Optional[ValidatorFn] = None,
        compute_fn: Optional[ComputeFn] = None,
    ):
        self._gateway = gateway
        self._scheduler = scheduler
        self._clock = clock or SystemClock()
        self._config = config or SyncConfig()
        self._constants = constants or DEFAULT_COSTING
        self._validator = validator or validate_all
        self._compute = compute_fn or compute

        self._channel: StateChannel[CoordinatorState] = StateChannel("finance.state")
        self._queue: UpdateQueue = UpdateQueue(scheduler, self._apply_state_update)
        self._validation_cache: ContentCache[ValidationResult] = ContentCache(
            max_size=self._config.validation_cache_size
        )

        # Canonical state, committed synchronously
        self._dataset: Optional[Dataset] = None
        self._scenarios: ScenarioMap = {}
        self._current_scenario_id = BASE_SCENARIO_ID
        self._report: Optional[FinancialReport] = None

        # Published snapshot
        self._state = CoordinatorState()

        # Sync bookkeeping
        self._sync_task: Optional[ScheduledTask] = None
        self._syncing = False
        self._sync_count = 0
        self._persisted_hashes: Dict[str, str] = {}
        self._report_source_hash: Optional[str] = None
        self._report_fingerprint: Optional[str] = None

        self._initialized = False
        self._disposed = False

    # ── Introspection ─────────────────────────────────────────

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def sync_count(self) -> int:
        """Number of sync cycles that ran past the no-op fast path."""
        return self._sync_count

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def has_pending_sync(self) -> bool:
        return self._sync_task is not None

    @property
    def report(self) -> Optional[FinancialReport]:
        """Latest computed report, ahead of the published snapshot."""
        return self._report

    def get_state(self) -> CoordinatorState:
        return self._state

    def get_dataset(self) -> Optional[Dataset]:
        """Copy of the canonical Dataset."""
        return clone(self._dataset)

    def get_scenarios(self) -> ScenarioMap:
        return clone(self._scenarios)

    @property
    def current_scenario_id(self) -> str:
        return self._current_scenario_id

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register for full-state snapshots. Returns an unsubscribe callable."""
        return self._channel.subscribe(callback)

    def is_healthy(self) -> bool:
        return (
            self._initialized
            and not self._disposed
            and not self._syncing
            and not self._queue.is_processing
            and len(self._queue) == 0
            and self._state.error is None
        )

    # ── Lifecycle ─────────────────────────────────────────────

    def init(self) -> None:
        """Load Dataset and scenarios (or the built-in defaults) and sync."""
        if self._disposed:
            raise StateTransitionError("init", "Coordinator has been disposed")
        if self._initialized:
            logger.debug("init() called twice; ignoring")
            return

        dataset = self._load(self._config.data_key, default_dataset)
        scenarios = self._load(self._config.scenarios_key, default_scenarios)

        self._dataset = dataset
        self._scenarios = scenarios
        self._current_scenario_id = _fallback_scenario(scenarios)
        self._initialized = True
        logger.info(
            f"Coordinator initialized: {len(dataset.get('menus') or [])} menus, "
            f"{len(scenarios)} scenarios"
        )

        self._queue.enqueue(DataUpdate(dataset, scenarios, committed=True), skip_auxiliary=True)
        self.sync_now("init")

    def _load(self, key: str, fallback: Callable[[], dict]) -> dict:
        try:
            raw = self._gateway.load(key)
        except Exception as exc:
            failure = PersistenceError("load", key, str(exc))
            logger.error(f"Failed to initialize: {failure}", exc_info=True)
            self._queue.enqueue(ErrorUpdate(f"Failed to initialize: {failure}"))
            return fallback()

        if raw is None:
            return fallback()
        try:
            value = json.loads(raw)
        except ValueError as exc:
            logger.warning(f"Stored '{key}' is not valid JSON ({exc}); using defaults")
            return fallback()
        if not isinstance(value, dict):
            logger.warning(f"Stored '{key}' is not an object; using defaults")
            return fallback()

        # Already stored: the first sync need not write it back
        self._persisted_hashes[key] = content_hash(value)
        return value

    def dispose(self) -> None:
        """Cancel pending work, send a final snapshot, drop subscribers."""
        if self._disposed:
            return
        if self._sync_task is not None:
            self._sync_task.cancel()
            self._sync_task = None
        self._queue.clear()
        self._validation_cache.clear()
        self._syncing = False
        self._disposed = True

        self._state = replace(self._state, is_loading=False, error=None)
        self._channel.publish(self._state)
        self._channel.clear()
        logger.info("Coordinator disposed")

    def _ensure_ready(self, command_type: str) -> None:
        if not self._initialized:
            raise StateTransitionError(command_type, "Coordinator is not initialized")

    def _disposed_outcome(self, command_type: str) -> CommandOutcome:
        return self._reject(
            command_type,
            ReasonCode.COORDINATOR_DISPOSED,
            "Coordinator has been disposed",
            "lifecycle",
        )

    # ── State updates ─────────────────────────────────────────

    def post_update(self, update: Any, skip_auxiliary: bool = False) -> None:
        """Queue a state update for the next drain."""
        self._queue.enqueue(update, skip_auxiliary)

    def _apply_state_update(self, update: Any, skip_auxiliary: bool) -> None:
        previous = self._state
        kind = getattr(update, "kind", type(update).__name__)
        try:
            next_state = transition(previous, update)
            if isinstance(update, DataUpdate) and not update.committed:
                self._adopt(update, reason=f"state:{kind}")
            if next_state == previous:
                return
            self._state = replace(next_state, last_updated=isoformat_utc(self._clock))
            self._channel.publish(self._state)
        except Exception as exc:
            self._state = previous
            logger.error(f"State update failed ({kind}): {exc}", exc_info=True)
            if not isinstance(update, ErrorUpdate):
                self._queue.enqueue(ErrorUpdate(f"State update failed ({kind}): {exc}"))
            raise

    def _adopt(self, update: DataUpdate, reason: str) -> None:
        """Make a data update posted from outside canonical and re-arm the sync.

        Adoption does not depend on the queue's skip flag: an update that
        is followed by another one in the same drain is still the caller's
        latest data and must be persisted.
        """
        self._dataset = update.dataset
        self._scenarios = update.scenarios
        if self._current_scenario_id not in update.scenarios:
            self._current_scenario_id = _fallback_scenario(update.scenarios)
        self._schedule_sync(reason)

    def clear_error(self) -> None:
        self._queue.enqueue(ErrorUpdate(None))

    # ── Outcomes ──────────────────────────────────────────────

    def _accept(self, command_type: str) -> CommandOutcome:
        return CommandOutcome.accepted(command_type, self._clock.now_utc())

    def _reject(
        self, command_type: str, code: str, message: str, policy_name: str
    ) -> CommandOutcome:
        return CommandOutcome.rejected(
            command_type,
            RejectionReason(code=code, message=message, policy_name=policy_name),
            self._clock.now_utc(),
        )

    # ── Commit ────────────────────────────────────────────────

    def _commit(self, dataset: Dataset, scenarios: ScenarioMap, reason: str) -> None:
        self._dataset = dataset
        self._scenarios = scenarios
        if self._current_scenario_id not in scenarios:
            self._current_scenario_id = _fallback_scenario(scenarios)
        self._schedule_sync(reason)
        self._queue.enqueue(DataUpdate(dataset, scenarios, committed=True), skip_auxiliary=True)

    # ══════════════════════════════════════════════════════════
    # MUTATIONS
    # ══════════════════════════════════════════════════════════

    def _build(self, factory: Callable[..., Mutation], *args: Any) -> Mutation:
        try:
            return factory(*args)
        except (TypeError, ValueError) as exc:
            kind = getattr(factory, "command_type", factory.__name__)
            logger.warning(f"Malformed command {kind}: {exc}")
            self._queue.enqueue(ErrorUpdate(f"Invalid command ({kind}): {exc}"))
            raise StateTransitionError(kind, str(exc)) from exc

    def execute(self, command: Mutation) -> CommandOutcome:
        """Validate and apply one mutation command."""
        command_type = command.command_type
        if self._disposed:
            return self._disposed_outcome(command_type)
        self._ensure_ready(command_type)

        self._queue.enqueue(LoadingUpdate(True))
        snapshot = (self._dataset, self._scenarios, self._current_scenario_id)
        try:
            result = validate_mutation(self._dataset, command)
            if not result.is_valid:
                failure = ValidationError(command.entity, result)
                logger.info(f"{command_type} rejected: {failure}")
                self._queue.enqueue(ErrorUpdate(str(failure)))
                return self._reject(
                    command_type, ReasonCode.VALIDATION_FAILED, str(failure), "entity_validation",
                )

            updated = apply_mutation(self._dataset, command)
            if content_hash(updated) == content_hash(self._dataset):
                logger.debug(f"{command_type} changed nothing")
                return self._accept(command_type)

            self._commit(updated, self._scenarios, reason=command_type)
            logger.debug(f"{command_type} committed")
            return self._accept(command_type)
        except Exception as exc:
            self._dataset, self._scenarios, self._current_scenario_id = snapshot
            logger.error(f"{command_type} failed: {exc}", exc_info=True)
            self._queue.enqueue(ErrorUpdate(f"Failed to apply {command_type}: {exc}"))
            raise StateTransitionError(command_type, str(exc)) from exc
        finally:
            self._queue.enqueue(LoadingUpdate(False))

    def update_menu(self, menu_id: str, changes: Mapping[str, Any]) -> CommandOutcome:
        return self.execute(self._build(UpdateMenu, menu_id, changes))

    def add_menu(self, menu: Mapping[str, Any]) -> CommandOutcome:
        return self.execute(self._build(AddMenu, menu))

    def delete_menu(self, menu_id: str) -> CommandOutcome:
        return self.execute(self._build(DeleteMenu, menu_id))

    def update_sales_model(self, changes: Mapping[str, Any]) -> CommandOutcome:
        return self.execute(self._build(UpdateSalesModel, changes))

    def update_utilities(self, utilities: Any) -> CommandOutcome:
        return self.execute(self._build(UpdateUtilities, utilities))

    def update_labor(self, labor: Any) -> CommandOutcome:
        return self.execute(self._build(UpdateLabor, labor))

    def update_fixed_costs(self, fixed_costs: Any) -> CommandOutcome:
        return self.execute(self._build(UpdateFixedCosts, fixed_costs))

    def import_data(self, document: str) -> ImportResult:
        """Replace Dataset and scenarios with an exported document."""
        if self._disposed:
            return ImportResult(False, "Coordinator has been disposed")
        self._ensure_ready(FINANCE_DATA_IMPORT)

        self._queue.enqueue(LoadingUpdate(True))
        snapshot = (self._dataset, self._scenarios, self._current_scenario_id)
        try:
            try:
                dataset, scenarios = parse_import_document(document)
            except ImportRejectedError as exc:
                logger.info(f"Import rejected: {exc}")
                self._queue.enqueue(ErrorUpdate(str(exc)))
                return ImportResult(False, str(exc))

            self._commit(dataset, scenarios, reason=FINANCE_DATA_IMPORT)
            self._validation_cache.clear()
            logger.info(f"Imported {len(dataset['menus'])} menus, {len(scenarios)} scenarios")
            return ImportResult(True)
        except Exception as exc:
            self._dataset, self._scenarios, self._current_scenario_id = snapshot
            logger.error(f"Import failed: {exc}", exc_info=True)
            self._queue.enqueue(ErrorUpdate(f"Import failed: {exc}"))
            raise StateTransitionError(FINANCE_DATA_IMPORT, str(exc)) from exc
        finally:
            self._queue.enqueue(LoadingUpdate(False))

    def reset(self) -> CommandOutcome:
        """Restore the built-in default Dataset and scenarios."""
        if self._disposed:
            return self._disposed_outcome(FINANCE_DATA_RESET)
        self._ensure_ready(FINANCE_DATA_RESET)

        self._queue.enqueue(LoadingUpdate(True))
        try:
            self._commit(default_dataset(), default_scenarios(), reason=FINANCE_DATA_RESET)
            self._current_scenario_id = BASE_SCENARIO_ID
            self._queue.enqueue(ScenarioUpdate(BASE_SCENARIO_ID), skip_auxiliary=True)
            self._validation_cache.clear()
            logger.info("Dataset reset to defaults")
            return self._accept(FINANCE_DATA_RESET)
        finally:
            self._queue.enqueue(LoadingUpdate(False))

    # ── Scenarios ─────────────────────────────────────────────

    def set_current_scenario(self, scenario_id: str) -> CommandOutcome:
        if self._disposed:
            return self._disposed_outcome(FINANCE_SCENARIO_SELECT)
        if scenario_id not in self._scenarios:
            message = f"Scenario {scenario_id} not found"
            self._queue.enqueue(ErrorUpdate(message))
            return self._reject(
                FINANCE_SCENARIO_SELECT, ReasonCode.SCENARIO_NOT_FOUND, message, "scenario_lookup",
            )
        self._current_scenario_id = scenario_id
        self._queue.enqueue(ScenarioUpdate(scenario_id))
        return self._accept(FINANCE_SCENARIO_SELECT)

    def upsert_scenario(self, scenario: Mapping[str, Any]) -> CommandOutcome:
        if self._disposed:
            return self._disposed_outcome(FINANCE_SCENARIO_UPSERT)
        self._ensure_ready(FINANCE_SCENARIO_UPSERT)

        result = validate_scenario(scenario)
        if not result.is_valid:
            failure = ValidationError("Scenario", result)
            self._queue.enqueue(ErrorUpdate(str(failure)))
            return self._reject(
                FINANCE_SCENARIO_UPSERT, ReasonCode.VALIDATION_FAILED, str(failure), "scenario_validation",
            )

        self._queue.enqueue(LoadingUpdate(True))
        snapshot = (self._dataset, self._scenarios, self._current_scenario_id)
        try:
            scenarios = clone(self._scenarios)
            stored = clone(dict(scenario))
            stored.setdefault("deltas", {})
            scenarios[stored["id"]] = stored
            self._commit(self._dataset, scenarios, reason=FINANCE_SCENARIO_UPSERT)
        except Exception as exc:
            self._dataset, self._scenarios, self._current_scenario_id = snapshot
            logger.error(f"{FINANCE_SCENARIO_UPSERT} failed: {exc}", exc_info=True)
            self._queue.enqueue(ErrorUpdate(f"Failed to apply {FINANCE_SCENARIO_UPSERT}: {exc}"))
            raise StateTransitionError(FINANCE_SCENARIO_UPSERT, str(exc)) from exc
        finally:
            self._queue.enqueue(LoadingUpdate(False))
        return self._accept(FINANCE_SCENARIO_UPSERT)

    def compare_scenarios(self) -> Dict[str, ScenarioSummary]:
        self._ensure_ready("compare_scenarios")
        return compare_scenarios(
            self._dataset, self._scenarios, clock=self._clock, constants=self._constants,
        )

    # ══════════════════════════════════════════════════════════
    # SYNC CYCLE
    # ══════════════════════════════════════════════════════════

    def _schedule_sync(self, reason: str) -> None:
        if self._syncing:
            logger.debug(f"Sync in progress; dropping trigger ({reason})")
            self._queue.enqueue(LoadingUpdate(False))
            return
        if self._sync_task is not None:
            self._sync_task.cancel()
        self._sync_task = self._scheduler.call_later(
            self._config.debounce_seconds, self._run_sync, reason,
        )

    def sync_now(self, reason: str = "manual") -> bool:
        """Run a sync cycle immediately. False when one is already running."""
        if self._syncing:
            logger.debug(f"Sync in progress; dropping sync_now ({reason})")
            return False
        if self._sync_task is not None:
            self._sync_task.cancel()
        self._run_sync(reason)
        return True

    def _run_sync(self, reason: str) -> None:
        self._sync_task = None
        if self._disposed:
            return
        self._syncing = True
        try:
            dataset = self._dataset
            scenarios = self._scenarios
            if not dataset:
                logger.debug(f"Sync ({reason}) skipped: no data")
                return

            data_hash = content_hash(dataset)
            scenarios_hash = content_hash(scenarios)
            if (
                self._persisted_hashes.get(self._config.data_key) == data_hash
                and self._persisted_hashes.get(self._config.scenarios_key) == scenarios_hash
                and self._report_source_hash == data_hash
            ):
                logger.debug(f"Sync ({reason}) skipped: data unchanged")
                return

            self._sync_count += 1

            try:
                self._persist(dataset, scenarios, data_hash, scenarios_hash)
            except PersistenceError as exc:
                logger.error(f"Auto-save failed: {exc}", exc_info=True)
                self._queue.enqueue(ErrorUpdate(f"Auto-save failed: {exc}"))

            published = False
            try:
                published = self._recompute(dataset, data_hash)
            except ComputationError as exc:
                logger.error(f"Computation failed: {exc}", exc_info=True)
                self._queue.enqueue(ErrorUpdate(f"Computation failed: {exc}"))

            try:
                result = self._validated(dataset, data_hash)
                self._queue.enqueue(ValidationUpdate((result,)), skip_auxiliary=True)
            except Exception as exc:
                logger.error(f"Validation failed: {exc}", exc_info=True)
                self._queue.enqueue(ErrorUpdate(f"Validation failed: {exc}"))

            kpis = self._report.kpis if self._report is not None else None
            logger.info(
                f"Sync ({reason}) => menus={len(dataset.get('menus') or [])}, "
                f"report_published={published}, "
                f"revenue={kpis.revenue if kpis else 'n/a'}, "
                f"food_cost_pct={round(kpis.food_cost_pct, 1) if kpis else 'n/a'}"
            )
        finally:
            self._queue.enqueue(LoadingUpdate(False))
            self._syncing = False

    def _persist(
        self, dataset: Dataset, scenarios: ScenarioMap, data_hash: str, scenarios_hash: str,
    ) -> int:
        """Write each blob whose content changed. Returns the number written."""
        written = 0
        for key, value, digest in (
            (self._config.data_key, dataset, data_hash),
            (self._config.scenarios_key, scenarios, scenarios_hash),
        ):
            if self._persisted_hashes.get(key) == digest:
                continue
            try:
                self._gateway.save(key, canonical_serialize(value))
            except Exception as exc:
                raise PersistenceError("save", key, str(exc)) from exc
            self._persisted_hashes[key] = digest
            written += 1
        return written

    def _recompute(self, dataset: Dataset, data_hash: str) -> bool:
        """Compute the report; publish it only when its content changed."""
        try:
            report = self._compute(dataset, clock=self._clock, constants=self._constants)
        except Exception as exc:
            raise ComputationError(str(exc)) from exc
        if not isinstance(report, FinancialReport):
            raise ComputationError(f"compute returned {type(report).__name__}")

        self._report = report
        self._report_source_hash = data_hash
        fingerprint = report.fingerprint()
        if fingerprint == self._report_fingerprint:
            logger.debug("Report unchanged; not republished")
            return False
        self._report_fingerprint = fingerprint
        self._queue.enqueue(ReportUpdate(report), skip_auxiliary=True)
        return True

    def _validated(self, dataset: Any, data_hash: str) -> ValidationResult:
        cached = self._validation_cache.get(data_hash)
        if cached is not None:
            return cached
        result = self._validator(dataset)
        self._validation_cache.put(data_hash, result)
        return result

    def validate(self) -> ValidationResult:
        """Full validation of the canonical Dataset, cached by content hash."""
        return self._validated(self._dataset, content_hash(self._dataset))

    @property
    def validation_cache(self) -> ContentCache[ValidationResult]:
        return self._validation_cache

    # ══════════════════════════════════════════════════════════
    # PERSISTENCE & EXPORT
    # ══════════════════════════════════════════════════════════

    def force_save(self) -> bool:
        """Persist now. False when nothing changed or the write failed."""
        self._ensure_ready("force_save")
        dataset, scenarios = self._dataset, self._scenarios
        try:
            written = self._persist(
                dataset, scenarios, content_hash(dataset), content_hash(scenarios),
            )
        except PersistenceError as exc:
            logger.error(f"Force save failed: {exc}", exc_info=True)
            self._queue.enqueue(ErrorUpdate(f"Force save failed: {exc}"))
            return False
        if not written:
            logger.debug("force_save skipped, data unchanged")
        return written > 0

    def export_data(self) -> str:
        self._ensure_ready("export_data")
        return build_export_document(
            self._dataset, self._scenarios, isoformat_utc(self._clock),
        )

    def validate_data_for_export(self) -> ExportReadiness:
        issues = []
        dataset = self._dataset
        if not dataset:
            return ExportReadiness(False, ("No data available",))

        report = self._report
        if report is None:
            issues.append("No computation result yet; a sync may still be pending")
        else:
            if report.error:
                issues.append(f"Report carries an error: {report.error}")
            if not report.menus:
                issues.append("Report has no menu economics")
            if self._report_source_hash != content_hash(dataset):
                issues.append("Report is out of date with the current data")

        if not self.validate().is_valid:
            issues.append("Data validation errors present")

        return ExportReadiness(not issues, tuple(issues))

    def export_fresh_data(self) -> str:
        """Persist, resync, then export together with the current report."""
        self._ensure_ready("export_fresh_data")
        if self._syncing:
            raise StateTransitionError("export_fresh_data", "Sync in progress")

        self.force_save()
        self.sync_now("export")
        readiness = self.validate_data_for_export()
        if not readiness.is_valid:
            logger.warning(f"Exporting with issues: {', '.join(readiness.issues)}")

        report = self._report
        return build_export_document(
            self._dataset,
            self._scenarios,
            isoformat_utc(self._clock),
            extra={
                "report": report.to_dict() if report is not None else None,
                "data_version": report.data_version if report is not None else None,
                "is_fresh_export": True,
                "validation": readiness.to_dict(),
                "export_quality": "excellent" if readiness.is_valid else "warning",
            },
        )
