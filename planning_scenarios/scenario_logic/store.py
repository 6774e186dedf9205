"""
Framework-agnostic scenario store.

This module owns the durable scenario collection and the active context:
- Creating scenarios from a snapshot of live data (optionally via a template)
- Reading, listing, updating and deleting scenarios
- Switching between live mode and one active scenario
- Tracking unsaved changes for the active scenario
- Batch removal of expired scenarios for the lifecycle manager

Writes replace an immutable tuple under a lock. Every write is persisted to
the storage key first and only then published in memory, so a failed write
leaves both sides exactly as they were.
"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import logging
import threading
import uuid

from ..errors import NotFound, ScenarioError, StorageFailure, ValidationFailure
from ..models import (
    CreateScenarioParams,
    PlanningSnapshot,
    Scenario,
    ScenarioMetadata,
    ScenarioModification,
)
from ..snapshotter import EntitySnapshotter
from ..storage import ACTIVE_SCENARIO_KEY, SCENARIOS_KEY, KeyValueStorage, StorageLiveDataSource
from ..timeutils import Clock, add_days, as_utc, parse_iso, to_iso, utc_now
from .templates import TemplateRegistry

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 60

UPDATABLE_FIELDS = ("name", "description", "expires_at", "template_id", "template_name", "data", "modifications")

_KEEP = object()


def new_id() -> str:
    return str(uuid.uuid4())


class ScenarioStore:
    """
    Durable scenario collection plus the active-context pointer.

    Events (listener callbacks receive the listed arguments):
    - `scenario_created(scenario)`
    - `scenario_updated(scenario)`
    - `scenario_deleted(scenario_id)`
    - `active_scenario_changed(old_id, new_id)`
    - `scenarios_purged(count, scenario_ids)`

    Returned `Scenario` objects are the stored instances. Treat them as
    read-only; change them through `update`.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        live_data_provider: Optional[Callable[[], Any]] = None,
        snapshotter: Optional[EntitySnapshotter] = None,
        template_registry: Optional[TemplateRegistry] = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = new_id,
        retention_days: float = DEFAULT_RETENTION_DAYS,
    ):
        self.storage = storage
        self.live_data_provider = live_data_provider or StorageLiveDataSource(storage)
        self.snapshotter = snapshotter or EntitySnapshotter()
        self.template_registry = template_registry
        self.clock = clock
        self.id_factory = id_factory
        self.retention_days = retention_days

        self._lock = threading.RLock()
        self._listeners: Dict[str, List[Callable]] = {}
        self._scenarios: Tuple[Scenario, ...] = ()
        self._active_id: Optional[str] = None
        self._unsaved = False
        self._load()

    # --- persistence ---

    def _load(self) -> None:
        raw = self.storage.get(SCENARIOS_KEY, [])
        if not isinstance(raw, list):
            logger.error(f"Stored scenarios under '{SCENARIOS_KEY}' are not a list; starting empty")
            raw = []
        scenarios = []
        for item in raw:
            try:
                scenarios.append(Scenario.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping unreadable stored scenario: {e}")
        self._scenarios = tuple(scenarios)

        active_id = self.storage.get(ACTIVE_SCENARIO_KEY)
        if active_id is not None and self.get(active_id) is None:
            logger.warning(f"Stored active scenario '{active_id}' no longer exists; using live data")
            active_id = None
        self._active_id = active_id
        logger.debug(f"Loaded {len(self._scenarios)} scenario(s), active={self._active_id}")

    def _persist(self, scenarios: Tuple[Scenario, ...], active_id: Any = _KEEP) -> None:
        previous = self._scenarios
        self.storage.set(SCENARIOS_KEY, [s.to_dict() for s in scenarios])
        if active_id is _KEEP or active_id == self._active_id:
            return
        try:
            if active_id is None:
                self.storage.delete(ACTIVE_SCENARIO_KEY)
            else:
                self.storage.set(ACTIVE_SCENARIO_KEY, active_id)
        except StorageFailure:
            self.storage.set(SCENARIOS_KEY, [s.to_dict() for s in previous])
            raise

    def _commit(self, scenarios: Tuple[Scenario, ...], active_id: Any = _KEEP) -> None:
        self._persist(scenarios, active_id)
        self._scenarios = scenarios
        if active_id is not _KEEP:
            self._active_id = active_id

    # --- listeners ---

    def add_listener(self, event: str, callback: Callable) -> None:
        """Add a listener for store events."""
        if event not in self._listeners:
            self._listeners[event] = []
        self._listeners[event].append(callback)

    def remove_listener(self, event: str, callback: Callable) -> None:
        """Remove a listener for store events."""
        if event in self._listeners:
            try:
                self._listeners[event].remove(callback)
            except ValueError:
                pass

    def _notify_listeners(self, event: str, *args, **kwargs) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in scenario listener callback for '{event}': {e}")

    # --- active context ---

    @property
    def active_scenario_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active_scenario(self) -> Optional[Scenario]:
        active_id = self._active_id
        return self.get(active_id) if active_id is not None else None

    @property
    def is_in_scenario_mode(self) -> bool:
        return self._active_id is not None

    @property
    def has_unsaved_changes(self) -> bool:
        return self._unsaved

    def mark_unsaved(self) -> None:
        if self._active_id is None:
            logger.debug("Ignoring unsaved-changes mark in live mode")
            return
        self._unsaved = True

    def clear_unsaved(self) -> None:
        self._unsaved = False

    # --- reads ---

    def get(self, scenario_id: str) -> Optional[Scenario]:
        for scenario in self._scenarios:
            if scenario.id == scenario_id:
                return scenario
        return None

    def read(self, scenario_id: str) -> Scenario:
        scenario = self.get(scenario_id)
        if scenario is None:
            raise NotFound("scenario", scenario_id)
        return scenario

    def list(self) -> List[Scenario]:
        return list(self._scenarios)

    # --- writes ---

    def _read_live_data(self) -> Any:
        try:
            return self.live_data_provider()
        except ScenarioError:
            raise
        except Exception as e:
            raise StorageFailure(f"Could not read live data: {e}") from e

    def _resolve_expiry(self, expires_at: Optional[str], now: datetime) -> str:
        if expires_at is None:
            return to_iso(add_days(now, self.retention_days))
        try:
            parsed = parse_iso(expires_at)
        except (TypeError, ValueError) as e:
            raise ValidationFailure(f"Invalid expires_at: {expires_at!r}", field="expires_at") from e
        if parsed <= now:
            raise ValidationFailure("expires_at must be in the future", field="expires_at")
        return to_iso(parsed)

    def create(self, params: Union[CreateScenarioParams, Dict[str, Any]],
               data: Optional[PlanningSnapshot] = None) -> str:
        """Create a scenario from the current live data and return its id.

        Passing `data` seeds the scenario from that snapshot (copied) instead
        of live data; used when importing exported scenarios.

        Raises:
            ValidationFailure: empty name or an expiry that is not in the future
            NotFound: unknown template id
            StorageFailure: live data or storage unavailable; nothing is kept
        """
        try:
            params = CreateScenarioParams.coerce(params)
        except TypeError as e:
            raise ValidationFailure(str(e)) from e
        name = str(params.name or "").strip()
        if not name:
            raise ValidationFailure("Scenario name must not be empty", field="name")

        now = as_utc(self.clock())
        now_iso = to_iso(now)
        expires_at = self._resolve_expiry(params.expires_at, now)

        template = None
        if params.template_id:
            if self.template_registry is None:
                raise NotFound("template", params.template_id)
            template = self.template_registry.get(params.template_id)

        from_live = data is None
        data = self.snapshotter.snapshot(self._read_live_data()) if from_live else self.snapshotter.clone(data)
        modifications: List[ScenarioModification] = []
        if template is not None and params.template_parameters is not None:
            application = self.template_registry.apply(
                template.id, data, params.template_parameters, timestamp=now_iso
            )
            data = application.snapshot
            modifications = application.modifications

        scenario = Scenario(
            id=self.id_factory(),
            name=name,
            description=params.description,
            created_date=now_iso,
            last_modified=now_iso,
            expires_at=expires_at,
            template_id=template.id if template else None,
            template_name=template.name if template else None,
            data=data,
            modifications=modifications,
            metadata=ScenarioMetadata(
                created_from_live_state=from_live,
                live_state_snapshot_date=now_iso,
                total_modifications=len(modifications),
                last_access_date=now_iso,
            ),
        )

        with self._lock:
            previous = self._scenarios
            scenarios = previous + (scenario,)
            self._persist(scenarios)
            if template is not None and params.template_parameters is not None:
                try:
                    self.template_registry.record_usage(template.id, now_iso)
                except ScenarioError as e:
                    self.storage.set(SCENARIOS_KEY, [s.to_dict() for s in previous])
                    if isinstance(e, StorageFailure):
                        raise
                    raise StorageFailure(f"Could not record template usage: {e}") from e
            self._scenarios = scenarios

        logger.info(f"Created scenario '{name}' ({scenario.id}), expires {expires_at}")
        self._notify_listeners("scenario_created", scenario)
        return scenario.id

    def update(self, scenario_id: str, partial: Optional[Dict[str, Any]] = None, **fields) -> Optional[Scenario]:
        """Merge fields into a scenario. Unknown ids are ignored (returns None)."""
        changes = dict(partial or {})
        changes.update(fields)

        with self._lock:
            current = self.get(scenario_id)
            if current is None:
                logger.debug(f"Ignoring update for unknown scenario '{scenario_id}'")
                return None
            unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
            if unknown:
                raise ValidationFailure(f"Cannot update scenario fields: {unknown}")

            now_iso = to_iso(self.clock())
            values = self._coerce_update(current, changes)
            metadata = replace(current.metadata, last_access_date=now_iso)
            if "modifications" in values:
                metadata = replace(metadata, total_modifications=len(values["modifications"]))
            updated = replace(current, last_modified=now_iso, metadata=metadata, **values)

            self._commit(tuple(updated if s.id == scenario_id else s for s in self._scenarios))
            if scenario_id == self._active_id:
                self._unsaved = False

        self._notify_listeners("scenario_updated", updated)
        return updated

    def _coerce_update(self, current: Scenario, changes: Dict[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "name":
                value = str(value or "").strip()
                if not value:
                    raise ValidationFailure("Scenario name must not be empty", field="name")
            elif key == "expires_at":
                try:
                    parsed = parse_iso(value)
                except (TypeError, ValueError) as e:
                    raise ValidationFailure(f"Invalid expires_at: {value!r}", field="expires_at") from e
                if parsed <= parse_iso(current.created_date):
                    raise ValidationFailure("expires_at must be after created_date", field="expires_at")
                value = to_iso(parsed)
            elif key == "data":
                if isinstance(value, dict):
                    value = PlanningSnapshot.from_dict(value)
                if not isinstance(value, PlanningSnapshot):
                    raise ValidationFailure("Scenario data must be a PlanningSnapshot or dict", field="data")
                value = self.snapshotter.clone(value)
            elif key == "modifications":
                value = [m if isinstance(m, ScenarioModification) else ScenarioModification.from_dict(m)
                         for m in value or []]
            values[key] = value
        return values

    def delete(self, scenario_id: str) -> None:
        """Remove a scenario; deleting the active one returns to live mode."""
        with self._lock:
            if self.get(scenario_id) is None:
                return
            was_active = scenario_id == self._active_id
            remaining = tuple(s for s in self._scenarios if s.id != scenario_id)
            if was_active:
                self._commit(remaining, active_id=None)
                self._unsaved = False
            else:
                self._commit(remaining)

        logger.info(f"Deleted scenario {scenario_id}")
        self._notify_listeners("scenario_deleted", scenario_id)
        if was_active:
            self._notify_listeners("active_scenario_changed", scenario_id, None)

    def switch_to(self, scenario_id: str) -> Scenario:
        """Make a scenario the active context.

        Raises:
            NotFound: if the scenario does not exist
        """
        with self._lock:
            current = self.read(scenario_id)
            old_id = self._active_id
            now_iso = to_iso(self.clock())
            touched = replace(current, metadata=replace(current.metadata, last_access_date=now_iso))
            self._commit(
                tuple(touched if s.id == scenario_id else s for s in self._scenarios),
                active_id=scenario_id,
            )
            self._unsaved = False

        logger.info(f"Switched to scenario '{touched.name}' ({scenario_id})")
        self._notify_listeners("active_scenario_changed", old_id, scenario_id)
        return touched

    def switch_to_live(self) -> None:
        with self._lock:
            old_id = self._active_id
            if old_id is not None:
                self._commit(self._scenarios, active_id=None)
            self._unsaved = False
        if old_id is not None:
            logger.info("Switched to live data")
            self._notify_listeners("active_scenario_changed", old_id, None)

    def purge_expired(self, now: Optional[datetime] = None) -> List[Scenario]:
        """Remove every scenario whose expiry is strictly before `now` in one batch."""
        now = as_utc(now or self.clock())
        with self._lock:
            expired = []
            for scenario in self._scenarios:
                try:
                    if parse_iso(scenario.expires_at) < now:
                        expired.append(scenario)
                except ValueError:
                    logger.warning(f"Scenario {scenario.id} has an unreadable expiry {scenario.expires_at!r}")
            if not expired:
                return []

            expired_ids = {s.id for s in expired}
            remaining = tuple(s for s in self._scenarios if s.id not in expired_ids)
            old_id = self._active_id
            active_removed = old_id in expired_ids
            if active_removed:
                self._commit(remaining, active_id=None)
                self._unsaved = False
            else:
                self._commit(remaining)

        ids = [s.id for s in expired]
        logger.info(f"Purged {len(expired)} expired scenario(s)")
        self._notify_listeners("scenarios_purged", len(expired), ids)
        if active_removed:
            self._notify_listeners("active_scenario_changed", old_id, None)
        return expired
