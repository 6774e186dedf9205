"""
Framework-agnostic routing between live data and the active scenario.

The router is an explicit context object: it holds a reference to a
`ScenarioStore` and a live-data provider, never module-level state, so several
routers can coexist (e.g. in tests).

Editing flow in scenario mode:
1. `checkout()` returns an independent copy of the current data
2. the caller edits it and calls `stage(snapshot, modifications)` (marks
   unsaved changes); `record_modification` builds the audit entries
3. `save_current_scenario()` persists the data and appends the pending audit
   entries to the scenario, or `discard_changes()` drops both
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Union
import logging

from ..models import ModificationChange, PlanningSnapshot, Scenario, ScenarioModification
from ..snapshotter import EntitySnapshotter
from ..timeutils import to_iso
from .store import ScenarioStore

logger = logging.getLogger(__name__)


class ContextRouter:
    """Serves the dataset of whichever context is active."""

    def __init__(self, store: ScenarioStore, live_data_provider: Optional[Callable[[], Any]] = None,
                 snapshotter: Optional[EntitySnapshotter] = None):
        self.store = store
        self.live_data_provider = live_data_provider or store.live_data_provider
        self.snapshotter = snapshotter or store.snapshotter
        self._working: Optional[PlanningSnapshot] = None
        self._working_for: Optional[str] = None
        self._pending: List[ScenarioModification] = []
        store.add_listener("active_scenario_changed", self._on_active_changed)

    def _on_active_changed(self, old_id: Optional[str], new_id: Optional[str]) -> None:
        if self._working is not None and self._working_for != new_id:
            logger.debug(f"Dropping working copy of scenario {self._working_for} after context switch")
            self._reset_working()

    def _reset_working(self) -> None:
        self._working = None
        self._working_for = None
        self._pending = []

    @property
    def is_in_scenario_mode(self) -> bool:
        return self.store.is_in_scenario_mode

    def live_data(self) -> PlanningSnapshot:
        """Fresh, independent snapshot of live data."""
        return self.snapshotter.snapshot(self.live_data_provider())

    def get_current_data(self) -> PlanningSnapshot:
        """
        Data of the active context.

        In scenario mode this is the staged working copy if there is one,
        otherwise the scenario's stored snapshot (by reference; use
        `checkout()` before editing). In live mode a fresh live snapshot.
        """
        scenario = self.store.active_scenario
        if scenario is None:
            return self.live_data()
        if self._working is not None and self._working_for == scenario.id:
            return self._working
        return scenario.data

    def checkout(self) -> PlanningSnapshot:
        """Independent copy of the current data for editing."""
        return self.snapshotter.clone(self.get_current_data())

    @property
    def pending_modifications(self) -> List[ScenarioModification]:
        return list(self._pending)

    def record_modification(self, type: str, entity_type: str, entity_id: str, description: str,
                            entity_name: Optional[str] = None,
                            changes: Optional[Dict[str, Any]] = None) -> ScenarioModification:
        """Build an audit entry stamped with the store's id factory and clock.

        `changes` maps field -> (old, new).
        """
        return ScenarioModification(
            id=self.store.id_factory(),
            timestamp=to_iso(self.store.clock()),
            type=type,
            entity_type=entity_type,
            entity_id=str(entity_id),
            description=description,
            entity_name=entity_name,
            changes=[ModificationChange(field=k, old_value=old, new_value=new)
                     for k, (old, new) in (changes or {}).items()],
        )

    def stage(self, snapshot: PlanningSnapshot,
              modifications: Optional[Iterable[Union[ScenarioModification, Dict[str, Any]]]] = None) -> None:
        """Hold `snapshot` as the working copy of the active scenario.

        `modifications` are audit entries for the edits in `snapshot`; they
        accumulate across calls until the next save or discard.
        """
        scenario = self.store.active_scenario
        if scenario is None:
            logger.debug("Nothing to stage in live mode")
            return
        self._working = snapshot
        self._working_for = scenario.id
        for modification in modifications or []:
            if not isinstance(modification, ScenarioModification):
                modification = ScenarioModification.from_dict(modification)
            self._pending.append(modification)
        self.store.mark_unsaved()

    def save_current_scenario(self) -> Optional[Scenario]:
        """Persist the working state into the active scenario. No-op in live mode."""
        scenario = self.store.active_scenario
        if scenario is None:
            logger.debug("save_current_scenario called in live mode; nothing to save")
            return None
        data = self.snapshotter.clone(self.get_current_data())
        changes: Dict[str, Any] = {"data": data}
        if self._pending:
            changes["modifications"] = list(scenario.modifications) + self._pending
        updated = self.store.update(scenario.id, changes)
        self._reset_working()
        self.store.clear_unsaved()
        return updated

    def discard_changes(self) -> None:
        """Drop the working copy and its pending audit entries."""
        self._reset_working()
        self.store.clear_unsaved()
