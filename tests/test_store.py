"""
Tests for the scenario store: creation, CRUD, active context and events.
"""

import pytest

from planning_scenarios.errors import NotFound, StorageFailure, ValidationFailure
from planning_scenarios.models import CreateScenarioParams, PlanningSnapshot
from planning_scenarios.scenario_logic import ScenarioStore, TemplateRegistry
from planning_scenarios.storage import ACTIVE_SCENARIO_KEY, SCENARIOS_KEY, InMemoryStorage
from planning_scenarios.timeutils import parse_iso

from conftest import START, FakeClock, sequential_ids


class FailingStorage(InMemoryStorage):
    """Fails writes to selected keys once armed."""

    def __init__(self):
        super().__init__()
        self.fail_keys = set()

    def set(self, key, value):
        if key in self.fail_keys:
            raise StorageFailure(f"disk full writing {key}", key=key)
        super().set(key, value)


class TestCreate:

    def test_create_stamps_dates_and_snapshots_live(self, store, live):
        scenario_id = store.create({"name": "  Plan B  ", "description": "what if"})
        scenario = store.read(scenario_id)

        assert scenario.name == "Plan B"
        assert scenario.created_date == "2025-01-15T12:00:00.000000Z"
        assert scenario.last_modified == scenario.created_date
        assert parse_iso(scenario.expires_at) == START.replace(month=3, day=16)
        assert scenario.metadata.created_from_live_state is True
        assert scenario.metadata.total_modifications == 0
        assert scenario.data.projects == live["projects"]

        live["projects"][0]["budget"] = 1
        assert store.read(scenario_id).data.projects[0]["budget"] == 100

    def test_explicit_expiry_must_be_in_future(self, store):
        with pytest.raises(ValidationFailure):
            store.create(CreateScenarioParams(name="x", expires_at="2025-01-15T12:00:00Z"))
        scenario_id = store.create(CreateScenarioParams(name="x", expires_at="2025-02-01T00:00:00Z"))
        assert store.read(scenario_id).expires_at == "2025-02-01T00:00:00.000000Z"

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_empty_name_rejected(self, store, name):
        with pytest.raises(ValidationFailure):
            store.create({"name": name})
        assert store.list() == []

    def test_non_mapping_params_rejected(self, store):
        with pytest.raises(ValidationFailure):
            store.create(["name"])

    def test_unknown_template_is_not_found(self, store):
        with pytest.raises(NotFound):
            store.create({"name": "x", "template_id": "ghost", "template_parameters": {}})
        assert store.list() == []

    def test_template_applied_and_usage_recorded(self, store, registry):
        scenario_id = store.create({
            "name": "Cut",
            "template_id": "budget-cut-10",
            "template_parameters": {"budget_reduction": 50},
        })
        scenario = store.read(scenario_id)
        assert scenario.template_id == "budget-cut-10"
        assert scenario.template_name == "Budget Reduction"
        assert scenario.data.projects[0]["budget"] == pytest.approx(50)
        assert scenario.metadata.total_modifications == 1
        assert len(scenario.modifications) == 1
        assert registry.get("budget-cut-10").usage_count == 1

    def test_template_without_parameters_only_tags_scenario(self, store, registry):
        scenario_id = store.create({"name": "Tagged", "template_id": "project-delay"})
        scenario = store.read(scenario_id)
        assert scenario.template_name == "Project Timeline Delay"
        assert scenario.modifications == []
        assert scenario.data.projects[0]["start_date"] == "2025-02-01"
        assert registry.get("project-delay").usage_count == 0

    def test_live_data_failure_leaves_store_unchanged(self, storage, registry, clock):
        def broken():
            raise IOError("live backend down")

        store = ScenarioStore(storage, live_data_provider=broken, template_registry=registry, clock=clock)
        with pytest.raises(StorageFailure):
            store.create({"name": "x"})
        assert store.list() == []
        assert storage.get(SCENARIOS_KEY) is None

    def test_storage_failure_rolls_back(self, live, clock):
        storage = FailingStorage()
        storage.fail_keys.add(SCENARIOS_KEY)
        store = ScenarioStore(storage, live_data_provider=lambda: live, clock=clock)
        with pytest.raises(StorageFailure):
            store.create({"name": "x"})
        assert store.list() == []

    def test_template_usage_failure_rolls_back_scenario(self, live, clock):
        storage = FailingStorage()
        registry = TemplateRegistry(storage, clock=clock)
        registry.seed()
        store = ScenarioStore(storage, live_data_provider=lambda: live, template_registry=registry, clock=clock)
        existing = store.create({"name": "keep"})

        storage.fail_keys.add("planning-scenario-templates")
        with pytest.raises(StorageFailure):
            store.create({"name": "x", "template_id": "project-delay", "template_parameters": {}})

        assert [s.id for s in store.list()] == [existing]
        assert [s["id"] for s in storage.get(SCENARIOS_KEY)] == [existing]
        assert registry.get("project-delay").usage_count == 0


class TestReadUpdateDelete:

    def test_read_missing_raises_and_get_returns_none(self, store):
        with pytest.raises(NotFound):
            store.read("nope")
        assert store.get("nope") is None

    def test_update_merges_and_refreshes_timestamps(self, store, clock):
        scenario_id = store.create({"name": "A"})
        clock.advance(hours=1)
        updated = store.update(scenario_id, {"name": "B"}, description="desc")

        assert updated.name == "B"
        assert updated.description == "desc"
        assert updated.last_modified == "2025-01-15T13:00:00.000000Z"
        assert updated.metadata.last_access_date == updated.last_modified
        assert updated.created_date == "2025-01-15T12:00:00.000000Z"
        assert store.read(scenario_id).name == "B"

    def test_update_data_is_copied(self, store):
        scenario_id = store.create({"name": "A"})
        data = PlanningSnapshot(projects=[{"id": "P9", "budget": 5}])
        store.update(scenario_id, {"data": data})
        data.projects[0]["budget"] = 6
        assert store.read(scenario_id).data.projects == [{"id": "P9", "budget": 5}]

    def test_update_unknown_id_is_silent(self, store):
        assert store.update("nope", {"name": "x"}) is None
        assert store.update("nope", {"id": "other"}) is None

    def test_update_rejects_unknown_fields_and_bad_values(self, store):
        scenario_id = store.create({"name": "A"})
        with pytest.raises(ValidationFailure):
            store.update(scenario_id, {"id": "other"})
        with pytest.raises(ValidationFailure):
            store.update(scenario_id, {"name": ""})
        with pytest.raises(ValidationFailure):
            store.update(scenario_id, {"expires_at": "2024-01-01T00:00:00Z"})

    def test_delete_removes_and_unknown_is_noop(self, store):
        scenario_id = store.create({"name": "A"})
        store.delete("nope")
        store.delete(scenario_id)
        assert store.list() == []

    def test_state_survives_reload(self, store, storage, live, clock):
        scenario_id = store.create({"name": "A"})
        store.switch_to(scenario_id)

        reloaded = ScenarioStore(storage, live_data_provider=lambda: live, clock=clock)
        assert reloaded.read(scenario_id).data == store.read(scenario_id).data
        assert reloaded.active_scenario_id == scenario_id


class TestActiveContext:

    def test_switch_to_missing_raises_and_keeps_context(self, store):
        scenario_id = store.create({"name": "A"})
        store.switch_to(scenario_id)
        with pytest.raises(NotFound):
            store.switch_to("nope")
        assert store.active_scenario_id == scenario_id

    def test_switch_stamps_access_and_clears_unsaved(self, store, storage, clock):
        scenario_id = store.create({"name": "A"})
        clock.advance(minutes=5)
        store.switch_to(scenario_id)
        store.mark_unsaved()
        assert store.has_unsaved_changes
        assert store.is_in_scenario_mode
        assert storage.get(ACTIVE_SCENARIO_KEY) == scenario_id

        store.switch_to(scenario_id)
        assert not store.has_unsaved_changes
        assert store.active_scenario.metadata.last_access_date == "2025-01-15T12:05:00.000000Z"

        store.switch_to_live()
        assert store.active_scenario is None
        assert storage.get(ACTIVE_SCENARIO_KEY) is None

    def test_mark_unsaved_ignored_in_live_mode(self, store):
        store.mark_unsaved()
        assert not store.has_unsaved_changes

    def test_deleting_active_scenario_resets_context(self, store):
        scenario_id = store.create({"name": "A"})
        store.switch_to(scenario_id)
        store.mark_unsaved()
        store.delete(scenario_id)
        assert store.active_scenario_id is None
        assert not store.is_in_scenario_mode
        assert not store.has_unsaved_changes

    def test_update_of_active_scenario_clears_unsaved(self, store):
        scenario_id = store.create({"name": "A"})
        store.switch_to(scenario_id)
        store.mark_unsaved()
        store.update(scenario_id, {"description": "saved"})
        assert not store.has_unsaved_changes


class TestEvents:

    def test_events_are_emitted(self, store):
        events = []
        for name in ("scenario_created", "scenario_updated", "scenario_deleted", "active_scenario_changed"):
            store.add_listener(name, lambda *args, _n=name: events.append((_n, args)))

        scenario_id = store.create({"name": "A"})
        store.switch_to(scenario_id)
        store.update(scenario_id, {"name": "B"})
        store.delete(scenario_id)

        names = [n for n, _ in events]
        assert names == [
            "scenario_created",
            "active_scenario_changed",
            "scenario_updated",
            "scenario_deleted",
            "active_scenario_changed",
        ]
        assert events[1][1] == (None, scenario_id)
        assert events[-1][1] == (scenario_id, None)

    def test_listener_errors_are_contained(self, store):
        def boom(*args):
            raise RuntimeError("listener failed")

        store.add_listener("scenario_created", boom)
        scenario_id = store.create({"name": "A"})
        assert store.get(scenario_id) is not None

        store.remove_listener("scenario_created", boom)
        store.remove_listener("scenario_created", boom)


def test_ids_come_from_factory(storage, live, clock):
    store = ScenarioStore(storage, live_data_provider=lambda: live, clock=clock, id_factory=sequential_ids("s"))
    assert store.create({"name": "A"}) == "s-1"
    assert store.create({"name": "B"}) == "s-2"


class TestNaiveClock:

    @pytest.fixture
    def naive_store(self, storage, live):
        clock = FakeClock(START.replace(tzinfo=None))
        return ScenarioStore(storage, live_data_provider=lambda: live, clock=clock), clock

    def test_naive_clock_is_read_as_utc(self, naive_store):
        store, _ = naive_store
        scenario_id = store.create(CreateScenarioParams(name="x", expires_at="2025-02-01T00:00:00Z"))
        assert store.read(scenario_id).created_date == "2025-01-15T12:00:00.000000Z"
        with pytest.raises(ValidationFailure):
            store.create(CreateScenarioParams(name="y", expires_at="2025-01-15T11:00:00Z"))

    def test_naive_clock_sweep_purges(self, naive_store):
        store, clock = naive_store
        scenario_id = store.create({"name": "old"})
        clock.advance(days=61)
        assert [s.id for s in store.purge_expired()] == [scenario_id]
        assert store.list() == []
