"""
Tests for structural snapshotting of live planning data.
"""

import logging
from types import SimpleNamespace

import pytest

from planning_scenarios.errors import CloneFailure
from planning_scenarios.models import COLLECTION_NAMES, PlanningSnapshot
from planning_scenarios.snapshotter import EntitySnapshotter, clone_value


class TestCloneValue:

    def test_nested_structures_are_reallocated(self):
        original = {"a": [1, {"b": [2, 3]}], "c": None}
        copy = clone_value(original)
        assert copy == original
        assert copy is not original
        assert copy["a"] is not original["a"]
        assert copy["a"][1] is not original["a"][1]

    def test_tuples_become_lists(self):
        assert clone_value((1, 2)) == [1, 2]

    def test_non_plain_values_raise(self):
        with pytest.raises(CloneFailure) as exc:
            clone_value({"when": object()}, "projects")
        assert exc.value.collection == "projects"

    def test_non_string_keys_raise(self):
        with pytest.raises(CloneFailure):
            clone_value({1: "x"})


class TestEntitySnapshotter:

    def test_independence_both_directions(self, live):
        snapshot = EntitySnapshotter().snapshot(live)

        live["projects"][0]["budget"] = 999
        live["teams"].append({"id": "t9"})
        live["config"]["iterations"] = 12
        assert snapshot.projects[0]["budget"] == 100
        assert len(snapshot.teams) == 2
        assert snapshot.config["iterations"] == 6

        snapshot.people[0]["name"] = "Changed"
        snapshot.roles.clear()
        assert live["people"][0]["name"] == "Ada"
        assert len(live["roles"]) == 1

    def test_missing_collections_and_config_default_to_empty(self):
        snapshot = EntitySnapshotter().snapshot({"projects": [{"id": "P1"}]})
        for name in COLLECTION_NAMES:
            assert isinstance(snapshot.collection(name), list)
        assert snapshot.config == {}
        assert snapshot.projects == [{"id": "P1"}]

    def test_none_yields_empty_snapshot(self):
        snapshot = EntitySnapshotter().snapshot(None)
        assert snapshot == PlanningSnapshot()

    def test_camel_case_aliases_are_accepted(self):
        snapshot = EntitySnapshotter().snapshot({"projectSkills": [{"id": "s1"}], "goalEpics": [{"id": "g1"}]})
        assert snapshot.project_skills == [{"id": "s1"}]
        assert snapshot.goal_epics == [{"id": "g1"}]

    def test_object_sources_are_read_by_attribute(self):
        source = SimpleNamespace(teams=[{"id": "t1"}], config={"x": 1})
        snapshot = EntitySnapshotter().snapshot(source)
        assert snapshot.teams == [{"id": "t1"}]
        assert snapshot.config == {"x": 1}

    def test_corrupted_collection_degrades_to_empty(self, caplog):
        data = {"projects": "not-a-list", "teams": [{"id": "t1", "bad": object()}], "people": [{"id": "u1"}]}
        with caplog.at_level(logging.WARNING):
            snapshot = EntitySnapshotter().snapshot(data)
        assert snapshot.projects == []
        assert snapshot.teams == []
        assert snapshot.people == [{"id": "u1"}]
        assert "projects" in caplog.text
        assert "teams" in caplog.text

    def test_non_mapping_config_becomes_empty(self):
        snapshot = EntitySnapshotter().snapshot({"config": ["nope"]})
        assert snapshot.config == {}

    def test_clone_is_independent(self, live):
        snapshotter = EntitySnapshotter()
        first = snapshotter.snapshot(live)
        second = snapshotter.clone(first)
        second.projects[0]["budget"] = 1
        assert first.projects[0]["budget"] == 100
