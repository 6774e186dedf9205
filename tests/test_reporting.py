"""
Tests for pandas reports of scenarios and comparisons.
"""

import pandas as pd

from planning_scenarios.comparator import ScenarioComparator
from planning_scenarios.reporting import (
    CHANGE_COLUMNS,
    SCENARIO_COLUMNS,
    comparison_changes_frame,
    comparison_summary_frame,
    scenario_listing_frame,
    write_comparison_csv,
)


def _comparison(store, live):
    scenario = store.read(store.create({"name": "S"}))
    live["projects"][0]["budget"] = 150
    live["projects"][0]["status"] = "paused"
    live["projects"].append({"id": "P2", "name": "Gemini", "budget": 10})
    return ScenarioComparator().compare(scenario, live, compared_at="2025-01-16T00:00:00.000000Z")


def test_changes_frame_has_one_row_per_detail(store, live):
    frame = comparison_changes_frame(_comparison(store, live))
    assert list(frame.columns) == CHANGE_COLUMNS
    # budget (financial), status (scope), P2 added (no details)
    assert len(frame) == 3
    added = frame[frame["change_type"] == "added"].iloc[0]
    assert added["entity_id"] == "P2"
    assert pd.isna(added["field"])
    budget = frame[frame["field"] == "budget"].iloc[0]
    assert budget["formatted_new_value"] == "$150"


def test_empty_comparison_gives_empty_frame(store, live):
    scenario = store.read(store.create({"name": "S"}))
    comparison = ScenarioComparator().compare(scenario, live)
    frame = comparison_changes_frame(comparison)
    assert frame.empty
    assert list(frame.columns) == CHANGE_COLUMNS


def test_summary_frame(store, live):
    summary = comparison_summary_frame(_comparison(store, live))
    assert summary.loc["total_changes", "value"] == 3
    assert summary.loc["total_cost_difference", "value"] == 50
    assert summary.loc["changes_scope", "value"] == 2


def test_scenario_listing_frame(store):
    store.create({"name": "A"})
    store.create({"name": "B"})
    frame = scenario_listing_frame(store.list())
    assert list(frame.columns) == SCENARIO_COLUMNS
    assert frame["name"].tolist() == ["A", "B"]
    assert frame["projects"].tolist() == [1, 1]


def test_write_comparison_csv(store, live, tmp_path):
    comparison = _comparison(store, live)
    path = write_comparison_csv(comparison, tmp_path / "exports")
    assert path.name == f"comparison_{comparison.scenario_id}.csv"
    loaded = pd.read_csv(path)
    assert len(loaded) == 3
