"""
Tests for the engine facade wiring.
"""

import pytest

from planning_scenarios.config import EngineConfig
from planning_scenarios.errors import NotFound
from planning_scenarios.models import PlanningSnapshot
from planning_scenarios.scenario_logic import build_engine
from planning_scenarios.storage import InMemoryStorage, JsonFileStorage

from conftest import FakeClock


@pytest.fixture
def engine():
    engine = build_engine(EngineConfig(), storage=InMemoryStorage(), clock=FakeClock())
    engine.live_source.save(PlanningSnapshot(
        projects=[{"id": "P1", "name": "Apollo", "budget": 1000, "start_date": "2025-02-01"}],
        teams=[{"id": "t1", "name": "Core", "capacity": 40}],
    ))
    return engine


def test_builtin_templates_seeded(engine):
    assert {t.id for t in engine.templates.list()} >= {"budget-cut-10", "project-delay"}


def test_create_from_template_and_compare(engine):
    scenario_id = engine.create_scenario_from_template("budget-cut-10", {"budget_reduction": 10})
    scenario = engine.store.read(scenario_id)
    assert scenario.name == "Budget Reduction Scenario"
    assert scenario.description == "Created from Budget Reduction template"
    assert scenario.data.projects[0]["budget"] == pytest.approx(900)

    comparison = engine.compare(scenario_id)
    [change] = comparison.changes
    assert change.category == "financial"
    assert comparison.financial_impact.total_cost_difference == pytest.approx(100)
    assert comparison.compared_at == "2025-01-15T12:00:00.000000Z"


def test_create_plain_scenario(engine):
    scenario_id = engine.create_scenario("Plain", description="no template")
    assert engine.compare(scenario_id).summary.total_changes == 0


def test_unknown_template_raises(engine):
    with pytest.raises(NotFound):
        engine.create_scenario_from_template("ghost")


def test_start_and_stop(engine):
    engine.start()
    try:
        assert engine.lifecycle.is_running
    finally:
        engine.stop()
    assert not engine.lifecycle.is_running


def test_default_storage_is_json_files(tmp_path):
    engine = build_engine(EngineConfig(storage_dir=tmp_path / "data"))
    assert isinstance(engine.storage, JsonFileStorage)
    assert (tmp_path / "data" / "planning-scenario-templates.json").exists()
