"""
Tests for engine configuration loading.
"""

from pathlib import Path

import pytest

from planning_scenarios.config import (
    EngineConfig,
    ImpactThresholds,
    engine_config_from_dict,
    load_engine_config,
)
from planning_scenarios.errors import ValidationFailure
from planning_scenarios.io_paths import DEFAULT_CONFIG_FILE


def test_missing_file_gives_defaults(tmp_path):
    config = load_engine_config(tmp_path / "absent.yaml")
    assert config == EngineConfig()
    assert config.retention_days == 60
    assert config.sweep_interval_seconds == 3600


def test_shipped_config_matches_defaults():
    config = load_engine_config(DEFAULT_CONFIG_FILE)
    assert config.thresholds == ImpactThresholds()
    assert config.retention_days == 60


def test_relative_dirs_resolve_against_project_root(tmp_path):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    path = config_dir / "engine.yaml"
    path.write_text("storage_dir: state\nlog_dir: /var/tmp/logs\nretention_days: 7\n", encoding="utf-8")

    config = load_engine_config(path)
    assert config.storage_dir == tmp_path.resolve() / "state"
    assert config.log_dir == Path("/var/tmp/logs")
    assert config.retention_days == 7


def test_threshold_overrides():
    config = engine_config_from_dict({"thresholds": {"capacity_high": 30, "summary_high_count": 8}})
    assert config.thresholds.capacity_high == 30
    assert config.thresholds.summary_high_count == 8
    assert config.thresholds.budget_high == 100_000


@pytest.mark.parametrize(
    "data",
    [
        {"retention_days": 0},
        {"retention_days": "soon"},
        {"unknown_key": 1},
        {"thresholds": {"budget_medium": 200_000}},
        {"thresholds": {"bogus": 1}},
        {"thresholds": [1, 2]},
        {"storage_dir": ""},
    ],
)
def test_invalid_values_raise(data):
    with pytest.raises(ValidationFailure):
        engine_config_from_dict(data)


def test_invalid_yaml_raises(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("retention_days: [unclosed\n", encoding="utf-8")
    with pytest.raises(ValidationFailure):
        load_engine_config(path)
