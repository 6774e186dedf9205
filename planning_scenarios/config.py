from __future__ import annotations

"""
Engine configuration loaded from `config/engine.yaml`.

The file is optional: a missing file yields the defaults below. Present keys
are coerced and validated; bad values raise `ValidationFailure` naming the
offending key so the message is actionable.

Example:

    storage_dir: data
    retention_days: 60
    sweep_interval_seconds: 3600
    thresholds:
      budget_high: 100000
      capacity_high: 20
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import yaml

from .errors import ValidationFailure
from .io_paths import DATA_DIR, DEFAULT_CONFIG_FILE, LOGS_DIR, PROJECT_ROOT

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 60 * 60


@dataclass(frozen=True)
class ImpactThresholds:
    """Magnitude cut-offs for change impact (strictly greater than)."""
    budget_high: float = 100_000.0
    budget_medium: float = 50_000.0
    capacity_high: float = 20.0
    capacity_medium: float = 10.0
    date_high_days: float = 30.0
    date_medium_days: float = 14.0
    # overall level from the number of high-impact changes
    summary_high_count: int = 5
    summary_medium_count: int = 2


@dataclass(frozen=True)
class EngineConfig:
    storage_dir: Path = DATA_DIR
    log_dir: Path = LOGS_DIR
    retention_days: float = DEFAULT_RETENTION_DAYS
    sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    debug: bool = False
    thresholds: ImpactThresholds = field(default_factory=ImpactThresholds)


def _coerce_positive(value: Any, key: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailure(f"Config '{key}' must be a number, got {value!r}", field=key) from exc
    if number <= 0:
        raise ValidationFailure(f"Config '{key}' must be positive, got {number}", field=key)
    return number


def _resolve_dir(value: Any, base: Path, key: str) -> Path:
    if not isinstance(value, (str, Path)) or not str(value).strip():
        raise ValidationFailure(f"Config '{key}' must be a directory path", field=key)
    path = Path(value).expanduser()
    return path if path.is_absolute() else (base / path)


def _parse_thresholds(raw: Any) -> ImpactThresholds:
    if raw is None:
        return ImpactThresholds()
    if not isinstance(raw, dict):
        raise ValidationFailure("Config 'thresholds' must be a mapping", field="thresholds")
    known = {f.name: f for f in fields(ImpactThresholds)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ValidationFailure(f"Unknown threshold keys: {unknown}", field="thresholds")
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        number = _coerce_positive(value, f"thresholds.{key}")
        values[key] = int(number) if key.startswith("summary_") else number
    thresholds = ImpactThresholds(**values)
    for kind in ("budget", "capacity"):
        if getattr(thresholds, f"{kind}_medium") > getattr(thresholds, f"{kind}_high"):
            raise ValidationFailure(f"thresholds.{kind}_medium must not exceed thresholds.{kind}_high", field="thresholds")
    if thresholds.date_medium_days > thresholds.date_high_days:
        raise ValidationFailure("thresholds.date_medium_days must not exceed thresholds.date_high_days", field="thresholds")
    return thresholds


def engine_config_from_dict(data: Optional[Dict[str, Any]], base_dir: Path = PROJECT_ROOT) -> EngineConfig:
    """Build an `EngineConfig` from a parsed mapping; relative dirs resolve against `base_dir`."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValidationFailure("Engine config root must be a mapping")
    allowed = {"storage_dir", "log_dir", "retention_days", "sweep_interval_seconds", "debug", "thresholds"}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValidationFailure(f"Unknown engine config keys: {unknown}")

    defaults = EngineConfig()
    return EngineConfig(
        storage_dir=_resolve_dir(data["storage_dir"], base_dir, "storage_dir") if "storage_dir" in data else defaults.storage_dir,
        log_dir=_resolve_dir(data["log_dir"], base_dir, "log_dir") if "log_dir" in data else defaults.log_dir,
        retention_days=_coerce_positive(data.get("retention_days", defaults.retention_days), "retention_days"),
        sweep_interval_seconds=_coerce_positive(
            data.get("sweep_interval_seconds", defaults.sweep_interval_seconds), "sweep_interval_seconds"
        ),
        debug=bool(data.get("debug", defaults.debug)),
        thresholds=_parse_thresholds(data.get("thresholds")),
    )


def load_engine_config(path: Optional[Path] = None) -> EngineConfig:
    """Load the engine config YAML, falling back to defaults if the file is absent.

    Relative directories resolve against the parent of the config file's
    folder (the project root for `config/engine.yaml`).
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_FILE
    if not config_path.exists():
        logger.debug(f"No engine config at {config_path}; using defaults")
        return EngineConfig()
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationFailure(f"YAML parsing error in {config_path}: {e}") from e
    return engine_config_from_dict(data, base_dir=config_path.resolve().parent.parent)
