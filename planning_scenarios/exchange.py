from __future__ import annotations

"""
Scenario export and import.

Export writes selected scenarios to a JSON document:

    {
      "version": "1.0.0",
      "exported_at": "...Z",
      "scenarios": [...],
      "metadata": {"total_scenarios": 2, "includes_live_data": true, "exported_by": "..."}
    }

Import validates the document and re-creates each scenario through the store,
so imported scenarios get new ids, fresh timestamps and a new expiry window.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
import json
import logging

from .errors import StorageFailure, ValidationFailure
from .models import CreateScenarioParams, PlanningSnapshot, Scenario
from .scenario_logic.store import ScenarioStore
from .timeutils import as_utc, parse_iso, to_iso

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0.0"
EXPORTED_BY = "planning-scenarios"
IMPORTED_SUFFIX = " (Imported)"


def build_export_document(store: ScenarioStore, scenario_ids: Optional[Iterable[str]] = None,
                          exported_at: Optional[str] = None) -> Dict[str, Any]:
    """Collect scenarios into an export document (all of them if no ids given)."""
    if scenario_ids is None:
        scenarios = store.list()
    else:
        wanted = set(scenario_ids)
        scenarios = [s for s in store.list() if s.id in wanted]
    return {
        "version": EXPORT_FORMAT_VERSION,
        "exported_at": exported_at or to_iso(store.clock()),
        "scenarios": [s.to_dict() for s in scenarios],
        "metadata": {
            "total_scenarios": len(scenarios),
            "includes_live_data": True,
            "exported_by": EXPORTED_BY,
        },
    }


def export_scenarios(store: ScenarioStore, path: Path, scenario_ids: Optional[Iterable[str]] = None) -> Path:
    """Write an export document to `path` and return it."""
    document = build_export_document(store, scenario_ids)
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, sort_keys=False)
    except OSError as e:
        raise StorageFailure(f"Error writing export file {path}: {e}") from e
    logger.info(f"Exported {document['metadata']['total_scenarios']} scenario(s) to {path}")
    return path


def validate_export_document(document: Any) -> List[Scenario]:
    """Check the document shape and parse its scenarios.

    Raises:
        ValidationFailure: if the document is not a valid export
    """
    if not isinstance(document, dict):
        raise ValidationFailure("Invalid scenario export file format: expected an object")
    if not document.get("version"):
        raise ValidationFailure("Invalid scenario export file format: missing version", field="version")
    raw_scenarios = document.get("scenarios")
    if not isinstance(raw_scenarios, list):
        raise ValidationFailure("Invalid scenario export file format: 'scenarios' must be a list", field="scenarios")
    scenarios = []
    for index, raw in enumerate(raw_scenarios):
        try:
            scenarios.append(Scenario.from_dict(raw))
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationFailure(f"Invalid scenario at index {index}: {e}", field="scenarios") from e
    return scenarios


def _imported_description(scenario: Scenario, exported_at: Optional[str], now: datetime) -> str:
    today = as_utc(now).date().isoformat()
    if scenario.description:
        return f"{scenario.description} - Imported on {today}"
    try:
        exported_on = parse_iso(exported_at).date().isoformat() if exported_at else today
    except ValueError:
        exported_on = today
    return f"Imported scenario from {exported_on}"


def import_document(store: ScenarioStore, document: Any) -> List[str]:
    """Re-create every scenario of an export document; returns the new ids."""
    scenarios = validate_export_document(document)
    exported_at = document.get("exported_at")
    new_ids = []
    for scenario in scenarios:
        params = CreateScenarioParams(
            name=f"{scenario.name}{IMPORTED_SUFFIX}",
            description=_imported_description(scenario, exported_at, store.clock()),
        )
        data: PlanningSnapshot = scenario.data
        new_ids.append(store.create(params, data=data))
    logger.info(f"Imported {len(new_ids)} scenario(s)")
    return new_ids


def import_scenarios(store: ScenarioStore, path: Path) -> List[str]:
    """Read an export file and import its scenarios."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationFailure(f"Export file {path} is not valid JSON: {e}") from e
    except OSError as e:
        raise StorageFailure(f"Error reading export file {path}: {e}") from e
    return import_document(store, document)
