from __future__ import annotations

"""
Tabular reports for scenarios and comparisons.

- `comparison_changes_frame`: one row per changed field (one row per
  added/removed entity, which has no field details)
- `comparison_summary_frame`: change counts per category plus the roll-ups
- `scenario_listing_frame`: one row per stored scenario
- `write_comparison_csv`: writes the change rows to `exports/`

Column order is fixed so CSV output is deterministic.
"""

from pathlib import Path
from typing import Iterable, List

import pandas as pd

from .io_paths import EXPORTS_DIR
from .models import Scenario, ScenarioComparison

CHANGE_COLUMNS = [
    "change_id",
    "category",
    "entity_type",
    "entity_id",
    "entity_name",
    "change_type",
    "impact",
    "field",
    "old_value",
    "new_value",
    "formatted_old_value",
    "formatted_new_value",
]

SCENARIO_COLUMNS = [
    "id",
    "name",
    "template_name",
    "created_date",
    "last_modified",
    "expires_at",
    "total_modifications",
    "people",
    "teams",
    "projects",
]


def comparison_changes_frame(comparison: ScenarioComparison) -> pd.DataFrame:
    rows = []
    for change in comparison.changes:
        base = {
            "change_id": change.id,
            "category": change.category,
            "entity_type": change.entity_type,
            "entity_id": change.entity_id,
            "entity_name": change.entity_name,
            "change_type": change.change_type,
            "impact": change.impact,
        }
        if not change.details:
            rows.append({**base, "field": None, "old_value": None, "new_value": None,
                         "formatted_old_value": None, "formatted_new_value": None})
            continue
        for detail in change.details:
            rows.append({
                **base,
                "field": detail.field,
                "old_value": detail.old_value,
                "new_value": detail.new_value,
                "formatted_old_value": detail.formatted_old_value,
                "formatted_new_value": detail.formatted_new_value,
            })
    return pd.DataFrame(rows, columns=CHANGE_COLUMNS)


def comparison_summary_frame(comparison: ScenarioComparison) -> pd.DataFrame:
    """Single-column frame indexed by metric name."""
    metrics = {f"changes_{category}": count for category, count in comparison.summary.categorized_changes.items()}
    metrics.update({
        "total_changes": comparison.summary.total_changes,
        "impact_level": comparison.summary.impact_level,
        "total_cost_difference": comparison.financial_impact.total_cost_difference,
        "budget_variance": comparison.financial_impact.budget_variance,
        "people_added": comparison.resource_impact.people_changes.added,
        "people_removed": comparison.resource_impact.people_changes.removed,
        "people_reallocated": comparison.resource_impact.people_changes.reallocated,
        "projects_rescheduled": len(comparison.timeline_impact.project_date_changes),
    })
    return pd.DataFrame({"value": list(metrics.values())}, index=pd.Index(list(metrics.keys()), name="metric"))


def scenario_listing_frame(scenarios: Iterable[Scenario]) -> pd.DataFrame:
    rows: List[dict] = []
    for scenario in scenarios:
        rows.append({
            "id": scenario.id,
            "name": scenario.name,
            "template_name": scenario.template_name,
            "created_date": scenario.created_date,
            "last_modified": scenario.last_modified,
            "expires_at": scenario.expires_at,
            "total_modifications": scenario.metadata.total_modifications,
            "people": len(scenario.data.people),
            "teams": len(scenario.data.teams),
            "projects": len(scenario.data.projects),
        })
    return pd.DataFrame(rows, columns=SCENARIO_COLUMNS)


def write_comparison_csv(comparison: ScenarioComparison, output_dir: Path | None = None) -> Path:
    """Write the change rows to `<output_dir>/comparison_<scenario_id>.csv` and return the path."""
    out_dir = Path(output_dir) if output_dir is not None else EXPORTS_DIR
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"comparison_{comparison.scenario_id}.csv"
    comparison_changes_frame(comparison).to_csv(out_path, index=False)
    return out_path
