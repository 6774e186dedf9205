from __future__ import annotations

"""
Scenario vs live comparison.

`ScenarioComparator.compare` is a pure function of a scenario and a live
dataset: it snapshots the live side, diffs every planning collection keyed by
record id, classifies each difference (category + impact) and aggregates the
financial, resource and timeline roll-ups.

Direction: the scenario snapshot is the "old" side and live data the "new"
side, so a record that only exists live is `added` and every delta is
`live - scenario`.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import json
import logging

from .config import ImpactThresholds
from .formatting import display_name, format_value, snake_case
from .models import (
    CHANGE_CATEGORIES,
    COLLECTION_NAMES,
    ChangeDetail,
    ComparisonSummary,
    FinancialImpact,
    PeopleChanges,
    PlanningSnapshot,
    ProjectCostChange,
    ProjectDateChange,
    ResourceImpact,
    Scenario,
    ScenarioChange,
    ScenarioComparison,
    TeamCapacityChange,
    TimelineImpact,
)
from .snapshotter import EntitySnapshotter
from .timeutils import parse_calendar_date, to_iso, utc_now

logger = logging.getLogger(__name__)

BOOKKEEPING_FIELDS = frozenset({"id", "created_date", "last_modified", "createdDate", "lastModified"})

_IMPACT_RANK = {"low": 0, "medium": 1, "high": 2}


@dataclass(frozen=True)
class EntityRule:
    """How changes to one collection are categorised."""
    category: str
    added_impact: str = "low"
    removed_impact: str = "low"
    # field -> category; impact for these is computed from magnitude where a
    # threshold exists, otherwise low
    field_categories: Dict[str, str] = field(default_factory=dict)


ENTITY_RULES: Dict[str, EntityRule] = {
    "projects": EntityRule(
        category="scope",
        added_impact="medium",
        removed_impact="high",
        field_categories={"budget": "financial", "start_date": "timeline", "end_date": "timeline"},
    ),
    "teams": EntityRule(
        category="organizational",
        added_impact="medium",
        removed_impact="high",
        field_categories={"capacity": "resources"},
    ),
    "people": EntityRule(
        category="organizational",
        added_impact="low",
        removed_impact="medium",
        field_categories={"team_id": "resources", "role_id": "resources"},
    ),
    "epics": EntityRule(category="scope"),
    "project_solutions": EntityRule(category="scope"),
    "project_skills": EntityRule(category="scope"),
    "goals": EntityRule(category="scope"),
    "goal_epics": EntityRule(category="scope"),
    "goal_milestones": EntityRule(category="timeline"),
    "goal_teams": EntityRule(category="organizational"),
    "releases": EntityRule(category="timeline"),
    "iteration_snapshots": EntityRule(category="timeline"),
    "allocations": EntityRule(category="resources"),
    "actual_allocations": EntityRule(category="resources"),
    "team_members": EntityRule(category="resources"),
    "unmapped_people": EntityRule(category="resources"),
    "divisions": EntityRule(category="organizational"),
    "roles": EntityRule(category="organizational"),
    "run_work_categories": EntityRule(category="organizational"),
    "division_leadership_roles": EntityRule(category="organizational"),
}

# added/removed people are headcount changes
_PEOPLE_PRESENCE_CATEGORY = "resources"

_SINGULAR = {"people": "person", "unmapped_people": "unmapped person", "iteration_snapshots": "iteration snapshot"}


def _singular(entity_type: str) -> str:
    if entity_type in _SINGULAR:
        return _SINGULAR[entity_type]
    name = entity_type.replace("_", " ")
    return name[:-1] if name.endswith("s") else name


def _record_key(record: Any) -> str:
    if isinstance(record, dict) and record.get("id") is not None:
        return str(record["id"])
    return "json:" + json.dumps(record, sort_keys=True, default=str)


def _index(records: List[Any]) -> Dict[str, Any]:
    index: Dict[str, Any] = {}
    for record in records:
        key = _record_key(record)
        if key in index:
            logger.debug(f"Duplicate record key '{key}'; keeping the first occurrence")
            continue
        index[key] = record
    return index


def _entity_name(record: Any, key: str) -> str:
    if isinstance(record, dict):
        return str(record.get("name") or record.get("title") or key)
    return key


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _budget(value: Any) -> Optional[float]:
    """Missing budgets count as 0; non-numeric ones stay unknown."""
    return 0.0 if value is None else _number(value)


def _field(record: Dict[str, Any], name: str) -> Any:
    """Read a snake_case field, falling back to its camelCase spelling."""
    if name in record:
        return record[name]
    head, *rest = name.split("_")
    return record.get(head + "".join(part.title() for part in rest))


def _day_delta(old: Any, new: Any) -> Optional[int]:
    old_date = parse_calendar_date(old)
    new_date = parse_calendar_date(new)
    if old_date is None or new_date is None:
        return None
    return (new_date - old_date).days


def _by_magnitude(magnitude: Optional[float], high: float, medium: float) -> str:
    if magnitude is None:
        return "low"
    if magnitude > high:
        return "high"
    if magnitude > medium:
        return "medium"
    return "low"


def _max_impact(impacts: List[str]) -> str:
    return max(impacts, key=lambda i: _IMPACT_RANK[i]) if impacts else "low"


def _observable_fields(old: Dict[str, Any], new: Dict[str, Any]) -> List[str]:
    ordered = list(old) + [k for k in new if k not in old]
    return [f for f in ordered if f not in BOOKKEEPING_FIELDS and old.get(f) != new.get(f)]


class ScenarioComparator:
    """Stateless apart from its thresholds; safe to share between threads."""

    def __init__(self, thresholds: Optional[ImpactThresholds] = None, snapshotter: Optional[EntitySnapshotter] = None):
        self.thresholds = thresholds or ImpactThresholds()
        self.snapshotter = snapshotter or EntitySnapshotter()

    def compare(self, scenario: Scenario, live_data: Any, compared_at: Any = None) -> ScenarioComparison:
        """Diff `scenario.data` (old) against `live_data` (new).

        Args:
            scenario: The stored scenario.
            live_data: Anything `EntitySnapshotter.snapshot` accepts.
            compared_at: Timestamp to stamp on the result (datetime or ISO
                string). Defaults to now.
        """
        if isinstance(compared_at, datetime):
            compared_at = to_iso(compared_at)
        elif compared_at is None:
            compared_at = to_iso(utc_now())

        old = scenario.data
        new = live_data if isinstance(live_data, PlanningSnapshot) else self.snapshotter.snapshot(live_data)

        changes: List[ScenarioChange] = []
        for entity_type in COLLECTION_NAMES:
            changes.extend(self._diff_collection(entity_type, old.collection(entity_type), new.collection(entity_type)))
        config_change = self._diff_config(old.config, new.config)
        if config_change is not None:
            changes.append(config_change)

        return ScenarioComparison(
            scenario_id=scenario.id,
            scenario_name=scenario.name,
            compared_at=compared_at,
            summary=self._summarize(changes),
            changes=changes,
            financial_impact=self._financial_impact(old, new),
            resource_impact=self._resource_impact(old, new),
            timeline_impact=self._timeline_impact(old, new),
        )

    # --- change detection ---

    def _diff_collection(self, entity_type: str, old_records: List[Any], new_records: List[Any]) -> List[ScenarioChange]:
        rule = ENTITY_RULES.get(entity_type, EntityRule(category="organizational"))
        old_index = _index(old_records)
        new_index = _index(new_records)
        presence_category = _PEOPLE_PRESENCE_CATEGORY if entity_type == "people" else rule.category
        label = _singular(entity_type)

        changes: List[ScenarioChange] = []
        for key, old_record in old_index.items():
            if key not in new_index:
                name = _entity_name(old_record, key)
                changes.append(ScenarioChange(
                    id=f"{entity_type}-removed-{key}",
                    category=presence_category,
                    entity_type=entity_type,
                    entity_id=key,
                    entity_name=name,
                    change_type="removed",
                    description=f"Removed {label} '{name}'",
                    impact=rule.removed_impact,
                ))
                continue
            new_record = new_index[key]
            if isinstance(old_record, dict) and isinstance(new_record, dict):
                changes.extend(self._diff_record(entity_type, rule, key, old_record, new_record))

        for key, new_record in new_index.items():
            if key in old_index:
                continue
            name = _entity_name(new_record, key)
            changes.append(ScenarioChange(
                id=f"{entity_type}-added-{key}",
                category=presence_category,
                entity_type=entity_type,
                entity_id=key,
                entity_name=name,
                change_type="added",
                description=f"Added {label} '{name}'",
                impact=rule.added_impact,
            ))
        return changes

    def _diff_record(self, entity_type: str, rule: EntityRule, key: str,
                     old: Dict[str, Any], new: Dict[str, Any]) -> List[ScenarioChange]:
        grouped: Dict[str, List[Tuple[ChangeDetail, str]]] = {}
        for field_name in _observable_fields(old, new):
            canonical = snake_case(field_name)
            category = rule.field_categories.get(canonical, rule.category)
            impact = self._field_impact(canonical, category, old.get(field_name), new.get(field_name))
            detail = ChangeDetail(
                field=field_name,
                field_display_name=display_name(field_name),
                old_value=old.get(field_name),
                new_value=new.get(field_name),
                formatted_old_value=format_value(field_name, old.get(field_name)),
                formatted_new_value=format_value(field_name, new.get(field_name)),
            )
            grouped.setdefault(category, []).append((detail, impact))

        name = _entity_name(new, key)
        label = _singular(entity_type)
        changes = []
        for category, entries in grouped.items():
            details = [d for d, _ in entries]
            fields_text = ", ".join(d.field_display_name for d in details)
            changes.append(ScenarioChange(
                id=f"{entity_type}-modified-{category}-{key}",
                category=category,
                entity_type=entity_type,
                entity_id=key,
                entity_name=name,
                change_type="modified",
                description=f"Changed {fields_text} of {label} '{name}'",
                impact=_max_impact([i for _, i in entries]),
                details=details,
            ))
        return changes

    def _field_impact(self, field_name: str, category: str, old: Any, new: Any) -> str:
        t = self.thresholds
        if category == "financial":
            old_n, new_n = _budget(old), _budget(new)
            delta = abs(new_n - old_n) if old_n is not None and new_n is not None else None
            return _by_magnitude(delta, t.budget_high, t.budget_medium)
        if category == "timeline":
            days = _day_delta(old, new)
            return _by_magnitude(abs(days) if days is not None else None, t.date_high_days, t.date_medium_days)
        if category == "resources" and field_name == "capacity":
            old_n, new_n = _number(old), _number(new)
            delta = abs(new_n - old_n) if old_n is not None and new_n is not None else None
            return _by_magnitude(delta, t.capacity_high, t.capacity_medium)
        return "low"

    def _diff_config(self, old: Dict[str, Any], new: Dict[str, Any]) -> Optional[ScenarioChange]:
        differing = _observable_fields(old, new)
        if not differing:
            return None
        details = [
            ChangeDetail(
                field=key,
                field_display_name=display_name(key),
                old_value=old.get(key),
                new_value=new.get(key),
                formatted_old_value=format_value(key, old.get(key)),
                formatted_new_value=format_value(key, new.get(key)),
            )
            for key in differing
        ]
        return ScenarioChange(
            id="config-modified-config",
            category="organizational",
            entity_type="config",
            entity_id="config",
            entity_name="Configuration",
            change_type="modified",
            description=f"Changed configuration: {', '.join(d.field_display_name for d in details)}",
            impact="low",
            details=details,
        )

    # --- aggregation ---

    def _summarize(self, changes: List[ScenarioChange]) -> ComparisonSummary:
        categorized = {category: 0 for category in CHANGE_CATEGORIES}
        for change in changes:
            categorized[change.category] = categorized.get(change.category, 0) + 1
        high_count = sum(1 for c in changes if c.impact == "high")
        if high_count > self.thresholds.summary_high_count:
            level = "high"
        elif high_count > self.thresholds.summary_medium_count:
            level = "medium"
        else:
            level = "low"
        return ComparisonSummary(total_changes=len(changes), categorized_changes=categorized, impact_level=level)

    def _financial_impact(self, old: PlanningSnapshot, new: PlanningSnapshot) -> FinancialImpact:
        live_projects = _index(new.projects)
        cost_changes = []
        total = 0.0
        for key, old_project in _index(old.projects).items():
            new_project = live_projects.get(key)
            if not isinstance(old_project, dict) or not isinstance(new_project, dict):
                continue
            old_budget, new_budget = _budget(old_project.get("budget")), _budget(new_project.get("budget"))
            if old_budget is None or new_budget is None or old_budget == new_budget:
                continue
            difference = new_budget - old_budget
            total += difference
            cost_changes.append(ProjectCostChange(
                project_id=key,
                project_name=_entity_name(new_project, key),
                cost_difference=difference,
                percentage_change=(difference / old_budget * 100) if old_budget else 0.0,
            ))
        return FinancialImpact(total_cost_difference=total, budget_variance=total, project_cost_changes=cost_changes)

    def _resource_impact(self, old: PlanningSnapshot, new: PlanningSnapshot) -> ResourceImpact:
        old_alloc = self._allocations_per_team(old.allocations)
        new_alloc = self._allocations_per_team(new.allocations)
        live_teams = _index(new.teams)
        capacity_changes = []
        for key, old_team in _index(old.teams).items():
            new_team = live_teams.get(key)
            if not isinstance(old_team, dict) or not isinstance(new_team, dict):
                continue
            old_cap, new_cap = _number(old_team.get("capacity")), _number(new_team.get("capacity"))
            capacity_difference = (new_cap - old_cap) if old_cap is not None and new_cap is not None else 0.0
            allocation_changes = new_alloc.get(key, 0) - old_alloc.get(key, 0)
            if capacity_difference or allocation_changes:
                capacity_changes.append(TeamCapacityChange(
                    team_id=key,
                    team_name=_entity_name(new_team, key),
                    capacity_difference=capacity_difference,
                    allocation_changes=allocation_changes,
                ))

        live_people = _index(new.people)
        reallocated = 0
        for key, person in _index(old.people).items():
            live_person = live_people.get(key)
            if isinstance(person, dict) and isinstance(live_person, dict):
                if _field(person, "team_id") != _field(live_person, "team_id"):
                    reallocated += 1
        headcount_delta = len(new.people) - len(old.people)
        people = PeopleChanges(
            added=max(0, headcount_delta),
            removed=max(0, -headcount_delta),
            reallocated=reallocated,
        )
        return ResourceImpact(team_capacity_changes=capacity_changes, people_changes=people)

    @staticmethod
    def _allocations_per_team(allocations: List[Any]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for allocation in allocations:
            team = _field(allocation, "team_id") if isinstance(allocation, dict) else None
            if team is not None:
                team = str(team)
                counts[team] = counts.get(team, 0) + 1
        return counts

    def _timeline_impact(self, old: PlanningSnapshot, new: PlanningSnapshot) -> TimelineImpact:
        live_projects = _index(new.projects)
        date_changes = []
        for key, old_project in _index(old.projects).items():
            new_project = live_projects.get(key)
            if not isinstance(old_project, dict) or not isinstance(new_project, dict):
                continue
            start = _day_delta(_field(old_project, "start_date"), _field(new_project, "start_date"))
            end = _day_delta(_field(old_project, "end_date"), _field(new_project, "end_date"))
            if start or end:
                date_changes.append(ProjectDateChange(
                    project_id=key,
                    project_name=_entity_name(new_project, key),
                    start_date_change=start or None,
                    end_date_change=end or None,
                ))
        return TimelineImpact(project_date_changes=date_changes)
