from __future__ import annotations

"""
Data model for scenario snapshots, templates and comparisons.

Everything here is plain data: dataclasses holding dicts, lists and scalars
so that each record can be (de)serialized as a JSON value under a storage
key. Conversion helpers (`to_dict` / `from_dict`) use snake_case keys.

Entity records inside a `PlanningSnapshot` (people, teams, projects, ...)
are owned by external collaborators and are kept as plain dicts. The engine
only relies on a handful of their fields (`id`, `name`, `budget`,
`start_date`, `end_date`, `capacity`, `team_id`).
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple


# Snapshot schema: attribute name -> camelCase alias accepted on input
COLLECTION_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("people", "people"),
    ("teams", "teams"),
    ("projects", "projects"),
    ("epics", "epics"),
    ("allocations", "allocations"),
    ("divisions", "divisions"),
    ("roles", "roles"),
    ("releases", "releases"),
    ("project_solutions", "projectSolutions"),
    ("project_skills", "projectSkills"),
    ("run_work_categories", "runWorkCategories"),
    ("team_members", "teamMembers"),
    ("division_leadership_roles", "divisionLeadershipRoles"),
    ("unmapped_people", "unmappedPeople"),
    ("actual_allocations", "actualAllocations"),
    ("iteration_snapshots", "iterationSnapshots"),
    ("goals", "goals"),
    ("goal_epics", "goalEpics"),
    ("goal_milestones", "goalMilestones"),
    ("goal_teams", "goalTeams"),
)

COLLECTION_NAMES: Tuple[str, ...] = tuple(name for name, _ in COLLECTION_FIELDS)

CHANGE_CATEGORIES: Tuple[str, ...] = ("financial", "resources", "timeline", "scope", "organizational")
CHANGE_TYPES: Tuple[str, ...] = ("added", "modified", "removed")
IMPACT_LEVELS: Tuple[str, ...] = ("low", "medium", "high")

TEMPLATE_CATEGORIES: Tuple[str, ...] = (
    "budget",
    "team-changes",
    "project-timeline",
    "resource-allocation",
    "strategic-planning",
    "risk-mitigation",
)


@dataclass
class PlanningSnapshot:
    """Independently owned copy of every mutable planning collection.

    Build instances through `EntitySnapshotter`; constructing one by hand
    does not copy anything.
    """
    people: List[Dict[str, Any]] = field(default_factory=list)
    teams: List[Dict[str, Any]] = field(default_factory=list)
    projects: List[Dict[str, Any]] = field(default_factory=list)
    epics: List[Dict[str, Any]] = field(default_factory=list)
    allocations: List[Dict[str, Any]] = field(default_factory=list)
    divisions: List[Dict[str, Any]] = field(default_factory=list)
    roles: List[Dict[str, Any]] = field(default_factory=list)
    releases: List[Dict[str, Any]] = field(default_factory=list)
    project_solutions: List[Dict[str, Any]] = field(default_factory=list)
    project_skills: List[Dict[str, Any]] = field(default_factory=list)
    run_work_categories: List[Dict[str, Any]] = field(default_factory=list)
    team_members: List[Dict[str, Any]] = field(default_factory=list)
    division_leadership_roles: List[Dict[str, Any]] = field(default_factory=list)
    unmapped_people: List[Dict[str, Any]] = field(default_factory=list)
    actual_allocations: List[Dict[str, Any]] = field(default_factory=list)
    iteration_snapshots: List[Dict[str, Any]] = field(default_factory=list)
    goals: List[Dict[str, Any]] = field(default_factory=list)
    goal_epics: List[Dict[str, Any]] = field(default_factory=list)
    goal_milestones: List[Dict[str, Any]] = field(default_factory=list)
    goal_teams: List[Dict[str, Any]] = field(default_factory=list)
    config: Dict[str, Any] = field(default_factory=dict)

    def collection(self, name: str) -> List[Dict[str, Any]]:
        if name not in COLLECTION_NAMES:
            raise KeyError(f"Unknown planning collection: {name}")
        return getattr(self, name)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PlanningSnapshot":
        """Rebuild from a stored dict without copying (the caller owns `data`)."""
        data = data or {}
        kwargs: Dict[str, Any] = {}
        for name, alias in COLLECTION_FIELDS:
            value = data.get(name, data.get(alias))
            kwargs[name] = value if isinstance(value, list) else []
        config = data.get("config")
        kwargs["config"] = config if isinstance(config, dict) else {}
        return cls(**kwargs)

    def counts(self) -> Dict[str, int]:
        """Number of records per collection, handy for logs and listings."""
        return {name: len(getattr(self, name)) for name in COLLECTION_NAMES}


@dataclass
class ScenarioMetadata:
    created_from_live_state: bool = True
    live_state_snapshot_date: str = ""
    total_modifications: int = 0
    last_access_date: str = ""


@dataclass
class ModificationChange:
    field: str
    old_value: Any = None
    new_value: Any = None


@dataclass
class ScenarioModification:
    """An explicit edit applied to a scenario, kept for auditability."""
    id: str
    timestamp: str
    type: str  # "create" | "update" | "delete"
    entity_type: str
    entity_id: str
    description: str
    entity_name: Optional[str] = None
    changes: List[ModificationChange] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScenarioModification":
        changes = [ModificationChange(**c) for c in data.get("changes") or []]
        return cls(
            id=str(data["id"]),
            timestamp=str(data.get("timestamp", "")),
            type=str(data.get("type", "update")),
            entity_type=str(data.get("entity_type", "")),
            entity_id=str(data.get("entity_id", "")),
            description=str(data.get("description", "")),
            entity_name=data.get("entity_name"),
            changes=changes,
        )


@dataclass
class Scenario:
    """A named, time-boxed, independent copy of the live dataset.

    Invariant: `expires_at` is strictly later than `created_date`.
    """
    id: str
    name: str
    created_date: str
    last_modified: str
    expires_at: str
    data: PlanningSnapshot
    description: Optional[str] = None
    template_id: Optional[str] = None
    template_name: Optional[str] = None
    modifications: List[ScenarioModification] = field(default_factory=list)
    metadata: ScenarioMetadata = field(default_factory=ScenarioMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scenario":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            created_date=str(data["created_date"]),
            last_modified=str(data.get("last_modified") or data["created_date"]),
            expires_at=str(data["expires_at"]),
            data=PlanningSnapshot.from_dict(data.get("data")),
            description=data.get("description"),
            template_id=data.get("template_id"),
            template_name=data.get("template_name"),
            modifications=[ScenarioModification.from_dict(m) for m in data.get("modifications") or []],
            metadata=ScenarioMetadata(**(data.get("metadata") or {})),
        )


@dataclass
class CreateScenarioParams:
    name: str
    description: Optional[str] = None
    template_id: Optional[str] = None
    template_parameters: Optional[Dict[str, Any]] = None
    expires_at: Optional[str] = None

    @classmethod
    def coerce(cls, params: "CreateScenarioParams | Dict[str, Any]") -> "CreateScenarioParams":
        if isinstance(params, cls):
            return params
        if not isinstance(params, dict):
            raise TypeError(f"Expected CreateScenarioParams or dict, got {type(params).__name__}")
        return cls(
            name=params.get("name"),
            description=params.get("description"),
            template_id=params.get("template_id"),
            template_parameters=params.get("template_parameters"),
            expires_at=params.get("expires_at"),
        )


# --- Templates ---

@dataclass
class TemplateParameter:
    """A user input a template needs (e.g. a percentage or a team id).

    `derived_from` + `transform` declare computed parameters, e.g. a budget
    multiplier derived from a reduction percentage.
    """
    id: str
    name: str
    type: str = "number"  # number | percentage | text | date | select
    description: str = ""
    required: bool = False
    default_value: Any = None
    options: List[Dict[str, Any]] = field(default_factory=list)
    min: Optional[float] = None
    max: Optional[float] = None
    derived_from: Optional[str] = None
    transform: Optional[str] = None


@dataclass
class TemplateFilter:
    field: str
    operator: str  # equals | not-equals | contains | greater-than | less-than | in-range
    value: Any = None
    second_value: Any = None


@dataclass
class TemplateChange:
    field: str
    operation: str  # set | add | subtract | multiply | add-days | add-weeks
    value: Any = None


@dataclass
class TemplateModification:
    entity_type: str
    operation: str  # create | update | delete | bulk-update
    changes: List[TemplateChange] = field(default_factory=list)
    filter: Optional[TemplateFilter] = None


@dataclass
class TemplateConfig:
    modifications: List[TemplateModification] = field(default_factory=list)
    parameters: List[TemplateParameter] = field(default_factory=list)


@dataclass
class ScenarioTemplate:
    id: str
    name: str
    description: str
    category: str
    config: TemplateConfig = field(default_factory=TemplateConfig)
    is_default: bool = False
    usage_count: int = 0
    last_used: Optional[str] = None
    icon: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScenarioTemplate":
        config = data.get("config") or {}
        modifications = []
        for mod in config.get("modifications") or []:
            flt = mod.get("filter")
            modifications.append(
                TemplateModification(
                    entity_type=str(mod["entity_type"]),
                    operation=str(mod["operation"]),
                    changes=[TemplateChange(**c) for c in mod.get("changes") or []],
                    filter=TemplateFilter(**flt) if isinstance(flt, dict) else None,
                )
            )
        parameters = [TemplateParameter(**p) for p in config.get("parameters") or []]
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            description=str(data.get("description", "")),
            category=str(data.get("category", "strategic-planning")),
            config=TemplateConfig(modifications=modifications, parameters=parameters),
            is_default=bool(data.get("is_default", False)),
            usage_count=int(data.get("usage_count", 0) or 0),
            last_used=data.get("last_used"),
            icon=data.get("icon"),
        )


# --- Comparison ---

@dataclass
class ChangeDetail:
    field: str
    field_display_name: str
    old_value: Any
    new_value: Any
    formatted_old_value: str = ""
    formatted_new_value: str = ""


@dataclass
class ScenarioChange:
    id: str
    category: str
    entity_type: str
    entity_id: str
    entity_name: str
    change_type: str
    description: str
    impact: str
    details: List[ChangeDetail] = field(default_factory=list)


@dataclass
class ComparisonSummary:
    total_changes: int
    categorized_changes: Dict[str, int]
    impact_level: str


@dataclass
class ProjectCostChange:
    project_id: str
    project_name: str
    cost_difference: float
    percentage_change: float


@dataclass
class FinancialImpact:
    total_cost_difference: float = 0.0
    budget_variance: float = 0.0
    project_cost_changes: List[ProjectCostChange] = field(default_factory=list)


@dataclass
class TeamCapacityChange:
    team_id: str
    team_name: str
    capacity_difference: float
    allocation_changes: int


@dataclass
class PeopleChanges:
    added: int = 0
    removed: int = 0
    reallocated: int = 0


@dataclass
class ResourceImpact:
    team_capacity_changes: List[TeamCapacityChange] = field(default_factory=list)
    people_changes: PeopleChanges = field(default_factory=PeopleChanges)


@dataclass
class ProjectDateChange:
    project_id: str
    project_name: str
    start_date_change: Optional[int] = None  # days, live minus scenario
    end_date_change: Optional[int] = None


@dataclass
class TimelineImpact:
    project_date_changes: List[ProjectDateChange] = field(default_factory=list)


@dataclass
class ScenarioComparison:
    """Delta between a scenario snapshot and live data. Derived, never persisted."""
    scenario_id: str
    scenario_name: str
    compared_at: str
    summary: ComparisonSummary
    changes: List[ScenarioChange]
    financial_impact: FinancialImpact
    resource_impact: ResourceImpact
    timeline_impact: TimelineImpact

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
