"""Planning scenario engine.

Branch the planning dataset into isolated what-if scenarios, edit them
independently of live data, and compare them against the live state.

Stateful components live in the `scenario_logic` subpackage; the pure pieces
(data model, snapshotting, declarative modifications, comparison) sit at the
package top level.
"""

from .errors import CloneFailure, NotFound, ScenarioError, StorageFailure, ValidationFailure
from .models import (
    CreateScenarioParams,
    PlanningSnapshot,
    Scenario,
    ScenarioComparison,
    ScenarioTemplate,
)
from .snapshotter import EntitySnapshotter
from .comparator import ScenarioComparator
from .config import EngineConfig, ImpactThresholds, load_engine_config
from .storage import InMemoryStorage, JsonFileStorage, StorageLiveDataSource

__all__ = [
    "CloneFailure",
    "NotFound",
    "ScenarioError",
    "StorageFailure",
    "ValidationFailure",
    "CreateScenarioParams",
    "PlanningSnapshot",
    "Scenario",
    "ScenarioComparison",
    "ScenarioTemplate",
    "EntitySnapshotter",
    "ScenarioComparator",
    "EngineConfig",
    "ImpactThresholds",
    "load_engine_config",
    "InMemoryStorage",
    "JsonFileStorage",
    "StorageLiveDataSource",
]

# Stateful components
from .scenario_logic import (  # noqa: E402
    ContextRouter,
    ScenarioEngine,
    ScenarioLifecycleManager,
    ScenarioStore,
    TemplateRegistry,
    build_engine,
)

__all__ += [
    "ContextRouter",
    "ScenarioEngine",
    "ScenarioLifecycleManager",
    "ScenarioStore",
    "TemplateRegistry",
    "build_engine",
]
