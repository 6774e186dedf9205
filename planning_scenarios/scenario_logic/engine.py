"""
Framework-agnostic facade wiring the scenario engine together.

`build_engine(config)` creates the storage backend, template registry,
scenario store, lifecycle manager, context router and comparator from an
`EngineConfig`. Front ends (CLI, UI) talk to `ScenarioEngine` only.
"""

from typing import Any, Callable, Dict, Optional
import logging

from ..comparator import ScenarioComparator
from ..config import EngineConfig
from ..models import CreateScenarioParams, ScenarioComparison
from ..snapshotter import EntitySnapshotter
from ..storage import JsonFileStorage, KeyValueStorage, StorageLiveDataSource
from ..timeutils import Clock, utc_now
from .context_router import ContextRouter
from .lifecycle import ScenarioLifecycleManager
from .store import ScenarioStore
from .templates import TemplateRegistry

logger = logging.getLogger(__name__)


class ScenarioEngine:
    """Entry point bundling every scenario component."""

    def __init__(self, config: EngineConfig, storage: KeyValueStorage,
                 live_data_provider: Optional[Callable[[], Any]] = None, clock: Clock = utc_now):
        self.config = config
        self.storage = storage
        self.clock = clock
        self.live_source = StorageLiveDataSource(storage)
        self.snapshotter = EntitySnapshotter()
        self.templates = TemplateRegistry(storage, clock=clock)
        self.templates.seed()
        self.store = ScenarioStore(
            storage,
            live_data_provider=live_data_provider or self.live_source,
            snapshotter=self.snapshotter,
            template_registry=self.templates,
            clock=clock,
            retention_days=config.retention_days,
        )
        self.lifecycle = ScenarioLifecycleManager(self.store, clock=clock,
                                                  interval_seconds=config.sweep_interval_seconds)
        self.router = ContextRouter(self.store)
        self.comparator = ScenarioComparator(config.thresholds, self.snapshotter)

    def start(self) -> None:
        self.lifecycle.start()

    def stop(self) -> None:
        self.lifecycle.stop()

    def create_scenario(self, name: str, description: Optional[str] = None, **kwargs) -> str:
        return self.store.create(CreateScenarioParams(name=name, description=description, **kwargs))

    def create_scenario_from_template(self, template_id: str, parameters: Optional[Dict[str, Any]] = None,
                                      name: Optional[str] = None) -> str:
        """Create a scenario named after the template and apply it."""
        template = self.templates.get(template_id)
        return self.store.create(CreateScenarioParams(
            name=name or f"{template.name} Scenario",
            description=f"Created from {template.name} template",
            template_id=template_id,
            template_parameters=dict(parameters or {}),
        ))

    def compare(self, scenario_id: str) -> ScenarioComparison:
        """Compare a stored scenario against current live data."""
        scenario = self.store.read(scenario_id)
        return self.comparator.compare(scenario, self.router.live_data(), compared_at=self.clock())


def build_engine(config: EngineConfig, storage: Optional[KeyValueStorage] = None, **kwargs) -> ScenarioEngine:
    """Build an engine, defaulting to JSON files under `config.storage_dir`."""
    if storage is None:
        storage = JsonFileStorage(config.storage_dir)
        logger.debug(f"Using JSON file storage at {config.storage_dir}")
    return ScenarioEngine(config, storage, **kwargs)
