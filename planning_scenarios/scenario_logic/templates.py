"""
Framework-agnostic template registry for scenario creation.

This module owns the catalog of scenario templates:
- Built-in templates declared in `builtin_templates.yaml`, seeded once
- User-defined templates added at runtime
- Usage statistics (`usage_count`, `last_used`) per template id
- Parameter resolution (defaults, bounds, derived values)
- Application of a template to a snapshot through a pluggable strategy

A strategy is a pure function `(snapshot, parameters) -> snapshot`. Templates
without a registered strategy use the declarative engine in
`planning_scenarios.modifications`, so adding a template never requires code
changes in the store or the comparator.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging
import threading
import uuid

import yaml

from ..errors import NotFound, StorageFailure, ValidationFailure
from ..models import (
    TEMPLATE_CATEGORIES,
    PlanningSnapshot,
    ScenarioModification,
    ScenarioTemplate,
    TemplateParameter,
)
from ..modifications import apply_template_modifications
from ..snapshotter import EntitySnapshotter
from ..storage import TEMPLATES_KEY, KeyValueStorage
from ..timeutils import Clock, to_iso, utc_now

logger = logging.getLogger(__name__)

BUILTIN_TEMPLATES_FILE = Path(__file__).resolve().parents[1] / "builtin_templates.yaml"

TemplateStrategy = Callable[[PlanningSnapshot, Dict[str, Any]], PlanningSnapshot]

_TRANSFORMS: Dict[str, Callable[[float], float]] = {
    "reduction_multiplier": lambda v: (100 - v) / 100,
    "increase_multiplier": lambda v: (100 + v) / 100,
}
_NUMERIC_TYPES = ("number", "percentage")


@dataclass
class TemplateApplication:
    """Result of applying a template to a snapshot."""
    snapshot: PlanningSnapshot
    parameters: Dict[str, Any]
    modifications: List[ScenarioModification] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def load_builtin_catalog(path: Path = BUILTIN_TEMPLATES_FILE) -> List[ScenarioTemplate]:
    """Parse the built-in template YAML into fresh `ScenarioTemplate`s."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or []
    except yaml.YAMLError as e:
        raise ValidationFailure(f"YAML parsing error in {path}: {e}") from e
    except OSError as e:
        raise StorageFailure(f"Cannot read template catalog {path}: {e}") from e
    if not isinstance(raw, list):
        raise ValidationFailure(f"Template catalog {path} must be a list of templates")
    templates = []
    for entry in raw:
        template = ScenarioTemplate.from_dict(entry)
        templates.append(replace(template, is_default=True, usage_count=0, last_used=None))
    return templates


def _coerce_number(value: Any, param: TemplateParameter) -> float:
    if isinstance(value, bool):
        raise ValidationFailure(f"Parameter '{param.name}' must be a number", field=param.id)
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailure(f"Parameter '{param.name}' must be a number, got {value!r}", field=param.id) from exc
    return int(number) if number.is_integer() and not isinstance(value, float) else number


class TemplateRegistry:
    """
    Catalog of scenario templates persisted under `TEMPLATES_KEY`.

    Seeding is guarded twice: an in-memory flag skips repeated calls on the
    same instance, and merging by id makes a re-seed after a restart add only
    missing built-ins without touching stored usage statistics.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        catalog_path: Path = BUILTIN_TEMPLATES_FILE,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.storage = storage
        self.catalog_path = Path(catalog_path)
        self.clock = clock
        self.id_factory = id_factory
        self._strategies: Dict[str, TemplateStrategy] = {}
        self._lock = threading.RLock()
        self._seeded = False

    # --- persistence ---

    def _load(self) -> List[ScenarioTemplate]:
        raw = self.storage.get(TEMPLATES_KEY, [])
        if not isinstance(raw, list):
            logger.error(f"Stored templates under '{TEMPLATES_KEY}' are not a list; ignoring them")
            return []
        return [ScenarioTemplate.from_dict(item) for item in raw]

    def _save(self, templates: List[ScenarioTemplate]) -> None:
        self.storage.set(TEMPLATES_KEY, [t.to_dict() for t in templates])

    # --- catalog management ---

    def seed(self) -> int:
        """Add missing built-in templates. Returns how many were added."""
        with self._lock:
            if self._seeded:
                return 0
            stored = self._load()
            known = {t.id for t in stored}
            missing = [t for t in load_builtin_catalog(self.catalog_path) if t.id not in known]
            if missing:
                self._save(stored + missing)
                logger.info(f"Seeded {len(missing)} built-in scenario template(s)")
            self._seeded = True
            return len(missing)

    def refresh(self) -> List[ScenarioTemplate]:
        """Rebuild built-ins from the catalog, keeping usage stats and user templates."""
        with self._lock:
            stored = {t.id: t for t in self._load()}
            builtins = []
            for template in load_builtin_catalog(self.catalog_path):
                existing = stored.get(template.id)
                if existing is not None:
                    template = replace(template, usage_count=existing.usage_count, last_used=existing.last_used)
                builtins.append(template)
            builtin_ids = {t.id for t in builtins}
            user_templates = [t for t in stored.values() if t.id not in builtin_ids and not t.is_default]
            refreshed = builtins + user_templates
            self._save(refreshed)
            self._seeded = True
            return refreshed

    def list(self) -> List[ScenarioTemplate]:
        return self._load()

    def get(self, template_id: str) -> ScenarioTemplate:
        for template in self._load():
            if template.id == template_id:
                return template
        raise NotFound("template", template_id)

    def add_template(self, template: ScenarioTemplate) -> ScenarioTemplate:
        """Register a user-defined template."""
        if not str(template.name or "").strip():
            raise ValidationFailure("Template name must not be empty", field="name")
        if template.category not in TEMPLATE_CATEGORIES:
            raise ValidationFailure(
                f"Unknown template category '{template.category}'. Expected one of {list(TEMPLATE_CATEGORIES)}",
                field="category",
            )
        with self._lock:
            stored = self._load()
            template_id = template.id or self.id_factory()
            if any(t.id == template_id for t in stored):
                raise ValidationFailure(f"Template id '{template_id}' already exists", field="id")
            new_template = replace(template, id=template_id, is_default=False, usage_count=0, last_used=None)
            self._save(stored + [new_template])
            logger.info(f"Added user template '{new_template.name}' ({template_id})")
            return new_template

    def remove_template(self, template_id: str) -> None:
        with self._lock:
            stored = self._load()
            template = next((t for t in stored if t.id == template_id), None)
            if template is None:
                raise NotFound("template", template_id)
            if template.is_default:
                raise ValidationFailure(f"Built-in template '{template_id}' cannot be removed", field="id")
            self._save([t for t in stored if t.id != template_id])

    def record_usage(self, template_id: str, when: Optional[str] = None) -> ScenarioTemplate:
        """Increment the usage counter and stamp `last_used`."""
        when = when or to_iso(self.clock())
        with self._lock:
            stored = self._load()
            updated = None
            for i, template in enumerate(stored):
                if template.id == template_id:
                    updated = replace(template, usage_count=template.usage_count + 1, last_used=when)
                    stored[i] = updated
            if updated is None:
                raise NotFound("template", template_id)
            self._save(stored)
            return updated

    # --- application ---

    def register_strategy(self, template_id: str, strategy: TemplateStrategy) -> None:
        """Override how a template mutates a snapshot."""
        self._strategies[template_id] = strategy

    def resolve_parameters(self, template: ScenarioTemplate, parameters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Fill defaults, validate bounds and compute derived parameters."""
        resolved: Dict[str, Any] = dict(parameters or {})
        derived: List[TemplateParameter] = []
        for param in template.config.parameters:
            if param.derived_from:
                derived.append(param)
                continue
            value = resolved.get(param.id)
            if value is None or (isinstance(value, str) and not value.strip()):
                if param.default_value is not None:
                    value = param.default_value
                elif param.required:
                    raise ValidationFailure(f"Missing required parameter '{param.name}'", field=param.id)
                else:
                    resolved.pop(param.id, None)
                    continue
            if param.type in _NUMERIC_TYPES:
                value = _coerce_number(value, param)
                if param.min is not None and value < param.min:
                    raise ValidationFailure(f"Parameter '{param.name}' must be >= {param.min}", field=param.id)
                if param.max is not None and value > param.max:
                    raise ValidationFailure(f"Parameter '{param.name}' must be <= {param.max}", field=param.id)
            if param.type == "select" and param.options:
                allowed = [opt.get("value") for opt in param.options]
                if value not in allowed:
                    raise ValidationFailure(f"Parameter '{param.name}' must be one of {allowed}", field=param.id)
            resolved[param.id] = value

        for param in derived:
            transform = _TRANSFORMS.get(param.transform or "")
            if transform is None:
                raise ValidationFailure(f"Unknown transform '{param.transform}' for '{param.id}'", field=param.id)
            source = resolved.get(param.derived_from)
            if source is not None:
                resolved[param.id] = transform(float(source))
            elif param.id not in resolved and param.default_value is not None:
                resolved[param.id] = param.default_value
        return resolved

    def apply(
        self,
        template_id: str,
        snapshot: PlanningSnapshot,
        parameters: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[str] = None,
    ) -> TemplateApplication:
        """Apply a template to a copy of `snapshot`; the input is left untouched."""
        template = self.get(template_id)
        resolved = self.resolve_parameters(template, parameters)
        timestamp = timestamp or to_iso(self.clock())

        strategy = self._strategies.get(template_id)
        if strategy is not None:
            working = EntitySnapshotter().clone(snapshot)
            result = strategy(working, dict(resolved))
            if not isinstance(result, PlanningSnapshot):
                raise ValidationFailure(f"Strategy for template '{template_id}' must return a PlanningSnapshot")
            return TemplateApplication(snapshot=result, parameters=resolved)

        outcome = apply_template_modifications(
            snapshot,
            template.config.modifications,
            resolved,
            timestamp=timestamp,
            id_factory=self.id_factory,
        )
        if outcome.warnings:
            logger.info(f"Template '{template.name}' applied with warnings: {outcome.warnings}")
        return TemplateApplication(
            snapshot=outcome.snapshot,
            parameters=resolved,
            modifications=outcome.modifications,
            warnings=outcome.warnings,
        )
