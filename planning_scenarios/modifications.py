from __future__ import annotations

"""
Declarative modification engine for scenario templates.

A template describes bulk edits as data (`TemplateModification` records):
which collection, which operation, an optional filter, and a list of field
changes whose values may reference parameters as `{{parameter_id}}`.

`apply_template_modifications` is pure: it copies the input snapshot, applies
the edits to the copy and returns it together with `ScenarioModification`
audit records and non-fatal warnings (e.g. a filter that matched nothing).

Operations
- create: append a new record built from the changes
- update: apply changes to the first record matching the filter
- delete: remove every record matching the filter (filter required)
- bulk-update: apply changes to every record matching the filter (all if none)

Change operations: set, add, subtract, multiply, add-days, add-weeks.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
import logging
import re

from .errors import ValidationFailure
from .models import (
    COLLECTION_NAMES,
    ModificationChange,
    PlanningSnapshot,
    ScenarioModification,
    TemplateChange,
    TemplateFilter,
    TemplateModification,
)
from .snapshotter import EntitySnapshotter, clone_value
from .timeutils import shift_calendar_value

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")
_WHOLE_PLACEHOLDER = re.compile(r"^\{\{\s*([A-Za-z0-9_]+)\s*\}\}$")

ENTITY_OPERATIONS = ("create", "update", "delete", "bulk-update")
CHANGE_OPERATIONS = ("set", "add", "subtract", "multiply", "add-days", "add-weeks")
FILTER_OPERATORS = ("equals", "not-equals", "contains", "greater-than", "less-than", "in-range")


@dataclass
class ModificationOutcome:
    snapshot: PlanningSnapshot
    modifications: List[ScenarioModification] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def resolve_value(value: Any, parameters: Mapping[str, Any]) -> Any:
    """Substitute `{{name}}` placeholders from `parameters`.

    A value that is exactly one placeholder resolves to the parameter itself
    (keeping its type). Embedded placeholders are substituted as text and the
    result is coerced back to a number or boolean when it looks like one.
    """
    if not isinstance(value, str) or "{{" not in value:
        return value

    whole = _WHOLE_PLACEHOLDER.match(value.strip())
    if whole:
        name = whole.group(1)
        if name not in parameters:
            raise ValidationFailure(f"Unresolved template parameter '{name}'", field=name)
        return parameters[name]

    def _sub(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name not in parameters:
            raise ValidationFailure(f"Unresolved template parameter '{name}'", field=name)
        return str(parameters[name])

    resolved = _PLACEHOLDER.sub(_sub, value)
    if resolved == "true":
        return True
    if resolved == "false":
        return False
    try:
        return int(resolved)
    except ValueError:
        pass
    try:
        return float(resolved)
    except ValueError:
        return resolved


def _as_number(value: Any, what: str) -> float:
    if isinstance(value, bool):
        raise ValidationFailure(f"{what} must be numeric, got a boolean")
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailure(f"{what} must be numeric, got {value!r}") from exc


def apply_change(entity: Dict[str, Any], change: TemplateChange, value: Any) -> None:
    """Apply one field change to `entity` in place."""
    current = entity.get(change.field)
    op = change.operation
    if op == "set":
        entity[change.field] = clone_value(value, change.field)
    elif op in ("add", "subtract", "multiply"):
        left = _as_number(current, f"Field '{change.field}'")
        right = _as_number(value, f"Value for '{change.field}'")
        if op == "add":
            entity[change.field] = left + right
        elif op == "subtract":
            entity[change.field] = left - right
        else:
            entity[change.field] = left * right
    elif op in ("add-days", "add-weeks"):
        days = _as_number(value, f"Value for '{change.field}'")
        if op == "add-weeks":
            days = days * 7
        entity[change.field] = shift_calendar_value(current, days)
    else:
        raise ValidationFailure(f"Unknown change operation: {op}", field=change.field)


def matches_filter(entity: Mapping[str, Any], flt: TemplateFilter) -> bool:
    """Evaluate a template filter against one record."""
    entity_value = entity.get(flt.field)
    op = flt.operator
    if op == "equals":
        return entity_value == flt.value
    if op == "not-equals":
        return entity_value != flt.value
    if op == "contains":
        return str(flt.value).lower() in str(entity_value if entity_value is not None else "").lower()
    if op in ("greater-than", "less-than", "in-range"):
        try:
            number = float(entity_value)
        except (TypeError, ValueError):
            return False
        if op == "greater-than":
            return number > float(flt.value)
        if op == "less-than":
            return number < float(flt.value)
        return float(flt.value) <= number <= float(flt.second_value)
    raise ValidationFailure(f"Unknown filter operator: {op}", field=flt.field)


def _resolve_filter(flt: Optional[TemplateFilter], parameters: Mapping[str, Any]) -> Optional[TemplateFilter]:
    if flt is None:
        return None
    return TemplateFilter(
        field=flt.field,
        operator=flt.operator,
        value=resolve_value(flt.value, parameters),
        second_value=resolve_value(flt.second_value, parameters),
    )


def _entity_label(entity: Mapping[str, Any]) -> str:
    return str(entity.get("name") or entity.get("id") or "")


class _Applier:
    def __init__(self, snapshot: PlanningSnapshot, parameters: Mapping[str, Any],
                 timestamp: str, id_factory: Callable[[], str]):
        self.snapshot = snapshot
        self.parameters = parameters
        self.timestamp = timestamp
        self.id_factory = id_factory
        self.records: List[ScenarioModification] = []
        self.warnings: List[str] = []

    def run(self, modification: TemplateModification) -> None:
        if modification.entity_type not in COLLECTION_NAMES:
            raise ValidationFailure(f"Unknown entity type: {modification.entity_type}", field="entity_type")
        if modification.operation not in ENTITY_OPERATIONS:
            raise ValidationFailure(f"Unknown operation: {modification.operation}", field="operation")
        collection = self.snapshot.collection(modification.entity_type)
        flt = _resolve_filter(modification.filter, self.parameters)
        handler = getattr(self, "_" + modification.operation.replace("-", "_"))
        handler(modification, collection, flt)

    def _record(self, kind: str, modification: TemplateModification, entity: Mapping[str, Any],
                description: str, changes: Sequence[ModificationChange]) -> None:
        self.records.append(
            ScenarioModification(
                id=self.id_factory(),
                timestamp=self.timestamp,
                type=kind,
                entity_type=modification.entity_type,
                entity_id=str(entity.get("id", "")),
                entity_name=_entity_label(entity),
                description=description,
                changes=list(changes),
            )
        )

    def _apply_changes(self, modification: TemplateModification, entity: Dict[str, Any]) -> List[ModificationChange]:
        details = []
        for change in modification.changes:
            old_value = clone_value(entity.get(change.field), change.field)
            apply_change(entity, change, resolve_value(change.value, self.parameters))
            details.append(ModificationChange(field=change.field, old_value=old_value,
                                              new_value=clone_value(entity.get(change.field), change.field)))
        entity["last_modified"] = self.timestamp
        return details

    def _create(self, modification, collection, flt) -> None:
        entity: Dict[str, Any] = {
            "id": self.id_factory(),
            "created_date": self.timestamp,
            "last_modified": self.timestamp,
        }
        details = []
        for change in modification.changes:
            apply_change(entity, change, resolve_value(change.value, self.parameters))
            details.append(ModificationChange(field=change.field, old_value=None, new_value=entity.get(change.field)))
        collection.append(entity)
        self._record("create", modification, entity, f"Created new {modification.entity_type}", details)

    def _update(self, modification, collection, flt) -> None:
        target = next((e for e in collection if flt is not None and matches_filter(e, flt)), None)
        if target is None:
            self.warnings.append(f"No entity found to update for {modification.entity_type}")
            return
        details = self._apply_changes(modification, target)
        self._record("update", modification, target, f"Updated {modification.entity_type}", details)

    def _delete(self, modification, collection, flt) -> None:
        doomed = [e for e in collection if flt is not None and matches_filter(e, flt)]
        if not doomed:
            self.warnings.append(f"No entities found to delete for {modification.entity_type}")
            return
        doomed_ids = {id(e) for e in doomed}
        collection[:] = [e for e in collection if id(e) not in doomed_ids]
        for entity in doomed:
            self._record("delete", modification, entity, f"Deleted {modification.entity_type}", [])

    def _bulk_update(self, modification, collection, flt) -> None:
        targets = [e for e in collection if flt is None or matches_filter(e, flt)]
        if not targets:
            self.warnings.append(f"No entities found for bulk update of {modification.entity_type}")
            return
        for entity in targets:
            details = self._apply_changes(modification, entity)
            self._record("update", modification, entity, f"Bulk updated {modification.entity_type}", details)


def apply_template_modifications(
    snapshot: PlanningSnapshot,
    modifications: Sequence[TemplateModification],
    parameters: Mapping[str, Any],
    *,
    timestamp: str,
    id_factory: Callable[[], str],
) -> ModificationOutcome:
    """Apply declarative modifications to a copy of `snapshot`.

    Raises:
        ValidationFailure: unknown entity types/operations, unresolved
            parameters, or non-numeric arithmetic.
    """
    working = EntitySnapshotter().clone(snapshot)
    applier = _Applier(working, parameters, timestamp, id_factory)
    for modification in modifications:
        applier.run(modification)
    for warning in applier.warnings:
        logger.debug(warning)
    return ModificationOutcome(snapshot=working, modifications=applier.records, warnings=applier.warnings)
