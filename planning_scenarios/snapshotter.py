from __future__ import annotations

"""
Structural snapshotting of the live planning dataset.

The snapshotter walks a known, finite schema (`COLLECTION_FIELDS` plus the
`config` object) and re-allocates every list and dict it finds, so a
`PlanningSnapshot` never shares a mutable object with the live side.

Only plain data is accepted inside records: dict, list, tuple, str, int,
float, bool and None. Anything else raises `CloneFailure` for that one
collection, which is then replaced by an empty list and logged. This keeps
scenario creation working against partially initialized live state.
"""

from typing import Any, Dict, List, Mapping, Optional
import logging

from .errors import CloneFailure
from .models import COLLECTION_FIELDS, PlanningSnapshot

logger = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool, type(None))
_MAX_DEPTH = 64


def clone_value(value: Any, collection: str = "value", _depth: int = 0) -> Any:
    """Return an independent structural copy of a plain-data value.

    Raises:
        CloneFailure: for non plain-data values or runaway nesting
    """
    if _depth > _MAX_DEPTH:
        raise CloneFailure(collection, f"nesting deeper than {_MAX_DEPTH} levels")
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, dict):
        out: Dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise CloneFailure(collection, f"non-string key {key!r}")
            out[key] = clone_value(item, collection, _depth + 1)
        return out
    if isinstance(value, (list, tuple)):
        return [clone_value(item, collection, _depth + 1) for item in value]
    raise CloneFailure(collection, f"unsupported value of type {type(value).__name__}")


def _read_source(live_data: Any, name: str, alias: str) -> Any:
    if isinstance(live_data, Mapping):
        if name in live_data:
            return live_data[name]
        return live_data.get(alias)
    if hasattr(live_data, name):
        return getattr(live_data, name)
    return getattr(live_data, alias, None)


class EntitySnapshotter:
    """Produce `PlanningSnapshot`s that share nothing with their source."""

    def snapshot(self, live_data: Any) -> PlanningSnapshot:
        """Deep-copy every planning collection and the config object.

        Args:
            live_data: Mapping (snake_case or camelCase keys), an object with
                the collections as attributes, a `PlanningSnapshot`, or None.

        Returns:
            A new `PlanningSnapshot`. Never raises for bad collections.
        """
        if live_data is None:
            logger.warning("No live data available; snapshotting an empty dataset")
            return PlanningSnapshot()

        kwargs: Dict[str, Any] = {}
        for name, alias in COLLECTION_FIELDS:
            kwargs[name] = self._clone_collection(name, _read_source(live_data, name, alias))
        kwargs["config"] = self._clone_config(_read_source(live_data, "config", "config"))
        return PlanningSnapshot(**kwargs)

    def clone(self, snapshot: PlanningSnapshot) -> PlanningSnapshot:
        """Independent copy of an existing snapshot."""
        return self.snapshot(snapshot)

    def _clone_collection(self, name: str, value: Any) -> List[Any]:
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            logger.warning(
                f"Live collection '{name}' is not a list (got {type(value).__name__}); using an empty collection"
            )
            return []
        try:
            return clone_value(list(value), name)
        except CloneFailure as e:
            logger.warning(f"{e}; using an empty collection")
            return []

    def _clone_config(self, value: Optional[Any]) -> Dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            logger.warning(f"Live config is not an object (got {type(value).__name__}); using an empty config")
            return {}
        try:
            return clone_value(dict(value), "config")
        except CloneFailure as e:
            logger.warning(f"{e}; using an empty config")
            return {}
