from __future__ import annotations

"""
Key-value storage boundary.

Every state slice (scenario list, active scenario id, template list, and each
live planning collection) lives under its own string key as an independently
(de)serializable JSON value. Two backends are provided:

- `InMemoryStorage`: values are kept as JSON text, so every `get` returns a
  freshly decoded object and no caller can alias stored state.
- `JsonFileStorage`: one `<key>.json` file per key, written through a
  temporary file and `os.replace` so readers never see a half-written file.

Both notify subscribers with the changed key after a successful write.
Encryption at rest, if any, belongs to a wrapping backend; the engine only
needs get/set/subscribe.
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
import json
import logging
import os
import re
import tempfile
import threading

from .errors import StorageFailure
from .models import COLLECTION_NAMES, PlanningSnapshot

logger = logging.getLogger(__name__)

SCENARIOS_KEY = "planning-scenarios"
ACTIVE_SCENARIO_KEY = "planning-active-scenario"
TEMPLATES_KEY = "planning-scenario-templates"
CONFIG_KEY = "planning-config"

_MISSING = object()
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


def live_collection_key(collection: str) -> str:
    """Storage key of a live planning collection, e.g. `planning-project_skills`."""
    return f"planning-{collection}"


class KeyValueStorage:
    """Base class holding the subscriber list shared by all backends."""

    def __init__(self) -> None:
        self._subscribers: List[Callable[[str], None]] = []
        self._lock = threading.RLock()

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register `callback(key)` for every change; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def _notify(self, key: str) -> None:
        for callback in list(self._subscribers):
            try:
                callback(key)
            except Exception as e:
                logger.error(f"Error in storage subscriber for key '{key}': {e}")

    @staticmethod
    def _encode(key: str, value: Any) -> str:
        try:
            return json.dumps(value, sort_keys=False)
        except (TypeError, ValueError) as e:
            raise StorageFailure(f"Value for key '{key}' is not JSON serializable: {e}", key=key) from e

    @staticmethod
    def _decode(key: str, text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageFailure(f"Corrupted JSON stored under key '{key}': {e}", key=key) from e


class InMemoryStorage(KeyValueStorage):
    """Process-local storage; used by tests and as a scratch backend."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        super().__init__()
        self._values: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._values[key] = self._encode(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            text = self._values.get(key)
        if text is None:
            return default
        return self._decode(key, text)

    def set(self, key: str, value: Any) -> None:
        text = self._encode(key, value)
        with self._lock:
            self._values[key] = text
        self._notify(key)

    def delete(self, key: str) -> None:
        with self._lock:
            existed = self._values.pop(key, _MISSING) is not _MISSING
        if existed:
            self._notify(key)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._values)


class JsonFileStorage(KeyValueStorage):
    """Directory of JSON files, one per key. Survives process restarts."""

    def __init__(self, directory: Path) -> None:
        super().__init__()
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFailure(f"Cannot create storage directory {self.directory}: {e}") from e

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise StorageFailure(f"Invalid storage key: {key!r}", key=key)
        return self.directory / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return default
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as e:
                raise StorageFailure(f"Error reading {path}: {e}", key=key) from e
        return self._decode(key, text)

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        text = self._encode(key, value)
        with self._lock:
            tmp_name = None
            try:
                fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.directory)
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                os.replace(tmp_name, path)
            except OSError as e:
                if tmp_name and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise StorageFailure(f"Error writing {path}: {e}", key=key) from e
        self._notify(key)

    def delete(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return
            try:
                path.unlink()
            except OSError as e:
                raise StorageFailure(f"Error deleting {path}: {e}", key=key) from e
        self._notify(key)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(p.stem for p in self.directory.glob("*.json"))


class StorageLiveDataSource:
    """Reads (and seeds) the live planning collections from storage keys.

    Calling the instance returns a mapping suitable for
    `EntitySnapshotter.snapshot`. The values are freshly decoded, but the
    snapshotter still copies them so the contract does not depend on it.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage

    def __call__(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for name in COLLECTION_NAMES:
            data[name] = self.storage.get(live_collection_key(name), [])
        data["config"] = self.storage.get(CONFIG_KEY, {})
        return data

    def save(self, snapshot: PlanningSnapshot) -> None:
        """Write every collection of `snapshot` to its live key."""
        for name in COLLECTION_NAMES:
            self.storage.set(live_collection_key(name), getattr(snapshot, name))
        self.storage.set(CONFIG_KEY, snapshot.config)
