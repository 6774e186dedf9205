"""
Tests for the key-value storage backends.
"""

import pytest

from planning_scenarios.errors import StorageFailure
from planning_scenarios.models import PlanningSnapshot
from planning_scenarios.storage import (
    CONFIG_KEY,
    InMemoryStorage,
    JsonFileStorage,
    StorageLiveDataSource,
    live_collection_key,
)


@pytest.fixture(params=["memory", "files"])
def backend(request, tmp_path):
    if request.param == "memory":
        return InMemoryStorage()
    return JsonFileStorage(tmp_path / "store")


class TestBackends:

    def test_get_default_set_get_delete(self, backend):
        assert backend.get("planning-x", default=[]) == []
        backend.set("planning-x", [{"id": 1}])
        assert backend.get("planning-x") == [{"id": 1}]
        assert "planning-x" in backend.keys()
        backend.delete("planning-x")
        assert backend.get("planning-x") is None

    def test_values_are_not_aliased(self, backend):
        value = {"items": [1, 2]}
        backend.set("k", value)
        value["items"].append(3)
        loaded = backend.get("k")
        assert loaded == {"items": [1, 2]}
        loaded["items"].append(4)
        assert backend.get("k") == {"items": [1, 2]}

    def test_subscribers_receive_changed_key(self, backend):
        seen = []
        unsubscribe = backend.subscribe(seen.append)
        backend.set("a", 1)
        backend.delete("a")
        unsubscribe()
        backend.set("b", 2)
        assert seen == ["a", "a"]

    def test_failing_subscriber_does_not_break_writes(self, backend):
        def boom(key):
            raise RuntimeError("listener failed")

        backend.subscribe(boom)
        backend.set("a", 1)
        assert backend.get("a") == 1

    def test_unserializable_value_raises(self, backend):
        with pytest.raises(StorageFailure):
            backend.set("a", {"x": object()})


class TestJsonFileStorage:

    def test_persists_across_instances(self, tmp_path):
        JsonFileStorage(tmp_path).set("planning-scenarios", [{"id": "s1"}])
        assert JsonFileStorage(tmp_path).get("planning-scenarios") == [{"id": "s1"}]
        assert (tmp_path / "planning-scenarios.json").exists()

    def test_invalid_key_rejected(self, tmp_path):
        with pytest.raises(StorageFailure):
            JsonFileStorage(tmp_path).set("../escape", 1)

    def test_corrupted_file_raises(self, tmp_path):
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageFailure):
            JsonFileStorage(tmp_path).get("broken")


class TestStorageLiveDataSource:

    def test_save_then_read(self):
        storage = InMemoryStorage()
        source = StorageLiveDataSource(storage)
        source.save(PlanningSnapshot(projects=[{"id": "P1"}], config={"a": 1}))

        assert storage.get(live_collection_key("projects")) == [{"id": "P1"}]
        assert storage.get(CONFIG_KEY) == {"a": 1}
        data = source()
        assert data["projects"] == [{"id": "P1"}]
        assert data["teams"] == []
        assert data["config"] == {"a": 1}
