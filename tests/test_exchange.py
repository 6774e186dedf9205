"""
Tests for scenario export and import.
"""

import json

import pytest

from planning_scenarios.errors import ValidationFailure
from planning_scenarios.exchange import (
    EXPORT_FORMAT_VERSION,
    build_export_document,
    export_scenarios,
    import_document,
    import_scenarios,
)


def test_export_document_shape(store):
    first = store.create({"name": "A"})
    store.create({"name": "B"})

    document = build_export_document(store, [first], exported_at="2025-01-15T12:00:00.000000Z")
    assert document["version"] == EXPORT_FORMAT_VERSION
    assert document["exported_at"] == "2025-01-15T12:00:00.000000Z"
    assert [s["id"] for s in document["scenarios"]] == [first]
    assert document["metadata"]["total_scenarios"] == 1
    assert document["metadata"]["includes_live_data"] is True

    assert build_export_document(store)["metadata"]["total_scenarios"] == 2


def test_export_then_import_recreates_scenarios(store, live, clock, tmp_path):
    original_id = store.create({"name": "A", "description": "cut costs"})
    store.update(original_id, {"data": {"projects": [{"id": "P1", "budget": 42}]}})
    path = export_scenarios(store, tmp_path / "out" / "scenarios.json")
    assert json.loads(path.read_text(encoding="utf-8"))["metadata"]["total_scenarios"] == 1

    clock.advance(days=1)
    [new_id] = import_scenarios(store, path)
    imported = store.read(new_id)

    assert new_id != original_id
    assert imported.name == "A (Imported)"
    assert imported.description == "cut costs - Imported on 2025-01-16"
    assert imported.created_date == "2025-01-16T12:00:00.000000Z"
    assert imported.data.projects == [{"id": "P1", "budget": 42}]
    assert imported.metadata.created_from_live_state is False


def test_import_without_description_mentions_export_date(store):
    scenario_id = store.create({"name": "A"})
    document = build_export_document(store, [scenario_id], exported_at="2024-12-01T08:00:00Z")
    [new_id] = import_document(store, document)
    assert store.read(new_id).description == "Imported scenario from 2024-12-01"


@pytest.mark.parametrize(
    "document",
    [
        [],
        {"scenarios": []},
        {"version": "1.0.0", "scenarios": "nope"},
        {"version": "1.0.0", "scenarios": [{"name": "missing id"}]},
    ],
)
def test_invalid_documents_rejected(store, document):
    with pytest.raises(ValidationFailure):
        import_document(store, document)
    assert store.list() == []


def test_invalid_json_file_rejected(store, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{", encoding="utf-8")
    with pytest.raises(ValidationFailure):
        import_scenarios(store, path)


def test_export_stamps_store_clock(store, tmp_path):
    store.create({"name": "A"})
    path = export_scenarios(store, tmp_path / "scenarios.json")
    assert json.loads(path.read_text(encoding="utf-8"))["exported_at"] == "2025-01-15T12:00:00.000000Z"
