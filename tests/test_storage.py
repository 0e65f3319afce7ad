"""Tests for the registry storage backends."""

import json

import pytest

from prompt_registry.storage import JsonFileStorage, MemoryStorage


def test_missing_file_loads_empty(tmp_path):
    storage = JsonFileStorage(tmp_path / "registry.json")
    assert storage.load() == {}
    assert storage.last_modified() is None


def test_save_then_load(tmp_path, local_doc):
    path = tmp_path / "nested" / "registry.json"
    storage = JsonFileStorage(path)

    storage.save(local_doc)

    assert storage.load() == local_doc
    assert json.loads(path.read_text()) == local_doc
    assert storage.last_modified() is not None
    assert [p.name for p in path.parent.iterdir()] == ["registry.json"]


def test_invalid_json_raises_value_error(tmp_path):
    path = tmp_path / "registry.json"
    path.write_text("{broken")

    with pytest.raises(ValueError, match="Error parsing JSON"):
        JsonFileStorage(path).load()

    path.write_text("[]")
    with pytest.raises(ValueError, match="must contain a JSON object"):
        JsonFileStorage(path).load()


def test_memory_storage_copies(local_doc):
    storage = MemoryStorage(local_doc)
    loaded = storage.load()
    loaded["greet"]["latest"] = "9.9.9"

    assert storage.load()["greet"]["latest"] == "1.0.0"
    assert storage.saves == 0
    storage.save(loaded)
    assert storage.saves == 1
    assert storage.document["greet"]["latest"] == "9.9.9"
