import pytest

from condoledger.errors import PersistenceError
from condoledger.storage import JsonFileStore, MemoryStore, storage_key


def test_storage_key_replaces_whitespace():
    assert storage_key("expenses", "Via Roma 1") == "condo_expenses_Via_Roma_1"
    assert storage_key("bankAccounts", "A\tB") == "condo_bankAccounts_A_B"
    with pytest.raises(ValueError):
        storage_key("budgets", "x")


def test_memory_store_roundtrip():
    store = MemoryStore()
    assert store.load("k") is None
    store.save("k", [{"id": "1"}])
    assert store.load("k") == [{"id": "1"}]


def test_memory_store_quota():
    store = MemoryStore(quota=20)
    with pytest.raises(PersistenceError):
        store.save("k", [{"description": "far too long for the quota"}])
    assert store.load("k") is None


def test_json_file_store(tmp_path):
    store = JsonFileStore(str(tmp_path / "ledgers"))
    assert store.load("condo_expenses_X") is None
    store.save("condo_expenses_X", [{"id": "1", "description": "Pulizia scale"}])
    assert store.load("condo_expenses_X") == [{"id": "1", "description": "Pulizia scale"}]
    assert [p.name for p in (tmp_path / "ledgers").iterdir()] == ["condo_expenses_X.json"]


def test_json_file_store_unserialisable(tmp_path):
    store = JsonFileStore(str(tmp_path))
    with pytest.raises(PersistenceError):
        store.save("k", [object()])
    assert list(tmp_path.iterdir()) == []


def test_json_file_store_corrupt_file(tmp_path):
    (tmp_path / "k.json").write_text("{not json", encoding="utf-8")
    assert JsonFileStore(str(tmp_path)).load("k") is None
