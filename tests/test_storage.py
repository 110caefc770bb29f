"""
Tests for storage backends

Both backends must support atomic batch writes and ordered loads.
"""

import pytest

from deposit_core.storage import InMemoryStorage, SQLiteStorage, create_storage


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(":memory:")
    yield backend
    backend.close()


class TestStorageBackends:
    """Behaviour shared by every backend"""

    def test_save_and_load(self, storage):
        storage.save("items", "a", {"id": "a", "value": "1.50"})
        assert storage.load("items", "a") == {"id": "a", "value": "1.50"}

    def test_load_missing(self, storage):
        assert storage.load("items", "missing") is None

    def test_overwrite(self, storage):
        storage.save("items", "a", {"id": "a", "value": 1})
        storage.save("items", "a", {"id": "a", "value": 2})
        assert storage.load("items", "a")["value"] == 2
        assert storage.count("items") == 1

    def test_load_all_keeps_insertion_order(self, storage):
        for key in ["3", "1", "2"]:
            storage.save("items", key, {"id": key})
        assert [r["id"] for r in storage.load_all("items")] == ["3", "1", "2"]

    def test_find(self, storage):
        storage.save("items", "a", {"id": "a", "owner": "x"})
        storage.save("items", "b", {"id": "b", "owner": "y"})
        assert [r["id"] for r in storage.find("items", {"owner": "y"})] == ["b"]

    def test_exists(self, storage):
        storage.save("items", "a", {"id": "a"})
        assert storage.exists("items", "a")
        assert not storage.exists("items", "b")

    def test_save_batch(self, storage):
        storage.save_batch("items", [("a", {"id": "a"}), ("b", {"id": "b"})])
        assert storage.count("items") == 2

    def test_clear_table(self, storage):
        storage.save("items", "a", {"id": "a"})
        storage.clear_table("items")
        assert storage.count("items") == 0

    def test_loaded_records_are_copies(self, storage):
        storage.save("items", "a", {"id": "a", "tags": ["x"]})
        record = storage.load("items", "a")
        record["tags"].append("y")
        assert storage.load("items", "a")["tags"] == ["x"]


class TestAtomicity:
    """Failed batches must leave nothing behind"""

    def test_memory_batch_with_unserializable_record_writes_nothing(self):
        storage = InMemoryStorage()

        class Unserializable:
            def __str__(self):
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            storage.save_batch("items", [("a", {"id": "a"}), ("b", {"bad": Unserializable()})])
        assert storage.count("items") == 0

    def test_sqlite_atomic_rollback(self):
        storage = SQLiteStorage(":memory:")
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("items", "a", {"id": "a"})
                raise RuntimeError("abort")
        assert storage.count("items") == 0

    def test_sqlite_persists_to_file(self, tmp_path):
        path = tmp_path / "deposit.db"
        storage = SQLiteStorage(path)
        storage.save("items", "a", {"id": "a"})
        storage.close()

        reopened = SQLiteStorage(path)
        assert reopened.load("items", "a") == {"id": "a"}
        reopened.close()


class TestCreateStorage:

    def test_memory(self):
        assert isinstance(create_storage("memory"), InMemoryStorage)

    def test_sqlite(self):
        assert isinstance(create_storage("sqlite", ":memory:"), SQLiteStorage)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_storage("mongo")
