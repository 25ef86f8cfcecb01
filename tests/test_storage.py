"""
Test suite for storage backends

Tests the in-memory and SQLite document stores, document queries with
account scope, and atomic blocks with rollback.
"""

import pytest
from decimal import Decimal

from banking_demo.storage import InMemoryStorage, SQLiteStorage, create_storage
from banking_demo.query import DocumentQuery, Operator, parse_decimal


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    backend = InMemoryStorage() if request.param == "memory" else SQLiteStorage(":memory:")
    yield backend
    backend.close()


class TestBasicOperations:
    """Save, load, find and delete across backends"""

    def test_save_and_load(self, storage):
        storage.save("items", "a", {"id": "a", "amount": "10.00"})
        assert storage.load("items", "a") == {"id": "a", "amount": "10.00"}
        assert storage.exists("items", "a")
        assert storage.load("items", "missing") is None

    def test_save_overwrites(self, storage):
        storage.save("items", "a", {"id": "a", "amount": "10.00"})
        storage.save("items", "a", {"id": "a", "amount": "20.00"})
        assert storage.load("items", "a")["amount"] == "20.00"
        assert storage.count("items") == 1

    def test_find_by_equality(self, storage):
        storage.save("items", "a", {"id": "a", "account_id": "acc-1"})
        storage.save("items", "b", {"id": "b", "account_id": "acc-2"})
        storage.save("items", "c", {"id": "c", "account_id": "acc-1"})

        found = storage.find("items", {"account_id": "acc-1"})
        assert sorted(r["id"] for r in found) == ["a", "c"]

    def test_delete(self, storage):
        storage.save("items", "a", {"id": "a"})
        assert storage.delete("items", "a") is True
        assert storage.delete("items", "a") is False
        assert storage.count("items") == 0

    def test_clear_table(self, storage):
        storage.save("items", "a", {"id": "a"})
        storage.save("items", "b", {"id": "b"})
        storage.clear_table("items")
        assert storage.load_all("items") == []

    def test_loaded_records_are_copies(self, storage):
        storage.save("items", "a", {"id": "a", "tags": ["x"]})
        loaded = storage.load("items", "a")
        loaded["tags"].append("y")
        assert storage.load("items", "a")["tags"] == ["x"]


class TestDocumentQueries:
    """Scoped document queries"""

    def test_query_applies_scope_conditions_and_paging(self, storage):
        for i in range(6):
            storage.save("entries", f"e{i}", {
                "id": f"e{i}",
                "account_id": "acc-1" if i % 2 == 0 else "acc-2",
                "amount": str(Decimal(i * 100))
            })

        query = DocumentQuery(sort_by="amount", descending=True, limit=2,
                              field_types={"amount": parse_decimal})
        query.where("amount", Operator.GTE, Decimal("0"))

        page = storage.query("entries", query, scope={"account_id": "acc-1"})
        assert [r["id"] for r in page] == ["e4", "e2"]
        assert storage.count_matching("entries", query, scope={"account_id": "acc-1"}) == 3


class TestAtomic:
    """Atomic blocks across backends"""

    def test_commit(self, storage):
        storage.save("items", "a", {"id": "a", "value": "1"})
        with storage.atomic():
            storage.save("items", "a", {"id": "a", "value": "2"})
            storage.save("items", "b", {"id": "b", "value": "3"})
        assert storage.load("items", "a")["value"] == "2"
        assert storage.exists("items", "b")

    def test_rollback_on_error(self, storage):
        storage.save("items", "a", {"id": "a", "value": "1"})
        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("items", "a", {"id": "a", "value": "2"})
                storage.delete("items", "a")
                raise RuntimeError("boom")
        assert storage.load("items", "a")["value"] == "1"

    def test_nested_blocks_join_outer(self, storage):
        storage.save("items", "a", {"id": "a", "value": "1"})
        with pytest.raises(RuntimeError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("items", "a", {"id": "a", "value": "2"})
                # Inner exit must not commit
                raise RuntimeError("boom")
        assert storage.load("items", "a")["value"] == "1"

    def test_storage_usable_after_rollback(self, storage):
        storage.save("items", "a", {"id": "a"})
        with pytest.raises(ValueError):
            with storage.atomic():
                storage.save("other", "x", {"id": "x"})
                raise ValueError("boom")
        storage.save("other", "y", {"id": "y"})
        assert storage.exists("other", "y")
        assert not storage.exists("other", "x")


class TestCreateStorage:
    """Backend selection from database URLs"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_in_process(self):
        backend = create_storage("sqlite://")
        assert isinstance(backend, SQLiteStorage)
        assert backend.db_path == ":memory:"
        backend.close()

    def test_sqlite_file(self, tmp_path):
        path = tmp_path / "demo.db"
        backend = create_storage(f"sqlite:///{path}")
        backend.save("items", "a", {"id": "a"})
        backend.close()

        reopened = SQLiteStorage(path)
        assert reopened.load("items", "a") == {"id": "a"}
        reopened.close()

    def test_unsupported_url(self):
        with pytest.raises(ValueError, match="Unsupported database URL"):
            create_storage("mongodb://localhost")
