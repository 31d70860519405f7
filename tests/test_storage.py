"""Tests for the record stores and audit storage."""

import asyncio
from uuid import uuid4

import pytest

from gcadmin.models.audit import AuditEventBuilder
from gcadmin.services.storage import (
    DuplicateError,
    InMemoryStore,
    InvalidRecordError,
    NotFoundError,
    SQLiteAuditStorage,
    SQLiteStore,
    StorageConnectionError,
    StorageError,
    UnknownCollectionError,
)


class TestStoreCrud:
    """Per-collection operations, run against both stores."""

    async def test_add_get_list_in_insertion_order(self, store):
        """Test records come back in the order they were added."""
        await store.add("people", {"id": "p2", "name": "Max M."})
        await store.add("people", {"id": "p1", "name": "Sophia"})

        assert await store.get("people", "p1") == {"id": "p1", "name": "Sophia"}
        assert [p["id"] for p in await store.list("people")] == ["p2", "p1"]
        assert await store.count("people") == 2

    async def test_get_missing_returns_none(self, store):
        """Test a missing key is None, not an error."""
        assert await store.get("people", "nobody") is None

    async def test_add_duplicate_raises(self, store):
        """Test keys are unique per collection."""
        await store.add("people", {"id": "p1", "name": "Sophia"})
        with pytest.raises(DuplicateError):
            await store.add("people", {"id": "p1", "name": "Other"})
        assert (await store.get("people", "p1"))["name"] == "Sophia"

    async def test_same_key_in_different_collections(self, store):
        """Test uniqueness is per collection only."""
        await store.add("people", {"id": "x"})
        await store.add("tasks", {"id": "x", "title": "T"})
        assert await store.count("people") == 1
        assert await store.count("tasks") == 1

    async def test_update_merges_fields(self, store):
        """Test update changes only the given fields."""
        await store.add("people", {"id": "p1", "name": "Sophia", "tg": "@s"})
        updated = await store.update("people", "p1", {"name": "Sophia K."})
        assert updated == {"id": "p1", "name": "Sophia K.", "tg": "@s"}
        assert await store.get("people", "p1") == updated

    async def test_update_missing_raises(self, store):
        """Test updating an absent record raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await store.update("people", "ghost", {"name": "X"})

    async def test_delete(self, store):
        """Test delete reports whether something was removed."""
        await store.add("people", {"id": "p1"})
        assert await store.delete("people", "p1") is True
        assert await store.delete("people", "p1") is False
        assert await store.count("people") == 0

    async def test_clear(self, store):
        """Test clear empties one collection only."""
        await store.bulk_insert("people", [{"id": "p1"}, {"id": "p2"}])
        await store.add("tasks", {"id": "t1"})
        await store.clear("people")
        assert await store.count("people") == 0
        assert await store.count("tasks") == 1

    async def test_bulk_insert_duplicate_writes_nothing(self, store):
        """Test a failing bulk insert leaves the collection untouched."""
        await store.add("people", {"id": "p1"})
        with pytest.raises(DuplicateError):
            await store.bulk_insert("people", [{"id": "p2"}, {"id": "p1"}])
        assert [p["id"] for p in await store.list("people")] == ["p1"]

    async def test_bulk_upsert_overwrites_whole_record(self, store):
        """Test upsert replaces records instead of merging fields."""
        await store.add("people", {"id": "p1", "name": "Sophia", "tg": "@s"})
        await store.bulk_upsert("people", [{"id": "p1", "name": "S."}, {"id": "p2"}])
        assert await store.get("people", "p1") == {"id": "p1", "name": "S."}
        assert await store.count("people") == 2

    async def test_unicode_round_trip(self, store):
        """Test non-ASCII text is stored unchanged."""
        await store.add("projects", {"id": "pr1", "name": "Abo-Website", "description": "Größe 🚀"})
        assert (await store.get("projects", "pr1"))["description"] == "Größe 🚀"

    async def test_returned_records_are_copies(self, store):
        """Test mutating a returned record does not change the store."""
        await store.add("people", {"id": "p1", "name": "Sophia"})
        record = await store.get("people", "p1")
        record["name"] = "changed"
        assert (await store.get("people", "p1"))["name"] == "Sophia"

    async def test_unknown_collection(self, store):
        """Test only the nine collections exist."""
        with pytest.raises(UnknownCollectionError):
            await store.list("invoices")

    async def test_record_without_id(self, store):
        """Test records need a non-empty string id."""
        with pytest.raises(InvalidRecordError):
            await store.add("people", {"name": "No id"})
        with pytest.raises(InvalidRecordError):
            await store.bulk_upsert("people", [{"id": 7}])

    async def test_counts_covers_all_collections(self, store):
        """Test counts() reports all nine collections."""
        await store.add("tasks", {"id": "t1"})
        counts = await store.counts()
        assert len(counts) == 9
        assert counts["tasks"] == 1
        assert counts["services"] == 0


class TestQueryRange:
    """Range queries on indexed fields."""

    async def test_range_is_inclusive_and_ordered(self, store):
        """Test bounds are inclusive and results are sorted by the field."""
        await store.bulk_insert("expenses", [
            {"id": "e1", "date": "2024-12-05", "amount": 1},
            {"id": "e2", "date": "2024-11-01", "amount": 2},
            {"id": "e3", "date": "2024-12-01", "amount": 3},
            {"id": "e4", "amount": 4},
        ])
        result = await store.query_range("expenses", "date", "2024-12-01", "2024-12-31")
        assert [r["id"] for r in result] == ["e3", "e1"]

    async def test_open_bounds(self, store):
        """Test a missing bound is open; records without the field never match."""
        await store.bulk_insert("expenses", [
            {"id": "e1", "date": "2024-12-05"},
            {"id": "e2", "date": "2024-11-01"},
            {"id": "e3"},
        ])
        result = await store.query_range("expenses", "date", upper="2024-11-30")
        assert [r["id"] for r in result] == ["e2"]
        assert len(await store.query_range("expenses", "date")) == 2

    async def test_equality_lookup(self, store):
        """Test lower == upper acts as an equality lookup."""
        await store.bulk_insert("tasks", [
            {"id": "t1", "status": "open"},
            {"id": "t2", "status": "done"},
        ])
        result = await store.query_range("tasks", "status", "done", "done")
        assert [r["id"] for r in result] == ["t2"]

    async def test_unindexed_field_rejected(self, store):
        """Test only declared indexes can be queried."""
        with pytest.raises(StorageError):
            await store.query_range("people", "email", "a", "z")


class TestTransactions:
    """Multi-collection transactions, run against both stores."""

    async def test_commit_spans_collections(self, store):
        """Test writes to several collections commit together."""
        async with store.transaction(["people", "tasks"]) as tx:
            await tx.bulk_insert("people", [{"id": "p1"}])
            await tx.bulk_insert("tasks", [{"id": "t1"}])
            assert await tx.count("people") == 1
        assert await store.count("people") == 1
        assert await store.count("tasks") == 1

    async def test_exception_rolls_back_everything(self, store):
        """Test a raising block leaves every collection as it was."""
        await store.add("people", {"id": "p0"})
        with pytest.raises(RuntimeError):
            async with store.transaction(["people", "tasks"]) as tx:
                await tx.clear("people")
                await tx.bulk_insert("tasks", [{"id": "t1"}])
                raise RuntimeError("boom")
        assert [p["id"] for p in await store.list("people")] == ["p0"]
        assert await store.count("tasks") == 0

    async def test_collection_outside_transaction_rejected(self, store):
        """Test the handle only works on the collections it was opened with."""
        with pytest.raises(StorageError):
            async with store.transaction(["people"]) as tx:
                await tx.clear("tasks")
        assert await store.count("tasks") == 0

    async def test_handle_unusable_after_commit(self, store):
        """Test a finished transaction cannot be written through."""
        async with store.transaction(["people"]) as tx:
            pass
        with pytest.raises(StorageError):
            await tx.bulk_insert("people", [{"id": "late"}])

    async def test_reader_never_sees_half_applied_transaction(self, store):
        """Test a concurrent reader sees all of a transaction or none of it."""
        async def writer():
            async with store.transaction(["people", "tasks"]) as tx:
                await tx.bulk_insert("people", [{"id": "p1"}])
                await asyncio.sleep(0.05)
                await tx.bulk_insert("tasks", [{"id": "t1"}])

        async def reader():
            await asyncio.sleep(0.01)
            people = await store.count("people")
            tasks = await store.count("tasks")
            return people, tasks

        _, seen = await asyncio.gather(writer(), reader())
        assert seen in {(0, 0), (1, 1)}


class TestInMemoryStore:
    """In-memory specifics."""

    async def test_initial_data(self):
        """Test a store can start from given records."""
        store = InMemoryStore({"people": [{"id": "p1"}]})
        assert await store.count("people") == 1

    def test_initial_duplicates_rejected(self):
        """Test initial data must have unique keys."""
        with pytest.raises(DuplicateError):
            InMemoryStore({"people": [{"id": "p1"}, {"id": "p1"}]})


class TestSQLiteStore:
    """SQLite specifics."""

    async def test_data_persists_across_instances(self, tmp_path):
        """Test records survive closing and reopening the file."""
        path = str(tmp_path / "persist.db")
        first = SQLiteStore(path)
        await first.add("people", {"id": "p1", "name": "Sophia"})
        await first.close()

        second = SQLiteStore(path)
        assert await second.get("people", "p1") == {"id": "p1", "name": "Sophia"}
        await second.close()

    async def test_unopenable_path_raises_connection_error(self, tmp_path):
        """Test a path under a regular file cannot be opened."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        store = SQLiteStore(str(blocker / "store.db"), connect_attempts=1)
        with pytest.raises(StorageConnectionError):
            await store.count("people")

    async def test_default_path_from_settings(self, tmp_path):
        """Test the store falls back to GCADMIN_STORE_PATH."""
        store = SQLiteStore()
        assert store.path == str(tmp_path / "store.db")


class TestAuditStorage:
    """Audit event persistence."""

    async def test_sqlite_audit_round_trip(self, tmp_path):
        """Test events are stored and found by correlation id."""
        store = SQLiteStore(str(tmp_path / "audit.db"))
        audit = SQLiteAuditStorage(store)
        correlation_id = uuid4()

        started = AuditEventBuilder.import_started("merge", correlation_id)
        committed = AuditEventBuilder.import_committed("ab" * 32, "merge", {"people": 1}, correlation_id)
        other = AuditEventBuilder.store_seeded({"services": 4})
        for event in (started, committed, other):
            assert await audit.append_event(event) is True

        related = await audit.get_events_by_correlation_id(correlation_id)
        assert {e.event_id for e in related} == {started.event_id, committed.event_id}
        stored = next(e for e in related if e.event_id == committed.event_id)
        assert stored.details == {"mode": "merge", "counts": {"people": 1}}

        recent = await audit.get_recent_events(limit=2)
        assert len(recent) == 2
        await store.close()

    async def test_memory_audit(self, audit_storage):
        """Test the in-memory audit log keeps events in order."""
        correlation_id = uuid4()
        event = AuditEventBuilder.import_started("replace", correlation_id)
        await audit_storage.append_event(event)
        assert audit_storage.events == [event]
        assert await audit_storage.get_events_by_correlation_id(correlation_id) == [event]
