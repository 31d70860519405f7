"""Tests for demo seeding."""

from datetime import date

from gcadmin.models.audit import AuditEventType
from gcadmin.models.records import COLLECTIONS
from gcadmin.services.storage import ensure_seed, seed_records


class TestSeedRecords:
    """Tests for seed_records()."""

    def test_demo_content(self):
        """Test the demo set matches what the dashboard expects."""
        records = seed_records(date(2024, 12, 1))
        assert [s["name"] for s in records["services"]] == [
            "Spotify", "Apple Music", "Apple One", "Premium",
        ]
        assert [p["name"] for p in records["people"]] == ["Sophia", "Max M."]
        assert len(records["subscriptions"]) == 2
        assert len(records["incomes"]) == 2
        assert records["milestones"] == []
        assert records["subscriptions"][0]["startDate"] == "2024-12-01"

    def test_references_line_up(self):
        """Test assignments and incomes point at seeded records."""
        records = seed_records()
        sub_ids = {s["id"] for s in records["subscriptions"]}
        person_ids = {p["id"] for p in records["people"]}
        assignment_ids = {a["id"] for a in records["assignments"]}
        for a in records["assignments"]:
            assert a["subscriptionId"] in sub_ids
            assert a["personId"] in person_ids
        for i in records["incomes"]:
            assert i["assignmentId"] in assignment_ids

    def test_ids_are_fresh(self):
        """Test each call creates new keys."""
        first = seed_records()["services"][0]["id"]
        second = seed_records()["services"][0]["id"]
        assert first != second


class TestEnsureSeed:
    """Tests for ensure_seed()."""

    async def test_seeds_empty_store(self, store, audit_logger, audit_storage):
        """Test an empty store gets the demo data once."""
        assert await ensure_seed(store, audit_logger) is True
        counts = await store.counts()
        assert counts["services"] == 4
        assert counts["tasks"] == 2
        assert set(counts) == set(COLLECTIONS)
        assert audit_storage.events[-1].event_type == AuditEventType.STORE_SEEDED

    async def test_second_call_is_noop(self, store):
        """Test seeding does not repeat."""
        await ensure_seed(store)
        assert await ensure_seed(store) is False
        assert await store.count("services") == 4

    async def test_existing_services_block_seeding(self, store):
        """Test a store with services is left alone."""
        await store.add("services", {"id": "mine", "name": "Netflix"})
        assert await ensure_seed(store) is False
        assert await store.count("people") == 0
