"""Tests for the audit logger."""

from gcadmin.audit import AuditLogger, create_correlation_id
from gcadmin.models.audit import AuditEventType, AuditSeverity
from gcadmin.services.storage import InMemoryAuditStorage


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise RuntimeError("audit table locked")


class TestAuditLogger:

    async def test_events_share_correlation_id(self, audit_logger, audit_storage):
        """Test a dry run and its import are tied together."""
        correlation_id = create_correlation_id()
        await audit_logger.log_dry_run_completed("ab" * 32, True, {"people": 1}, {}, correlation_id)
        await audit_logger.log_import_started("merge", correlation_id)
        await audit_logger.log_import_committed("ab" * 32, "merge", {"people": 1}, correlation_id)

        events = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_type for e in events] == [
            AuditEventType.DRY_RUN_COMPLETED,
            AuditEventType.IMPORT_STARTED,
            AuditEventType.IMPORT_COMMITTED,
        ]

    async def test_rejection_is_warning(self, audit_logger, audit_storage):
        """Test rejected imports are kept as warnings with their error code."""
        await audit_logger.log_import_rejected(
            "replace", "integrity_error", "Integrity check failed (checksum).", create_correlation_id()
        )
        [event] = audit_storage.events
        assert event.severity == AuditSeverity.WARNING
        assert event.error_code == "integrity_error"

    async def test_storage_failure_does_not_raise(self):
        """Test a failing audit store only costs the audit entry."""
        logger = AuditLogger(BrokenAuditStorage())
        assert await logger.log_import_started("merge", create_correlation_id()) is None

    async def test_without_storage(self):
        """Test logging works with no audit store configured."""
        logger = AuditLogger()
        await logger.log_store_seeded({"services": 4})
