"""
Audit Logger

DESIGN DECISION: Every backup, dry run and import is logged.
This provides:
1. Complete traceability of destructive restores
2. Debugging capability when an import is rejected or rolled back
3. The operator can see the history of backups taken and restored

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the backup if logging fails)
- Supports correlation IDs to tie a dry run to the import that follows it
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from gcadmin.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from gcadmin.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store (SQLite or in-memory) when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("gcadmin.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_backup_exported(
        self,
        checksum: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.backup_exported(
            checksum=checksum,
            counts=counts,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_dry_run_completed(
        self,
        checksum: str,
        checksum_ok: bool,
        counts_file: dict[str, int],
        counts_db: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.dry_run_completed(
            checksum=checksum,
            checksum_ok=checksum_ok,
            counts_file=counts_file,
            counts_db=counts_db,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_dry_run_rejected(
        self,
        reason: str,
        error_code: str,
        correlation_id: UUID,
    ) -> None:
        """Log a file that could not be previewed."""
        event = AuditEventBuilder.dry_run_rejected(
            reason=reason,
            error_code=error_code,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_started(
        self,
        mode: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.import_started(
            mode=mode,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_rejected(
        self,
        mode: str,
        error_code: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log an import stopped by parse, schema or checksum checks."""
        event = AuditEventBuilder.import_rejected(
            mode=mode,
            error_code=error_code,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_committed(
        self,
        checksum: str,
        mode: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.import_committed(
            checksum=checksum,
            mode=mode,
            counts=counts,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_failed(
        self,
        checksum: str,
        mode: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a rolled-back import transaction."""
        event = AuditEventBuilder.import_failed(
            checksum=checksum,
            mode=mode,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_store_seeded(self, counts: dict[str, int]) -> None:
        await self.log(AuditEventBuilder.store_seeded(counts))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., picking a backup file).
    Pass it through the dry run and the import that follows.
    """
    return uuid4()
