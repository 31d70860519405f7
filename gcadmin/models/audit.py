"""
Audit Models for Giannicorp Admin

Every backup, dry run and import is recorded as an audit event.
This provides:
1. Traceability of destructive operations (a replace import wipes data)
2. Debugging information when an import is rejected or rolled back
3. A history the operator can check before restoring again

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Export
    BACKUP_EXPORTED = "backup_exported"

    # Preview
    DRY_RUN_COMPLETED = "dry_run_completed"
    DRY_RUN_REJECTED = "dry_run_rejected"

    # Import
    IMPORT_STARTED = "import_started"
    IMPORT_REJECTED = "import_rejected"
    IMPORT_COMMITTED = "import_committed"
    IMPORT_FAILED = "import_failed"

    # Seeding
    STORE_SEEDED = "store_seeded"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'snapshot', 'store')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Identifier of the entity, e.g. the snapshot checksum"
    )

    # Correlation - ties a dry run to the import that follows it
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> tuple:
        """
        Convert to a row for the audit_log table.

        Columns in order:
        (event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_code,
         error_message, is_user_action)
        """
        return (
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type,
            self.entity_id,
            str(self.correlation_id) if self.correlation_id else None,
            self.description,
            json.dumps(self.details) if self.details else None,
            self.error_code,
            self.error_message,
            int(self.is_user_action),
        )

    @classmethod
    def from_row(cls, row) -> "AuditEvent":
        """Inverse of to_row."""
        return cls(
            event_id=UUID(row[0]),
            timestamp=datetime.fromisoformat(row[1]),
            event_type=AuditEventType(row[2]),
            severity=AuditSeverity(row[3]),
            entity_type=row[4],
            entity_id=row[5],
            correlation_id=UUID(row[6]) if row[6] else None,
            description=row[7],
            details=json.loads(row[8]) if row[8] else {},
            error_code=row[9],
            error_message=row[10],
            is_user_action=bool(row[11]),
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.backup_exported(checksum, counts, correlation_id)
        event = AuditEventBuilder.import_committed(checksum, "merge", counts, correlation_id)
    """

    @staticmethod
    def backup_exported(
        checksum: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="snapshot",
            entity_id=checksum,
            correlation_id=correlation_id,
            description=f"Backup exported with {sum(counts.values())} records",
            details={"counts": counts},
            is_user_action=True,
        )

    @staticmethod
    def dry_run_completed(
        checksum: str,
        checksum_ok: bool,
        counts_file: dict[str, int],
        counts_db: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRY_RUN_COMPLETED,
            severity=AuditSeverity.INFO if checksum_ok else AuditSeverity.WARNING,
            entity_type="snapshot",
            entity_id=checksum,
            correlation_id=correlation_id,
            description=(
                "Dry run completed"
                if checksum_ok
                else "Dry run completed with checksum mismatch"
            ),
            details={
                "checksum_ok": checksum_ok,
                "counts_file": counts_file,
                "counts_db": counts_db,
            },
            is_user_action=True,
        )

    @staticmethod
    def dry_run_rejected(
        reason: str,
        error_code: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRY_RUN_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description="Dry run rejected the backup file",
            error_code=error_code,
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def import_started(
        mode: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_STARTED,
            entity_type="store",
            correlation_id=correlation_id,
            description=f"Import started in {mode} mode",
            details={"mode": mode},
            is_user_action=True,
        )

    @staticmethod
    def import_rejected(
        mode: str,
        error_code: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description=f"Import rejected before any write ({error_code})",
            details={"mode": mode},
            error_code=error_code,
            error_message=reason,
        )

    @staticmethod
    def import_committed(
        checksum: str,
        mode: str,
        counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMMITTED,
            entity_type="snapshot",
            entity_id=checksum,
            correlation_id=correlation_id,
            description=f"Import committed in {mode} mode",
            details={"mode": mode, "counts": counts},
        )

    @staticmethod
    def import_failed(
        checksum: str,
        mode: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            entity_id=checksum,
            correlation_id=correlation_id,
            description="Import transaction failed and was rolled back",
            details={"mode": mode},
            error_code="transaction_failure",
            error_message=error_message,
        )

    @staticmethod
    def store_seeded(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_SEEDED,
            entity_type="store",
            description="Empty store seeded with demo data",
            details={"counts": counts},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
