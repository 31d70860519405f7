"""
Data Models Package

This package contains all Pydantic models used in Giannicorp Admin.
Records, snapshots and audit events flowing through the system conform to
these schemas.
"""

from gcadmin.models.records import (
    COLLECTION_INDEXES,
    COLLECTIONS,
    RECORD_MODELS,
    Assignment,
    AssignmentStatus,
    BillingCycle,
    Collection,
    Expense,
    Income,
    Milestone,
    MilestoneStatus,
    PaidVia,
    Person,
    Project,
    ProjectStatus,
    Service,
    StoreRecord,
    Subscription,
    SubscriptionStatus,
    Task,
    TaskRepeat,
    TaskStatus,
    new_id,
)
from gcadmin.models.snapshot import (
    CHECKSUM_ALGO,
    Checksum,
    DryRunResult,
    ImportMode,
    ImportPhase,
    ImportResult,
    Record,
    Snapshot,
    SnapshotData,
)
from gcadmin.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "COLLECTION_INDEXES",
    "COLLECTIONS",
    "RECORD_MODELS",
    "Assignment",
    "AssignmentStatus",
    "BillingCycle",
    "Collection",
    "Expense",
    "Income",
    "Milestone",
    "MilestoneStatus",
    "PaidVia",
    "Person",
    "Project",
    "ProjectStatus",
    "Service",
    "StoreRecord",
    "Subscription",
    "SubscriptionStatus",
    "Task",
    "TaskRepeat",
    "TaskStatus",
    "new_id",
    # Snapshot models
    "CHECKSUM_ALGO",
    "Checksum",
    "DryRunResult",
    "ImportMode",
    "ImportPhase",
    "ImportResult",
    "Record",
    "Snapshot",
    "SnapshotData",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
