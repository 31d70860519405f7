"""Services package."""

from gcadmin.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryStore,
    NotFoundError,
    SQLiteAuditStorage,
    SQLiteStore,
    StorageError,
    StoreInterface,
    ensure_seed,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryStore",
    "NotFoundError",
    "SQLiteAuditStorage",
    "SQLiteStore",
    "StorageError",
    "StoreInterface",
    "ensure_seed",
]
