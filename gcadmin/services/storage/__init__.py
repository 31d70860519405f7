"""
Storage Services Package

Provides the abstract record store and its implementations.
SQLite is the persistent backend; the in-memory store backs tests and
throwaway sessions. Both honour the same transaction contract.
"""

from gcadmin.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    InvalidRecordError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    StoreInterface,
    StoreTransaction,
    UnknownCollectionError,
)
from gcadmin.services.storage.memory import InMemoryAuditStorage, InMemoryStore
from gcadmin.services.storage.sqlite import SQLiteAuditStorage, SQLiteStore
from gcadmin.services.storage.seed import ensure_seed, seed_records

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "StoreInterface",
    "StoreTransaction",
    # Exceptions
    "DuplicateError",
    "InvalidRecordError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "UnknownCollectionError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryStore",
    "SQLiteAuditStorage",
    "SQLiteStore",
    # Seeding
    "ensure_seed",
    "seed_records",
]
