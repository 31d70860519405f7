"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the backup engine testable with an in-memory store
2. Swap SQLite for another backend later
3. Keep business logic decoupled from storage implementation

The store is a set of named collections of JSON records keyed by a string
`id`. It is intentionally simple - we're not building a full ORM.

CRITICAL: transaction() is the one place where correctness matters.
Writes made through a transaction handle commit all-or-nothing, and a
concurrent reader never sees them half-applied.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Iterable, Optional, Sequence

from gcadmin.models.audit import AuditEvent
from gcadmin.models.records import COLLECTION_INDEXES, COLLECTIONS
from gcadmin.models.snapshot import Record


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class UnknownCollectionError(StorageError):
    """Collection name is not one of the nine known collections."""
    pass


class InvalidRecordError(StorageError):
    """Record is not an object with a non-empty string id."""
    pass


class StorageConnectionError(StorageError):
    """Could not open the storage backend."""
    pass


def check_collection(name: str) -> str:
    """Return the collection name or raise UnknownCollectionError."""
    if name not in COLLECTIONS:
        raise UnknownCollectionError(f"Unknown collection: {name}")
    return name


def check_index(collection: str, field: str) -> str:
    """Return the field name if it is indexed on the collection."""
    if field not in COLLECTION_INDEXES[check_collection(collection)]:
        raise StorageError(f"'{field}' is not an indexed field of {collection}")
    return field


def record_key(collection: str, record: Any) -> str:
    """Extract the key of a record, rejecting records without one."""
    if not isinstance(record, dict):
        raise InvalidRecordError(f"{collection}: record must be an object")
    key = record.get("id")
    if not isinstance(key, str) or not key:
        raise InvalidRecordError(f"{collection}: record has no usable 'id'")
    return key


def in_range(value: Any, lower: Any = None, upper: Any = None) -> bool:
    """Inclusive range check used by query_range; missing values never match."""
    if value is None:
        return False
    try:
        if lower is not None and value < lower:
            return False
        if upper is not None and value > upper:
            return False
    except TypeError:
        return False
    return True


class StoreTransaction(ABC):
    """
    Handle for writes inside StoreInterface.transaction().

    Only the collections named when the transaction was opened may be used.
    """

    @abstractmethod
    async def list(self, collection: str) -> list[Record]:
        pass

    @abstractmethod
    async def count(self, collection: str) -> int:
        pass

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Record]:
        pass

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        """Remove one record; returns False when the key is absent."""
        pass

    @abstractmethod
    async def clear(self, collection: str) -> None:
        pass

    @abstractmethod
    async def bulk_insert(self, collection: str, records: Iterable[Record]) -> None:
        """
        Insert records in order.

        Raises:
            DuplicateError: If a key already exists (aborts the transaction)
        """
        pass

    @abstractmethod
    async def bulk_upsert(self, collection: str, records: Iterable[Record]) -> None:
        """Insert records, overwriting whole records that share a key."""
        pass


class StoreInterface(ABC):
    """
    Abstract interface for the nine-collection record store.

    Any storage implementation (in-memory, SQLite, ...) must implement these
    methods. Single-record and bulk writes outside an explicit transaction
    are each atomic on their own.
    """

    @abstractmethod
    async def list(self, collection: str) -> list[Record]:
        """
        List every record of a collection, in insertion order.

        Returns:
            Copies of the stored records
        """
        pass

    @abstractmethod
    async def count(self, collection: str) -> int:
        pass

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Record]:
        """
        Retrieve a record by its key.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def query_range(
        self,
        collection: str,
        field: str,
        lower: Any = None,
        upper: Any = None,
    ) -> list[Record]:
        """
        Records whose indexed field lies within [lower, upper].

        Either bound may be None (open). Results are ordered by the field.

        Raises:
            StorageError: If the field is not indexed on the collection
        """
        pass

    @abstractmethod
    def transaction(
        self,
        collections: Sequence[str],
    ) -> AbstractAsyncContextManager[StoreTransaction]:
        """
        Open an atomic, isolated transaction over several collections.

        Usage:
            async with store.transaction(["people", "tasks"]) as tx:
                await tx.clear("people")
                await tx.bulk_insert("people", records)

        If the block raises, nothing is written and the exception propagates.
        Do not call the store's own methods inside the block; use the handle.
        """
        pass

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None

    # -------------------------------------------------------------------------
    # Writes outside an explicit transaction
    # -------------------------------------------------------------------------

    async def add(self, collection: str, record: Record) -> str:
        """
        Insert one record.

        Returns:
            The record's key

        Raises:
            DuplicateError: If the key already exists
        """
        key = record_key(collection, record)
        async with self.transaction([collection]) as tx:
            await tx.bulk_insert(collection, [record])
        return key

    async def update(self, collection: str, key: str, changes: dict[str, Any]) -> Record:
        """
        Apply field changes to an existing record.

        Raises:
            NotFoundError: If no record has this key
        """
        async with self.transaction([collection]) as tx:
            current = await tx.get(collection, key)
            if current is None:
                raise NotFoundError(f"{collection}: no record with id {key}")
            updated = {**current, **changes, "id": key}
            await tx.bulk_upsert(collection, [updated])
        return updated

    async def delete(self, collection: str, key: str) -> bool:
        """
        Delete a record by key.

        Returns:
            True if a record was removed
        """
        async with self.transaction([collection]) as tx:
            return await tx.delete(collection, key)

    async def clear(self, collection: str) -> None:
        async with self.transaction([collection]) as tx:
            await tx.clear(collection)

    async def bulk_insert(self, collection: str, records: Iterable[Record]) -> None:
        async with self.transaction([collection]) as tx:
            await tx.bulk_insert(collection, records)

    async def bulk_upsert(self, collection: str, records: Iterable[Record]) -> None:
        async with self.transaction([collection]) as tx:
            await tx.bulk_upsert(collection, records)

    async def counts(self) -> dict[str, int]:
        """Record count of every collection, in snapshot order."""
        return {name: await self.count(name) for name in COLLECTIONS}


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., a dry run and its import).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass
