"""
In-Memory Storage Implementation

Used by tests and by callers that want a throwaway store. Behaves exactly like
the persistent store: same ordering, same errors, same transaction guarantee.

Transactions stage copies of the touched tables and swap them in on commit.
The swap happens without an await in between, so readers see either the old
tables or the new ones, never a mix.
"""

from __future__ import annotations

import asyncio
import copy
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional, Sequence
from uuid import UUID

from gcadmin.models.audit import AuditEvent
from gcadmin.models.records import COLLECTIONS
from gcadmin.models.snapshot import Record
from gcadmin.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    StorageError,
    StoreInterface,
    StoreTransaction,
    check_collection,
    check_index,
    in_range,
    record_key,
)

# key -> record; dicts keep insertion order, which is the list order
Table = dict[str, Record]


class _MemoryTransaction(StoreTransaction):
    """Writes go to staged table copies owned by the transaction."""

    def __init__(self, staged: dict[str, Table]):
        self._staged = staged
        self._closed = False

    def _table(self, collection: str) -> Table:
        if self._closed:
            raise StorageError("Transaction is already finished")
        check_collection(collection)
        if collection not in self._staged:
            raise StorageError(f"{collection} is not part of this transaction")
        return self._staged[collection]

    def close(self) -> None:
        self._closed = True

    async def list(self, collection: str) -> list[Record]:
        return copy.deepcopy(list(self._table(collection).values()))

    async def count(self, collection: str) -> int:
        return len(self._table(collection))

    async def get(self, collection: str, key: str) -> Optional[Record]:
        record = self._table(collection).get(key)
        return copy.deepcopy(record) if record is not None else None

    async def delete(self, collection: str, key: str) -> bool:
        return self._table(collection).pop(key, None) is not None

    async def clear(self, collection: str) -> None:
        self._table(collection).clear()

    async def bulk_insert(self, collection: str, records: Iterable[Record]) -> None:
        table = self._table(collection)
        for record in records:
            key = record_key(collection, record)
            if key in table:
                raise DuplicateError(f"{collection}: duplicate id {key}")
            table[key] = copy.deepcopy(record)

    async def bulk_upsert(self, collection: str, records: Iterable[Record]) -> None:
        table = self._table(collection)
        for record in records:
            table[record_key(collection, record)] = copy.deepcopy(record)


class InMemoryStore(StoreInterface):
    """
    Dict-backed store.

    Args:
        initial: Optional {collection: [records]} to start with
    """

    def __init__(self, initial: Optional[dict[str, list[Record]]] = None):
        self._tables: dict[str, Table] = {name: {} for name in COLLECTIONS}
        self._lock = asyncio.Lock()
        for name, records in (initial or {}).items():
            table = self._tables[check_collection(name)]
            for record in records:
                key = record_key(name, record)
                if key in table:
                    raise DuplicateError(f"{name}: duplicate id {key}")
                table[key] = copy.deepcopy(record)

    async def list(self, collection: str) -> list[Record]:
        return copy.deepcopy(list(self._tables[check_collection(collection)].values()))

    async def count(self, collection: str) -> int:
        return len(self._tables[check_collection(collection)])

    async def get(self, collection: str, key: str) -> Optional[Record]:
        record = self._tables[check_collection(collection)].get(key)
        return copy.deepcopy(record) if record is not None else None

    async def query_range(
        self,
        collection: str,
        field: str,
        lower: Any = None,
        upper: Any = None,
    ) -> list[Record]:
        check_index(collection, field)
        matches = [
            r for r in self._tables[collection].values()
            if in_range(r.get(field), lower, upper)
        ]
        matches.sort(key=lambda r: (type(r[field]).__name__, r[field]))
        return copy.deepcopy(matches)

    @asynccontextmanager
    async def transaction(self, collections: Sequence[str]) -> AsyncIterator[StoreTransaction]:
        names = [check_collection(name) for name in collections]
        async with self._lock:
            staged = {name: dict(self._tables[name]) for name in names}
            tx = _MemoryTransaction(staged)
            try:
                yield tx
            finally:
                tx.close()
            # Only reached when the block finished without raising
            self._tables.update(staged)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
