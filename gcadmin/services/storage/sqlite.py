"""
SQLite Storage Implementation

DESIGN DECISION: SQLite is the persistent backend because:
1. It ships with Python, no server to run
2. Real ACID transactions (the backup import depends on them)
3. JSON1 functions let us index fields inside schemaless records
4. The whole store is one file that is easy to copy

Each collection is a table of (seq, id, body) rows: `seq` keeps insertion
order, `id` is the record key, `body` is the record as JSON. Indexed fields
get expression indexes on json_extract(body, '$.<field>').

TRADEOFFS:
- sqlite3 calls are synchronous; we run them inside the async methods, the
  same way the rest of the code base treats quick local I/O
- One connection per store, serialized by an asyncio.Lock. A reader waits
  for an open transaction to finish instead of seeing its uncommitted rows.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, Optional, Sequence
from uuid import UUID

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gcadmin.config import get_settings
from gcadmin.models.audit import AuditEvent
from gcadmin.models.records import COLLECTION_INDEXES, COLLECTIONS
from gcadmin.models.snapshot import Record
from gcadmin.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    StorageConnectionError,
    StorageError,
    StoreInterface,
    StoreTransaction,
    check_collection,
    check_index,
    record_key,
)

logger = structlog.get_logger(__name__)

AUDIT_TABLE = "audit_log"

# Column order matches AuditEvent.to_row()
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
    "is_user_action",
]


def _schema_sql() -> str:
    statements = []
    for name in COLLECTIONS:
        statements.append(
            f'CREATE TABLE IF NOT EXISTS "{name}" ('
            "seq INTEGER PRIMARY KEY AUTOINCREMENT, "
            "id TEXT NOT NULL UNIQUE, "
            "body TEXT NOT NULL)"
        )
        for field in COLLECTION_INDEXES[name]:
            statements.append(
                f'CREATE INDEX IF NOT EXISTS "idx_{name}_{field}" '
                f"ON \"{name}\"(json_extract(body, '$.{field}'))"
            )
    statements.append(
        f"CREATE TABLE IF NOT EXISTS {AUDIT_TABLE} ("
        "event_id TEXT PRIMARY KEY, "
        "timestamp TEXT NOT NULL, "
        "event_type TEXT NOT NULL, "
        "severity TEXT NOT NULL, "
        "entity_type TEXT, "
        "entity_id TEXT, "
        "correlation_id TEXT, "
        "description TEXT NOT NULL, "
        "details_json TEXT, "
        "error_code TEXT, "
        "error_message TEXT, "
        "is_user_action INTEGER NOT NULL DEFAULT 0)"
    )
    statements.append(
        f"CREATE INDEX IF NOT EXISTS idx_audit_correlation ON {AUDIT_TABLE}(correlation_id)"
    )
    return ";\n".join(statements) + ";"


def _dump(record: Record) -> str:
    return json.dumps(record, ensure_ascii=False)


class _SQLiteTransaction(StoreTransaction):
    """Statements run on the store's connection inside BEGIN IMMEDIATE."""

    def __init__(self, conn: sqlite3.Connection, collections: Sequence[str]):
        self._conn = conn
        self._collections = set(collections)
        self._closed = False

    def _table(self, collection: str) -> str:
        if self._closed:
            raise StorageError("Transaction is already finished")
        check_collection(collection)
        if collection not in self._collections:
            raise StorageError(f"{collection} is not part of this transaction")
        return collection

    def close(self) -> None:
        self._closed = True

    async def list(self, collection: str) -> list[Record]:
        table = self._table(collection)
        rows = self._conn.execute(f'SELECT body FROM "{table}" ORDER BY seq').fetchall()
        return [json.loads(row[0]) for row in rows]

    async def count(self, collection: str) -> int:
        table = self._table(collection)
        return self._conn.execute(f'SELECT COUNT(*) FROM "{table}"').fetchone()[0]

    async def get(self, collection: str, key: str) -> Optional[Record]:
        table = self._table(collection)
        row = self._conn.execute(
            f'SELECT body FROM "{table}" WHERE id = ?', (key,)
        ).fetchone()
        return json.loads(row[0]) if row else None

    async def delete(self, collection: str, key: str) -> bool:
        table = self._table(collection)
        cursor = self._conn.execute(f'DELETE FROM "{table}" WHERE id = ?', (key,))
        return cursor.rowcount > 0

    async def clear(self, collection: str) -> None:
        table = self._table(collection)
        self._conn.execute(f'DELETE FROM "{table}"')

    async def bulk_insert(self, collection: str, records: Iterable[Record]) -> None:
        table = self._table(collection)
        for record in records:
            key = record_key(collection, record)
            try:
                self._conn.execute(
                    f'INSERT INTO "{table}" (id, body) VALUES (?, ?)',
                    (key, _dump(record)),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateError(f"{collection}: duplicate id {key}") from e

    async def bulk_upsert(self, collection: str, records: Iterable[Record]) -> None:
        table = self._table(collection)
        for record in records:
            self._conn.execute(
                f'INSERT INTO "{table}" (id, body) VALUES (?, ?) '
                "ON CONFLICT(id) DO UPDATE SET body = excluded.body",
                (record_key(collection, record), _dump(record)),
            )


class SQLiteStore(StoreInterface):
    """
    SQLite-backed store.

    Args:
        path: Database file, or ":memory:". Defaults to the configured path.
        connect_attempts: How often to retry opening a locked database
    """

    def __init__(
        self,
        path: Optional[str] = None,
        connect_attempts: Optional[int] = None,
    ):
        settings = get_settings().store
        self._path = path or settings.path
        self._connect_attempts = connect_attempts or settings.connect_attempts
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._path

    def _open(self) -> sqlite3.Connection:
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            self._path,
            isolation_level=None,  # explicit BEGIN/COMMIT only
            check_same_thread=False,
        )
        conn.execute("PRAGMA busy_timeout = 5000")
        conn.executescript(_schema_sql())
        return conn

    def connect(self) -> sqlite3.Connection:
        """
        Open the database and create tables on first use.

        Retries while the file is locked by another process.
        """
        if self._conn is None:
            try:
                for attempt in Retrying(
                    stop=stop_after_attempt(self._connect_attempts),
                    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
                    retry=retry_if_exception_type(sqlite3.OperationalError),
                    reraise=True,
                ):
                    with attempt:
                        self._conn = self._open()
            except (sqlite3.Error, OSError) as e:
                raise StorageConnectionError(
                    f"Failed to open SQLite store at {self._path}: {e}"
                ) from e
            logger.debug("sqlite_store_opened", path=self._path)
        return self._conn

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    async def list(self, collection: str) -> list[Record]:
        check_collection(collection)
        async with self._lock:
            try:
                rows = self.connect().execute(
                    f'SELECT body FROM "{collection}" ORDER BY seq'
                ).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to list {collection}: {e}") from e
        return [json.loads(row[0]) for row in rows]

    async def count(self, collection: str) -> int:
        check_collection(collection)
        async with self._lock:
            try:
                return self.connect().execute(
                    f'SELECT COUNT(*) FROM "{collection}"'
                ).fetchone()[0]
            except sqlite3.Error as e:
                raise StorageError(f"Failed to count {collection}: {e}") from e

    async def get(self, collection: str, key: str) -> Optional[Record]:
        check_collection(collection)
        async with self._lock:
            try:
                row = self.connect().execute(
                    f'SELECT body FROM "{collection}" WHERE id = ?', (key,)
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to get {collection}/{key}: {e}") from e
        return json.loads(row[0]) if row else None

    async def query_range(
        self,
        collection: str,
        field: str,
        lower: Any = None,
        upper: Any = None,
    ) -> list[Record]:
        check_index(collection, field)
        expr = f"json_extract(body, '$.{field}')"
        clauses = [f"{expr} IS NOT NULL"]
        params: list[Any] = []
        if lower is not None:
            clauses.append(f"{expr} >= ?")
            params.append(lower)
        if upper is not None:
            clauses.append(f"{expr} <= ?")
            params.append(upper)
        sql = (
            f'SELECT body FROM "{collection}" WHERE {" AND ".join(clauses)} '
            f"ORDER BY {expr}, seq"
        )
        async with self._lock:
            try:
                rows = self.connect().execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to query {collection}.{field}: {e}") from e
        return [json.loads(row[0]) for row in rows]

    @asynccontextmanager
    async def transaction(self, collections: Sequence[str]) -> AsyncIterator[StoreTransaction]:
        names = [check_collection(name) for name in collections]
        async with self._lock:
            conn = self.connect()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageError(f"Failed to begin transaction: {e}") from e
            tx = _SQLiteTransaction(conn, names)
            try:
                yield tx
            except BaseException:
                conn.execute("ROLLBACK")
                logger.warning("sqlite_transaction_rolled_back", collections=names)
                raise
            finally:
                tx.close()
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                conn.execute("ROLLBACK")
                raise StorageError(f"Failed to commit transaction: {e}") from e


class SQLiteAuditStorage(AuditStorageInterface):
    """
    Audit log kept in the store's own database file.

    Shares the store's connection and lock.
    """

    def __init__(self, store: SQLiteStore):
        self._store = store

    async def append_event(self, event: AuditEvent) -> bool:
        placeholders = ", ".join("?" for _ in AUDIT_COLUMNS)
        async with self._store._lock:
            try:
                self._store.connect().execute(
                    f"INSERT INTO {AUDIT_TABLE} ({', '.join(AUDIT_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    event.to_row(),
                )
                return True
            except sqlite3.Error as e:
                # Audit logging must not break the main flow
                logger.warning(
                    "audit_event_write_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        async with self._store._lock:
            try:
                rows = self._store.connect().execute(
                    f"SELECT {', '.join(AUDIT_COLUMNS)} FROM {AUDIT_TABLE} "
                    "WHERE correlation_id = ? ORDER BY timestamp, rowid",
                    (str(correlation_id),),
                ).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to get audit events: {e}") from e
        return [AuditEvent.from_row(row) for row in rows]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        async with self._store._lock:
            try:
                rows = self._store.connect().execute(
                    f"SELECT {', '.join(AUDIT_COLUMNS)} FROM {AUDIT_TABLE} "
                    "ORDER BY timestamp DESC LIMIT ?",
                    (limit,),
                ).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to get audit events: {e}") from e
        return [AuditEvent.from_row(row) for row in rows]
