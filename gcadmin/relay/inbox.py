"""
Customer Request / Ticket Inbox

Events from the customer site land here and are upserted into a small
SQLite database the admin reads from. Four event kinds:

    request.created  -> upsert request, append a "Submitted" event
    request.event    -> upsert request, append the event
                        ("InfoProvided" moves the request to "UnderReview")
    ticket.created   -> upsert ticket (default status "Open")
    ticket.message   -> append message, touch the ticket's updated_at

DESIGN DECISION: Payloads are validated with pydantic before anything is
written. A malformed payload is the sender's problem (400), not ours (500).
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Optional
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = structlog.get_logger(__name__)

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS requests (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    user_email TEXT,
    title TEXT,
    details TEXT,
    status TEXT,
    created_at TEXT,
    updated_at TEXT
);
CREATE TABLE IF NOT EXISTS request_events (
    id TEXT PRIMARY KEY,
    request_id TEXT,
    type TEXT,
    message TEXT,
    by_admin INTEGER,
    created_at TEXT
);
CREATE TABLE IF NOT EXISTS tickets (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    user_email TEXT,
    subject TEXT,
    status TEXT,
    created_at TEXT,
    updated_at TEXT
);
CREATE TABLE IF NOT EXISTS ticket_messages (
    id TEXT PRIMARY KEY,
    ticket_id TEXT,
    sender TEXT,
    body TEXT,
    created_at TEXT
);
"""

DEFAULT_REQUEST_STATUS = "Submitted"
DEFAULT_TICKET_STATUS = "Open"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _event_id() -> str:
    return f"ev_{uuid4().hex}"


class InboxError(Exception):
    """Base exception for inbox processing."""
    pass


class UnknownEventError(InboxError):
    """Event header names no known event kind."""

    def __init__(self, event: Optional[str]):
        self.event = event
        super().__init__(f"Unknown event: {event}")


class InvalidPayloadError(InboxError):
    """Body does not match the payload shape of its event."""
    pass


# =============================================================================
# PAYLOADS
# =============================================================================

class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class RelayUser(_Payload):
    id: Optional[str] = None
    email: Optional[str] = None


class RequestPayload(_Payload):
    id: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    title: Optional[str] = None
    details: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class RequestCreated(_Payload):
    request: RequestPayload
    user: Optional[RelayUser] = None


class RequestEventPayload(_Payload):
    id: Optional[str] = None
    type: str = Field(..., min_length=1)
    message: Optional[str] = None
    by_admin: bool = False
    created_at: Optional[str] = None


class RequestEvent(_Payload):
    request_id: str = Field(..., min_length=1)
    event: RequestEventPayload
    user: Optional[RelayUser] = None


class TicketPayload(_Payload):
    id: str = Field(..., min_length=1)
    subject: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TicketCreated(_Payload):
    ticket: TicketPayload
    user: Optional[RelayUser] = None


class TicketMessagePayload(_Payload):
    id: Optional[str] = None
    sender: Optional[str] = None
    body: Optional[str] = None
    created_at: Optional[str] = None


class TicketMessage(_Payload):
    ticket_id: str = Field(..., min_length=1)
    message: TicketMessagePayload


EVENT_PAYLOADS: dict[str, type[_Payload]] = {
    "request.created": RequestCreated,
    "request.event": RequestEvent,
    "ticket.created": TicketCreated,
    "ticket.message": TicketMessage,
}


# =============================================================================
# STORE
# =============================================================================

class InboxStore:
    """SQLite tables for requests, their events, tickets and messages."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._get_connection() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(CREATE_TABLES_SQL)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Connection whose statements commit together or not at all."""
        with self._get_connection() as conn:
            with conn:
                yield conn

    def _all(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        with self._get_connection() as conn:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]

    def _one(self, sql: str, params: tuple) -> Optional[dict[str, Any]]:
        rows = self._all(sql, params)
        return rows[0] if rows else None

    def get_request(self, request_id: str) -> Optional[dict[str, Any]]:
        return self._one("SELECT * FROM requests WHERE id = ?", (request_id,))

    def list_requests(self) -> list[dict[str, Any]]:
        return self._all("SELECT * FROM requests ORDER BY updated_at DESC")

    def list_request_events(self, request_id: str) -> list[dict[str, Any]]:
        return self._all(
            "SELECT * FROM request_events WHERE request_id = ? ORDER BY created_at, rowid",
            (request_id,),
        )

    def get_ticket(self, ticket_id: str) -> Optional[dict[str, Any]]:
        return self._one("SELECT * FROM tickets WHERE id = ?", (ticket_id,))

    def list_tickets(self) -> list[dict[str, Any]]:
        return self._all("SELECT * FROM tickets ORDER BY updated_at DESC")

    def list_ticket_messages(self, ticket_id: str) -> list[dict[str, Any]]:
        return self._all(
            "SELECT * FROM ticket_messages WHERE ticket_id = ? ORDER BY created_at, rowid",
            (ticket_id,),
        )


# =============================================================================
# PROCESSOR
# =============================================================================

class InboxProcessor:
    """
    Applies one webhook event to the inbox store.

    Each event is written in a single transaction.
    """

    def __init__(self, store: InboxStore):
        self._store = store

    def handle(self, event: Optional[str], body: Any) -> None:
        """
        Apply an event.

        Args:
            event: Value of the X-Giannicorp-Event header
            body: Parsed JSON body; the payload lives under "data"

        Raises:
            UnknownEventError: If the event kind is not one we handle
            InvalidPayloadError: If the payload does not fit the event
        """
        model = EVENT_PAYLOADS.get(event or "")
        if model is None:
            raise UnknownEventError(event)

        data = body.get("data") if isinstance(body, dict) else None
        try:
            payload = model.model_validate(data)
        except ValidationError as e:
            raise InvalidPayloadError(str(e)) from e

        with self._store.transaction() as conn:
            if isinstance(payload, RequestCreated):
                self._request_created(conn, payload)
            elif isinstance(payload, RequestEvent):
                self._request_event(conn, payload)
            elif isinstance(payload, TicketCreated):
                self._ticket_created(conn, payload)
            else:
                self._ticket_message(conn, payload)

        logger.info("inbox_event_applied", event_kind=event)

    def _request_created(self, conn: sqlite3.Connection, p: RequestCreated) -> None:
        r, user = p.request, p.user or RelayUser()
        now = _now()
        conn.execute(
            "INSERT INTO requests "
            "(id, user_id, user_email, title, details, status, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "title = excluded.title, details = excluded.details, "
            "status = excluded.status, updated_at = excluded.updated_at, "
            "user_id = excluded.user_id, user_email = excluded.user_email",
            (
                r.id,
                r.user_id or user.id,
                user.email,
                r.title or "",
                r.details,
                r.status or DEFAULT_REQUEST_STATUS,
                r.created_at or now,
                r.updated_at or now,
            ),
        )
        conn.execute(
            "INSERT INTO request_events (id, request_id, type, message, by_admin, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (_event_id(), r.id, DEFAULT_REQUEST_STATUS, "Request received", 0, now),
        )

    def _request_event(self, conn: sqlite3.Connection, p: RequestEvent) -> None:
        ev, user = p.event, p.user or RelayUser()
        now = _now()
        status = "UnderReview" if ev.type == "InfoProvided" else None
        # Only the status and timestamps move; title and details stay as sent
        conn.execute(
            "INSERT INTO requests "
            "(id, user_id, user_email, title, details, status, created_at, updated_at) "
            "VALUES (?, ?, ?, '', NULL, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "status = COALESCE(?, requests.status), updated_at = excluded.updated_at, "
            "user_id = COALESCE(excluded.user_id, requests.user_id), "
            "user_email = COALESCE(excluded.user_email, requests.user_email)",
            (
                p.request_id,
                user.id,
                user.email,
                status or DEFAULT_REQUEST_STATUS,
                now,
                now,
                status,
            ),
        )
        conn.execute(
            "INSERT INTO request_events (id, request_id, type, message, by_admin, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                ev.id or _event_id(),
                p.request_id,
                ev.type,
                ev.message,
                1 if ev.by_admin else 0,
                ev.created_at or now,
            ),
        )

    def _ticket_created(self, conn: sqlite3.Connection, p: TicketCreated) -> None:
        t, user = p.ticket, p.user or RelayUser()
        now = _now()
        conn.execute(
            "INSERT INTO tickets "
            "(id, user_id, user_email, subject, status, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "subject = excluded.subject, status = excluded.status, "
            "updated_at = excluded.updated_at, user_email = excluded.user_email, "
            "user_id = excluded.user_id",
            (
                t.id,
                user.id,
                user.email,
                t.subject,
                t.status or DEFAULT_TICKET_STATUS,
                t.created_at or now,
                t.updated_at or now,
            ),
        )

    def _ticket_message(self, conn: sqlite3.Connection, p: TicketMessage) -> None:
        m = p.message
        now = _now()
        conn.execute(
            "INSERT INTO ticket_messages (id, ticket_id, sender, body, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (m.id or _event_id(), p.ticket_id, m.sender, m.body, m.created_at or now),
        )
        conn.execute(
            "UPDATE tickets SET updated_at = ? WHERE id = ?",
            (now, p.ticket_id),
        )
