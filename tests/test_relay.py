"""Tests for the webhook relay."""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from gcadmin.config import RelaySettings
from gcadmin.relay import (
    InboxProcessor,
    InboxStore,
    InvalidPayloadError,
    UnknownEventError,
    create_app,
    sign,
    verify_signature,
)

INBOX = "/api/giannicorp/inbox"


@pytest.fixture
def inbox(tmp_path):
    return InboxStore(str(tmp_path / "admin.db"))


def make_client(inbox, secret=""):
    settings = RelaySettings(webhook_secret=secret, db_path=str(inbox.db_path))
    return TestClient(create_app(settings, inbox))


def post(client, event, data, secret=None, signature=None):
    body = json.dumps({"data": data}).encode("utf-8")
    headers = {"X-Giannicorp-Event": event, "Content-Type": "application/json"}
    if secret is not None:
        headers["X-Giannicorp-Signature"] = sign(body, secret)
    if signature is not None:
        headers["X-Giannicorp-Signature"] = signature
    return client.post(INBOX, content=body, headers=headers)


class TestSignature:
    """Tests for sign() and verify_signature()."""

    def test_no_secret_accepts_everything(self):
        """Test verification is off without a secret."""
        assert verify_signature(b"{}", None, "")

    def test_valid_signature(self):
        """Test a correctly signed body verifies."""
        body = b'{"data": {}}'
        header = sign(body, "s3cret")
        assert header.startswith("sha256=")
        assert verify_signature(body, header, "s3cret")

    def test_invalid_signatures(self):
        """Test missing, malformed and wrong signatures fail."""
        body = b'{"data": {}}'
        assert not verify_signature(body, None, "s3cret")
        assert not verify_signature(body, "md5=abc", "s3cret")
        assert not verify_signature(body, sign(body, "other"), "s3cret")
        assert not verify_signature(b'{"data": 1}', sign(body, "s3cret"), "s3cret")


class TestInboxProcessor:
    """Tests for InboxProcessor.handle()."""

    def test_request_created(self, inbox):
        """Test a new request is stored with a Submitted event."""
        InboxProcessor(inbox).handle("request.created", {"data": {
            "request": {"id": "r1", "title": "New seat"},
            "user": {"id": "u1", "email": "sophia@example.com"},
        }})

        request = inbox.get_request("r1")
        assert request["status"] == "Submitted"
        assert request["user_id"] == "u1"
        assert request["user_email"] == "sophia@example.com"
        [event] = inbox.list_request_events("r1")
        assert event["type"] == "Submitted"
        assert event["by_admin"] == 0

    def test_info_provided_moves_to_under_review(self, inbox):
        """Test InfoProvided sets UnderReview and keeps the title."""
        processor = InboxProcessor(inbox)
        processor.handle("request.created", {"data": {"request": {"id": "r1", "title": "Seat"}}})
        processor.handle("request.event", {"data": {
            "request_id": "r1",
            "event": {"id": "ev1", "type": "InfoProvided", "message": "Here you go"},
        }})

        request = inbox.get_request("r1")
        assert request["status"] == "UnderReview"
        assert request["title"] == "Seat"
        assert [e["type"] for e in inbox.list_request_events("r1")] == ["Submitted", "InfoProvided"]

    def test_other_request_events_keep_status(self, inbox):
        """Test events other than InfoProvided leave the status alone."""
        processor = InboxProcessor(inbox)
        processor.handle("request.created", {"data": {"request": {"id": "r1", "status": "Approved"}}})
        processor.handle("request.event", {"data": {
            "request_id": "r1",
            "event": {"type": "Comment", "by_admin": True},
        }})
        assert inbox.get_request("r1")["status"] == "Approved"
        assert inbox.list_request_events("r1")[-1]["by_admin"] == 1

    def test_event_for_unknown_request_creates_it(self, inbox):
        """Test a request.event for an unseen request creates the request."""
        InboxProcessor(inbox).handle("request.event", {"data": {
            "request_id": "r9", "event": {"type": "Comment"},
        }})
        assert inbox.get_request("r9")["status"] == "Submitted"

    def test_ticket_flow(self, inbox):
        """Test ticket creation defaults and message touch."""
        processor = InboxProcessor(inbox)
        processor.handle("ticket.created", {"data": {
            "ticket": {"id": "t1", "subject": "Login", "updated_at": "2000-01-01T00:00:00Z"},
            "user": {"email": "max@example.com"},
        }})
        ticket = inbox.get_ticket("t1")
        assert ticket["status"] == "Open"
        assert ticket["updated_at"] == "2000-01-01T00:00:00Z"

        processor.handle("ticket.message", {"data": {
            "ticket_id": "t1",
            "message": {"id": "m1", "sender": "user", "body": "Hello"},
        }})
        [message] = inbox.list_ticket_messages("t1")
        assert message["body"] == "Hello"
        assert inbox.get_ticket("t1")["updated_at"] > "2000-01-01T00:00:00Z"

    def test_unknown_event(self, inbox):
        """Test unknown event kinds are refused."""
        with pytest.raises(UnknownEventError):
            InboxProcessor(inbox).handle("invoice.paid", {"data": {}})

    def test_invalid_payload(self, inbox):
        """Test payloads missing required parts are refused before writing."""
        with pytest.raises(InvalidPayloadError):
            InboxProcessor(inbox).handle("request.created", {"data": {"user": {}}})
        assert inbox.list_requests() == []


class TestRelayApp:
    """HTTP behaviour of the relay."""

    def test_health(self, inbox):
        """Test the health endpoint."""
        response = make_client(inbox).get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_accepts_unsigned_without_secret(self, inbox):
        """Test requests pass when no secret is configured."""
        response = post(make_client(inbox), "ticket.created", {"ticket": {"id": "t1"}})
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert inbox.get_ticket("t1") is not None

    def test_signed_request(self, inbox):
        """Test a correctly signed request is applied."""
        client = make_client(inbox, secret="s3cret")
        response = post(client, "ticket.created", {"ticket": {"id": "t1"}}, secret="s3cret")
        assert response.status_code == 200

    def test_bad_signature(self, inbox):
        """Test a wrong or missing signature gives 401."""
        client = make_client(inbox, secret="s3cret")
        response = post(client, "ticket.created", {"ticket": {"id": "t1"}}, secret="wrong")
        assert response.status_code == 401
        assert response.json() == {"ok": False, "error": "Bad signature"}
        assert post(client, "ticket.created", {"ticket": {"id": "t1"}}).status_code == 401
        assert inbox.get_ticket("t1") is None

    def test_unknown_event(self, inbox):
        """Test an unknown event gives 400 naming the event."""
        response = post(make_client(inbox), "invoice.paid", {})
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Unknown event: invoice.paid"}

    def test_invalid_payload(self, inbox):
        """Test a malformed payload gives 400."""
        response = post(make_client(inbox), "ticket.message", {"message": {}})
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "invalid_payload"}

    def test_non_json_body(self, inbox):
        """Test a body that is not JSON gives 400."""
        response = make_client(inbox).post(
            INBOX, content=b"not json", headers={"X-Giannicorp-Event": "ticket.created"}
        )
        assert response.status_code == 400

    def test_storage_failure(self, inbox):
        """Test a failing write gives 500 server_error."""
        client = make_client(inbox)
        message = {"ticket_id": "t1", "message": {"id": "m1", "body": "hi"}}
        assert post(client, "ticket.message", message).status_code == 200
        # Same message id again violates the primary key
        response = post(client, "ticket.message", message)
        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "server_error"}

    def test_cors_allows_configured_origin(self, inbox):
        """Test CORS headers for an allowed origin."""
        settings = RelaySettings(cors_origins="https://giannicorp.example", db_path=str(inbox.db_path))
        client = TestClient(create_app(settings, inbox))
        response = client.get("/health", headers={"Origin": "https://giannicorp.example"})
        assert response.headers["access-control-allow-origin"] == "https://giannicorp.example"

    def test_events_are_applied_off_the_event_loop(self, inbox, monkeypatch):
        """Test the blocking SQLite work runs in a worker thread."""
        seen = []
        original = InboxProcessor.handle

        def handle(self, event, body):
            try:
                asyncio.get_running_loop()
                seen.append("event-loop")
            except RuntimeError:
                seen.append("worker")
            return original(self, event, body)

        monkeypatch.setattr(InboxProcessor, "handle", handle)
        response = post(make_client(inbox), "ticket.created", {"ticket": {"id": "t1"}})
        assert response.status_code == 200
        assert seen == ["worker"]
        assert inbox.get_ticket("t1") is not None
