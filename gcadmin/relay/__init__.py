"""Webhook relay: signed customer request/ticket events into a local inbox."""

from gcadmin.relay.inbox import (
    InboxError,
    InboxProcessor,
    InboxStore,
    InvalidPayloadError,
    UnknownEventError,
)
from gcadmin.relay.server import create_app
from gcadmin.relay.signature import sign, verify_signature

__all__ = [
    "InboxError",
    "InboxProcessor",
    "InboxStore",
    "InvalidPayloadError",
    "UnknownEventError",
    "create_app",
    "sign",
    "verify_signature",
]
