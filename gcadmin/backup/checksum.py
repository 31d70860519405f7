"""
Canonical serialization and SHA-256 of snapshot data.

The digest covers the `data` member only, never the envelope. Keys are
sorted recursively and separators are compact, so the same records always
hash the same way regardless of the order a store returns fields in.

Files written by the older browser app hashed `data` with its natural key
order and compact separators. verify() accepts that digest too, so those
backups still restore.
"""

import asyncio
import hashlib
import hmac
import json
from typing import Any


def canonical_bytes(data: Any) -> bytes:
    """Serialize with sorted keys and no whitespace, UTF-8 encoded."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def legacy_bytes(data: Any) -> bytes:
    """Serialize in insertion order, as the browser app did."""
    return json.dumps(
        data,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def sha256_hex(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def compute_checksum(data: Any) -> str:
    """SHA-256 of the canonical serialization, 64 lowercase hex chars."""
    return sha256_hex(canonical_bytes(data))


def verify(data: Any, expected: str) -> bool:
    """
    Check an embedded checksum against the data it claims to cover.

    Hex case of the expected value is ignored.
    """
    wanted = expected.strip().lower().encode("utf-8")
    if hmac.compare_digest(compute_checksum(data).encode("ascii"), wanted):
        return True
    return hmac.compare_digest(sha256_hex(legacy_bytes(data)).encode("ascii"), wanted)


async def compute_checksum_async(data: Any) -> str:
    """compute_checksum off the event loop; large stores take a while."""
    return await asyncio.to_thread(compute_checksum, data)


async def verify_async(data: Any, expected: str) -> bool:
    return await asyncio.to_thread(verify, data, expected)
