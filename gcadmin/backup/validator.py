"""
Two-Stage Snapshot Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - PARSE:
- Size limit
- UTF-8 decoding
- JSON syntax, including lone surrogate escapes, integers past the
  interpreter digit limit and nesting past the recursion limit
- Failures raise ParseError

STAGE 2 - SCHEMA:
- Envelope fields (createdAt, checksum, data)
- All nine collections present, each a list of objects
- Every record has a non-empty, collection-unique id
- Failures raise SchemaError

The checksum is NOT checked here. A dry run reports a mismatch while an
import rejects it, so the engine decides what a mismatch means.

IMPORTANT: Validation NEVER silently fixes issues.
A snapshot either loads as-is or is rejected with a reason.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, NamedTuple, Optional, Union

from pydantic import ValidationError

from gcadmin.backup.errors import ParseError, SchemaError
from gcadmin.config import get_settings
from gcadmin.models.records import COLLECTIONS
from gcadmin.models.snapshot import DryRunResult, Record, Snapshot

Artifact = Union[bytes, bytearray, str, Path]


class ParsedArtifact(NamedTuple):
    """A validated snapshot plus the raw `data` member it was built from."""
    snapshot: Snapshot
    raw_data: dict[str, list[Record]]


def _summarize(error: ValidationError, limit: int = 3) -> str:
    parts = []
    for item in error.errors()[:limit]:
        location = ".".join(str(p) for p in item["loc"]) or "snapshot"
        parts.append(f"{location}: {item['msg']}")
    more = error.error_count() - limit
    if more > 0:
        parts.append(f"(+{more} more)")
    return "; ".join(parts)


class SnapshotValidator:
    """
    Reads and validates backup artifacts.

    Accepts raw bytes, a JSON string or a path to a file.
    """

    def __init__(self, max_size_bytes: Optional[int] = None):
        self._max_size = max_size_bytes or get_settings().backup.max_artifact_size_bytes

    async def read(self, artifact: Artifact) -> bytes:
        """Get the artifact's bytes, reading files off the event loop."""
        if isinstance(artifact, Path):
            try:
                raw = await asyncio.to_thread(artifact.read_bytes)
            except OSError as e:
                raise ParseError(f"Cannot read {artifact}: {e.strerror or e}") from e
        elif isinstance(artifact, str):
            raw = artifact.encode("utf-8")
        elif isinstance(artifact, (bytes, bytearray)):
            raw = bytes(artifact)
        else:
            raise TypeError(f"Unsupported artifact type: {type(artifact).__name__}")

        if len(raw) > self._max_size:
            raise SchemaError(
                f"File is {len(raw)} bytes, the limit is {self._max_size} bytes."
            )
        return raw

    def parse(self, raw: bytes) -> Any:
        """
        Stage 1: decode and parse JSON.

        Raises:
            ParseError: If the bytes are not UTF-8 JSON, or the JSON holds
                text or numbers Python cannot carry through a checksum
        """
        try:
            document = json.loads(raw.decode("utf-8-sig"))
            # \ud800-style escapes decode to lone surrogates that UTF-8 cannot hold
            json.dumps(document, ensure_ascii=False).encode("utf-8")
        except (ValueError, RecursionError) as e:
            raise ParseError() from e
        return document

    def validate(self, document: Any) -> ParsedArtifact:
        """
        Stage 2: shallow schema check of a parsed document.

        Raises:
            SchemaError: If the envelope or any collection is malformed
        """
        if not isinstance(document, dict):
            raise SchemaError("Top level must be a JSON object.")
        if "data" not in document and any(name in document for name in COLLECTIONS):
            raise SchemaError(
                "This is a bare data file without the backup envelope and "
                "checksum; it cannot be verified. Export a new backup."
            )
        try:
            snapshot = Snapshot.model_validate(document)
        except ValidationError as e:
            raise SchemaError(_summarize(e)) from e

        # Hash what the file says, not what pydantic rebuilt from it
        raw = document["data"]
        raw_data = {name: raw[name] for name in COLLECTIONS}
        return ParsedArtifact(snapshot=snapshot, raw_data=raw_data)

    async def load(self, artifact: Artifact) -> ParsedArtifact:
        """Read, parse and validate in one go."""
        raw = await self.read(artifact)
        return self.validate(self.parse(raw))


def get_user_friendly_summary(result: DryRunResult) -> str:
    """
    Render a dry run for a person about to confirm an import.

    This is what the CLI prints before asking for confirmation.
    """
    if not result.ok:
        return f"❌ {result.error or 'Invalid backup format.'}"

    lines = []
    if result.checksum_ok:
        lines.append(f"✅ Backup {result.version} is intact (checksum OK).")
    else:
        lines.append("⚠️ Checksum mismatch: this file was modified or is corrupt.")
        lines.append("   An import of this file will be refused.")

    lines.append("")
    lines.append(f"   {'collection':<14}{'file':>8}{'store':>8}")
    counts_file = result.counts_file or {}
    counts_db = result.counts_db or {}
    for name in COLLECTIONS:
        lines.append(
            f"   {name:<14}{counts_file.get(name, 0):>8}{counts_db.get(name, 0):>8}"
        )

    return "\n".join(lines)
