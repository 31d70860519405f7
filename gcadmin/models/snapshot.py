"""
Snapshot Models for Backup/Restore

A snapshot is a self-verifying copy of all nine collections:

    {
      "app": "Giannicorp Admin",
      "version": "v1",
      "createdAt": "2024-12-01T10:00:00+00:00",
      "checksum": {"algo": "SHA-256", "value": "<64 lowercase hex>"},
      "data": {"services": [...], ..., "tasks": [...]}
    }

DESIGN DECISION: Validation here is deliberately SHALLOW.
We check the envelope and that each collection is a list of objects with a
usable key. Per-field business shapes are not our concern; the backup engine
moves opaque JSON, it does not judge it.
"""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from gcadmin.models.records import COLLECTIONS

# Loosely-typed record: any JSON object
Record = dict[str, Any]

CHECKSUM_ALGO = "SHA-256"


class ImportMode(str, Enum):
    """
    How an import reconciles the snapshot with the store.

    REPLACE wipes all nine collections first.
    MERGE upserts by id and leaves everything else alone.
    """
    REPLACE = "replace"
    MERGE = "merge"


class ImportPhase(str, Enum):
    """Phases a single import call passes through."""
    IDLE = "idle"
    VALIDATING = "validating"
    CHECKSUM_OK = "checksum_ok"
    TRANSACTING = "transacting"
    COMMITTED = "committed"
    FAILED = "failed"


# =============================================================================
# ENVELOPE
# =============================================================================

class Checksum(BaseModel):
    """Digest of the canonical serialization of `data`."""
    model_config = ConfigDict(extra="ignore")

    algo: Literal["SHA-256"] = CHECKSUM_ALGO
    value: str = Field(..., min_length=1)


def _validate_collection(name: str, records: list[Record]) -> list[Record]:
    seen: set[str] = set()
    for index, record in enumerate(records):
        key = record.get("id")
        if not isinstance(key, str) or not key:
            raise ValueError(f"{name}[{index}] has no usable 'id'")
        if key in seen:
            raise ValueError(f"{name} contains duplicate id '{key}'")
        seen.add(key)
    return records


class SnapshotData(BaseModel):
    """
    The nine collections. Every member is REQUIRED and must be a list of
    objects; an empty list is fine, a missing member is not.
    """
    model_config = ConfigDict(extra="ignore")

    services: list[Record]
    subscriptions: list[Record]
    people: list[Record]
    assignments: list[Record]
    expenses: list[Record]
    incomes: list[Record]
    projects: list[Record]
    milestones: list[Record]
    tasks: list[Record]

    @field_validator(*COLLECTIONS, mode="after")
    @classmethod
    def validate_keys(cls, v: list[Record], info) -> list[Record]:
        """Every record needs a non-empty, collection-unique string id."""
        return _validate_collection(info.field_name, v)

    def collection(self, name: str) -> list[Record]:
        return getattr(self, name)

    def counts(self) -> dict[str, int]:
        return {name: len(self.collection(name)) for name in COLLECTIONS}

    def to_plain(self) -> dict[str, list[Record]]:
        """Collections as plain dicts, in snapshot order."""
        return {name: self.collection(name) for name in COLLECTIONS}


class Snapshot(BaseModel):
    """The full backup envelope."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    app: str = "Giannicorp Admin"
    version: str = "v1"
    created_at: str = Field(..., min_length=1)
    checksum: Checksum
    data: SnapshotData


# =============================================================================
# RESULTS
# =============================================================================

class DryRunResult(BaseModel):
    """
    Outcome of a dry run.

    On success: ok, version, checksum_ok, counts_file, counts_db.
    On failure: ok=False and a user-facing error.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    ok: bool
    version: Optional[str] = None
    checksum_ok: Optional[bool] = None
    counts_file: Optional[dict[str, int]] = None
    counts_db: Optional[dict[str, int]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """camelCase dict, as handed to a UI."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @property
    def changes(self) -> dict[str, int]:
        """Per collection: records in the file minus records in the store."""
        if not self.ok or self.counts_file is None or self.counts_db is None:
            return {}
        return {
            name: self.counts_file.get(name, 0) - self.counts_db.get(name, 0)
            for name in COLLECTIONS
        }


class ImportResult(BaseModel):
    """
    Outcome of a committed import.

    Callers reload the collections listed in changed_collections; the engine
    itself never pushes notifications.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    ok: bool = True
    mode: ImportMode
    changed_collections: list[str] = Field(default_factory=list)
    counts: dict[str, int] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
