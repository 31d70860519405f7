"""
Backup Engine

Exports the nine collections as a self-verifying snapshot and restores them.

DESIGN PRINCIPLES:
1. The store is injected, never a module-level singleton
2. Records are opaque JSON; the engine moves data, it does not judge it
3. import_ re-validates everything, even after a dry run, because the file
   may have been swapped between preview and confirm
4. One transaction over all nine collections; a failure leaves the store
   exactly as it was

FLOW (per import call):
    idle -> validating -> checksum_ok -> transacting -> committed
                 |                            |
          Parse/Schema/Integrity        TransactionFailure
             (store untouched)          (rolled back)

The engine holds no lock of its own. Isolation is the store's job.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import structlog

from gcadmin.audit import AuditLogger, create_correlation_id
from gcadmin.backup.checksum import compute_checksum_async, verify_async
from gcadmin.backup.errors import (
    BackupError,
    IntegrityError,
    ParseError,
    SchemaError,
    TransactionFailure,
)
from gcadmin.backup.validator import Artifact, SnapshotValidator
from gcadmin.config import BackupSettings, get_settings
from gcadmin.models.records import COLLECTIONS
from gcadmin.models.snapshot import (
    CHECKSUM_ALGO,
    DryRunResult,
    ImportMode,
    ImportPhase,
    ImportResult,
    Record,
)
from gcadmin.services.storage.interface import StoreInterface

logger = structlog.get_logger(__name__)


def _timestamp() -> str:
    """UTC now as ISO-8601 with milliseconds and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BackupEngine:
    """
    Export, preview and import of full store snapshots.

    Usage:
        engine = BackupEngine(store)
        blob = await engine.export()
        preview = await engine.dry_run(blob)
        if preview.ok and preview.checksum_ok:
            await engine.import_(blob, mode="merge")
    """

    def __init__(
        self,
        store: StoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[BackupSettings] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().backup
        self._validator = SnapshotValidator(self._settings.max_artifact_size_bytes)
        self._phase = ImportPhase.IDLE

    @property
    def phase(self) -> ImportPhase:
        """Phase reached by the most recent import call."""
        return self._phase

    def _enter(self, phase: ImportPhase, correlation_id: UUID, **fields) -> None:
        self._phase = phase
        logger.info(
            "import_phase",
            phase=phase.value,
            correlation_id=str(correlation_id),
            **fields,
        )

    # =========================================================================
    # EXPORT
    # =========================================================================

    async def _read_all(self) -> dict[str, list[Record]]:
        # Read through one transaction so the nine lists are from one moment
        async with self._store.transaction(list(COLLECTIONS)) as tx:
            return {name: await tx.list(name) for name in COLLECTIONS}

    async def export(self, correlation_id: Optional[UUID] = None) -> bytes:
        """
        Serialize the whole store into a snapshot.

        Returns:
            Pretty-printed UTF-8 JSON bytes
        """
        correlation_id = correlation_id or create_correlation_id()
        data = await self._read_all()
        checksum = await compute_checksum_async(data)

        document = {
            "app": self._settings.app_name,
            "version": self._settings.format_version,
            "createdAt": _timestamp(),
            "checksum": {"algo": CHECKSUM_ALGO, "value": checksum},
            "data": data,
        }
        blob = json.dumps(
            document,
            indent=self._settings.indent or None,
            ensure_ascii=False,
        ).encode("utf-8")

        counts = {name: len(data[name]) for name in COLLECTIONS}
        logger.info("backup_exported", checksum=checksum, size=len(blob))
        await self._audit.log_backup_exported(checksum, counts, correlation_id)
        return blob

    async def export_to_file(
        self,
        directory: Optional[Union[str, Path]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Path:
        """
        Export into `giannicorp-backup-<UTC timestamp>.json`.

        Returns:
            Path of the written file
        """
        target_dir = Path(directory or self._settings.export_dir)
        blob = await self.export(correlation_id)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        path = target_dir / f"giannicorp-backup-{stamp}.json"

        def write() -> None:
            target_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(blob)

        await asyncio.to_thread(write)
        return path

    # =========================================================================
    # DRY RUN
    # =========================================================================

    async def dry_run(
        self,
        artifact: Artifact,
        correlation_id: Optional[UUID] = None,
    ) -> DryRunResult:
        """
        Validate an artifact and compare it with the store. Never writes.

        Parse and schema problems come back as ok=False instead of raising.
        A checksum mismatch is reported, not rejected.
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            parsed = await self._validator.load(artifact)
        except (ParseError, SchemaError) as e:
            logger.info("dry_run_rejected", error_code=e.error_code, detail=e.detail)
            await self._audit.log_dry_run_rejected(str(e), e.error_code, correlation_id)
            return DryRunResult(ok=False, error=str(e))

        snapshot = parsed.snapshot
        checksum_ok = await verify_async(parsed.raw_data, snapshot.checksum.value)
        counts_file = snapshot.data.counts()
        counts_db = await self._store.counts()

        await self._audit.log_dry_run_completed(
            snapshot.checksum.value,
            checksum_ok,
            counts_file,
            counts_db,
            correlation_id,
        )
        return DryRunResult(
            ok=True,
            version=snapshot.version,
            checksum_ok=checksum_ok,
            counts_file=counts_file,
            counts_db=counts_db,
        )

    # =========================================================================
    # IMPORT
    # =========================================================================

    async def import_(
        self,
        artifact: Artifact,
        mode: Union[ImportMode, str] = ImportMode.MERGE,
        correlation_id: Optional[UUID] = None,
    ) -> ImportResult:
        """
        Restore a snapshot into the store in one transaction.

        Args:
            artifact: Snapshot bytes, JSON text or a file path
            mode: "replace" wipes all nine collections first,
                  "merge" upserts by id and keeps everything else

        Returns:
            ImportResult naming the collections the caller should reload

        Raises:
            ParseError: Not JSON
            SchemaError: Wrong envelope or collection shape
            IntegrityError: Checksum does not match the data
            TransactionFailure: The write failed; the store is unchanged
        """
        mode = ImportMode(mode)
        correlation_id = correlation_id or create_correlation_id()
        self._phase = ImportPhase.IDLE
        await self._audit.log_import_started(mode.value, correlation_id)

        self._enter(ImportPhase.VALIDATING, correlation_id, mode=mode.value)
        try:
            parsed = await self._validator.load(artifact)
            if not await verify_async(parsed.raw_data, parsed.snapshot.checksum.value):
                raise IntegrityError()
        except BackupError as e:
            self._enter(ImportPhase.FAILED, correlation_id, error_code=e.error_code)
            await self._audit.log_import_rejected(
                mode.value, e.error_code, str(e), correlation_id
            )
            raise

        checksum = parsed.snapshot.checksum.value
        data = parsed.raw_data
        self._enter(ImportPhase.CHECKSUM_OK, correlation_id, checksum=checksum)

        self._enter(ImportPhase.TRANSACTING, correlation_id)
        changed: list[str] = []
        try:
            async with self._store.transaction(list(COLLECTIONS)) as tx:
                if mode == ImportMode.REPLACE:
                    for name in COLLECTIONS:
                        if await tx.count(name) or data[name]:
                            changed.append(name)
                        await tx.clear(name)
                    for name in COLLECTIONS:
                        await tx.bulk_insert(name, data[name])
                else:
                    for name in COLLECTIONS:
                        if data[name]:
                            changed.append(name)
                        await tx.bulk_upsert(name, data[name])
        except Exception as e:
            self._enter(ImportPhase.FAILED, correlation_id, error=str(e))
            await self._audit.log_import_failed(checksum, mode.value, str(e), correlation_id)
            raise TransactionFailure(str(e)) from e

        counts = parsed.snapshot.data.counts()
        self._enter(ImportPhase.COMMITTED, correlation_id, changed=changed)
        await self._audit.log_import_committed(checksum, mode.value, counts, correlation_id)
        return ImportResult(
            mode=mode,
            changed_collections=changed,
            counts=counts,
        )
