"""
Backup/restore package.

Export, dry run and atomic import of full store snapshots.
"""

from gcadmin.backup.errors import (
    BackupError,
    IntegrityError,
    ParseError,
    SchemaError,
    TransactionFailure,
)
from gcadmin.backup.checksum import canonical_bytes, compute_checksum, verify
from gcadmin.backup.validator import (
    ParsedArtifact,
    SnapshotValidator,
    get_user_friendly_summary,
)
from gcadmin.backup.engine import BackupEngine

__all__ = [
    "BackupEngine",
    # Errors
    "BackupError",
    "IntegrityError",
    "ParseError",
    "SchemaError",
    "TransactionFailure",
    # Checksum
    "canonical_bytes",
    "compute_checksum",
    "verify",
    # Validation
    "ParsedArtifact",
    "SnapshotValidator",
    "get_user_friendly_summary",
]
