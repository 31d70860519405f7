"""
Backup Error Taxonomy

Each error carries a short, user-facing message plus an optional detail for
logs. ParseError and SchemaError share the same message on purpose: to the
operator both mean "this is not a backup file we can read".
"""

from typing import Optional


class BackupError(Exception):
    """Base exception for backup/restore operations."""

    user_message = "Backup operation failed."
    error_code = "backup_error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        message = self.user_message if not detail else f"{self.user_message} {detail}"
        super().__init__(message)


class ParseError(BackupError):
    """Artifact bytes are not valid JSON."""

    user_message = "Invalid backup format."
    error_code = "parse_error"


class SchemaError(BackupError):
    """JSON parses but the envelope or a collection has the wrong shape."""

    user_message = "Invalid backup format."
    error_code = "schema_error"


class IntegrityError(BackupError):
    """Recomputed checksum does not match the embedded one."""

    user_message = "Integrity check failed (checksum)."
    error_code = "integrity_error"


class TransactionFailure(BackupError):
    """The atomic write failed and was rolled back."""

    user_message = "Import did not apply; the store is unchanged."
    error_code = "transaction_failure"
