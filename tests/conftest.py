"""Shared fixtures: both store implementations and an in-memory audit log."""

import pytest

from gcadmin.audit import AuditLogger
from gcadmin.config import get_settings
from gcadmin.services.storage import InMemoryAuditStorage, InMemoryStore, SQLiteStore


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep every test away from the real data/ and backups/ directories."""
    monkeypatch.setenv("GCADMIN_STORE_PATH", str(tmp_path / "store.db"))
    monkeypatch.setenv("GCADMIN_BACKUP_EXPORT_DIR", str(tmp_path / "backups"))
    monkeypatch.setenv("GIANNICORP_DB_PATH", str(tmp_path / "admin.db"))
    monkeypatch.delenv("GIANNICORP_WEBHOOK_SECRET", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    """Each test using this runs once per store implementation."""
    if request.param == "memory":
        s = InMemoryStore()
    else:
        s = SQLiteStore(str(tmp_path / "gcadmin.db"))
    yield s
    await s.close()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)
