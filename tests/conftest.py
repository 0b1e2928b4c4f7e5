"""Shared test fixtures for HridayMitra Health tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.delenv("SENSOR_SEED", raising=False)

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

USER_ID = "user-123"


class FlakyPersistence:
    """In-memory port whose saves (and optionally loads) can be made to fail."""

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.fail_saves = False
        self.fail_loads = False
        self.save_calls = 0

    def load(self, key: str) -> bytes | None:
        from hridaymitra.core.storage.persistence import PersistenceUnavailable

        if self.fail_loads:
            raise PersistenceUnavailable("backend offline")
        return self.data.get(key)

    def save(self, key: str, data: bytes) -> None:
        from hridaymitra.core.storage.persistence import PersistenceUnavailable

        self.save_calls += 1
        if self.fail_saves:
            raise PersistenceUnavailable("backend offline")
        self.data[key] = data


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def health_db():
    """Create an in-memory HealthDatabase for testing."""
    from hridaymitra.core.storage.database import HealthDatabase

    db = HealthDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def memory_port():
    from hridaymitra.core.storage.persistence import InMemoryPersistence

    return InMemoryPersistence()


@pytest.fixture
def flaky_port() -> FlakyPersistence:
    return FlakyPersistence()


@pytest.fixture
def store(memory_port):
    """An empty HealthRecordStore for USER_ID."""
    from hridaymitra.core.storage.record_store import HealthRecordStore

    return HealthRecordStore(USER_ID, memory_port)


@pytest.fixture
def audit_logger(health_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from hridaymitra.core.audit.logger import AuditLogger

    return AuditLogger(health_db)
