"""Tests for HealthDatabase — schema creation, versioning, lifecycle."""

from __future__ import annotations

import pytest

from hridaymitra.core.storage.database import SCHEMA_VERSION, DatabaseError, HealthDatabase


class TestInitialization:
    def test_in_memory_initialize(self):
        db = HealthDatabase(":memory:")
        db.initialize()
        assert db.connection is not None
        db.close()

    def test_double_initialize_is_idempotent(self):
        db = HealthDatabase(":memory:")
        db.initialize()
        conn1 = db.connection
        db.initialize()
        assert db.connection is conn1
        db.close()

    def test_connection_before_init_raises(self):
        db = HealthDatabase(":memory:")
        with pytest.raises(DatabaseError, match="not initialized"):
            _ = db.connection

    def test_context_manager(self):
        with HealthDatabase(":memory:") as db:
            assert db.connection is not None
        with pytest.raises(DatabaseError):
            _ = db.connection

    def test_file_database_creates_parent_dirs(self, tmp_path):
        path = tmp_path / "nested" / "health.db"
        with HealthDatabase(str(path)) as db:
            assert db.get_schema_version() == SCHEMA_VERSION
        assert path.exists()


class TestSchema:
    def test_schema_version_recorded(self):
        with HealthDatabase(":memory:") as db:
            assert db.get_schema_version() == SCHEMA_VERSION

    def test_tables_created(self):
        with HealthDatabase(":memory:") as db:
            rows = db.connection.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
            tables = {row[0] for row in rows}
        assert {"record_sequences", "audit_log", "schema_version"} <= tables

    def test_reopen_keeps_single_version_row(self, tmp_path):
        path = str(tmp_path / "health.db")
        with HealthDatabase(path):
            pass
        with HealthDatabase(path) as db:
            count = db.connection.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
        assert count == 1

    def test_newer_schema_rejected(self, tmp_path):
        path = str(tmp_path / "health.db")
        with HealthDatabase(path) as db:
            db.connection.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION + 1,))
            db.connection.commit()
        with pytest.raises(DatabaseError, match="newer"):
            HealthDatabase(path).initialize()


class TestTransaction:
    def test_commits_on_success(self, health_db):
        with health_db.transaction() as conn:
            conn.execute("INSERT INTO record_sequences (key, payload) VALUES ('k', x'00')")
        count = health_db.connection.execute("SELECT COUNT(*) FROM record_sequences").fetchone()[0]
        assert count == 1

    def test_rolls_back_on_error(self, health_db):
        with pytest.raises(RuntimeError):
            with health_db.transaction() as conn:
                conn.execute("INSERT INTO record_sequences (key, payload) VALUES ('k', x'00')")
                raise RuntimeError("boom")
        count = health_db.connection.execute("SELECT COUNT(*) FROM record_sequences").fetchone()[0]
        assert count == 0

    def test_requires_open_database(self):
        db = HealthDatabase(":memory:")
        with pytest.raises(DatabaseError):
            with db.transaction():
                pass
