"""SQLite backing store for the health record bank and the audit trail.

One connection is shared by every user session. Writers go through
:meth:`HealthDatabase.transaction`, which serialises them and commits or
rolls back as a unit.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

# ---------------------------------------------------------------------------
# Migrations (version -> DDL); applied in ascending order
# ---------------------------------------------------------------------------

_MIGRATIONS: dict[int, str] = {
    1: """
    -- One row per user: the whole encoded record sequence, rewritten on every append
    CREATE TABLE IF NOT EXISTS record_sequences (
        key          TEXT PRIMARY KEY,
        payload      BLOB NOT NULL,
        updated_at   TEXT NOT NULL DEFAULT (datetime('now'))
    );

    -- Access trail; user ids and tool inputs are stored only as digests
    CREATE TABLE IF NOT EXISTS audit_log (
        id              TEXT PRIMARY KEY,
        timestamp       TEXT NOT NULL,
        action          TEXT NOT NULL,
        tool_name       TEXT,
        user_hash       TEXT,
        input_hash      TEXT,
        duration_ms     REAL,
        status          TEXT NOT NULL DEFAULT 'success',
        error_type      TEXT,
        metadata_json   TEXT
    );
    CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
    CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
    CREATE INDEX IF NOT EXISTS idx_audit_user      ON audit_log(user_hash);
    """,
}

SCHEMA_VERSION = max(_MIGRATIONS)

_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""


class DatabaseError(Exception):
    """Raised when the database is unusable (not open, or from a newer release)."""


class HealthDatabase:
    """Owns the SQLite connection and the schema of the record bank.

    Usage::

        with HealthDatabase("~/.hridaymitra/health.db") as db:
            with db.transaction() as conn:
                conn.execute(...)
    """

    def __init__(self, db_path: str = MEMORY_PATH) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._write_lock = threading.RLock()

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection.

        Raises:
            DatabaseError: If :meth:`initialize` has not been called.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    # ---------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------

    def initialize(self) -> None:
        """Open the connection and bring the schema up to date. Idempotent.

        Raises:
            DatabaseError: If the file was written by a newer schema. The
                connection is closed again before raising.
        """
        if self._conn is not None:
            return

        self._conn = self._open()
        try:
            self._migrate()
        except DatabaseError:
            self.close()
            raise
        logger.info("Health database ready: %s (schema v%d)", self._db_path, SCHEMA_VERSION)

    def _open(self) -> sqlite3.Connection:
        if self._db_path == MEMORY_PATH:
            target = MEMORY_PATH
        else:
            db_file = Path(self._db_path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_file)

        # Tool handlers may run on worker threads; writes are serialised by _write_lock
        conn = sqlite3.connect(target, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000")
        if target != MEMORY_PATH:
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _migrate(self) -> None:
        conn = self.connection
        conn.execute(_VERSION_TABLE)
        current = self.get_schema_version()

        if current > SCHEMA_VERSION:
            raise DatabaseError(
                f"Database schema v{current} is newer than supported v{SCHEMA_VERSION}"
            )

        for version in sorted(v for v in _MIGRATIONS if v > current):
            conn.executescript(_MIGRATIONS[version])
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
            conn.commit()
            logger.info("Applied schema migration v%d", version)

    def get_schema_version(self) -> int:
        """Highest applied migration, or 0 for a fresh file."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] or 0

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.info("Health database closed: %s", self._db_path)

    def __enter__(self) -> HealthDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # ---------------------------------------------------------------
    # Writes
    # ---------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialise a write; commit on success, roll back on any error."""
        with self._write_lock:
            conn = self.connection
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()
