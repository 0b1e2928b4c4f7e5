"""Key-value persistence port for record sequences, plus concrete adapters.

The record store only needs ``load(key)`` and ``save(key, data)``. Adapters
translate their backend's failures into :class:`PersistenceUnavailable` so
the store handles every backend the same way.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Protocol, runtime_checkable

from hridaymitra.core.storage.database import DatabaseError, HealthDatabase
from hridaymitra.core.storage.encryption import EncryptionError, PayloadEncryptor

logger = logging.getLogger(__name__)


class PersistenceUnavailable(Exception):
    """Raised when the persistence backend cannot load or save."""


@runtime_checkable
class PersistencePort(Protocol):
    """Abstract key-value persistence for whole record sequences."""

    def load(self, key: str) -> bytes | None:
        """Return the stored payload, or None if nothing is stored under ``key``."""
        ...

    def save(self, key: str, data: bytes) -> None:
        """Replace the payload stored under ``key``."""
        ...


class InMemoryPersistence:
    """Dict-backed port. Nothing survives the process."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def load(self, key: str) -> bytes | None:
        return self._data.get(key)

    def save(self, key: str, data: bytes) -> None:
        self._data[key] = bytes(data)

    def keys(self) -> list[str]:
        return sorted(self._data)


class SQLitePersistence:
    """Port backed by the ``record_sequences`` table of a :class:`HealthDatabase`.

    Usage::

        db = HealthDatabase("~/.hridaymitra/health.db")
        db.initialize()
        port = SQLitePersistence(db)
        port.save("health_records:user-1", payload)
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    def load(self, key: str) -> bytes | None:
        try:
            row = self._db.connection.execute(
                "SELECT payload FROM record_sequences WHERE key = ?", (key,)
            ).fetchone()
        except (sqlite3.Error, DatabaseError) as exc:
            raise PersistenceUnavailable(f"Failed to load {key!r}: {exc}") from exc
        if row is None:
            return None
        return bytes(row["payload"])

    def save(self, key: str, data: bytes) -> None:
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    """INSERT INTO record_sequences (key, payload, updated_at)
                       VALUES (?, ?, datetime('now'))
                       ON CONFLICT(key) DO UPDATE SET
                           payload = excluded.payload,
                           updated_at = excluded.updated_at""",
                    (key, sqlite3.Binary(data)),
                )
        except (sqlite3.Error, DatabaseError) as exc:
            raise PersistenceUnavailable(f"Failed to save {key!r}: {exc}") from exc
        logger.debug("Saved record sequence %s (%d bytes)", key, len(data))

    def count_keys(self) -> int:
        """Return the number of stored record sequences."""
        row = self._db.connection.execute("SELECT COUNT(*) FROM record_sequences").fetchone()
        return row[0]


class EncryptedPersistence:
    """Wraps another port, encrypting payloads before they reach it."""

    def __init__(self, inner: PersistencePort, encryptor: PayloadEncryptor) -> None:
        self._inner = inner
        self._enc = encryptor

    def load(self, key: str) -> bytes | None:
        token = self._inner.load(key)
        if token is None:
            return None
        try:
            return self._enc.decrypt(token)
        except EncryptionError as exc:
            raise PersistenceUnavailable(f"Failed to decrypt {key!r}: {exc}") from exc

    def save(self, key: str, data: bytes) -> None:
        try:
            token = self._enc.encrypt(data)
        except EncryptionError as exc:
            raise PersistenceUnavailable(f"Failed to encrypt {key!r}: {exc}") from exc
        self._inner.save(key, token)
