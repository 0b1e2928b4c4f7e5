"""Per-user session registry for health record stores.

A user's store is created (and loaded) lazily on first use in a session and
flushed and dropped at logout. Keeping exactly one store per user means
exactly one writer per record sequence.
"""

from __future__ import annotations

import logging
import threading

from hridaymitra.core.storage.persistence import PersistencePort, PersistenceUnavailable
from hridaymitra.core.storage.record_store import HealthRecordStore

logger = logging.getLogger(__name__)


class RecordStoreSessions:
    """Hands out one :class:`HealthRecordStore` per active user.

    Usage::

        sessions = RecordStoreSessions(SQLitePersistence(db))
        store = sessions.open("user-1")
        ...
        sessions.close("user-1")  # logout
    """

    def __init__(self, persistence: PersistencePort) -> None:
        self._port = persistence
        self._stores: dict[str, HealthRecordStore] = {}
        self._lock = threading.Lock()

    def open(self, user_id: str) -> HealthRecordStore:
        """Return the user's store, loading it on first use."""
        with self._lock:
            store = self._stores.get(user_id)
            if store is None:
                store = HealthRecordStore(user_id, self._port)
                self._stores[user_id] = store
                logger.info("Opened health record session (%d active)", len(self._stores))
            return store

    def is_open(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._stores

    def active_count(self) -> int:
        with self._lock:
            return len(self._stores)

    def close(self, user_id: str) -> bool:
        """Flush and drop the user's store.

        Returns:
            True if a session was open, False otherwise.

        Raises:
            PersistenceUnavailable: If pending records could not be flushed.
                The session stays open so the caller can retry.
        """
        with self._lock:
            store = self._stores.get(user_id)
        if store is None:
            return False

        # The store stays registered while it flushes so a concurrent open()
        # for this user gets the same writer. Other users are not blocked.
        while True:
            store.flush()
            with self._lock:
                if self._stores.get(user_id) is not store:
                    return False
                if store.is_durable:
                    del self._stores[user_id]
                    break
        logger.info("Closed health record session")
        return True

    def close_all(self) -> int:
        """Close every session that flushes cleanly; return how many closed."""
        with self._lock:
            user_ids = list(self._stores)
        closed = 0
        for user_id in user_ids:
            try:
                if self.close(user_id):
                    closed += 1
            except PersistenceUnavailable:
                logger.exception("Failed to flush health records at shutdown")
        return closed
