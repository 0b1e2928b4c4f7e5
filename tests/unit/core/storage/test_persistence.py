"""Tests for the persistence adapters (SQLite, encrypted, in-memory)."""

from __future__ import annotations

from datetime import date

import pytest

from hridaymitra.core.storage.encryption import PayloadEncryptor
from hridaymitra.core.storage.models import HealthRecord, record_key
from hridaymitra.core.storage.persistence import (
    EncryptedPersistence,
    InMemoryPersistence,
    PersistencePort,
    PersistenceUnavailable,
    SQLitePersistence,
)
from hridaymitra.core.storage.record_store import HealthRecordStore


@pytest.fixture
def sqlite_port(health_db):
    return SQLitePersistence(health_db)


class TestProtocol:
    def test_adapters_satisfy_port(self, sqlite_port):
        assert isinstance(InMemoryPersistence(), PersistencePort)
        assert isinstance(sqlite_port, PersistencePort)
        encrypted = EncryptedPersistence(InMemoryPersistence(), PayloadEncryptor(PayloadEncryptor.generate_key()))
        assert isinstance(encrypted, PersistencePort)


class TestSQLitePersistence:
    def test_missing_key_returns_none(self, sqlite_port):
        assert sqlite_port.load("health_records:nobody") is None

    def test_save_then_load(self, sqlite_port):
        sqlite_port.save("k", b"payload")
        assert sqlite_port.load("k") == b"payload"

    def test_save_replaces(self, sqlite_port):
        sqlite_port.save("k", b"first")
        sqlite_port.save("k", b"second")
        assert sqlite_port.load("k") == b"second"
        assert sqlite_port.count_keys() == 1

    def test_closed_database_raises_unavailable(self, health_db):
        port = SQLitePersistence(health_db)
        health_db.close()
        with pytest.raises(PersistenceUnavailable):
            port.save("k", b"x")
        with pytest.raises(PersistenceUnavailable):
            port.load("k")

    def test_store_round_trip_through_sqlite(self, sqlite_port):
        store = HealthRecordStore("user-1", sqlite_port)
        store.append(HealthRecord(date=date(2026, 3, 1), user_id="user-1", heart_rate=70))
        store.append(HealthRecord(date=date(2026, 3, 1), user_id="user-1", weight=72.5))
        reloaded = HealthRecordStore("user-1", sqlite_port)
        assert reloaded.all() == store.all()

    def test_store_degrades_when_database_closed(self, health_db):
        port = SQLitePersistence(health_db)
        health_db.close()
        store = HealthRecordStore("user-1", port)
        assert store.all() == []
        assert store.warnings


class TestEncryptedPersistence:
    @pytest.fixture
    def inner(self):
        return InMemoryPersistence()

    @pytest.fixture
    def encryptor(self):
        return PayloadEncryptor(PayloadEncryptor.generate_key())

    def test_payload_not_stored_in_plaintext(self, inner, encryptor):
        port = EncryptedPersistence(inner, encryptor)
        store = HealthRecordStore("user-1", port)
        store.append(HealthRecord(date=date(2026, 3, 1), user_id="user-1", heart_rate=70))
        raw = inner.load(record_key("user-1"))
        assert raw is not None
        assert b"heart_rate" not in raw

    def test_round_trip(self, inner, encryptor):
        port = EncryptedPersistence(inner, encryptor)
        port.save("k", b"secret")
        assert port.load("k") == b"secret"

    def test_missing_key(self, inner, encryptor):
        assert EncryptedPersistence(inner, encryptor).load("k") is None

    def test_wrong_key_raises_unavailable(self, inner, encryptor):
        EncryptedPersistence(inner, encryptor).save("k", b"secret")
        other = EncryptedPersistence(inner, PayloadEncryptor(PayloadEncryptor.generate_key()))
        with pytest.raises(PersistenceUnavailable, match="decrypt"):
            other.load("k")

    def test_store_with_wrong_key_degrades(self, inner, encryptor):
        store = HealthRecordStore("user-1", EncryptedPersistence(inner, encryptor))
        store.append(HealthRecord(date=date(2026, 3, 1), user_id="user-1", heart_rate=70))

        rekeyed = EncryptedPersistence(inner, PayloadEncryptor(PayloadEncryptor.generate_key()))
        degraded = HealthRecordStore("user-1", rekeyed)
        assert degraded.all() == []
        assert degraded.warnings
