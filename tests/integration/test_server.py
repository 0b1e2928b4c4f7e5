"""Integration tests for the HridayMitra Health MCP server."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastmcp import Client

from hridaymitra.core.server.app import create_app
from hridaymitra.core.storage.database import HealthDatabase
from hridaymitra.core.storage.encryption import PayloadEncryptor
from hridaymitra.core.storage.models import decode_records, record_key
from hridaymitra.core.storage.persistence import InMemoryPersistence
from hridaymitra.domains.health.connectors.sensors import FixedHeartRateSensor


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _payload(result) -> dict:
    """Decode the JSON text a tool returned."""
    return json.loads(result.content[0].text)


ALL_EXPECTED_TOOLS = [
    "health_check",
    "assess_heart_risk",
    "measure_heart_rate",
    "record_vitals_entry",
    "get_latest_record",
    "get_vital_series",
    "get_vital_trend",
    "get_dashboard_summary",
    "get_record_history",
    "end_session",
]

HIGH_RISK_INPUT = {
    "user_id": "user-123",
    "age": 65,
    "gender": "male",
    "chest_pain_type": "typical_angina",
    "resting_bp": 150,
    "cholesterol": 260,
    "fasting_blood_sugar_high": True,
    "resting_ecg": "lv_hypertrophy",
    "max_heart_rate": 100,
    "exercise_induced_angina": True,
    "oldpeak": 2.5,
}


@pytest.fixture
def port():
    return InMemoryPersistence()


@pytest.fixture
def client(port):
    """Create an MCP client connected to a server with in-memory storage."""
    mcp = create_app(
        persistence_override=port,
        sensor_override=FixedHeartRateSensor([72, 78, 81]),
    )
    return Client(mcp)


def test_server_starts_and_lists_tools(client):
    """Server should start and expose all registered tools."""
    async def _check():
        async with client:
            tools = await client.list_tools()
            tool_names = [t.name for t in tools]
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in tool_names, f"Missing tool: {expected}"
    _run(_check())


def test_health_check_returns_ok(client):
    """health_check tool should return status ok."""
    async def _check():
        async with client:
            result = await client.call_tool("health_check", {})
            data = _payload(result)
            assert data["status"] == "ok"
            assert data["sensor"] == "fixed"
            assert data["audit_enabled"] is False
    _run(_check())


def test_assessment_scores_and_records(client):
    async def _check():
        async with client:
            data = _payload(await client.call_tool("assess_heart_risk", HIGH_RISK_INPUT))
            assert data["status"] == "assessed"
            assert data["risk_level"] == "High"
            assert data["risk_percentage"] == 95
            assert len(data["recommendations"]) == 6
            assert data["persisted"] is True
            assert data["factors"]["age"] == 20

            latest = _payload(await client.call_tool("get_latest_record", {"user_id": "user-123"}))
            assert latest["record"]["blood_pressure_diastolic"] == 90
            assert latest["record"]["risk_level"] == "High"
    _run(_check())


def test_assessment_rejects_out_of_range(client):
    async def _check():
        async with client:
            bad = dict(HIGH_RISK_INPUT, age=10)
            data = _payload(await client.call_tool("assess_heart_risk", bad))
            assert data["status"] == "invalid_input"
            assert data["errors"] == ["age: 10 outside [18, 120]"]

            history = _payload(await client.call_tool("get_record_history", {"user_id": "user-123"}))
            assert history["count"] == 0
    _run(_check())


def test_heart_rate_measurements_feed_series_and_trend(client):
    async def _check():
        async with client:
            for _ in range(3):
                data = _payload(await client.call_tool("measure_heart_rate", {"user_id": "user-123"}))
                assert data["status"] == "saved"

            series = _payload(await client.call_tool(
                "get_vital_series", {"user_id": "user-123", "vital": "heart_rate", "window_size": 2},
            ))
            assert [p["value"] for p in series["points"]] == [78, 81]

            trend = _payload(await client.call_tool(
                "get_vital_trend", {"user_id": "user-123", "vital": "heart_rate"},
            ))
            assert trend["data_points"] == 3
            assert trend["direction"] == "rising"
    _run(_check())


def test_unknown_vital_is_invalid(client):
    async def _check():
        async with client:
            data = _payload(await client.call_tool(
                "get_vital_series", {"user_id": "user-123", "vital": "spo2"},
            ))
            assert data["status"] == "invalid_input"
    _run(_check())


def test_manual_entry_and_dashboard(client):
    async def _check():
        async with client:
            data = _payload(await client.call_tool("record_vitals_entry", {
                "user_id": "user-123",
                "systolic_bp": 118,
                "diastolic_bp": 76,
                "weight": 70.0,
                "reading_date": "2026-03-01",
            }))
            assert data["status"] == "saved"

            dashboard = _payload(await client.call_tool("get_dashboard_summary", {"user_id": "user-123"}))
            assert dashboard["record_count"] == 1
            assert dashboard["quick_stats"]["blood_pressure"] == "118/76"
            assert dashboard["quick_stats"]["heart_rate"] == "--"
            assert dashboard["quick_stats"]["weight"] == "70 kg"
            assert dashboard["heart_rate_chart"] == []
            assert dashboard["latest_assessment"] is None
    _run(_check())


def test_manual_entry_requires_a_vital(client):
    async def _check():
        async with client:
            data = _payload(await client.call_tool("record_vitals_entry", {"user_id": "user-123"}))
            assert data["status"] == "invalid_input"
    _run(_check())


def test_users_are_isolated(client):
    async def _check():
        async with client:
            await client.call_tool("measure_heart_rate", {"user_id": "alice"})
            data = _payload(await client.call_tool("get_record_history", {"user_id": "bob"}))
            assert data["count"] == 0
    _run(_check())


def test_records_survive_restart(port):
    """A new server over the same persistence sees the earlier history."""
    async def _write():
        async with Client(create_app(persistence_override=port)) as c:
            await c.call_tool("assess_heart_risk", HIGH_RISK_INPUT)
            closed = _payload(await c.call_tool("end_session", {"user_id": "user-123"}))
            assert closed["status"] == "closed"

    async def _read():
        async with Client(create_app(persistence_override=port)) as c:
            data = _payload(await c.call_tool("get_record_history", {"user_id": "user-123"}))
            assert data["count"] == 1
            assert data["records"][0]["risk_percentage"] == 95

    _run(_write())
    _run(_read())


def test_end_session_when_not_open(client):
    async def _check():
        async with client:
            data = _payload(await client.call_tool("end_session", {"user_id": "nobody"}))
            assert data["status"] == "not_open"
    _run(_check())


def test_audit_trail_with_sqlite():
    db = HealthDatabase(":memory:")
    db.initialize()
    try:
        mcp = create_app(database_override=db, sensor_override=FixedHeartRateSensor([70]))

        async def _check():
            async with Client(mcp) as c:
                health = _payload(await c.call_tool("health_check", {}))
                assert health["audit_enabled"] is True
                await c.call_tool("measure_heart_rate", {"user_id": "user-123"})

        _run(_check())
        count = db.connection.execute(
            "SELECT COUNT(*) FROM audit_log WHERE action = 'record_append'"
        ).fetchone()[0]
        assert count == 1
    finally:
        db.close()


def test_bad_encryption_key_disables_persistence(tmp_path, monkeypatch):
    """An unusable key must never let plaintext overwrite encrypted history."""
    db = HealthDatabase(str(tmp_path / "health.db"))
    db.initialize()
    good_key = PayloadEncryptor.generate_key()

    def _stored_payload() -> bytes:
        row = db.connection.execute(
            "SELECT payload FROM record_sequences WHERE key = ?", (record_key("user-123"),)
        ).fetchone()
        return bytes(row[0])

    async def _write(expected_backend):
        mcp = create_app(database_override=db, sensor_override=FixedHeartRateSensor([70]))
        async with Client(mcp) as c:
            health = _payload(await c.call_tool("health_check", {}))
            assert health["storage_backend"] == expected_backend
            await c.call_tool("measure_heart_rate", {"user_id": "user-123"})

    try:
        monkeypatch.setenv("ENCRYPTION_KEY", good_key)
        _run(_write("EncryptedPersistence"))
        encrypted = _stored_payload()

        monkeypatch.setenv("ENCRYPTION_KEY", "not-a-fernet-key")
        _run(_write("InMemoryPersistence"))

        assert _stored_payload() == encrypted
        history = decode_records("user-123", PayloadEncryptor(good_key).decrypt(encrypted))
        assert len(history) == 1
    finally:
        db.close()
