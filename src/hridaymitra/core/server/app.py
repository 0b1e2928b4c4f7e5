"""HridayMitra Health MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from hridaymitra.core.audit.logger import AuditLogger
from hridaymitra.core.config.settings import get_settings
from hridaymitra.core.storage.database import HealthDatabase
from hridaymitra.core.storage.encryption import EncryptionError, PayloadEncryptor
from hridaymitra.core.storage.persistence import (
    EncryptedPersistence,
    InMemoryPersistence,
    PersistencePort,
    SQLitePersistence,
)
from hridaymitra.core.storage.sessions import RecordStoreSessions
from hridaymitra.domains.health.connectors import HeartRateSensor
from hridaymitra.domains.health.connectors.sensors import SimulatedHeartRateSensor
from hridaymitra.domains.health.tools.assessment_tools import register_assessment_tools
from hridaymitra.domains.health.tools.tracker_tools import register_tracker_tools

logger = logging.getLogger(__name__)


def create_app(
    *,
    persistence_override: PersistencePort | None = None,
    sensor_override: HeartRateSensor | None = None,
    database_override: HealthDatabase | None = None,
) -> FastMCP:
    """Create and configure the HridayMitra Health MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Initializes the storage layer (SQLite or in-memory, optionally encrypted)
    3. Creates the per-user record store sessions and the audit logger
    4. Initializes the heart-rate sensor (simulated unless overridden)
    5. Registers all tools
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        "HridayMitra Health",
        instructions=(
            "HridayMitra heart-health server. Provides a rule-based cardiac risk "
            "assessment, heart-rate capture, manual vitals entry, and per-user "
            "health history with recent-window trend series. Every tool takes the "
            "signed-in user's id. Risk estimates are not medical diagnoses."
        ),
    )

    # --- Initialize storage (health record bank) ---
    health_db: HealthDatabase | None = database_override
    port: PersistencePort
    if persistence_override is not None:
        port = persistence_override
        logger.info("Using injected persistence port")
    elif settings.storage_backend == "sqlite" or health_db is not None:
        if health_db is None:
            health_db = HealthDatabase(settings.db_path)
            health_db.initialize()
        port = SQLitePersistence(health_db)
        logger.info(
            "Health record bank initialized: %s (schema v%d)",
            settings.db_path,
            health_db.get_schema_version(),
        )
    else:
        port = InMemoryPersistence()
        logger.warning("Using in-memory storage; records will not survive a restart")

    if settings.encryption_key:
        try:
            encryptor = PayloadEncryptor(settings.encryption_key, settings.retired_keys)
            port = EncryptedPersistence(port, encryptor)
            logger.info("Encryption at rest enabled for health records")
        except EncryptionError as exc:
            # Never write plaintext over a store that may hold encrypted history
            logger.error("Failed to initialize encryption: %s", exc)
            logger.warning("Continuing without persistence; records will not be stored")
            port = InMemoryPersistence()
    else:
        logger.info(
            "No ENCRYPTION_KEY configured; health records stored unencrypted. "
            "Set ENCRYPTION_KEY to enable encryption at rest."
        )

    sessions = RecordStoreSessions(port)
    audit_logger = AuditLogger(health_db) if health_db is not None else None

    # --- Initialize heart-rate sensor ---
    if sensor_override is not None:
        sensor = sensor_override
    else:
        sensor = SimulatedHeartRateSensor(seed=settings.sensor_seed)
        logger.info("Using simulated heart-rate sensor")

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": "HridayMitra Health",
            "version": "0.1.0",
            "storage_backend": type(port).__name__,
            "audit_enabled": audit_logger is not None,
            "active_sessions": sessions.active_count(),
            "sensor": sensor.data_source,
        }

    register_assessment_tools(server, sessions, audit_logger)
    logger.info("Assessment tools registered")

    register_tracker_tools(
        server,
        sessions,
        sensor,
        audit_logger,
        default_window_size=settings.default_window_size,
    )
    logger.info("Tracker tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
