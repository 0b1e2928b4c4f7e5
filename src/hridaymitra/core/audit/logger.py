"""Audit trail for health-record access.

Every tool call, record append and logout is written to ``audit_log`` with
no health values and no raw identities. Users and tool inputs appear only as
SHA-256 fingerprints, so activity can be counted per user and repeated inputs
can be matched without the log revealing either.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from hridaymitra.core.storage.database import DatabaseError, HealthDatabase

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    TOOL_CALL = "tool_invocation"
    RECORD_APPEND = "record_append"
    SESSION_CLOSE = "session_close"


def fingerprint(data: Any) -> str:
    """SHA-256 of the canonical JSON form of ``data``; '' if it is not serialisable."""
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        return ""
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def user_fingerprint(user_id: str) -> str:
    # Prefixed so a user hash never collides with an input hash of the same string
    return fingerprint({"user": user_id}) if user_id else ""


@dataclass(frozen=True)
class AuditEvent:
    action: AuditAction | str
    tool_name: str = ""
    user_hash: str = ""
    input_hash: str = ""
    duration_ms: float | None = None
    status: str = "success"
    error_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_row(self, event_id: str, timestamp: str) -> tuple:
        return (
            event_id,
            timestamp,
            AuditAction(self.action).value,
            self.tool_name or None,
            self.user_hash or None,
            self.input_hash or None,
            None if self.duration_ms is None else round(self.duration_ms, 3),
            self.status,
            self.error_type,
            json.dumps(self.metadata, separators=(",", ":")) if self.metadata else None,
        )


class AuditLogger:
    """Writes :class:`AuditEvent` rows and answers simple queries over them.

    A write that fails is logged and dropped; the request being audited
    still succeeds.

    Usage::

        audit = AuditLogger(health_db)
        audit.log_tool_call("measure_heart_rate", user_id="user-1")
        audit.get_events(action=AuditAction.RECORD_APPEND, user_id="user-1")
    """

    def __init__(self, database: HealthDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Store ``event``; return its id, or '' when the write was dropped."""
        event_id = str(uuid.uuid4())
        row = event.to_row(event_id, datetime.now(timezone.utc).isoformat())
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    "INSERT INTO audit_log (id, timestamp, action, tool_name, user_hash,"
                    " input_hash, duration_ms, status, error_type, metadata_json)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    row,
                )
        except (sqlite3.Error, DatabaseError):
            logger.exception("Audit event dropped (action=%s)", row[2])
            return ""
        return event_id

    def log_tool_call(
        self,
        tool_name: str,
        *,
        user_id: str = "",
        tool_input: Any = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Record one tool invocation.

        Args:
            tool_name: Name of the MCP tool.
            user_id: Caller identity; stored as a fingerprint.
            tool_input: Tool arguments; stored as a fingerprint.
            duration_ms: Handler run time.
            status: 'success' or 'failure'.
            error_type: Exception class name on failure.
            metadata: Extra fields. Must not contain health values.
        """
        return self.log_event(AuditEvent(
            action=AuditAction.TOOL_CALL,
            tool_name=tool_name,
            user_hash=user_fingerprint(user_id),
            input_hash=fingerprint(tool_input) if tool_input else "",
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_record_append(
        self,
        *,
        user_id: str,
        tool_name: str = "",
        persisted: bool = True,
        fields: list[str] | None = None,
    ) -> str:
        """Record that a health record was appended; only field names are kept."""
        return self.log_event(AuditEvent(
            action=AuditAction.RECORD_APPEND,
            tool_name=tool_name,
            user_hash=user_fingerprint(user_id),
            status="success" if persisted else "failure",
            error_type=None if persisted else "PersistenceUnavailable",
            metadata={"fields": sorted(fields or []), "persisted": persisted},
        ))

    def log_session_close(self, *, user_id: str, record_count: int = 0) -> str:
        return self.log_event(AuditEvent(
            action=AuditAction.SESSION_CLOSE,
            user_hash=user_fingerprint(user_id),
            metadata={"record_count": record_count},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: AuditAction | str | None = None,
        tool_name: str | None = None,
        user_id: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Newest-first audit rows matching every given filter.

        ``since`` is an ISO 8601 lower bound on the timestamp.
        """
        filters = {
            "action = ?": AuditAction(action).value if action else None,
            "tool_name = ?": tool_name,
            "user_hash = ?": user_fingerprint(user_id) if user_id else None,
            "timestamp >= ?": since,
        }
        active = {clause: value for clause, value in filters.items() if value}
        where = f" WHERE {' AND '.join(active)}" if active else ""
        rows = self._db.connection.execute(
            f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?",
            (*active.values(), limit),
        ).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, action: AuditAction | str | None = None) -> int:
        if action is None:
            row = self._db.connection.execute("SELECT COUNT(*) FROM audit_log").fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE action = ?", (AuditAction(action).value,)
            ).fetchone()
        return row[0]
