"""MCP tools for vital capture and the health tracker views.

Write tools (heart-rate capture, manual vitals) append one record each.
Read tools serve the dashboard and charts from the store's derived views.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from hridaymitra.core.audit.logger import AuditLogger
    from hridaymitra.core.storage.sessions import RecordStoreSessions
    from hridaymitra.domains.health.connectors import HeartRateSensor

from hridaymitra.core.storage.models import VitalKind
from hridaymitra.core.storage.persistence import PersistenceUnavailable
from hridaymitra.domains.health.domain_logic.dashboard import latest_assessment, quick_stats
from hridaymitra.domains.health.domain_logic.flows import (
    FlowOutcome,
    capture_heart_rate,
    measured_fields,
    record_vitals,
)
from hridaymitra.domains.health.domain_logic.trend_analyzer import TrendAnalyzer

logger = logging.getLogger(__name__)

_VITALS = [v.value for v in VitalKind]


def _invalid(*errors: str) -> str:
    return json.dumps({"status": "invalid_input", "errors": list(errors)})


def _saved_response(outcome: FlowOutcome, **extra) -> str:
    response = {
        "status": "saved" if outcome.persisted else "not_persisted",
        "record": outcome.record.to_dict(),
        "persisted": outcome.persisted,
        **extra,
    }
    if outcome.warning:
        response["warning"] = outcome.warning
    return json.dumps(response)


def register_tracker_tools(
    mcp: FastMCP,
    sessions: RecordStoreSessions,
    sensor: HeartRateSensor,
    audit_logger: AuditLogger | None = None,
    *,
    default_window_size: int = 7,
) -> None:
    """Register capture, tracker, and session tools on the MCP server."""

    def _audit_append(user_id: str, tool_name: str, outcome: FlowOutcome, start: float) -> None:
        if audit_logger is None:
            return
        audit_logger.log_tool_call(
            tool_name,
            user_id=user_id,
            duration_ms=(time.monotonic() - start) * 1000,
        )
        audit_logger.log_record_append(
            user_id=user_id,
            tool_name=tool_name,
            persisted=outcome.persisted,
            fields=measured_fields(outcome.record),
        )

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    @mcp.tool
    async def measure_heart_rate(ctx: Context, user_id: str) -> str:
        """Take one heart-rate reading and save it to the health history.

        Args:
            user_id: Identity of the signed-in user.
        """
        if not user_id:
            return _invalid("user_id: missing")
        start = time.monotonic()
        store = sessions.open(user_id)
        try:
            outcome = capture_heart_rate(sensor, store)
        except ValueError as exc:
            return json.dumps({"status": "sensor_error", "message": str(exc)})
        _audit_append(user_id, "measure_heart_rate", outcome, start)
        return _saved_response(outcome, heart_rate=outcome.record.heart_rate)

    @mcp.tool
    async def record_vitals_entry(
        ctx: Context,
        user_id: str,
        heart_rate: int | None = None,
        systolic_bp: int | None = None,
        diastolic_bp: int | None = None,
        cholesterol: int | None = None,
        blood_sugar: int | None = None,
        weight: float | None = None,
        reading_date: str = "",
    ) -> str:
        """Record vital signs from a home measurement or a doctor visit.

        Args:
            user_id: Identity of the signed-in user.
            heart_rate: Heart rate in BPM.
            systolic_bp: Systolic blood pressure (top number).
            diastolic_bp: Diastolic blood pressure (bottom number).
            cholesterol: Total cholesterol in mg/dL.
            blood_sugar: Blood glucose in mg/dL.
            weight: Body weight in kg.
            reading_date: Date of the reading (ISO 8601). Defaults to today.
        """
        if not user_id:
            return _invalid("user_id: missing")
        start = time.monotonic()
        store = sessions.open(user_id)
        try:
            outcome = record_vitals(
                store,
                heart_rate=heart_rate,
                systolic_bp=systolic_bp,
                diastolic_bp=diastolic_bp,
                cholesterol=cholesterol,
                blood_sugar=blood_sugar,
                weight=weight,
                reading_date=reading_date or None,
            )
        except ValueError as exc:
            return _invalid(str(exc))
        _audit_append(user_id, "record_vitals_entry", outcome, start)
        return _saved_response(outcome)

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    @mcp.tool
    async def get_latest_record(ctx: Context, user_id: str) -> str:
        """Return the user's most recent health record, if any.

        Args:
            user_id: Identity of the signed-in user.
        """
        if not user_id:
            return _invalid("user_id: missing")
        store = sessions.open(user_id)
        latest = store.latest()
        return json.dumps({
            "status": "ok" if latest else "no_data",
            "record": latest.to_dict() if latest else None,
        })

    @mcp.tool
    async def get_vital_series(
        ctx: Context,
        user_id: str,
        vital: str,
        window_size: int = 0,
    ) -> str:
        """Return the recent chart series for one vital, oldest first.

        Args:
            user_id: Identity of the signed-in user.
            vital: 'heart_rate', 'blood_pressure', 'blood_sugar' or 'weight'.
            window_size: Maximum number of points (defaults to the server setting).
        """
        if not user_id:
            return _invalid("user_id: missing")
        size = window_size or default_window_size
        store = sessions.open(user_id)
        try:
            series = store.recent_series(vital, size)
        except ValueError:
            return _invalid(f"vital must be one of {_VITALS} and window_size positive")
        return json.dumps({
            "status": "ok",
            "vital": vital,
            "window_size": size,
            "points": [p.to_dict() for p in series],
        })

    @mcp.tool
    async def get_vital_trend(
        ctx: Context,
        user_id: str,
        vital: str,
        window_size: int = 0,
    ) -> str:
        """Summarise how a vital has moved over its recent window.

        Args:
            user_id: Identity of the signed-in user.
            vital: 'heart_rate', 'blood_pressure', 'blood_sugar' or 'weight'.
            window_size: Window to summarise (defaults to the server setting).
        """
        if not user_id:
            return _invalid("user_id: missing")
        analyzer = TrendAnalyzer(sessions.open(user_id))
        try:
            trend = analyzer.summarize(vital, window_size=window_size or default_window_size)
        except ValueError:
            return _invalid(f"vital must be one of {_VITALS} and window_size positive")
        return json.dumps(trend)

    @mcp.tool
    async def get_dashboard_summary(ctx: Context, user_id: str) -> str:
        """Return the dashboard cards, recent heart-rate chart, and last assessment.

        Args:
            user_id: Identity of the signed-in user.
        """
        if not user_id:
            return _invalid("user_id: missing")
        store = sessions.open(user_id)
        records = store.all()
        heart_rates = store.recent_series(VitalKind.HEART_RATE, default_window_size)
        summary = {
            "status": "ok" if records else "no_data",
            "record_count": len(records),
            "quick_stats": quick_stats(store.latest()),
            "heart_rate_chart": [p.to_dict() for p in heart_rates],
            "latest_assessment": latest_assessment(records),
            "durable": store.is_durable,
        }
        if store.warnings:
            summary["warnings"] = list(store.warnings)
        return json.dumps(summary)

    @mcp.tool
    async def get_record_history(ctx: Context, user_id: str) -> str:
        """Return every stored health record for the user, oldest first.

        Args:
            user_id: Identity of the signed-in user.
        """
        if not user_id:
            return _invalid("user_id: missing")
        records = sessions.open(user_id).all()
        return json.dumps({
            "status": "ok",
            "count": len(records),
            "records": [r.to_dict() for r in records],
        })

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @mcp.tool
    async def end_session(ctx: Context, user_id: str) -> str:
        """Flush any unsaved records and close the user's session (logout).

        Args:
            user_id: Identity of the signed-in user.
        """
        if not user_id:
            return _invalid("user_id: missing")
        record_count = len(sessions.open(user_id)) if sessions.is_open(user_id) else 0
        try:
            closed = sessions.close(user_id)
        except PersistenceUnavailable as exc:
            logger.warning("Logout flush failed; session kept open for retry")
            return json.dumps({
                "status": "flush_failed",
                "message": f"Unsaved records remain in this session: {exc}",
            })
        if closed and audit_logger is not None:
            audit_logger.log_session_close(user_id=user_id, record_count=record_count)
        return json.dumps({"status": "closed" if closed else "not_open"})
