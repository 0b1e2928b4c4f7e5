"""MCP tool for the heart-risk assessment.

Scores the ten assessment inputs with the rule-based engine and records the
outcome in the user's health history. A failed save never hides the score.
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

from hridaymitra.domains.health.domain_logic.flows import measured_fields, run_assessment
from hridaymitra.domains.health.domain_logic.risk_engine import score_factors
from hridaymitra.domains.health.domain_logic.risk_models import HealthParameters, InvalidInput

logger = logging.getLogger(__name__)


def register_assessment_tools(
    mcp: FastMCP,
    sessions: RecordStoreSessions,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register the heart-risk assessment tool on the MCP server."""

    @mcp.tool
    async def assess_heart_risk(
        ctx: Context,
        user_id: str,
        age: int,
        gender: str,
        chest_pain_type: str,
        resting_bp: int,
        cholesterol: int,
        fasting_blood_sugar_high: bool,
        resting_ecg: str,
        max_heart_rate: int,
        exercise_induced_angina: bool,
        oldpeak: float,
    ) -> str:
        """Estimate cardiac risk from ten health parameters and save the assessment.

        This is a rule-based heuristic for personal tracking, not a diagnosis.

        Args:
            user_id: Identity of the signed-in user.
            age: Age in years (18-120).
            gender: 'male' or 'female'.
            chest_pain_type: 'typical_angina', 'atypical_angina', 'non_anginal' or 'asymptomatic'.
            resting_bp: Resting systolic blood pressure in mmHg (80-200).
            cholesterol: Serum cholesterol in mg/dL (100-400).
            fasting_blood_sugar_high: True if fasting blood sugar is above 120 mg/dL.
            resting_ecg: 'normal', 'st_t_abnormality' or 'lv_hypertrophy'.
            max_heart_rate: Maximum heart rate achieved in bpm (60-220).
            exercise_induced_angina: True if exercise brings on chest pain.
            oldpeak: ST depression induced by exercise (0.0-10.0).
        """
        if not user_id:
            return json.dumps({"status": "invalid_input", "errors": ["user_id: missing"]})

        start_time = time.monotonic()
        tool_input = {
            "age": age,
            "gender": gender,
            "chest_pain_type": chest_pain_type,
            "resting_bp": resting_bp,
            "cholesterol": cholesterol,
            "fasting_blood_sugar_high": fasting_blood_sugar_high,
            "resting_ecg": resting_ecg,
            "max_heart_rate": max_heart_rate,
            "exercise_induced_angina": exercise_induced_angina,
            "oldpeak": oldpeak,
        }

        try:
            params = HealthParameters.from_dict(tool_input)
        except InvalidInput as exc:
            if audit_logger is not None:
                audit_logger.log_tool_call(
                    "assess_heart_risk",
                    user_id=user_id,
                    tool_input=tool_input,
                    status="failure",
                    error_type="InvalidInput",
                )
            return json.dumps({"status": "invalid_input", "errors": exc.errors})

        store = sessions.open(user_id)
        outcome = run_assessment(params, store)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None:
            audit_logger.log_tool_call(
                "assess_heart_risk",
                user_id=user_id,
                tool_input=tool_input,
                duration_ms=elapsed_ms,
            )
            audit_logger.log_record_append(
                user_id=user_id,
                tool_name="assess_heart_risk",
                persisted=outcome.persisted,
                fields=measured_fields(outcome.record),
            )

        response = {
            "status": "assessed",
            **outcome.result.to_dict(),
            "factors": dict(score_factors(params)),
            "record_date": outcome.record.date.isoformat(),
            "persisted": outcome.persisted,
            "disclaimer": "Rule-based estimate for personal tracking; not a medical diagnosis.",
        }
        if outcome.warning:
            response["warning"] = outcome.warning
        return json.dumps(response)
