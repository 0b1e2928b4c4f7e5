"""Deterministic cardiac risk scoring: HealthParameters -> RiskResult.

Additive point scoring over ten independent risk factors, clamped to a
percentage and mapped to a tier. This is an auditable heuristic, not a
trained or clinically validated model.

All functions are pure.
"""

from __future__ import annotations

from hridaymitra.domains.health.domain_logic.risk_models import (
    ChestPainType,
    Gender,
    HealthParameters,
    RestingECG,
    RiskLevel,
    RiskResult,
)

RISK_FLOOR = 5
RISK_CEILING = 95

MEDIUM_THRESHOLD = 30
HIGH_THRESHOLD = 60

RECOMMENDATIONS: dict[RiskLevel, tuple[str, ...]] = {
    RiskLevel.LOW: (
        "Maintain your healthy lifestyle habits",
        "Continue regular exercise (150 min/week)",
        "Annual heart health checkups recommended",
        "Keep a balanced diet rich in vegetables and fruits",
    ),
    RiskLevel.MEDIUM: (
        "Schedule a consultation with a cardiologist",
        "Monitor blood pressure and cholesterol regularly",
        "Increase physical activity gradually",
        "Reduce sodium and saturated fat intake",
        "Consider stress management techniques",
    ),
    RiskLevel.HIGH: (
        "Seek immediate consultation with a cardiologist",
        "Get comprehensive cardiac evaluation",
        "Follow prescribed medication strictly",
        "Major lifestyle modifications needed",
        "Regular monitoring of all vital signs",
        "Consider cardiac rehabilitation program",
    ),
}


def _clamp(value: int, lo: int = RISK_FLOOR, hi: int = RISK_CEILING) -> int:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


# ---------------------------------------------------------------------------
# Factor scoring
# ---------------------------------------------------------------------------

def score_factors(params: HealthParameters) -> list[tuple[str, int]]:
    """Evaluate every risk factor independently.

    Args:
        params: Validated health parameters.

    Returns:
        ``(factor, points)`` pairs in a fixed order, one per factor,
        including factors that contributed zero points.
    """
    age = params.age

    if age > 60:
        age_points = 20
    elif age > 45:
        age_points = 10
    else:
        age_points = 0

    if params.resting_bp > 140:
        bp_points = 15
    elif params.resting_bp > 120:
        bp_points = 5
    else:
        bp_points = 0

    if params.cholesterol > 240:
        chol_points = 15
    elif params.cholesterol > 200:
        chol_points = 8
    else:
        chol_points = 0

    if params.resting_ecg is RestingECG.LV_HYPERTROPHY:
        ecg_points = 10
    elif params.resting_ecg is RestingECG.ST_T_ABNORMALITY:
        ecg_points = 5
    else:
        ecg_points = 0

    if params.oldpeak > 2.0:
        oldpeak_points = 15
    elif params.oldpeak > 1.0:
        oldpeak_points = 8
    else:
        oldpeak_points = 0

    anginal = params.chest_pain_type in (
        ChestPainType.TYPICAL_ANGINA,
        ChestPainType.ATYPICAL_ANGINA,
    )

    return [
        ("age", age_points),
        ("gender", 10 if params.gender is Gender.MALE else 0),
        ("chest_pain_type", 15 if anginal else 0),
        ("resting_bp", bp_points),
        ("cholesterol", chol_points),
        ("fasting_blood_sugar", 10 if params.fasting_blood_sugar_high else 0),
        ("resting_ecg", ecg_points),
        # Low peak heart rate only counts against older patients
        ("max_heart_rate", 10 if params.max_heart_rate < 120 and age > 40 else 0),
        ("exercise_induced_angina", 15 if params.exercise_induced_angina else 0),
        ("oldpeak", oldpeak_points),
    ]


def classify(risk_percentage: int) -> RiskLevel:
    """Map a percentage to a tier. 30 and 60 belong to the higher tier."""
    if risk_percentage < MEDIUM_THRESHOLD:
        return RiskLevel.LOW
    if risk_percentage < HIGH_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def assess(params: HealthParameters) -> RiskResult:
    """Score a health-parameter record.

    Args:
        params: All ten parameters, within their declared ranges.

    Returns:
        A new immutable ``RiskResult``.

    Raises:
        InvalidInput: If any field is missing or out of range. No partial
            score is computed.
    """
    params.validate()

    raw_score = sum(points for _, points in score_factors(params))
    percentage = _clamp(raw_score)
    level = classify(percentage)

    return RiskResult(
        risk_level=level,
        risk_percentage=percentage,
        recommendations=RECOMMENDATIONS[level],
    )
