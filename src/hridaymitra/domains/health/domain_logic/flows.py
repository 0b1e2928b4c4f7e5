"""Write flows: turn an assessment or a measurement into a stored health record.

Each flow produces exactly one HealthRecord containing the fields it
measured. Scoring never depends on persistence: when the store cannot save,
the flow still returns the result and reports ``persisted=False``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone

from hridaymitra.core.storage.models import HealthRecord
from hridaymitra.core.storage.persistence import PersistenceUnavailable
from hridaymitra.core.storage.record_store import HealthRecordStore
from hridaymitra.domains.health.connectors import HeartRateSensor
from hridaymitra.domains.health.domain_logic.risk_engine import assess
from hridaymitra.domains.health.domain_logic.risk_models import HealthParameters, RiskResult

logger = logging.getLogger(__name__)

# Blood sugar stand-ins for the fasting blood sugar flag (mg/dL)
BLOOD_SUGAR_HIGH = 130
BLOOD_SUGAR_NORMAL = 95

# Diastolic is estimated from resting systolic when only one BP value is entered
DIASTOLIC_RATIO = 0.6


@dataclass(frozen=True)
class FlowOutcome:
    """The record a flow produced and whether it reached durable storage."""

    record: HealthRecord
    persisted: bool
    warning: str | None = None


@dataclass(frozen=True)
class AssessmentOutcome(FlowOutcome):
    result: RiskResult | None = None


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _append(store: HealthRecordStore, record: HealthRecord) -> tuple[bool, str | None]:
    try:
        store.append(record)
    except PersistenceUnavailable as exc:
        return False, f"Record kept for this session but not saved: {exc}"
    return True, None


def measured_fields(record: HealthRecord) -> list[str]:
    """Names of the measurements a record carries (for audit metadata)."""
    names = (
        "heart_rate",
        "blood_pressure_systolic",
        "blood_pressure_diastolic",
        "cholesterol",
        "blood_sugar",
        "weight",
        "risk_level",
        "risk_percentage",
    )
    return [n for n in names if getattr(record, n) is not None]


# ---------------------------------------------------------------------------
# Assessment
# ---------------------------------------------------------------------------

def run_assessment(
    params: HealthParameters,
    store: HealthRecordStore,
    *,
    today: date | None = None,
) -> AssessmentOutcome:
    """Score ``params`` and record the assessment in the user's history.

    Raises:
        InvalidInput: If ``params`` is incomplete or out of range. Nothing
            is recorded in that case.
    """
    result = assess(params)

    record = HealthRecord(
        date=today or _today(),
        user_id=store.user_id,
        blood_pressure_systolic=params.resting_bp,
        blood_pressure_diastolic=round(params.resting_bp * DIASTOLIC_RATIO),
        cholesterol=params.cholesterol,
        blood_sugar=BLOOD_SUGAR_HIGH if params.fasting_blood_sugar_high else BLOOD_SUGAR_NORMAL,
        risk_level=result.risk_level.value,
        risk_percentage=result.risk_percentage,
    )
    persisted, warning = _append(store, record)
    logger.info(
        "Assessment recorded (tier=%s, persisted=%s)", result.risk_level.value, persisted
    )
    return AssessmentOutcome(record=record, persisted=persisted, warning=warning, result=result)


# ---------------------------------------------------------------------------
# Heart-rate capture
# ---------------------------------------------------------------------------

def capture_heart_rate(
    sensor: HeartRateSensor,
    store: HealthRecordStore,
    *,
    today: date | None = None,
) -> FlowOutcome:
    """Take one reading from ``sensor`` and record it as a heart-rate-only record.

    Raises:
        ValueError: If the sensor returns something other than a positive integer.
    """
    bpm = sensor.read_bpm()
    if isinstance(bpm, bool) or not isinstance(bpm, int) or bpm <= 0:
        raise ValueError(f"Heart-rate sensor returned an invalid reading: {bpm!r}")

    record = HealthRecord(date=today or _today(), user_id=store.user_id, heart_rate=bpm)
    persisted, warning = _append(store, record)
    logger.info("Heart rate captured from %s (persisted=%s)", sensor.data_source, persisted)
    return FlowOutcome(record=record, persisted=persisted, warning=warning)


# ---------------------------------------------------------------------------
# Manual entry
# ---------------------------------------------------------------------------

def _positive_int(name: str, value: int | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return value


def record_vitals(
    store: HealthRecordStore,
    *,
    heart_rate: int | None = None,
    systolic_bp: int | None = None,
    diastolic_bp: int | None = None,
    cholesterol: int | None = None,
    blood_sugar: int | None = None,
    weight: float | None = None,
    reading_date: date | str | None = None,
) -> FlowOutcome:
    """Record manually entered vitals, e.g. from a home cuff or a clinic visit.

    Args:
        store: The user's record store.
        heart_rate: Beats per minute.
        systolic_bp: Systolic pressure (top number), mmHg.
        diastolic_bp: Diastolic pressure (bottom number), mmHg.
        cholesterol: Total cholesterol, mg/dL.
        blood_sugar: Blood glucose, mg/dL.
        weight: Body weight, kg.
        reading_date: Date of the reading (``date`` or ISO string). Defaults to today.

    Raises:
        ValueError: If no vital is given, a value is not positive, or the
            date is not ISO formatted.
    """
    if isinstance(reading_date, str):
        try:
            reading_date = date.fromisoformat(reading_date)
        except ValueError as exc:
            raise ValueError(f"reading_date must be YYYY-MM-DD, got {reading_date!r}") from exc

    if weight is not None:
        if (
            isinstance(weight, bool)
            or not isinstance(weight, (int, float))
            or not math.isfinite(weight)
            or weight <= 0
        ):
            raise ValueError(f"weight must be a positive finite number, got {weight!r}")
        weight = float(weight)

    record = HealthRecord(
        date=reading_date or _today(),
        user_id=store.user_id,
        heart_rate=_positive_int("heart_rate", heart_rate),
        blood_pressure_systolic=_positive_int("systolic_bp", systolic_bp),
        blood_pressure_diastolic=_positive_int("diastolic_bp", diastolic_bp),
        cholesterol=_positive_int("cholesterol", cholesterol),
        blood_sugar=_positive_int("blood_sugar", blood_sugar),
        weight=weight,
    )
    if not measured_fields(record):
        raise ValueError("At least one vital must be provided")

    persisted, warning = _append(store, record)
    logger.info("Manual vitals recorded (%d fields, persisted=%s)", len(measured_fields(record)), persisted)
    return FlowOutcome(record=record, persisted=persisted, warning=warning)
