"""Dashboard read models built from the latest health record."""

from __future__ import annotations

from typing import Any

from hridaymitra.core.storage.models import HealthRecord

PLACEHOLDER = "--"


def _format_number(value: float) -> str:
    """Drop a trailing '.0' so 70.0 kg reads as '70 kg'."""
    return f"{value:g}" if isinstance(value, float) else str(value)


def quick_stats(record: HealthRecord | None) -> dict[str, str]:
    """Display strings for the four dashboard cards.

    A card shows ``--`` when the latest record did not measure that vital;
    the dashboard reflects the latest capture, not the latest value of each
    vital.
    """
    if record is None:
        return {
            "heart_rate": PLACEHOLDER,
            "blood_pressure": PLACEHOLDER,
            "blood_sugar": PLACEHOLDER,
            "weight": PLACEHOLDER,
        }

    if record.blood_pressure_systolic is not None:
        diastolic = record.blood_pressure_diastolic
        bp = f"{record.blood_pressure_systolic}/{diastolic if diastolic is not None else PLACEHOLDER}"
    else:
        bp = PLACEHOLDER

    return {
        "heart_rate": f"{record.heart_rate} BPM" if record.heart_rate is not None else PLACEHOLDER,
        "blood_pressure": bp,
        "blood_sugar": f"{record.blood_sugar} mg/dL" if record.blood_sugar is not None else PLACEHOLDER,
        "weight": f"{_format_number(record.weight)} kg" if record.weight is not None else PLACEHOLDER,
    }


def latest_assessment(records: list[HealthRecord]) -> dict[str, Any] | None:
    """Most recent record that carries a risk outcome, as a summary dict."""
    for record in reversed(records):
        if record.risk_level is not None:
            return {
                "date": record.date.isoformat(),
                "risk_level": record.risk_level,
                "risk_percentage": record.risk_percentage,
            }
    return None
