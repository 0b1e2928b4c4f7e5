"""Data models for the health record history and its wire encoding."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

# Bump when the encoded layout changes; older payloads are rejected, not migrated.
RECORD_SCHEMA_VERSION = 1

RISK_LEVELS = ("Low", "Medium", "High")

_INT_FIELDS = (
    "heart_rate",
    "blood_pressure_systolic",
    "blood_pressure_diastolic",
    "cholesterol",
    "blood_sugar",
    "risk_percentage",
)


class RecordDecodeError(ValueError):
    """Raised when a stored record sequence is corrupt or has the wrong schema."""


class VitalKind(str, Enum):
    """Vitals that have a charted recent-window series."""

    HEART_RATE = "heart_rate"
    BLOOD_PRESSURE = "blood_pressure"  # systolic + diastolic, paired
    BLOOD_SUGAR = "blood_sugar"
    WEIGHT = "weight"


def record_key(user_id: str) -> str:
    """Persistence key for a user's full record sequence."""
    return f"health_records:{user_id}"


def unreadable_key(user_id: str) -> str:
    """Where an undecodable sequence is set aside before it is overwritten."""
    return f"{record_key(user_id)}:unreadable"


# ---------------------------------------------------------------------------
# HealthRecord
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthRecord:
    """One dated capture of one or more vitals, optionally with an assessment outcome.

    Every measurement is optional: a heart-rate capture fills only
    ``heart_rate``, a full assessment fills blood pressure, cholesterol,
    blood sugar and the risk fields. Records are never mutated once
    appended; corrections are new records.
    """

    date: date
    user_id: str

    heart_rate: int | None = None                  # bpm
    blood_pressure_systolic: int | None = None     # mmHg
    blood_pressure_diastolic: int | None = None    # mmHg
    cholesterol: int | None = None                 # mg/dL
    blood_sugar: int | None = None                 # mg/dL
    weight: float | None = None                    # kg
    risk_level: str | None = None                  # 'Low' | 'Medium' | 'High'
    risk_percentage: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict, omitting absent measurements."""
        data: dict[str, Any] = {"date": self.date.isoformat(), "user_id": self.user_id}
        for name in (*_INT_FIELDS, "weight", "risk_level"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthRecord:
        """Parse a dict produced by :meth:`to_dict`.

        Raises:
            RecordDecodeError: If required keys are missing or values have
                the wrong type.
        """
        if not isinstance(data, dict):
            raise RecordDecodeError(f"Record must be an object, got {type(data).__name__}")
        try:
            record_date = date.fromisoformat(data["date"])
            user_id = data["user_id"]
        except (KeyError, TypeError, ValueError) as exc:
            raise RecordDecodeError(f"Record missing a valid date/user_id: {exc}") from exc
        if not isinstance(user_id, str) or not user_id:
            raise RecordDecodeError("Record user_id must be a non-empty string")

        values: dict[str, Any] = {}
        for name in _INT_FIELDS:
            value = data.get(name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise RecordDecodeError(f"Record field {name!r} must be an integer")
            values[name] = value

        weight = data.get("weight")
        if weight is not None and (isinstance(weight, bool) or not isinstance(weight, (int, float))):
            raise RecordDecodeError("Record field 'weight' must be a number")

        risk_level = data.get("risk_level")
        if risk_level is not None and risk_level not in RISK_LEVELS:
            raise RecordDecodeError(f"Unknown risk_level {risk_level!r}")

        return cls(
            date=record_date,
            user_id=user_id,
            weight=float(weight) if weight is not None else None,
            risk_level=risk_level,
            **values,
        )


# ---------------------------------------------------------------------------
# Derived series points
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SeriesPoint:
    """One charted value for a single-valued vital."""

    date: date
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "value": self.value}


@dataclass(frozen=True)
class BloodPressurePoint:
    """One charted blood-pressure reading (systolic and diastolic together)."""

    date: date
    systolic: int
    diastolic: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "systolic": self.systolic,
            "diastolic": self.diastolic,
        }


# ---------------------------------------------------------------------------
# Sequence encoding
# ---------------------------------------------------------------------------

def encode_records(user_id: str, records: list[HealthRecord]) -> bytes:
    """Encode an ordered record sequence as UTF-8 JSON bytes."""
    document = {
        "schema_version": RECORD_SCHEMA_VERSION,
        "user_id": user_id,
        "records": [r.to_dict() for r in records],
    }
    return json.dumps(document, separators=(",", ":")).encode("utf-8")


def decode_records(user_id: str, payload: bytes) -> list[HealthRecord]:
    """Decode bytes produced by :func:`encode_records`, preserving order.

    Raises:
        RecordDecodeError: On malformed JSON, an unknown schema version,
            a payload belonging to a different user, or any malformed record.
    """
    try:
        document = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise RecordDecodeError(f"Stored records are not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise RecordDecodeError("Stored records document must be an object")

    version = document.get("schema_version")
    if version != RECORD_SCHEMA_VERSION:
        raise RecordDecodeError(
            f"Unsupported record schema version {version!r} (expected {RECORD_SCHEMA_VERSION})"
        )
    if document.get("user_id") != user_id:
        raise RecordDecodeError("Stored records belong to a different user")

    raw_records = document.get("records")
    if not isinstance(raw_records, list):
        raise RecordDecodeError("Stored records document has no 'records' list")

    records = [HealthRecord.from_dict(item) for item in raw_records]
    if any(r.user_id != user_id for r in records):
        raise RecordDecodeError("Stored sequence contains another user's record")
    return records
