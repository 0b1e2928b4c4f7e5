"""Cardiac risk assessment models: inputs, outputs, and validation constants."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Mapping


class InvalidInput(ValueError):
    """Raised when health parameters are missing a field or out of range.

    ``errors`` holds one message per offending field so callers can report
    every problem at once instead of one per round trip.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid health parameters: " + "; ".join(self.errors))


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class ChestPainType(str, Enum):
    TYPICAL_ANGINA = "typical_angina"
    ATYPICAL_ANGINA = "atypical_angina"
    NON_ANGINAL = "non_anginal"
    ASYMPTOMATIC = "asymptomatic"


class RestingECG(str, Enum):
    NORMAL = "normal"
    ST_T_ABNORMALITY = "st_t_abnormality"
    LV_HYPERTROPHY = "lv_hypertrophy"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# ---------------------------------------------------------------------------
# Declared ranges (inclusive on both ends)
# ---------------------------------------------------------------------------

INT_RANGES: dict[str, tuple[int, int]] = {
    "age": (18, 120),
    "resting_bp": (80, 200),
    "cholesterol": (100, 400),
    "max_heart_rate": (60, 220),
}

OLDPEAK_RANGE = (0.0, 10.0)

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "gender": Gender,
    "chest_pain_type": ChestPainType,
    "resting_ecg": RestingECG,
}

_BOOL_FIELDS = ("fasting_blood_sugar_high", "exercise_induced_angina")


# ---------------------------------------------------------------------------
# HealthParameters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthParameters:
    """One assessment's raw inputs. All ten fields are required."""

    age: int
    gender: Gender
    chest_pain_type: ChestPainType
    resting_bp: int                   # mmHg
    cholesterol: int                  # mg/dL
    fasting_blood_sugar_high: bool    # True = fasting glucose > 120 mg/dL
    resting_ecg: RestingECG
    max_heart_rate: int               # bpm
    exercise_induced_angina: bool
    oldpeak: float                    # ST depression

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HealthParameters:
        """Build parameters from a loose mapping, e.g. tool or form input.

        Enum fields accept either members or their string values. Missing and
        unrecognised fields are reported together; range checks run once
        every field is present.

        Raises:
            InvalidInput: If any field is missing, malformed, or out of range.
        """
        errors: list[str] = []
        values: dict[str, Any] = {}

        for f in fields(cls):
            if f.name not in data or data[f.name] is None:
                errors.append(f"{f.name}: missing")
                continue
            raw = data[f.name]
            if f.name in _ENUM_FIELDS:
                enum_cls = _ENUM_FIELDS[f.name]
                try:
                    values[f.name] = enum_cls(raw)
                except ValueError:
                    allowed = ", ".join(m.value for m in enum_cls)
                    errors.append(f"{f.name}: {raw!r} is not one of [{allowed}]")
            else:
                values[f.name] = raw

        if errors:
            raise InvalidInput(errors)

        params = cls(**values)
        params.validate()
        return params

    def validate(self) -> None:
        """Check types and declared ranges for every field.

        Raises:
            InvalidInput: Listing every field that failed.
        """
        errors = validation_errors(self)
        if errors:
            raise InvalidInput(errors)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for name in _ENUM_FIELDS:
            data[name] = data[name].value
        return data


def validation_errors(params: HealthParameters) -> list[str]:
    """Return one message per invalid field; empty when the record is scoreable."""
    errors: list[str] = []

    for name, (lo, hi) in INT_RANGES.items():
        value = getattr(params, name, None)
        if value is None:
            errors.append(f"{name}: missing")
        elif isinstance(value, bool) or not isinstance(value, int):
            errors.append(f"{name}: expected an integer, got {type(value).__name__}")
        elif not lo <= value <= hi:
            errors.append(f"{name}: {value} outside [{lo}, {hi}]")

    oldpeak = getattr(params, "oldpeak", None)
    lo, hi = OLDPEAK_RANGE
    if oldpeak is None:
        errors.append("oldpeak: missing")
    elif isinstance(oldpeak, bool) or not isinstance(oldpeak, (int, float)):
        errors.append(f"oldpeak: expected a number, got {type(oldpeak).__name__}")
    elif oldpeak != oldpeak or not lo <= oldpeak <= hi:  # NaN fails both
        errors.append(f"oldpeak: {oldpeak} outside [{lo}, {hi}]")

    for name in _BOOL_FIELDS:
        value = getattr(params, name, None)
        if value is None:
            errors.append(f"{name}: missing")
        elif not isinstance(value, bool):
            errors.append(f"{name}: expected a boolean, got {type(value).__name__}")

    for name, enum_cls in _ENUM_FIELDS.items():
        value = getattr(params, name, None)
        if value is None:
            errors.append(f"{name}: missing")
        elif not isinstance(value, enum_cls):
            errors.append(f"{name}: expected {enum_cls.__name__}, got {value!r}")

    return errors


# ---------------------------------------------------------------------------
# RiskResult
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RiskResult:
    """Engine output. Created fresh per assessment; never merged."""

    risk_level: RiskLevel
    risk_percentage: int
    recommendations: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_level": self.risk_level.value,
            "risk_percentage": self.risk_percentage,
            "recommendations": list(self.recommendations),
        }
