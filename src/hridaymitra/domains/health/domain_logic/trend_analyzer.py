"""Trend summaries over a vital's recent window.

Computes the same window the charts show and describes it: current value,
spread, and whether the vital is moving up, down, or holding steady.
"""

from __future__ import annotations

import logging
import statistics
from typing import Any

from hridaymitra.core.storage.models import BloodPressurePoint, VitalKind
from hridaymitra.core.storage.record_store import DEFAULT_WINDOW_SIZE, HealthRecordStore

logger = logging.getLogger(__name__)

# Relative change between half-window means that counts as movement
DIRECTION_THRESHOLD = 0.03


class TrendAnalyzer:
    """Computes trend statistics from a user's record store.

    Usage::

        analyzer = TrendAnalyzer(store)
        trend = analyzer.summarize(VitalKind.HEART_RATE, window_size=7)
    """

    def __init__(self, store: HealthRecordStore) -> None:
        self._store = store

    def summarize(
        self,
        vital: VitalKind | str,
        *,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> dict[str, Any]:
        """Compute trend statistics for one vital.

        Blood pressure is summarised on its systolic value.

        Args:
            vital: Which vital to summarise.
            window_size: Size of the recent window, as charted.

        Returns:
            Dict with: vital, data_points, current, mean, min, max,
            std_dev, direction, first_date, last_date. ``status`` is
            ``no_data`` when the vital was never recorded.
        """
        vital = VitalKind(vital)
        series = self._store.recent_series(vital, window_size)

        if not series:
            return {"vital": vital.value, "data_points": 0, "status": "no_data"}

        if isinstance(series[0], BloodPressurePoint):
            values = [float(p.systolic) for p in series]
        else:
            values = [float(p.value) for p in series]

        mean_val = statistics.mean(values)
        std_val = statistics.stdev(values) if len(values) > 1 else 0.0

        return {
            "vital": vital.value,
            "data_points": len(values),
            "current": values[-1],  # series is oldest-first
            "mean": round(mean_val, 2),
            "min": min(values),
            "max": max(values),
            "std_dev": round(std_val, 2),
            "direction": _direction(values),
            "first_date": series[0].date.isoformat(),
            "last_date": series[-1].date.isoformat(),
        }


def _direction(values: list[float]) -> str:
    """Classify movement by comparing the newer half of the window to the older half."""
    if len(values) < 2:
        return "insufficient_data"

    if len(values) >= 4:
        mid = len(values) // 2
        older = statistics.mean(values[:mid])
        newer = statistics.mean(values[mid:])
    else:
        older, newer = values[0], values[-1]

    if older == 0:
        return "stable"
    change = (newer - older) / abs(older)
    if change > DIRECTION_THRESHOLD:
        return "rising"
    if change < -DIRECTION_THRESHOLD:
        return "falling"
    return "stable"
