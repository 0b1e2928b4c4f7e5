"""Measurement connectors — abstraction layer for vital-sign capture devices."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class HeartRateSensor(Protocol):
    """Abstract interface for a single heart-rate capture.

    Flows call ``read_bpm`` without knowing whether the reading comes from a
    phone camera (PPG), a wearable, or a simulator.
    """

    def read_bpm(self) -> int:
        """Take one measurement and return it in beats per minute."""
        ...

    @property
    def data_source(self) -> str:
        """Label for the capture source: 'camera_ppg', 'simulated', ..."""
        ...
