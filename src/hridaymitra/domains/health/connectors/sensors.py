"""Concrete HeartRateSensor implementations."""

from __future__ import annotations

import random

SIMULATED_MIN_BPM = 65
SIMULATED_MAX_BPM = 89


class SimulatedHeartRateSensor:
    """Draws a plausible resting heart rate. Always available.

    Readings are uniform over 65-89 BPM. Pass ``seed`` for reproducible
    sequences in tests and demos.
    """

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def read_bpm(self) -> int:
        return self._rng.randint(SIMULATED_MIN_BPM, SIMULATED_MAX_BPM)

    @property
    def data_source(self) -> str:
        return "simulated"


class FixedHeartRateSensor:
    """Replays a fixed list of readings, cycling when exhausted."""

    def __init__(self, readings: list[int]) -> None:
        if not readings:
            raise ValueError("FixedHeartRateSensor needs at least one reading")
        self._readings = list(readings)
        self._index = 0

    def read_bpm(self) -> int:
        bpm = self._readings[self._index % len(self._readings)]
        self._index += 1
        return bpm

    @property
    def data_source(self) -> str:
        return "fixed"
