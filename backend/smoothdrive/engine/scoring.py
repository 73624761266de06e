"""
Driver score calculation.

Maps the average net acceleration of a session to a score in [0, 100].
Several scoring formulas have been used for this product and they do not
agree on sign or scale, so each one is a named policy and the choice is
made by configuration.
"""

import math
from enum import Enum
from typing import Callable

import numpy as np

from smoothdrive.models.telemetry import TelemetrySnapshot


MIN_SCORE = 0.0
MAX_SCORE = 100.0


class ScoringPolicy(Enum):
    """Available scoring formulas."""

    GRAVITY_DEVIATION = "gravity_deviation"  # 100 - |a| / max_deviation * 100
    LINEAR_TENTHS = "linear_tenths"          # 100 - 10 * a
    PERCENT_CLAMPED = "percent_clamped"      # 100 - a * 100
    PERCENT_ABSOLUTE = "percent_absolute"    # |100 - a * 100|


def _gravity_deviation(accel: float, max_deviation: float) -> float:
    return MAX_SCORE - (abs(accel) / max_deviation) * MAX_SCORE


def _linear_tenths(accel: float, max_deviation: float) -> float:
    return MAX_SCORE - 10.0 * accel


def _percent_clamped(accel: float, max_deviation: float) -> float:
    return MAX_SCORE - accel * 100.0


def _percent_absolute(accel: float, max_deviation: float) -> float:
    return abs(MAX_SCORE - accel * 100.0)


_FORMULAS: dict[ScoringPolicy, Callable[[float, float], float]] = {
    ScoringPolicy.GRAVITY_DEVIATION: _gravity_deviation,
    ScoringPolicy.LINEAR_TENTHS: _linear_tenths,
    ScoringPolicy.PERCENT_CLAMPED: _percent_clamped,
    ScoringPolicy.PERCENT_ABSOLUTE: _percent_absolute,
}


class ScoreCalculator:
    """Pure mapping from average acceleration to a bounded score."""

    def __init__(
        self,
        policy: ScoringPolicy = ScoringPolicy.GRAVITY_DEVIATION,
        max_deviation: float = 4.7,
    ):
        if max_deviation <= 0:
            raise ValueError(f"max_deviation must be positive, got {max_deviation}")
        self.policy = policy
        self.max_deviation = max_deviation

    def score_value(self, average_acceleration: float) -> float:
        if math.isnan(average_acceleration):
            return MIN_SCORE
        raw = _FORMULAS[self.policy](average_acceleration, self.max_deviation)
        if math.isnan(raw):
            return MIN_SCORE
        return float(np.clip(raw, MIN_SCORE, MAX_SCORE))

    def score(self, snapshot: TelemetrySnapshot) -> float:
        return self.score_value(snapshot.average_acceleration)
