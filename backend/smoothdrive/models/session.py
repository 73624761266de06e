"""
Session state model.

A single record holds every mutable field of a driving session. The
controller replaces it wholesale on each update; nothing else writes it.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from smoothdrive.models.telemetry import PositionFix


class SessionStatus(Enum):
    """Lifecycle state of the controller."""

    IDLE = "idle"
    RUNNING = "running"


class AccumulationPolicy(Enum):
    """How net acceleration is folded into the running accumulator."""

    SMOOTHED = "smoothed"   # exponential decay, normalized by speed
    ADDITIVE = "additive"   # plain integral of net acceleration


class SpeedAveraging(Enum):
    """How valid speed readings are averaged."""

    TIME_WEIGHTED = "time_weighted"
    ARITHMETIC = "arithmetic"


@dataclass(frozen=True)
class SessionState:
    """Everything the engine knows about the current session."""

    is_running: bool = False
    start_time: Optional[float] = None
    previous_sample_time: Optional[float] = None
    elapsed_time: float = 0.0

    # Motion side
    accumulated_acceleration: float = 0.0
    average_acceleration: float = 0.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    # Speed side (km/h)
    accumulated_speed: float = 0.0
    valid_speed_reading_count: float = 0.0  # weight sum (seconds or readings)
    valid_speed_readings: int = 0
    current_speed: float = 0.0
    top_speed: float = 0.0
    last_valid_speed_time: Optional[float] = None
    last_fix_time: Optional[float] = None  # timestamp of the newest applied fix
    previous_fix: Optional[PositionFix] = None

    accumulation_policy: AccumulationPolicy = AccumulationPolicy.SMOOTHED

    @property
    def average_speed(self) -> float:
        if self.valid_speed_reading_count > 0:
            return self.accumulated_speed / self.valid_speed_reading_count
        if self.valid_speed_readings > 0:
            return self.current_speed
        return 0.0

    def zeroed(self) -> "SessionState":
        """All-zero state; running flag and pinned policy are kept."""
        return SessionState(
            is_running=self.is_running,
            accumulation_policy=self.accumulation_policy,
        )

    def with_running(self, is_running: bool) -> "SessionState":
        return replace(self, is_running=is_running)
