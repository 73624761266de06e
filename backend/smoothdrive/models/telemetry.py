"""
Telemetry data model.

Transient sensor readings (motion samples, position fixes) and the
read-only projections the engine hands to display and storage
collaborators:
- accelerations in m/s² (gravity included)
- speeds in km/h once they leave the position sampler
- timestamps in seconds on the session time base
"""

from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class TelemetrySample:
    """One raw 3-axis acceleration reading."""

    x: float
    y: float
    z: float
    timestamp: float


@dataclass(frozen=True)
class PositionFix:
    """One location reading. Speed may be missing on some platforms."""

    speed_mps: Optional[float]
    latitude: Optional[float]
    longitude: Optional[float]
    timestamp: float

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class TelemetrySnapshot:
    """
    Read-only projection of the session state after an update.

    Field names are snake_case; `to_dict()` produces the camelCase shape
    consumed by display code.
    """

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    elapsed_time: float = 0.0
    average_acceleration: float = 0.0
    current_speed: float = 0.0
    top_speed: float = 0.0
    average_speed: float = 0.0
    score: float = 100.0

    def to_dict(self) -> dict:
        return {
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "elapsedTime": self.elapsed_time,
            "averageAcceleration": self.average_acceleration,
            "currentSpeed": self.current_speed,
            "topSpeed": self.top_speed,
            "averageSpeed": self.average_speed,
            "score": self.score,
        }


@dataclass(frozen=True)
class ScoreRecord:
    """Shape of a finished session as an external score store expects it."""

    score: float
    time_seconds: float
    top_speed: float
    average_speed: float

    @classmethod
    def from_snapshot(cls, snapshot: TelemetrySnapshot) -> "ScoreRecord":
        return cls(
            score=snapshot.score,
            time_seconds=snapshot.elapsed_time,
            top_speed=snapshot.top_speed,
            average_speed=snapshot.average_speed,
        )

    def to_dict(self) -> dict:
        return asdict(self)
