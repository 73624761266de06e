"""
Engine configuration.

Defaults describe a phone held in a car. Every value can be overridden
through a SMOOTHDRIVE_* environment variable.
"""

import os
from dataclasses import dataclass

from smoothdrive.models.session import AccumulationPolicy, SpeedAveraging
from smoothdrive.engine.scoring import ScoringPolicy
from smoothdrive.sensors.sources import SensorKind


STANDARD_GRAVITY = 9.8           # m/s², stationary baseline
DEFAULT_MAX_DEVIATION = 4.7      # m/s², largest net deviation of a smooth drive
MIN_VALID_SPEED_KMH = 5.0
MAX_VALID_SPEED_KMH = 250.0

ENV_PREFIX = "SMOOTHDRIVE_"


@dataclass
class EngineConfig:
    """Tunable parameters of the fusion engine."""

    smoothing_factor: float = 0.7
    speed_floor: float = 0.5  # km/h, divisor floor for speed normalization
    gravity: float = STANDARD_GRAVITY
    max_deviation: float = DEFAULT_MAX_DEVIATION
    min_valid_speed_kmh: float = MIN_VALID_SPEED_KMH
    max_valid_speed_kmh: float = MAX_VALID_SPEED_KMH
    position_poll_interval_s: float = 2.0
    accumulation_policy: AccumulationPolicy = AccumulationPolicy.SMOOTHED
    scoring_policy: ScoringPolicy = ScoringPolicy.GRAVITY_DEVIATION
    speed_averaging: SpeedAveraging = SpeedAveraging.TIME_WEIGHTED
    sensor_kind: SensorKind = SensorKind.DEVICE
    simulated_frequency_hz: float = 60.0

    def __post_init__(self):
        if not 0.0 < self.smoothing_factor < 1.0:
            raise ValueError(f"smoothing_factor must be in (0, 1), got {self.smoothing_factor}")
        if self.speed_floor <= 0:
            raise ValueError(f"speed_floor must be positive, got {self.speed_floor}")
        if self.max_deviation <= 0:
            raise ValueError(f"max_deviation must be positive, got {self.max_deviation}")
        if self.min_valid_speed_kmh > self.max_valid_speed_kmh:
            raise ValueError(
                f"Invalid speed range: [{self.min_valid_speed_kmh}, {self.max_valid_speed_kmh}]"
            )
        if self.position_poll_interval_s <= 0:
            raise ValueError("position_poll_interval_s must be positive")
        if self.simulated_frequency_hz <= 0:
            raise ValueError("simulated_frequency_hz must be positive")


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(ENV_PREFIX + name, str(default)))


def load_config() -> EngineConfig:
    """Build an EngineConfig from defaults and environment overrides."""
    defaults = EngineConfig()
    return EngineConfig(
        smoothing_factor=_env_float("SMOOTHING_FACTOR", defaults.smoothing_factor),
        speed_floor=_env_float("SPEED_FLOOR", defaults.speed_floor),
        gravity=_env_float("GRAVITY", defaults.gravity),
        max_deviation=_env_float("MAX_DEVIATION", defaults.max_deviation),
        min_valid_speed_kmh=_env_float("MIN_SPEED_KMH", defaults.min_valid_speed_kmh),
        max_valid_speed_kmh=_env_float("MAX_SPEED_KMH", defaults.max_valid_speed_kmh),
        position_poll_interval_s=_env_float("POLL_INTERVAL_S", defaults.position_poll_interval_s),
        accumulation_policy=AccumulationPolicy(
            os.getenv(ENV_PREFIX + "ACCUMULATION", defaults.accumulation_policy.value)
        ),
        scoring_policy=ScoringPolicy(
            os.getenv(ENV_PREFIX + "SCORING", defaults.scoring_policy.value)
        ),
        speed_averaging=SpeedAveraging(
            os.getenv(ENV_PREFIX + "SPEED_AVERAGING", defaults.speed_averaging.value)
        ),
        sensor_kind=SensorKind(
            os.getenv(ENV_PREFIX + "SENSOR_KIND", defaults.sensor_kind.value)
        ),
        simulated_frequency_hz=_env_float("SIMULATED_HZ", defaults.simulated_frequency_hz),
    )
