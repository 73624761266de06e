"""
Motion sampling and acceleration accumulation.

Raw readings include gravity. The net acceleration (magnitude minus the
stationary baseline) is integrated over time into a running accumulator,
from which the session's average acceleration is derived.
"""

import logging
import math
from dataclasses import replace
from typing import Optional

import numpy as np

from smoothdrive.core.config import EngineConfig
from smoothdrive.engine.clock import ClockTick
from smoothdrive.models.session import AccumulationPolicy, SessionState
from smoothdrive.models.telemetry import TelemetrySample


logger = logging.getLogger(__name__)


class AccumulatorEngine:
    """Folds net acceleration into the session accumulator."""

    def __init__(self, config: EngineConfig):
        self.smoothing_factor = config.smoothing_factor
        self.speed_floor = config.speed_floor
        self.gravity = config.gravity

    def net_acceleration(self, magnitude: float) -> float:
        return magnitude - self.gravity

    def accumulate(
        self,
        state: SessionState,
        magnitude: float,
        tick: ClockTick,
    ) -> SessionState:
        """
        Apply one reading of the given magnitude.

        A non-positive delta time leaves the state untouched.
        """
        if tick.delta_time <= 0:
            return state

        net = self.net_acceleration(magnitude)
        if state.accumulation_policy is AccumulationPolicy.SMOOTHED:
            divisor = max(self.speed_floor, state.current_speed)
            accumulated = (
                state.accumulated_acceleration * self.smoothing_factor
                + net * tick.delta_time / divisor
            )
        else:
            accumulated = state.accumulated_acceleration + net * tick.delta_time

        average = accumulated / tick.elapsed_time if tick.elapsed_time > 0 else 0.0

        return replace(
            state,
            accumulated_acceleration=accumulated,
            average_acceleration=average,
            elapsed_time=max(state.elapsed_time, tick.elapsed_time),
        )


class MotionSampler:
    """Validates raw readings and forwards their magnitude to the accumulator."""

    def __init__(self, engine: AccumulatorEngine):
        self.engine = engine

    @staticmethod
    def magnitude(sample: TelemetrySample) -> Optional[float]:
        """
        Vector magnitude, or None for a malformed reading.

        Single missing components count as zero; a reading with no
        components at all is malformed.
        """
        if sample.x is None and sample.y is None and sample.z is None:
            return None
        components = [0.0 if c is None else c for c in (sample.x, sample.y, sample.z)]
        try:
            x, y, z = (float(c) for c in components)
        except (TypeError, ValueError):
            return None
        if not all(math.isfinite(c) for c in (x, y, z)):
            return None
        return float(np.sqrt(x**2 + y**2 + z**2))

    def apply(self, state: SessionState, sample: TelemetrySample, tick: ClockTick) -> SessionState:
        if tick.delta_time <= 0:
            return state

        magnitude = self.magnitude(sample)
        if magnitude is None:
            logger.debug(f"Dropped malformed motion sample at t={sample.timestamp}")
            return state

        state = self.engine.accumulate(state, magnitude, tick)
        return replace(
            state,
            x=float(sample.x or 0.0),
            y=float(sample.y or 0.0),
            z=float(sample.z or 0.0),
        )
