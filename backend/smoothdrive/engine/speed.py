"""
Position sampling and speed statistics.

Fixes arrive sparsely (one poll every couple of seconds). Each fix is
turned into a km/h reading, gated by the validity range, and folded into
current, top and average speed.
"""

import logging
import math
from dataclasses import replace
from typing import Optional

from smoothdrive.core.config import EngineConfig
from smoothdrive.models.session import SessionState, SpeedAveraging
from smoothdrive.models.telemetry import PositionFix
from smoothdrive.utils.coordinates import mps_to_kmh, speed_between_fixes


logger = logging.getLogger(__name__)


class SpeedStats:
    """Current / top / average speed from valid readings."""

    def __init__(self, config: EngineConfig):
        self.min_speed = config.min_valid_speed_kmh
        self.max_speed = config.max_valid_speed_kmh
        self.averaging = config.speed_averaging

    def is_valid(self, speed_kmh: Optional[float]) -> bool:
        if speed_kmh is None or not math.isfinite(speed_kmh):
            return False
        return self.min_speed <= speed_kmh <= self.max_speed

    def _weight(self, state: SessionState, timestamp: float) -> float:
        if self.averaging is SpeedAveraging.ARITHMETIC:
            return 1.0
        since = state.last_valid_speed_time
        if since is None:
            since = state.start_time
        if since is None:
            return 0.0
        return max(0.0, timestamp - since)

    def record(self, state: SessionState, speed_kmh: Optional[float], timestamp: float) -> SessionState:
        """Fold one reading into the statistics. Invalid readings change nothing."""
        if not self.is_valid(speed_kmh):
            logger.debug(f"Rejected speed reading {speed_kmh} km/h at t={timestamp}")
            return state

        weight = self._weight(state, timestamp)
        return replace(
            state,
            current_speed=speed_kmh,
            top_speed=max(state.top_speed, speed_kmh),
            accumulated_speed=state.accumulated_speed + speed_kmh * weight,
            valid_speed_reading_count=state.valid_speed_reading_count + weight,
            valid_speed_readings=state.valid_speed_readings + 1,
            last_valid_speed_time=timestamp,
        )


class PositionSampler:
    """Derives a km/h reading from a fix and forwards it to SpeedStats."""

    def __init__(self, stats: SpeedStats):
        self.stats = stats

    @staticmethod
    def speed_kmh(fix: PositionFix, previous: Optional[PositionFix]) -> Optional[float]:
        """
        Speed of a fix in km/h.

        The reported instantaneous speed wins; otherwise the speed is derived
        from the great-circle distance to the previous fix.
        """
        if fix.speed_mps is not None and math.isfinite(fix.speed_mps):
            return mps_to_kmh(fix.speed_mps)
        if previous is None:
            return None
        derived = speed_between_fixes(previous, fix)
        if derived is None:
            return None
        return mps_to_kmh(derived)

    def apply(self, state: SessionState, fix: PositionFix) -> SessionState:
        """
        Fold one fix into the state.

        Fixes are applied in timestamp order: a fix no newer than the last
        applied one returns the state unchanged (same object).
        """
        if state.last_fix_time is not None and fix.timestamp <= state.last_fix_time:
            logger.debug(
                f"Dropped out-of-order fix at t={fix.timestamp} "
                f"(last applied t={state.last_fix_time})"
            )
            return state

        speed = self.speed_kmh(fix, state.previous_fix)
        state = self.stats.record(state, speed, fix.timestamp)
        state = replace(state, last_fix_time=fix.timestamp)
        if fix.has_coordinates:
            state = replace(state, previous_fix=fix)
        return state
