"""
Session clock.

Derives elapsed session time and inter-sample delta time from the
timestamps carried in the session state.
"""

import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from smoothdrive.models.session import SessionState


@dataclass(frozen=True)
class ClockTick:
    """Timing of one motion sample."""

    elapsed_time: float
    delta_time: float


class SessionClock:
    """Time keeping for a session, over an injectable time source."""

    def __init__(self, time_source: Callable[[], float] = time.monotonic):
        self._time_source = time_source

    def now(self) -> float:
        return self._time_source()

    def start(self, state: SessionState, now: Optional[float] = None) -> SessionState:
        """Record the session start; the start doubles as the first sample time."""
        if now is None:
            now = self.now()
        return replace(state, start_time=now, previous_sample_time=now, elapsed_time=0.0)

    def elapsed(self, state: SessionState, now: float) -> float:
        if state.start_time is None:
            return 0.0
        return max(0.0, now - state.start_time)

    def tick(self, state: SessionState, now: float) -> tuple[ClockTick, SessionState]:
        """
        Time a sample received at `now`.

        The previous sample time only moves forward, so a late or duplicate
        timestamp yields delta 0 and leaves the state untouched.
        """
        elapsed = self.elapsed(state, now)
        if state.previous_sample_time is None:
            delta = 0.0
        else:
            delta = now - state.previous_sample_time

        if delta > 0:
            state = replace(state, previous_sample_time=now)
        elif state.previous_sample_time is None:
            state = replace(state, previous_sample_time=now)

        return ClockTick(elapsed_time=elapsed, delta_time=delta), state
