"""
Session controller.

Owns the session state and the sensor subscriptions, drives the
Idle/Running lifecycle, and publishes a snapshot after every applied
update. All callbacks run on one asyncio event loop, so each update
runs to completion before the next event is handled.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Callable, Optional

from smoothdrive.core.config import EngineConfig
from smoothdrive.engine.accumulator import AccumulatorEngine, MotionSampler
from smoothdrive.engine.clock import SessionClock
from smoothdrive.engine.errors import (
    PermissionDenied,
    PositionFixError,
    SensorUnavailable,
    SessionError,
)
from smoothdrive.engine.scoring import ScoreCalculator, ScoringPolicy
from smoothdrive.engine.speed import PositionSampler, SpeedStats
from smoothdrive.models.session import (
    AccumulationPolicy,
    SessionState,
    SessionStatus,
    SpeedAveraging,
)
from smoothdrive.models.telemetry import (
    PositionFix,
    ScoreRecord,
    TelemetrySample,
    TelemetrySnapshot,
)
from smoothdrive.sensors.sources import PermissionResult, SensorBundle, Subscription


logger = logging.getLogger(__name__)


SnapshotListener = Callable[[TelemetrySnapshot], None]
WarningListener = Callable[[Exception], None]


class SessionController:
    """Single writer of the session state."""

    def __init__(
        self,
        sources: SensorBundle,
        config: Optional[EngineConfig] = None,
        clock: Optional[SessionClock] = None,
        on_warning: Optional[WarningListener] = None,
    ):
        self.sources = sources
        self.config = config or EngineConfig()
        self.clock = clock or SessionClock()
        self.on_warning = on_warning

        self._state = SessionState(accumulation_policy=self.config.accumulation_policy)
        self._listeners: list[SnapshotListener] = []
        self._subscription: Optional[Subscription] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._pending_fixes: set[asyncio.Task] = set()
        self._generation = 0  # bumped by start() and reset()

        self._build_engines()
        self._snapshot = self._derive_snapshot()

    def _build_engines(self) -> None:
        self.motion_sampler = MotionSampler(AccumulatorEngine(self.config))
        self.position_sampler = PositionSampler(SpeedStats(self.config))
        self.scorer = ScoreCalculator(self.config.scoring_policy, self.config.max_deviation)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def status(self) -> SessionStatus:
        return SessionStatus.RUNNING if self._state.is_running else SessionStatus.IDLE

    @property
    def snapshot(self) -> TelemetrySnapshot:
        return self._snapshot

    def record(self) -> ScoreRecord:
        """The current snapshot mapped to the score store's record shape."""
        return ScoreRecord.from_snapshot(self._snapshot)

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a snapshot listener. Returns a callable that removes it."""
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Start a new session.

        Raises:
            SensorUnavailable: motion or location capability missing
            PermissionDenied: motion permission refused or not obtainable
        """
        if not (self.sources.motion.is_available() and self.sources.location.is_available()):
            raise SensorUnavailable(
                "Required sensors (motion and location) are not available"
            )

        await self._request_permission()

        if self._state.is_running:
            self.stop()

        self._generation += 1
        self._state = self._state.zeroed().with_running(True)
        self._state = self.clock.start(self._state)
        self._state = self._pin_policy(self._state)

        self._subscription = self.sources.motion.subscribe(self.on_motion_sample)
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_position())

        logger.info(
            f"Session started ({self.sources.kind.value} sensors, "
            f"{self._state.accumulation_policy.value} accumulation, "
            f"{self.scorer.policy.value} scoring)"
        )
        self._publish()

    def stop(self) -> None:
        """Stop the session. No callback can mutate state after this returns."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

        if not self._state.is_running:
            return

        self._state = self._state.with_running(False)
        logger.info(
            f"Session stopped after {self._snapshot.elapsed_time:.1f}s "
            f"(score {self._snapshot.score:.1f})"
        )

    def reset(self) -> None:
        """Zero all statistics; the running flag is left as it is."""
        self._generation += 1
        self._state = self._state.zeroed()
        if self._state.is_running:
            self._state = self.clock.start(self._state)
        self._publish()

    def set_policies(
        self,
        accumulation: Optional[AccumulationPolicy] = None,
        scoring: Optional[ScoringPolicy] = None,
        speed_averaging: Optional[SpeedAveraging] = None,
    ) -> None:
        """Change policies between sessions."""
        if self._state.is_running:
            raise SessionError("Policies cannot change while a session is running")

        changes = {}
        if accumulation is not None:
            changes["accumulation_policy"] = accumulation
        if scoring is not None:
            changes["scoring_policy"] = scoring
        if speed_averaging is not None:
            changes["speed_averaging"] = speed_averaging
        self.config = replace(self.config, **changes)
        self._state = self._pin_policy(self._state)
        self._build_engines()
        self._snapshot = self._derive_snapshot()

    async def _request_permission(self) -> None:
        gate = self.sources.permission
        if gate is None:
            return
        try:
            result = await gate.request_motion_permission()
        except Exception as e:
            logger.error(f"Error requesting motion permission: {e}")
            raise PermissionDenied("Could not request motion permission") from e
        if result is not PermissionResult.GRANTED:
            raise PermissionDenied("Motion sensor access was denied")

    def _pin_policy(self, state: SessionState) -> SessionState:
        if state.accumulation_policy is self.config.accumulation_policy:
            return state
        return replace(state, accumulation_policy=self.config.accumulation_policy)

    # ------------------------------------------------------------------
    # Sensor events
    # ------------------------------------------------------------------

    def on_motion_sample(self, sample: TelemetrySample) -> None:
        if not self._state.is_running:
            return

        tick, ticked = self.clock.tick(self._state, sample.timestamp)
        updated = self.motion_sampler.apply(ticked, sample, tick)
        if updated is ticked:
            # Dropped: zero delta or malformed reading
            return

        self._state = updated
        self._publish()

    def on_position_fix(self, fix: PositionFix) -> None:
        if not self._state.is_running:
            return

        updated = self.position_sampler.apply(self._state, fix)
        if updated is self._state:
            # Dropped: not newer than the last applied fix
            return
        elapsed = self.clock.elapsed(updated, fix.timestamp)
        if elapsed > updated.elapsed_time:
            updated = replace(updated, elapsed_time=elapsed)
        if updated == self._state:
            return

        self._state = updated
        self._publish()

    async def _poll_position(self) -> None:
        interval = self.config.position_poll_interval_s
        while True:
            await asyncio.sleep(interval)
            task = asyncio.get_running_loop().create_task(self._acquire_fix(self._generation))
            self._pending_fixes.add(task)
            task.add_done_callback(self._pending_fixes.discard)

    async def _acquire_fix(self, generation: int) -> None:
        try:
            fix = await self.sources.location.request_fix()
        except PositionFixError as e:
            self._warn(e)
            return
        except Exception as e:
            self._warn(PositionFixError(f"Position fix failed: {e}"))
            return

        if generation != self._generation:
            logger.debug(f"Dropped fix requested before the last start or reset (t={fix.timestamp})")
            return
        # Completions arriving after stop() are dropped by the running check
        self.on_position_fix(fix)

    def _warn(self, error: Exception) -> None:
        logger.warning(f"Position fix error: {error}")
        if self.on_warning is not None:
            self.on_warning(error)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def _derive_snapshot(self) -> TelemetrySnapshot:
        state = self._state
        snapshot = TelemetrySnapshot(
            x=state.x,
            y=state.y,
            z=state.z,
            elapsed_time=state.elapsed_time,
            average_acceleration=state.average_acceleration,
            current_speed=state.current_speed,
            top_speed=state.top_speed,
            average_speed=state.average_speed,
        )
        return replace(snapshot, score=self.scorer.score(snapshot))

    def _publish(self) -> None:
        self._snapshot = self._derive_snapshot()
        for listener in list(self._listeners):
            listener(self._snapshot)
