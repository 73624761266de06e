"""
Tests for the session controller lifecycle and event handling.
"""

import asyncio

import pytest
from numpy.testing import assert_allclose

from smoothdrive.core.config import EngineConfig
from smoothdrive.engine.clock import SessionClock
from smoothdrive.engine.controller import SessionController
from smoothdrive.engine.errors import (
    PermissionDenied,
    PositionFixError,
    SensorUnavailable,
    SessionError,
)
from smoothdrive.engine.scoring import ScoringPolicy
from smoothdrive.models.session import AccumulationPolicy, SessionStatus
from smoothdrive.models.telemetry import PositionFix, TelemetrySnapshot
from smoothdrive.sensors.sources import (
    DeviceLocationSource,
    DeviceMotionSource,
    PermissionResult,
    SensorBundle,
    SensorKind,
    StaticPermissionGate,
)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, t: float = 0.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


class FailingPermissionGate:
    async def request_motion_permission(self):
        raise RuntimeError("prompt crashed")


class SlowLocationSource:
    """Location source whose first fix resolves only when released; later requests hang."""

    kind = SensorKind.DEVICE

    def __init__(self):
        self.requested = asyncio.Event()
        self.release = asyncio.Event()
        self.hold = asyncio.Event()
        self.completed = 0

    def is_available(self):
        return True

    async def request_fix(self):
        first = not self.requested.is_set()
        self.requested.set()
        await (self.release if first else self.hold).wait()
        self.completed += 1
        return PositionFix(speed_mps=20.0, latitude=None, longitude=None, timestamp=1.0)


def make_controller(
    config=None,
    motion_available=True,
    location=None,
    permission=None,
    on_warning=None,
):
    clock = FakeClock()
    motion = DeviceMotionSource(available=motion_available, time_source=clock)
    if location is None:
        location = DeviceLocationSource(time_source=clock)
    if permission is None:
        permission = StaticPermissionGate()
    if config is None:
        config = EngineConfig(position_poll_interval_s=3600.0)
    sources = SensorBundle(SensorKind.DEVICE, motion, location, permission)
    controller = SessionController(
        sources, config=config, clock=SessionClock(clock), on_warning=on_warning
    )
    return controller, motion, clock


def feed_constant(motion, clock, magnitude, duration_s, rate_hz=60.0):
    n = int(round(duration_s * rate_hz))
    for i in range(1, n + 1):
        clock.t = i / rate_hz
        motion.push(0.0, 0.0, magnitude, timestamp=clock.t)


class TestLifecycle:
    """Tests for start / stop / reset."""

    def test_initial_state_idle(self):
        controller, _, _ = make_controller()

        assert controller.status is SessionStatus.IDLE
        assert controller.snapshot == TelemetrySnapshot()

    def test_start_and_stop(self):
        controller, motion, _ = make_controller()

        async def scenario():
            await controller.start()
            assert controller.status is SessionStatus.RUNNING
            assert motion.subscriber_count == 1
            controller.stop()

        asyncio.run(scenario())

        assert controller.status is SessionStatus.IDLE
        assert motion.subscriber_count == 0

    def test_restart_keeps_single_subscription(self):
        controller, motion, _ = make_controller()

        async def scenario():
            await controller.start()
            await controller.start()
            assert motion.subscriber_count == 1
            controller.stop()

        asyncio.run(scenario())

    def test_start_resets_previous_session(self):
        controller, motion, clock = make_controller()

        async def scenario():
            await controller.start()
            feed_constant(motion, clock, 12.0, 1.0)
            controller.stop()
            await controller.start()
            controller.stop()

        asyncio.run(scenario())

        assert controller.state.accumulated_acceleration == 0.0
        assert controller.snapshot.elapsed_time == 0.0

    def test_stop_freezes_statistics(self):
        controller, motion, clock = make_controller()

        async def scenario():
            await controller.start()
            feed_constant(motion, clock, 12.0, 1.0)
            controller.stop()

        asyncio.run(scenario())
        frozen = controller.state

        clock.t = 5.0
        motion.push(0.0, 0.0, 30.0, timestamp=5.0)
        controller.on_motion_sample(motion.push(0.0, 0.0, 30.0, timestamp=6.0))
        controller.on_position_fix(PositionFix(20.0, None, None, timestamp=6.0))

        assert controller.state is frozen

    def test_reset_gives_zero_snapshot(self):
        """After reset the snapshot is all zero with a perfect score."""
        controller, motion, clock = make_controller()

        async def scenario():
            await controller.start()
            feed_constant(motion, clock, 13.0, 2.0)
            controller.on_position_fix(PositionFix(15.0, None, None, timestamp=clock.t))
            controller.stop()

        asyncio.run(scenario())
        assert controller.snapshot != TelemetrySnapshot()

        controller.reset()

        assert controller.snapshot == TelemetrySnapshot()
        assert controller.snapshot.to_dict() == {
            "x": 0.0, "y": 0.0, "z": 0.0, "elapsedTime": 0.0,
            "averageAcceleration": 0.0, "currentSpeed": 0.0, "topSpeed": 0.0,
            "averageSpeed": 0.0, "score": 100.0,
        }
        assert not controller.is_running

    def test_reset_while_running_keeps_running(self):
        controller, motion, clock = make_controller()

        async def scenario():
            await controller.start()
            feed_constant(motion, clock, 13.0, 1.0)
            controller.reset()
            assert controller.is_running
            assert controller.snapshot == TelemetrySnapshot()
            controller.stop()

        asyncio.run(scenario())


class TestStartErrors:
    """Tests for start failures."""

    def test_sensor_unavailable(self):
        controller, motion, _ = make_controller(motion_available=False)

        with pytest.raises(SensorUnavailable):
            asyncio.run(controller.start())

        assert controller.status is SessionStatus.IDLE
        assert motion.subscriber_count == 0

    def test_location_unavailable(self):
        controller, _, _ = make_controller(location=DeviceLocationSource(available=False))

        with pytest.raises(SensorUnavailable):
            asyncio.run(controller.start())

    def test_permission_denied(self):
        controller, motion, _ = make_controller(
            permission=StaticPermissionGate(PermissionResult.DENIED)
        )

        with pytest.raises(PermissionDenied):
            asyncio.run(controller.start())

        assert controller.status is SessionStatus.IDLE
        assert motion.subscriber_count == 0
        assert controller.snapshot == TelemetrySnapshot()

    def test_permission_error(self):
        """A failing permission prompt counts as denial."""
        controller, _, _ = make_controller(permission=FailingPermissionGate())

        with pytest.raises(PermissionDenied):
            asyncio.run(controller.start())

        assert controller.status is SessionStatus.IDLE


class TestMotionEvents:
    """Tests for motion sample handling."""

    def test_stationary_scores_perfect(self):
        """Gravity only for 10 s at 60 Hz: no deviation, score 100."""
        config = EngineConfig(
            accumulation_policy=AccumulationPolicy.ADDITIVE, position_poll_interval_s=3600.0
        )
        controller, motion, clock = make_controller(config=config)

        async def scenario():
            await controller.start()
            feed_constant(motion, clock, 9.8, 10.0)
            controller.stop()

        asyncio.run(scenario())

        assert_allclose(controller.snapshot.elapsed_time, 10.0)
        assert_allclose(controller.snapshot.average_acceleration, 0.0, atol=1e-9)
        assert_allclose(controller.snapshot.score, 100.0)

    def test_max_deviation_scores_zero(self):
        """14.5 m/s² for 5 s averages 4.7 net and scores 0."""
        config = EngineConfig(
            accumulation_policy=AccumulationPolicy.ADDITIVE, position_poll_interval_s=3600.0
        )
        controller, motion, clock = make_controller(config=config)

        async def scenario():
            await controller.start()
            feed_constant(motion, clock, 14.5, 5.0)
            controller.stop()

        asyncio.run(scenario())

        assert_allclose(controller.snapshot.elapsed_time, 5.0)
        assert_allclose(controller.snapshot.average_acceleration, 4.7, rtol=1e-6)
        assert_allclose(controller.snapshot.score, 0.0, atol=1e-6)

    def test_non_positive_delta_is_noop(self):
        controller, motion, clock = make_controller()

        async def scenario():
            await controller.start()
            feed_constant(motion, clock, 11.0, 0.5)
            before = controller.state
            motion.push(0.0, 0.0, 30.0, timestamp=clock.t)
            motion.push(0.0, 0.0, 30.0, timestamp=clock.t - 0.1)
            after = controller.state
            controller.stop()
            return before, after

        before, after = asyncio.run(scenario())

        assert after is before

    def test_malformed_sample_is_noop(self):
        controller, motion, clock = make_controller()

        async def scenario():
            await controller.start()
            feed_constant(motion, clock, 11.0, 0.5)
            before = controller.state
            motion.push(float("nan"), 0.0, 9.8, timestamp=clock.t + 0.1)
            after = controller.state
            controller.stop()
            return before, after

        before, after = asyncio.run(scenario())

        assert after is before

    def test_empty_sample_is_noop(self):
        """A reading with no components at all is not read as zero acceleration."""
        controller, motion, clock = make_controller()

        async def scenario():
            await controller.start()
            before = controller.state
            for i in range(1, 4):
                motion.push(None, None, None, timestamp=i * 0.1)
            after = controller.state
            controller.stop()
            return before, after

        before, after = asyncio.run(scenario())

        assert after is before
        assert controller.snapshot.average_acceleration == 0.0
        assert controller.snapshot.score == 100.0

    def test_elapsed_non_decreasing(self):
        controller, motion, clock = make_controller()
        elapsed = []
        controller.add_listener(lambda s: elapsed.append(s.elapsed_time))

        async def scenario():
            await controller.start()
            for t in [0.1, 0.2, 0.15, 0.3, 0.3, 0.5]:
                motion.push(0.0, 1.0, 9.8, timestamp=t)
            controller.stop()

        asyncio.run(scenario())

        assert elapsed == sorted(elapsed)
        assert elapsed[-1] == 0.5

    def test_policy_pinned_at_start(self):
        config = EngineConfig(
            accumulation_policy=AccumulationPolicy.ADDITIVE, position_poll_interval_s=3600.0
        )
        controller, _, _ = make_controller(config=config)

        async def scenario():
            await controller.start()
            assert controller.state.accumulation_policy is AccumulationPolicy.ADDITIVE
            with pytest.raises(SessionError):
                controller.set_policies(accumulation=AccumulationPolicy.SMOOTHED)
            controller.stop()

        asyncio.run(scenario())

        controller.set_policies(accumulation=AccumulationPolicy.SMOOTHED)
        assert controller.state.accumulation_policy is AccumulationPolicy.SMOOTHED

    def test_scoring_policy_switch(self):
        controller, _, _ = make_controller()

        controller.set_policies(scoring=ScoringPolicy.LINEAR_TENTHS)

        assert controller.scorer.policy is ScoringPolicy.LINEAR_TENTHS
        assert controller.snapshot.score == 100.0

    def test_policy_change_leaves_caller_config_alone(self):
        config = EngineConfig(position_poll_interval_s=3600.0)
        controller, _, _ = make_controller(config=config)

        controller.set_policies(
            accumulation=AccumulationPolicy.ADDITIVE,
            scoring=ScoringPolicy.PERCENT_CLAMPED,
        )

        assert config.accumulation_policy is AccumulationPolicy.SMOOTHED
        assert config.scoring_policy is ScoringPolicy.GRAVITY_DEVIATION
        assert controller.config.accumulation_policy is AccumulationPolicy.ADDITIVE
        assert controller.config.scoring_policy is ScoringPolicy.PERCENT_CLAMPED
        assert controller.state.accumulation_policy is AccumulationPolicy.ADDITIVE


class TestPositionEvents:
    """Tests for position fix handling."""

    def test_out_of_range_reading_rejected(self):
        """300 km/h on a fresh session changes nothing."""
        controller, _, _ = make_controller()

        async def scenario():
            await controller.start()
            controller.on_position_fix(PositionFix(300 / 3.6, None, None, timestamp=1.0))
            controller.stop()

        asyncio.run(scenario())

        assert controller.snapshot.current_speed == 0.0
        assert controller.snapshot.top_speed == 0.0
        assert controller.snapshot.average_speed == 0.0

    def test_speed_statistics(self):
        controller, _, _ = make_controller()

        async def scenario():
            await controller.start()
            controller.on_position_fix(PositionFix(10.0, None, None, timestamp=2.0))   # 36 km/h
            controller.on_position_fix(PositionFix(20.0, None, None, timestamp=4.0))   # 72 km/h
            controller.on_position_fix(PositionFix(100.0, None, None, timestamp=6.0))  # rejected
            controller.stop()

        asyncio.run(scenario())
        snapshot = controller.snapshot

        assert_allclose(snapshot.current_speed, 72.0)
        assert_allclose(snapshot.top_speed, 72.0)
        assert_allclose(snapshot.average_speed, 54.0)
        assert_allclose(snapshot.elapsed_time, 6.0)

    def test_fix_polling_applies_fixes(self):
        clock = FakeClock()

        async def provider():
            return PositionFix(speed_mps=20.0, latitude=None, longitude=None, timestamp=clock())

        config = EngineConfig(position_poll_interval_s=0.01)
        controller, _, _ = make_controller(
            config=config, location=DeviceLocationSource(provider=provider)
        )
        clock.t = 0.0
        controller.clock = SessionClock(clock)

        async def scenario():
            await controller.start()
            clock.t = 2.0
            await asyncio.sleep(0.1)
            controller.stop()

        asyncio.run(scenario())

        assert_allclose(controller.snapshot.current_speed, 72.0)

    def test_fix_failure_is_reported(self):
        """Failed fixes warn the caller and leave speed stats alone."""
        warnings = []
        config = EngineConfig(position_poll_interval_s=0.01)
        controller, motion, clock = make_controller(config=config, on_warning=warnings.append)

        async def scenario():
            await controller.start()
            await asyncio.sleep(0.05)
            feed_constant(motion, clock, 11.0, 0.5)
            controller.stop()

        asyncio.run(scenario())

        assert warnings
        assert all(isinstance(w, PositionFixError) for w in warnings)
        assert controller.snapshot.current_speed == 0.0
        assert controller.snapshot.average_acceleration != 0.0

    def test_late_fix_after_stop_is_dropped(self):
        """A fix that resolves after stop() must not touch speed stats."""
        config = EngineConfig(position_poll_interval_s=0.01)

        async def scenario():
            location = SlowLocationSource()
            controller, _, _ = make_controller(config=config, location=location)
            await controller.start()
            await asyncio.wait_for(location.requested.wait(), timeout=1.0)
            controller.stop()
            location.release.set()
            await asyncio.sleep(0.05)
            return controller, location

        controller, location = asyncio.run(scenario())

        assert location.completed >= 1
        assert controller.snapshot.current_speed == 0.0
        assert controller.snapshot.top_speed == 0.0
        assert controller.snapshot.average_speed == 0.0

    def test_fix_from_previous_session_is_dropped(self):
        """A fix requested before a restart must not leak into the new session."""
        config = EngineConfig(position_poll_interval_s=0.01)

        async def scenario():
            location = SlowLocationSource()
            controller, _, clock = make_controller(config=config, location=location)
            await controller.start()
            await asyncio.wait_for(location.requested.wait(), timeout=1.0)
            controller.stop()
            clock.t = 100.0
            await controller.start()
            location.release.set()
            await asyncio.sleep(0.05)
            snapshot = controller.snapshot
            running = controller.is_running
            controller.stop()
            return snapshot, running, location

        snapshot, running, location = asyncio.run(scenario())

        assert running
        assert location.completed == 1
        assert snapshot.current_speed == 0.0
        assert snapshot.top_speed == 0.0
        assert snapshot.average_speed == 0.0

    def test_fix_from_before_reset_is_dropped(self):
        config = EngineConfig(position_poll_interval_s=0.01)

        async def scenario():
            location = SlowLocationSource()
            controller, _, _ = make_controller(config=config, location=location)
            await controller.start()
            await asyncio.wait_for(location.requested.wait(), timeout=1.0)
            controller.reset()
            location.release.set()
            await asyncio.sleep(0.05)
            snapshot = controller.snapshot
            controller.stop()
            return snapshot, location

        snapshot, location = asyncio.run(scenario())

        assert location.completed == 1
        assert snapshot.current_speed == 0.0
        assert snapshot.top_speed == 0.0

    def test_fixes_applied_in_timestamp_order(self):
        """A fix older than the last applied one is dropped."""
        controller, _, _ = make_controller()

        async def scenario():
            await controller.start()
            controller.on_position_fix(PositionFix(10.0, None, None, timestamp=10.0))  # 36 km/h
            before = controller.state
            controller.on_position_fix(PositionFix(20.0, None, None, timestamp=4.0))   # stale
            after = controller.state
            controller.on_position_fix(PositionFix(10.0, None, None, timestamp=12.0))
            controller.stop()
            return before, after

        before, after = asyncio.run(scenario())
        state = controller.state

        assert after is before
        assert_allclose(state.current_speed, 36.0)
        assert_allclose(state.top_speed, 36.0)
        assert_allclose(state.valid_speed_reading_count, 12.0)
        assert_allclose(state.average_speed, 36.0)
        assert_allclose(state.elapsed_time, 12.0)


class TestSnapshots:
    """Tests for snapshot publication."""

    def test_listener_receives_updates(self):
        controller, motion, clock = make_controller()
        received = []
        remove = controller.add_listener(received.append)

        async def scenario():
            await controller.start()
            feed_constant(motion, clock, 10.0, 0.1)
            remove()
            feed_constant(motion, clock, 10.0, 0.2)
            controller.stop()

        asyncio.run(scenario())

        # start + 6 samples, nothing after removal
        assert len(received) == 7
        assert all(isinstance(s, TelemetrySnapshot) for s in received)

    def test_record_shape(self):
        controller, motion, clock = make_controller()

        async def scenario():
            await controller.start()
            feed_constant(motion, clock, 10.0, 1.0)
            controller.on_position_fix(PositionFix(15.0, None, None, timestamp=1.0))
            controller.stop()

        asyncio.run(scenario())
        record = controller.record().to_dict()

        assert set(record) == {"score", "time_seconds", "top_speed", "average_speed"}
        assert_allclose(record["time_seconds"], 1.0)
        assert_allclose(record["top_speed"], 54.0)
        assert record["score"] == controller.snapshot.score
