"""
Trace replay.

Feeds a recorded (or generated) session through a controller on a
virtual clock, so a whole drive can be scored deterministically without
waiting for real sensor timing.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np
from numpy.typing import NDArray

from smoothdrive.core.config import EngineConfig
from smoothdrive.engine.clock import SessionClock
from smoothdrive.engine.controller import SessionController
from smoothdrive.models.telemetry import PositionFix, TelemetrySnapshot
from smoothdrive.sensors.sources import (
    DeviceLocationSource,
    DeviceMotionSource,
    SensorBundle,
    SensorKind,
    StaticPermissionGate,
)
from smoothdrive.utils.sample_data import SimulatedDrive


logger = logging.getLogger(__name__)


class TraceClock:
    """Virtual time source advanced by the replay loop."""

    def __init__(self, start: float = 0.0):
        self.current = start

    def __call__(self) -> float:
        return self.current


@dataclass
class ReplayResult:
    """Final snapshot plus every snapshot published along the way."""

    final: TelemetrySnapshot
    history: list[TelemetrySnapshot] = field(default_factory=list)


async def replay_trace(
    timestamps: NDArray[np.float64],
    readings: NDArray[np.float64],
    fixes: Iterable[PositionFix] = (),
    config: Optional[EngineConfig] = None,
    start_time: float = 0.0,
) -> ReplayResult:
    """
    Replay motion readings (N x 3, m/s²) and position fixes in time order.

    The session starts at `start_time` and stops after the last event.
    """
    timestamps = np.asarray(timestamps, dtype=np.float64)
    readings = np.asarray(readings, dtype=np.float64)
    if readings.ndim != 2 or readings.shape[1] != 3:
        raise ValueError(f"readings must have shape (N, 3), got {readings.shape}")
    if len(timestamps) != len(readings):
        raise ValueError("timestamps and readings must have the same length")

    trace_clock = TraceClock(start_time)
    motion = DeviceMotionSource(time_source=trace_clock)
    location = DeviceLocationSource(time_source=trace_clock)
    sources = SensorBundle(
        kind=SensorKind.DEVICE,
        motion=motion,
        location=location,
        permission=StaticPermissionGate(),
    )
    controller = SessionController(sources, config=config, clock=SessionClock(trace_clock))

    history: list[TelemetrySnapshot] = []
    controller.add_listener(history.append)

    # Merge both streams into one time-ordered event list (motion first on ties)
    events: list[tuple[float, int, object]] = [
        (float(t), 0, row) for t, row in zip(timestamps, readings)
    ]
    events.extend((fix.timestamp, 1, fix) for fix in fixes)
    events.sort(key=lambda e: (e[0], e[1]))

    await controller.start()
    for t, kind, payload in events:
        trace_clock.current = max(trace_clock.current, t)
        if kind == 0:
            x, y, z = payload
            motion.push(float(x), float(y), float(z), timestamp=t)
        else:
            controller.on_position_fix(payload)
    controller.stop()

    logger.info(
        f"Replayed {len(timestamps)} samples over {controller.snapshot.elapsed_time:.1f}s "
        f"(score {controller.snapshot.score:.1f})"
    )
    return ReplayResult(final=controller.snapshot, history=history)


def fixes_from_drive(drive: SimulatedDrive, interval_s: float = 2.0) -> list[PositionFix]:
    """Sample position fixes from a generated drive at a polling interval."""
    fixes = []
    t = interval_s
    while t <= drive.duration_s:
        speed, lat, lon = drive.position_at(t)
        fixes.append(PositionFix(speed_mps=speed, latitude=lat, longitude=lon, timestamp=t))
        t += interval_s
    return fixes


async def replay_drive(
    drive: SimulatedDrive,
    config: Optional[EngineConfig] = None,
    fix_interval_s: float = 2.0,
) -> ReplayResult:
    """Replay a generated drive end to end."""
    readings = np.column_stack((drive.accel_x, drive.accel_y, drive.accel_z))
    return await replay_trace(
        drive.timestamps,
        readings,
        fixes=fixes_from_drive(drive, fix_interval_s),
        config=config,
        start_time=float(drive.timestamps[0]),
    )
