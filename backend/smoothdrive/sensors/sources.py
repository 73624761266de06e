"""
Sensor collaborators.

The engine only talks to three capabilities:
- SensorSource: pushes 3-axis acceleration readings to a subscriber
- LocationSource: answers position fix requests asynchronously
- PermissionGate: asks the platform for motion sensor access

Two variants exist and one is chosen when the engine is built:
- DEVICE: a platform bridge pushes real readings in through `push()`
- SIMULATED: readings come from a generated drive, on an asyncio task
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from smoothdrive.engine.errors import PositionFixError
from smoothdrive.models.telemetry import PositionFix, TelemetrySample
from smoothdrive.utils.sample_data import SimulatedDrive, generate_city_drive


logger = logging.getLogger(__name__)


SampleCallback = Callable[[TelemetrySample], None]


class SensorKind(Enum):
    """Sensor variant selected at construction."""

    DEVICE = "device"
    SIMULATED = "simulated"


class PermissionResult(Enum):
    GRANTED = "granted"
    DENIED = "denied"


class Subscription:
    """Handle returned by `subscribe()`. Unsubscribing twice is harmless."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel: Optional[Callable[[], None]] = cancel

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def unsubscribe(self) -> None:
        if self._cancel is not None:
            cancel, self._cancel = self._cancel, None
            cancel()


class SensorSource(Protocol):
    kind: SensorKind

    def is_available(self) -> bool: ...

    def subscribe(self, on_sample: SampleCallback) -> Subscription: ...


class LocationSource(Protocol):
    kind: SensorKind

    def is_available(self) -> bool: ...

    async def request_fix(self) -> PositionFix: ...


class PermissionGate(Protocol):
    async def request_motion_permission(self) -> PermissionResult: ...


# ============================================================================
# Device variant
# ============================================================================

class DeviceMotionSource:
    """Motion readings pushed in by the platform bridge."""

    kind = SensorKind.DEVICE

    def __init__(
        self,
        available: bool = True,
        time_source: Callable[[], float] = time.monotonic,
    ):
        self._available = available
        self._time_source = time_source
        self._subscribers: list[SampleCallback] = []

    def is_available(self) -> bool:
        return self._available

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, on_sample: SampleCallback) -> Subscription:
        self._subscribers.append(on_sample)

        def cancel():
            if on_sample in self._subscribers:
                self._subscribers.remove(on_sample)

        return Subscription(cancel)

    def push(
        self,
        x: Optional[float],
        y: Optional[float],
        z: Optional[float],
        timestamp: Optional[float] = None,
    ) -> TelemetrySample:
        """Deliver one reading to all subscribers, stamped on receipt."""
        if timestamp is None:
            timestamp = self._time_source()
        sample = TelemetrySample(x=x, y=y, z=z, timestamp=timestamp)
        for callback in list(self._subscribers):
            callback(sample)
        return sample


class DeviceLocationSource:
    """
    Position fixes from the platform.

    With a `provider` coroutine function, each request awaits it. Without
    one, requests consume the most recent fix pushed through `push()`.
    """

    kind = SensorKind.DEVICE

    def __init__(
        self,
        provider: Optional[Callable[[], Awaitable[PositionFix]]] = None,
        available: bool = True,
        time_source: Callable[[], float] = time.monotonic,
    ):
        self._provider = provider
        self._available = available
        self._time_source = time_source
        self._pending: Optional[PositionFix] = None

    def is_available(self) -> bool:
        return self._available

    def push(
        self,
        speed_mps: Optional[float],
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        timestamp: Optional[float] = None,
    ) -> PositionFix:
        if timestamp is None:
            timestamp = self._time_source()
        self._pending = PositionFix(
            speed_mps=speed_mps, latitude=latitude, longitude=longitude, timestamp=timestamp
        )
        return self._pending

    async def request_fix(self) -> PositionFix:
        if self._provider is not None:
            try:
                return await self._provider()
            except PositionFixError:
                raise
            except Exception as e:
                raise PositionFixError(f"Position provider failed: {e}") from e

        if self._pending is None:
            raise PositionFixError("No position fix available")
        fix, self._pending = self._pending, None
        return fix


class StaticPermissionGate:
    """Permission gate with a fixed answer (platforms without a prompt)."""

    def __init__(self, result: PermissionResult = PermissionResult.GRANTED):
        self.result = result

    async def request_motion_permission(self) -> PermissionResult:
        return self.result


# ============================================================================
# Simulated variant
# ============================================================================

class SimulatedMotionSource:
    """Replays a generated drive at a fixed rate on the running event loop."""

    kind = SensorKind.SIMULATED

    def __init__(
        self,
        drive: SimulatedDrive,
        frequency_hz: float = 60.0,
        time_source: Callable[[], float] = time.monotonic,
    ):
        self.drive = drive
        self.frequency_hz = frequency_hz
        self._time_source = time_source
        self.origin = time_source()

    def is_available(self) -> bool:
        return True

    def subscribe(self, on_sample: SampleCallback) -> Subscription:
        self.origin = self._time_source()
        task = asyncio.get_running_loop().create_task(self._emit(on_sample))
        return Subscription(task.cancel)

    async def _emit(self, on_sample: SampleCallback) -> None:
        period = 1.0 / self.frequency_hz
        while True:
            await asyncio.sleep(period)
            now = self._time_source()
            x, y, z = self.drive.acceleration_at(now - self.origin)
            on_sample(TelemetrySample(x=x, y=y, z=z, timestamp=now))


class SimulatedLocationSource:
    """
    Answers fix requests from the same generated drive.

    Given the motion source, drive time is measured from its `origin`, so
    speed and acceleration stay in step across sessions.
    """

    kind = SensorKind.SIMULATED

    def __init__(
        self,
        drive: SimulatedDrive,
        time_source: Callable[[], float] = time.monotonic,
        motion: Optional[SimulatedMotionSource] = None,
    ):
        self.drive = drive
        self.motion = motion
        self._time_source = time_source
        self._origin = time_source()

    def is_available(self) -> bool:
        return True

    async def request_fix(self) -> PositionFix:
        now = self._time_source()
        origin = self.motion.origin if self.motion is not None else self._origin
        speed, lat, lon = self.drive.position_at(now - origin)
        return PositionFix(speed_mps=speed, latitude=lat, longitude=lon, timestamp=now)


# ============================================================================
# Construction
# ============================================================================

@dataclass
class SensorBundle:
    """The collaborators one controller is built with."""

    kind: SensorKind
    motion: SensorSource
    location: LocationSource
    permission: Optional[PermissionGate] = None


def build_sources(
    kind: SensorKind,
    time_source: Callable[[], float] = time.monotonic,
    frequency_hz: float = 60.0,
    seed: Optional[int] = None,
) -> SensorBundle:
    """Build the collaborators for one sensor variant."""
    if kind is SensorKind.SIMULATED:
        drive = generate_city_drive(sample_rate_hz=frequency_hz, seed=seed)
        logger.info(f"Simulated drive generated: {drive.duration_s:.0f}s at {frequency_hz} Hz")
        motion = SimulatedMotionSource(drive, frequency_hz, time_source)
        return SensorBundle(
            kind=kind,
            motion=motion,
            location=SimulatedLocationSource(drive, time_source, motion=motion),
            permission=StaticPermissionGate(),
        )

    return SensorBundle(
        kind=kind,
        motion=DeviceMotionSource(time_source=time_source),
        location=DeviceLocationSource(time_source=time_source),
        permission=StaticPermissionGate(),
    )
