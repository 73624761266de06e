"""
Sample data generator for simulated sessions and tests.

Generates a realistic-looking city drive: a speed profile of accelerations,
cruising and braking, a matching GPS track, and phone accelerometer
readings (gravity included) with sensor noise.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from smoothdrive.utils.coordinates import offset_position


GRAVITY = 9.8


@dataclass
class SimulatedDrive:
    """Time series of a generated drive."""

    timestamps: NDArray[np.float64]  # seconds from drive start
    accel_x: NDArray[np.float64]     # m/s², device frame
    accel_y: NDArray[np.float64]
    accel_z: NDArray[np.float64]
    speed_mps: NDArray[np.float64]
    latitude: NDArray[np.float64]
    longitude: NDArray[np.float64]

    @property
    def duration_s(self) -> float:
        if len(self.timestamps) == 0:
            return 0.0
        return float(self.timestamps[-1] - self.timestamps[0])

    def _wrap(self, t: float) -> float:
        duration = self.duration_s
        if duration <= 0:
            return 0.0
        return float(t % duration)

    def acceleration_at(self, t: float) -> tuple[float, float, float]:
        """Interpolated accelerometer reading at t (wraps past the end)."""
        t = self._wrap(t)
        return (
            float(np.interp(t, self.timestamps, self.accel_x)),
            float(np.interp(t, self.timestamps, self.accel_y)),
            float(np.interp(t, self.timestamps, self.accel_z)),
        )

    def position_at(self, t: float) -> tuple[float, float, float]:
        """Interpolated (speed m/s, latitude, longitude) at t."""
        t = self._wrap(t)
        return (
            float(np.interp(t, self.timestamps, self.speed_mps)),
            float(np.interp(t, self.timestamps, self.latitude)),
            float(np.interp(t, self.timestamps, self.longitude)),
        )


def generate_city_drive(
    duration_s: float = 120.0,
    sample_rate_hz: float = 60.0,
    center_lat: float = 52.3676,
    center_lon: float = 4.9041,
    cruise_speed_kmh: float = 50.0,
    stop_interval_s: float = 30.0,
    accel_noise: float = 0.15,
    seed: Optional[int] = None,
) -> SimulatedDrive:
    """
    Generate a stop-and-go drive along a straight road heading east.

    The car accelerates away from each stop, cruises, then brakes to a
    halt before the next one.
    """
    rng = np.random.default_rng(seed)
    n_samples = max(2, int(duration_s * sample_rate_hz))
    timestamps = np.linspace(0, duration_s, n_samples)
    dt = timestamps[1] - timestamps[0]

    # Speed profile: smooth bump per stop interval (raised cosine)
    cruise_mps = cruise_speed_kmh / 3.6
    phase = (timestamps % stop_interval_s) / stop_interval_s
    speed_mps = cruise_mps * 0.5 * (1 - np.cos(2 * np.pi * phase))
    speed_mps = np.clip(speed_mps, 0.0, None)

    # Longitudinal acceleration from speed change
    long_accel = np.gradient(speed_mps, dt)

    # Small lateral sway from lane keeping
    lat_accel = 0.3 * np.sin(2 * np.pi * timestamps / 7.0) * (speed_mps / max(cruise_mps, 1e-6))

    # Phone lying flat: x lateral, y longitudinal, z up (gravity)
    accel_x = lat_accel + rng.normal(0, accel_noise, n_samples)
    accel_y = long_accel + rng.normal(0, accel_noise, n_samples)
    accel_z = GRAVITY + rng.normal(0, accel_noise, n_samples)

    # Track: integrate distance eastwards
    east_m = np.concatenate(([0.0], np.cumsum(speed_mps[1:] * dt)))
    latitude = np.full(n_samples, center_lat)
    longitude = np.empty(n_samples)
    for i in range(n_samples):
        _, longitude[i] = offset_position(center_lat, center_lon, 0.0, east_m[i])

    return SimulatedDrive(
        timestamps=timestamps,
        accel_x=accel_x,
        accel_y=accel_y,
        accel_z=accel_z,
        speed_mps=speed_mps,
        latitude=latitude,
        longitude=longitude,
    )


def constant_magnitude_trace(
    magnitude: float,
    duration_s: float,
    sample_rate_hz: float = 60.0,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Timestamps and xyz readings with a fixed magnitude, all on the z axis.

    The first timestamp is one sample period after zero so the trace can
    follow a session start at t=0.
    """
    n_samples = int(round(duration_s * sample_rate_hz))
    timestamps = np.arange(1, n_samples + 1) / sample_rate_hz
    readings = np.zeros((n_samples, 3))
    readings[:, 2] = magnitude
    return timestamps, readings
