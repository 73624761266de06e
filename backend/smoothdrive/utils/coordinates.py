"""
Geodesy and unit helpers for position fixes.

Speeds reported by location providers are in m/s; the engine works in km/h.
"""

from typing import Optional

import numpy as np

from smoothdrive.models.telemetry import PositionFix


EARTH_RADIUS_M = 6371000  # mean radius
MPS_TO_KMH = 3.6


def mps_to_kmh(speed_mps: float) -> float:
    return speed_mps * MPS_TO_KMH


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great-circle distance between two points.

    Args:
        lat1, lon1: First point coordinates in degrees
        lat2, lon2: Second point coordinates in degrees

    Returns:
        Distance in meters
    """
    lat1_rad = np.radians(lat1)
    lat2_rad = np.radians(lat2)
    dlat = np.radians(lat2 - lat1)
    dlon = np.radians(lon2 - lon1)

    a = np.sin(dlat/2)**2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon/2)**2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1-a))

    return float(EARTH_RADIUS_M * c)


def speed_between_fixes(previous: PositionFix, current: PositionFix) -> Optional[float]:
    """
    Ground speed in m/s between two consecutive fixes.

    Returns None when either fix lacks coordinates or the fixes are not
    strictly ordered in time.
    """
    if not (previous.has_coordinates and current.has_coordinates):
        return None
    dt = current.timestamp - previous.timestamp
    if dt <= 0:
        return None
    distance = haversine_distance(
        previous.latitude, previous.longitude, current.latitude, current.longitude
    )
    return distance / dt


def offset_position(lat: float, lon: float, north_m: float, east_m: float) -> tuple[float, float]:
    """Move a WGS84 point by a small north/east offset in meters."""
    dlat = np.degrees(north_m / EARTH_RADIUS_M)
    dlon = np.degrees(east_m / (EARTH_RADIUS_M * np.cos(np.radians(lat))))
    return float(lat + dlat), float(lon + dlon)
