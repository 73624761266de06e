"""
API schemas (Pydantic models) for request/response validation.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Snapshot Schemas
# ============================================================================

class SnapshotResponse(BaseModel):
    """Live telemetry snapshot, in the field names display code expects."""
    model_config = ConfigDict(populate_by_name=True)

    x: float
    y: float
    z: float
    elapsed_time: float = Field(alias="elapsedTime")
    average_acceleration: float = Field(alias="averageAcceleration")
    current_speed: float = Field(alias="currentSpeed")
    top_speed: float = Field(alias="topSpeed")
    average_speed: float = Field(alias="averageSpeed")
    score: float = Field(ge=0.0, le=100.0)


class ScoreRecordResponse(BaseModel):
    """Session result in the shape the score store persists."""
    score: float
    time_seconds: float
    top_speed: float
    average_speed: float


class SessionStatusResponse(BaseModel):
    """Controller status and configuration."""
    status: str
    sensor_kind: str
    accumulation_policy: str
    scoring_policy: str
    speed_averaging: str
    snapshot: SnapshotResponse


# ============================================================================
# Sensor Push Schemas
# ============================================================================

class MotionSampleRequest(BaseModel):
    """One accelerometer reading pushed by the device bridge (m/s², gravity included)."""
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None


class PositionFixRequest(BaseModel):
    """One location reading pushed by the device bridge."""
    speed_mps: Optional[float] = None
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)


class PushAcceptedResponse(BaseModel):
    """Acknowledgement of a pushed reading."""
    accepted: bool
    running: bool


# ============================================================================
# Error Schemas
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    code: Optional[str] = None
