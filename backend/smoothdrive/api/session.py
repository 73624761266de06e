"""
API routes for the live driving session.
"""

from fastapi import APIRouter, HTTPException

from smoothdrive.api.schemas import (
    MotionSampleRequest,
    PositionFixRequest,
    PushAcceptedResponse,
    ScoreRecordResponse,
    SessionStatusResponse,
    SnapshotResponse,
)
from smoothdrive.engine.controller import SessionController
from smoothdrive.engine.errors import PermissionDenied, SensorUnavailable
from smoothdrive.sensors.sources import DeviceLocationSource, DeviceMotionSource
from smoothdrive.services.session_service import get_session_controller


router = APIRouter(prefix="/session", tags=["session"])


def _build_snapshot_response(controller: SessionController) -> SnapshotResponse:
    snapshot = controller.snapshot
    return SnapshotResponse(
        x=snapshot.x,
        y=snapshot.y,
        z=snapshot.z,
        elapsed_time=snapshot.elapsed_time,
        average_acceleration=snapshot.average_acceleration,
        current_speed=snapshot.current_speed,
        top_speed=snapshot.top_speed,
        average_speed=snapshot.average_speed,
        score=snapshot.score,
    )


def _build_status_response(controller: SessionController) -> SessionStatusResponse:
    return SessionStatusResponse(
        status=controller.status.value,
        sensor_kind=controller.sources.kind.value,
        accumulation_policy=controller.config.accumulation_policy.value,
        scoring_policy=controller.config.scoring_policy.value,
        speed_averaging=controller.config.speed_averaging.value,
        snapshot=_build_snapshot_response(controller),
    )


@router.get("", response_model=SessionStatusResponse)
async def get_session():
    """Get controller status, active policies and the latest snapshot."""
    return _build_status_response(get_session_controller())


@router.post("/start", response_model=SessionStatusResponse)
async def start_session():
    """
    Start (or restart) a session.

    Fails with 503 when sensors are unavailable and 403 when motion
    permission is refused; the session stays idle in both cases.
    """
    controller = get_session_controller()
    try:
        await controller.start()
    except SensorUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except PermissionDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    return _build_status_response(controller)


@router.post("/stop", response_model=SessionStatusResponse)
async def stop_session():
    """Stop the session; statistics freeze at their last values."""
    controller = get_session_controller()
    controller.stop()
    return _build_status_response(controller)


@router.post("/reset", response_model=SessionStatusResponse)
async def reset_session():
    """Zero all statistics without changing the running state."""
    controller = get_session_controller()
    controller.reset()
    return _build_status_response(controller)


@router.get("/snapshot", response_model=SnapshotResponse)
async def get_snapshot():
    """Get the latest telemetry snapshot."""
    return _build_snapshot_response(get_session_controller())


@router.get("/record", response_model=ScoreRecordResponse)
async def get_record():
    """Get the session result in the score store's record shape."""
    return ScoreRecordResponse(**get_session_controller().record().to_dict())


# ============================================================================
# Device Bridge Routes
# ============================================================================

@router.post("/samples", response_model=PushAcceptedResponse, status_code=202)
async def push_motion_sample(request: MotionSampleRequest):
    """
    Push one accelerometer reading from the device.

    Readings pushed while the session is idle are ignored.
    """
    controller = get_session_controller()
    motion = controller.sources.motion
    if not isinstance(motion, DeviceMotionSource):
        raise HTTPException(status_code=409, detail="Session is not using device sensors")

    motion.push(request.x, request.y, request.z)
    return PushAcceptedResponse(accepted=controller.is_running, running=controller.is_running)


@router.post("/fixes", response_model=PushAcceptedResponse, status_code=202)
async def push_position_fix(request: PositionFixRequest):
    """
    Push one location reading from the device.

    The fix is picked up by the next position poll.
    """
    controller = get_session_controller()
    location = controller.sources.location
    if not isinstance(location, DeviceLocationSource):
        raise HTTPException(status_code=409, detail="Session is not using device sensors")

    location.push(request.speed_mps, request.latitude, request.longitude)
    return PushAcceptedResponse(accepted=controller.is_running, running=controller.is_running)
