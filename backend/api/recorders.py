"""Recorder control and status routes."""
from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field, ValidationError

from sensorlog import (
    LocationSample,
    MotionSample,
    PreconditionError,
    RecorderController,
    RecorderStatus,
    SampleKind,
    SourceError,
)
from sensorlog.sources import PushEventSource

from ..hub import RecorderHub, RecorderNotFoundError

router = APIRouter(tags=["recorders"])

Vector = Tuple[float, float, float]


class LocationSamplePayload(BaseModel):
    """Location fix pushed by an external producer."""

    timestamp: datetime
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    altitude: float = 0.0
    horizontal_accuracy: float = 0.0
    vertical_accuracy: float = -1.0
    speed: float = -1.0
    course: float = -1.0

    def to_sample(self) -> LocationSample:
        return LocationSample(
            timestamp=self.timestamp,
            latitude=self.latitude,
            longitude=self.longitude,
            altitude=self.altitude,
            horizontal_accuracy=self.horizontal_accuracy,
            vertical_accuracy=self.vertical_accuracy,
            speed=self.speed,
            course=self.course,
        )


class MotionSamplePayload(BaseModel):
    """Device-motion reading pushed by an external producer."""

    timestamp: datetime
    roll: float
    pitch: float
    yaw: float
    rotation_rate: Vector = (0.0, 0.0, 0.0)
    user_acceleration: Vector = (0.0, 0.0, 0.0)
    gravity: Vector = (0.0, 0.0, -1.0)
    magnetic_field: Vector = (0.0, 0.0, 0.0)
    magnetic_field_accuracy: int = -1

    def to_sample(self) -> MotionSample:
        return MotionSample(
            timestamp=self.timestamp,
            roll=self.roll,
            pitch=self.pitch,
            yaw=self.yaw,
            rotation_rate=tuple(self.rotation_rate),
            user_acceleration=tuple(self.user_acceleration),
            gravity=tuple(self.gravity),
            magnetic_field=tuple(self.magnetic_field),
            magnetic_field_accuracy=self.magnetic_field_accuracy,
        )


PAYLOAD_SCHEMAS: Dict[SampleKind, Type[BaseModel]] = {
    SampleKind.LOCATION: LocationSamplePayload,
    SampleKind.MOTION: MotionSamplePayload,
}


class SourceErrorPayload(BaseModel):
    message: str = Field(..., min_length=1, max_length=256)


class ExportResponse(BaseModel):
    path: Optional[str] = None
    error: Optional[str] = None


class StatusResponse(BaseModel):
    """What a UI needs to render one recorder."""

    kind: SampleKind
    revision: int
    message: str
    recording: bool
    recorded_count: int
    display: List[Dict[str, Any]] = Field(default_factory=list)
    session_id: Optional[str] = None
    started_at: Optional[datetime] = None
    last_export: Optional[ExportResponse] = None

    @classmethod
    def from_status(cls, snapshot: RecorderStatus) -> "StatusResponse":
        last_export = None
        if snapshot.last_export is not None:
            last_export = ExportResponse(
                path=str(snapshot.last_export.path) if snapshot.last_export.path else None,
                error=snapshot.last_export.error,
            )
        return cls(
            kind=snapshot.kind,
            revision=snapshot.revision,
            message=snapshot.message,
            recording=snapshot.recording,
            recorded_count=snapshot.recorded_count,
            display=[jsonable_encoder(asdict(sample)) for sample in snapshot.display],
            session_id=snapshot.session_id,
            started_at=snapshot.started_at,
            last_export=last_export,
        )


class BackgroundResponse(BaseModel):
    stopped: List[SampleKind]


def get_recorder_hub(request: Request) -> RecorderHub:
    hub = getattr(request.app.state, "recorder_hub", None)
    if hub is None:
        raise RuntimeError("Recorder hub dependency has not been configured on the application state.")
    return hub


def _controller(hub: RecorderHub, kind: SampleKind) -> RecorderController:
    try:
        return hub.get(kind)
    except RecorderNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Recorder not found",
        ) from exc


def _push_source(controller: RecorderController) -> PushEventSource:
    source = controller.source
    if not isinstance(source, PushEventSource) or not source.external:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{controller.kind.value} recorder does not accept pushed data",
        )
    return source


@router.get("/recorders", response_model=List[StatusResponse])
async def list_recorders(hub: RecorderHub = Depends(get_recorder_hub)) -> List[StatusResponse]:
    """Return the status of every registered recorder."""

    return [StatusResponse.from_status(controller.status()) for controller in hub.controllers()]


@router.get("/recorders/{kind}", response_model=StatusResponse)
async def get_recorder(kind: SampleKind, hub: RecorderHub = Depends(get_recorder_hub)) -> StatusResponse:
    return StatusResponse.from_status(_controller(hub, kind).status())


@router.post("/recorders/{kind}/toggle", response_model=StatusResponse)
async def toggle_recorder(
    kind: SampleKind,
    wait: bool = Query(default=False, description="Wait for a triggered export to finish"),
    hub: RecorderHub = Depends(get_recorder_hub),
) -> StatusResponse:
    """Start or stop recording; precondition failures only update the status text."""

    controller = _controller(hub, kind)
    await controller.toggle()
    if wait:
        await controller.drain()
    return StatusResponse.from_status(controller.status())


@router.post("/recorders/{kind}/start", response_model=StatusResponse)
async def start_recorder(kind: SampleKind, hub: RecorderHub = Depends(get_recorder_hub)) -> StatusResponse:
    controller = _controller(hub, kind)
    try:
        await controller.start()
    except PreconditionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return StatusResponse.from_status(controller.status())


@router.post("/recorders/{kind}/stop", response_model=StatusResponse)
async def stop_recorder(
    kind: SampleKind,
    wait: bool = Query(default=False, description="Wait for the export to finish"),
    hub: RecorderHub = Depends(get_recorder_hub),
) -> StatusResponse:
    controller = _controller(hub, kind)
    session = await controller.stop()
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Recorder is not recording",
        )
    if wait:
        await controller.drain()
    return StatusResponse.from_status(controller.status())


@router.post("/recorders/{kind}/samples", status_code=status.HTTP_202_ACCEPTED)
async def push_sample(
    kind: SampleKind,
    payload: Dict[str, Any],
    hub: RecorderHub = Depends(get_recorder_hub),
) -> Dict[str, object]:
    """Feed one reading into a push-driven recorder.

    Readings that arrive while the recorder is idle are accepted here and
    dropped by the recorder.
    """

    controller = _controller(hub, kind)
    source = _push_source(controller)
    try:
        reading = PAYLOAD_SCHEMAS[kind].model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=jsonable_encoder(exc.errors()),
        ) from exc

    source.publish_sample(reading.to_sample())
    await source.drain()
    return {"recording": controller.recording, "recorded_count": controller.recorded_count}


@router.post("/recorders/{kind}/errors", status_code=status.HTTP_202_ACCEPTED)
async def push_source_error(
    kind: SampleKind,
    payload: SourceErrorPayload,
    hub: RecorderHub = Depends(get_recorder_hub),
) -> StatusResponse:
    """Report a sensor fault on a push-driven recorder."""

    controller = _controller(hub, kind)
    source = _push_source(controller)
    source.publish_error(SourceError(payload.message))
    await source.drain()
    return StatusResponse.from_status(controller.status())


@router.post("/lifecycle/background", response_model=BackgroundResponse)
async def enter_background(
    wait: bool = Query(default=False, description="Wait for triggered exports to finish"),
    hub: RecorderHub = Depends(get_recorder_hub),
) -> BackgroundResponse:
    """Signal that the client application moved to the background."""

    sessions = await hub.on_background()
    if wait:
        await hub.drain()
    return BackgroundResponse(stopped=[session.kind for session in sessions])


__all__ = [
    "router",
]
