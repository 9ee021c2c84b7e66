"""FastAPI application factory for the sensorlog backend."""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder

from sensorlog import RecorderSettings, SampleKind

from .api.recorders import StatusResponse
from .api.recorders import router as recorders_router
from .hub import RecorderHub, RecorderNotFoundError


def create_app(
    recorder_hub: RecorderHub | None = None,
    settings: RecorderSettings | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Parameters
    ----------
    recorder_hub:
        Optional hub instance, primarily used for injecting fakes in tests.
    settings:
        Settings used to build the default hub; read from the environment
        when omitted.
    """

    hub = recorder_hub or RecorderHub.from_settings(settings or RecorderSettings.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await hub.open()
        try:
            yield
        finally:
            await hub.close()

    app = FastAPI(title="Sensorlog Recorder", version="0.1.0", lifespan=lifespan)
    app.state.recorder_hub = hub

    @app.get("/health")
    def health() -> dict[str, object]:
        """Return a simple health status payload."""

        return {
            "status": "ok",
            "recording": [c.kind.value for c in hub.controllers() if c.recording],
        }

    app.include_router(recorders_router)

    @app.websocket("/ws/recorders/{kind}")
    async def recorder_websocket(websocket: WebSocket, kind: SampleKind) -> None:
        """Push live status snapshots of one recorder to the client."""

        try:
            controller = hub.get(kind)
        except RecorderNotFoundError:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        try:
            async for snapshot in controller.subscribe():
                await websocket.send_json(
                    jsonable_encoder(StatusResponse.from_status(snapshot))
                )
        except WebSocketDisconnect:  # pragma: no cover - handled by FastAPI runtime
            return
        except RuntimeError:  # pragma: no cover - closed socket
            return

    return app


__all__ = ["create_app"]
