"""Registry of recorder controllers served by the backend."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, Mapping

from sensorlog import CsvExporter, RecorderController, RecorderSettings, SampleKind
from sensorlog.runtime import Session
from sensorlog.sources import (
    EventSource,
    PushEventSource,
    SimulatedLocationSource,
    SimulatedMotionSource,
)

logger = logging.getLogger(__name__)


class RecorderNotFoundError(KeyError):
    """Raised when no recorder is registered for a sample kind."""


class RecorderHub:
    """Own one :class:`RecorderController` per sensor kind."""

    def __init__(self, controllers: Mapping[SampleKind, RecorderController]) -> None:
        self._controllers: Dict[SampleKind, RecorderController] = dict(controllers)

    @classmethod
    def from_settings(cls, settings: RecorderSettings) -> "RecorderHub":
        """Build location and motion recorders writing under ``settings.output_root``."""

        exporter = CsvExporter(settings.output_root)
        sources: list[EventSource]
        if settings.source_mode == "push":
            sources = [
                PushEventSource(SampleKind.LOCATION),
                PushEventSource(SampleKind.MOTION),
            ]
        else:
            sources = [
                SimulatedLocationSource(interval=settings.location_interval),
                SimulatedMotionSource(interval=settings.motion_interval),
            ]
        controllers = {
            source.kind: RecorderController(
                source,
                exporter,
                max_duration=settings.max_duration,
                liveness_timeout=settings.liveness_timeout,
            )
            for source in sources
        }
        return cls(controllers)

    def get(self, kind: SampleKind) -> RecorderController:
        try:
            return self._controllers[kind]
        except KeyError as exc:
            raise RecorderNotFoundError(kind.value) from exc

    def source(self, kind: SampleKind) -> EventSource:
        return self.get(kind).source

    def controllers(self) -> Iterable[RecorderController]:
        return list(self._controllers.values())

    async def open(self) -> None:
        for controller in self._controllers.values():
            await controller.open()

    async def close(self) -> None:
        for controller in self._controllers.values():
            try:
                await controller.close()
            except Exception:  # pragma: no cover
                logger.exception("Failed to close %s recorder", controller.kind.value)

    async def on_background(self) -> list[Session]:
        """Deliver the background signal to every recorder at once."""

        results = await asyncio.gather(
            *(controller.on_background() for controller in self._controllers.values())
        )
        return [session for session in results if session is not None]

    async def drain(self) -> None:
        await asyncio.gather(*(controller.drain() for controller in self._controllers.values()))


__all__ = ["RecorderHub", "RecorderNotFoundError"]
