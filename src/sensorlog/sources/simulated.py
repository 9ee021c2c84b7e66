"""Synthetic event sources for demos, local runs and tests."""

from __future__ import annotations

import asyncio
import logging
import math
import random
from datetime import UTC, datetime

from ..runtime.exceptions import SourceError
from ..samples import LocationSample, MotionSample, SampleKind
from .base import PushEventSource

logger = logging.getLogger(__name__)

# Tokyo Station
DEFAULT_ORIGIN = (35.6812, 139.7671)


class _TickingSource(PushEventSource):
    """Push source that produces one sample per ``interval`` while running."""

    external = False

    def __init__(self, kind: SampleKind, *, interval: float, available: bool = True) -> None:
        super().__init__(kind, available=available)
        if interval <= 0:
            raise ValueError("interval must be greater than zero")
        self.interval = interval
        self._task: asyncio.Task[None] | None = None
        self._tick = 0

    async def start(self) -> None:
        if not self.capability_available():
            self.publish_error(SourceError(f"{self.kind.value} sensor is not available"))
            return
        await super().start()
        if self._task is None or self._task.done():
            self._tick = 0
            self._task = asyncio.create_task(
                self._run(), name=f"simulated-{self.kind.value}-source"
            )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await super().stop()

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                self.publish_sample(self._next_sample(datetime.now(UTC)))
                self._tick += 1
        except asyncio.CancelledError:
            logger.debug("simulated %s source cancelled", self.kind.value)
            raise

    def _next_sample(self, now: datetime):
        raise NotImplementedError


class SimulatedLocationSource(_TickingSource):
    """Emit jittered fixes around a fixed origin, one per interval."""

    def __init__(
        self,
        *,
        interval: float = 1.0,
        origin: tuple[float, float] = DEFAULT_ORIGIN,
        jitter: float = 0.001,
        authorized: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(SampleKind.LOCATION, interval=interval)
        self.origin = origin
        self.jitter = jitter
        self.authorized = authorized
        self._rng = rng or random.Random()

    def capability_available(self) -> bool:
        return self.authorized and self.available

    def _next_sample(self, now: datetime) -> LocationSample:
        lat, lon = self.origin
        return LocationSample(
            timestamp=now,
            latitude=lat + self._rng.uniform(-self.jitter, self.jitter),
            longitude=lon + self._rng.uniform(-self.jitter, self.jitter),
            altitude=0.0,
            horizontal_accuracy=0.0,
            vertical_accuracy=-1.0,
            speed=-1.0,
            course=-1.0,
        )


class SimulatedMotionSource(_TickingSource):
    """Emit a slowly swaying device attitude at the configured rate."""

    def __init__(
        self,
        *,
        interval: float = 0.1,
        available: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(SampleKind.MOTION, interval=interval, available=available)
        self._rng = rng or random.Random()

    def _next_sample(self, now: datetime) -> MotionSample:
        phase = self._tick * self.interval
        roll = 0.2 * math.sin(phase)
        pitch = 0.1 * math.cos(phase)
        noise = self._rng.gauss
        return MotionSample(
            timestamp=now,
            roll=roll,
            pitch=pitch,
            yaw=0.05 * phase % (2 * math.pi),
            rotation_rate=(0.2 * math.cos(phase), -0.1 * math.sin(phase), 0.05),
            user_acceleration=(noise(0, 0.01), noise(0, 0.01), noise(0, 0.01)),
            gravity=(
                math.sin(roll) * math.cos(pitch),
                -math.sin(pitch),
                -math.cos(roll) * math.cos(pitch),
            ),
            magnetic_field=(30.0, -5.0, -40.0),
            magnetic_field_accuracy=2,
        )


__all__ = [
    "DEFAULT_ORIGIN",
    "SimulatedLocationSource",
    "SimulatedMotionSource",
]
