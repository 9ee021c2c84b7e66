"""Single-owner state machine driving one sensor recording session at a time."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from ..samples import Sample, SampleKind
from ..sources.base import EventSource, Subscription
from .exceptions import PreconditionError, SourceError, WriteError
from .session import (
    ExportResult,
    RecorderStatus,
    Session,
    SessionState,
    StopReason,
)

if TYPE_CHECKING:
    from ..export import CsvExporter

logger = logging.getLogger(__name__)

T = TypeVar("T")

READY_MESSAGE = "Ready"
RECORDING_MESSAGE = "Recording..."
NO_DATA_MESSAGE = "No data"
UNAVAILABLE_MESSAGES = {
    SampleKind.LOCATION: "Location permission not granted",
    SampleKind.MOTION: "Device motion not available",
}
# Location fixes are sparse enough to log all of them; motion only logs the head.
DETAILED_SAMPLE_LOG_LIMIT = 10


class RecorderController:
    """
    Own the Idle/Recording state of one recorder and everything it touches.

    Every transition and buffer mutation runs on the event loop the
    controller was opened on. User toggles, the auto-stop timer and
    lifecycle signals all funnel into :meth:`stop`, whose state check and
    transition happen without yielding, so only the first trigger exports.
    Callers on other threads go through :meth:`submit`.
    """

    def __init__(
        self,
        source: EventSource,
        exporter: CsvExporter,
        *,
        max_duration: float = 10.0,
        liveness_timeout: float | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        if max_duration <= 0:
            raise ValueError("max_duration must be greater than zero")
        if liveness_timeout is not None and liveness_timeout <= 0:
            raise ValueError("liveness_timeout must be greater than zero")

        self.kind: SampleKind = source.kind
        self._source = source
        self._exporter = exporter
        self._max_duration = max_duration
        self._liveness_timeout = liveness_timeout
        self._now = now or (lambda: datetime.now(UTC))

        self._state = SessionState.IDLE
        self._stopping = False
        self._session: Session | None = None
        self._message = READY_MESSAGE
        self._last_export: ExportResult | None = None
        self._revision = 0

        self._loop: asyncio.AbstractEventLoop | None = None
        self._subscriptions: list[Subscription[Any]] = []
        self._consumers: list[asyncio.Task[None]] = []
        self._timer: asyncio.TimerHandle | None = None
        self._liveness: asyncio.TimerHandle | None = None
        self._last_sample_at = 0.0
        self._tasks: set[asyncio.Task[Any]] = set()
        self._exports: set[asyncio.Task[None]] = set()
        self._subscribers: set[asyncio.Queue[RecorderStatus]] = set()

    async def __aenter__(self) -> "RecorderController":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.close()

    # -- read-only status surface -------------------------------------------

    @property
    def source(self) -> EventSource:
        return self._source

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def recording(self) -> bool:
        return self._state is SessionState.RECORDING

    @property
    def stopping(self) -> bool:
        return self._stopping

    @property
    def message(self) -> str:
        return self._message

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def recorded_count(self) -> int:
        return self._session.recorded_count if self._session else 0

    @property
    def display(self) -> list[Sample]:
        return self._session.buffer.display() if self._session else []

    @property
    def revision(self) -> int:
        return self._revision

    def status(self) -> RecorderStatus:
        """Return an immutable snapshot of what a UI should show."""

        session = self._session
        return RecorderStatus(
            revision=self._revision,
            kind=self.kind,
            message=self._message,
            recording=self.recording,
            recorded_count=self.recorded_count,
            display=tuple(self.display),
            session_id=session.id if session else None,
            started_at=session.started_at if session else None,
            last_export=self._last_export,
        )

    async def subscribe(self) -> AsyncIterator[RecorderStatus]:
        """Yield the current status, then a fresh snapshot after every change.

        Slow subscribers only ever see the latest snapshot.
        """

        queue: asyncio.Queue[RecorderStatus] = asyncio.Queue(maxsize=1)
        self._subscribers.add(queue)
        try:
            queue.put_nowait(self.status())
            while True:
                yield await queue.get()
        finally:
            self._subscribers.discard(queue)

    # -- lifecycle -----------------------------------------------------------

    async def open(self) -> None:
        """Subscribe to the source's sample and error streams."""

        if self._consumers:
            return
        self._loop = asyncio.get_running_loop()
        samples = self._source.samples()
        errors = self._source.errors()
        self._subscriptions = [samples, errors]
        self._consumers = [
            asyncio.create_task(
                self._consume(samples, self._on_sample),
                name=f"{self.kind.value}-sample-consumer",
            ),
            asyncio.create_task(
                self._consume(errors, self._on_error),
                name=f"{self.kind.value}-error-consumer",
            ),
        ]

    async def close(self) -> None:
        """Stop any active session, finish pending exports and unsubscribe."""

        await self.stop(StopReason.USER)
        await self.drain()

        for subscription in self._subscriptions:
            subscription.close()
        consumers, self._consumers = self._consumers, []
        for task in consumers:
            task.cancel()
        await asyncio.gather(*consumers, return_exceptions=True)
        self._subscriptions = []

    async def drain(self) -> None:
        """Wait for timer-triggered stops and in-flight exports to finish."""

        while self._tasks or self._exports:
            await asyncio.gather(*list(self._tasks), *list(self._exports))

    def submit(self, operation: Callable[[], Awaitable[T]]) -> concurrent.futures.Future[T]:
        """Run ``operation`` on the owning loop from any other thread."""

        if self._loop is None:
            raise RuntimeError("controller has not been opened on an event loop")
        return asyncio.run_coroutine_threadsafe(_invoke(operation), self._loop)

    # -- transitions -----------------------------------------------------------

    async def toggle(self) -> Session | None:
        """Start when idle, stop when recording, ignore while a stop runs."""

        if self._stopping:
            logger.debug("Ignoring %s toggle while a stop is in progress", self.kind.value)
            return None
        if self.recording:
            return await self.stop(StopReason.USER)
        try:
            return await self.start()
        except PreconditionError as exc:
            logger.info("Cannot start %s recording: %s", self.kind.value, exc)
            return None

    async def start(self) -> Session:
        """Begin a new session, discarding the previous one from memory."""

        await self.open()
        if self._stopping:
            raise PreconditionError("a stop is still in progress")
        if self.recording:
            self._set_message("Already recording")
            raise PreconditionError("already recording")
        if not self._source.capability_available():
            message = UNAVAILABLE_MESSAGES[self.kind]
            self._set_message(message)
            raise PreconditionError(message)

        session = Session(kind=self.kind, started_at=self._now())
        self._session = session
        self._state = SessionState.RECORDING
        self._message = RECORDING_MESSAGE
        self._arm_timers(session)
        self._broadcast()
        logger.info(
            "Started %s session %s (auto-stop after %.1fs)",
            self.kind.value,
            session.id,
            self._max_duration,
        )

        try:
            await self._source.start()
        except SourceError as exc:
            logger.warning("%s source failed to start: %s", self.kind.value, exc)
            if self._session is session and self.recording:
                self._state = SessionState.IDLE
                self._disarm_timers()
                self._set_message(f"Error: {exc}")
            raise PreconditionError(str(exc)) from exc
        return session

    async def stop(self, reason: StopReason = StopReason.USER) -> Session | None:
        """End the active session; a no-op when idle or already stopping.

        The state flips to idle and the sample sequence is frozen before the
        first ``await``, so racing triggers observe idle and return ``None``.
        """

        session = self._session
        if not self.recording or self._stopping or session is None:
            return None

        self._state = SessionState.IDLE
        self._stopping = True
        self._disarm_timers()
        session.ended_at = self._now()
        session.stop_reason = reason
        samples = session.buffer.release()
        logger.info(
            "Stopping %s session %s (%s) with %d samples",
            self.kind.value,
            session.id,
            reason.value,
            len(samples),
        )

        if samples:
            self._message = f"Saving {len(samples)} samples..."
            task = asyncio.create_task(
                self._export(session, samples),
                name=f"{self.kind.value}-export-{session.id}",
            )
            self._exports.add(task)
            task.add_done_callback(self._exports.discard)
        else:
            self._message = reason.message or NO_DATA_MESSAGE
        self._broadcast()

        try:
            await self._source.stop()
        except SourceError as exc:
            logger.warning("%s source failed to stop cleanly: %s", self.kind.value, exc)
        finally:
            self._stopping = False
        return session

    async def on_background(self) -> Session | None:
        """Handle the application moving to the background."""

        if not self.recording:
            return None
        logger.info("Application backgrounded; stopping %s recording", self.kind.value)
        return await self.stop(StopReason.BACKGROUNDED)

    # -- stream callbacks ------------------------------------------------------

    def _on_sample(self, sample: Sample) -> None:
        session = self._session
        if not self.recording or session is None:
            logger.debug("Dropping %s sample received while idle", self.kind.value)
            return
        if sample.kind is not self.kind:
            logger.warning(
                "Ignoring %s sample on %s recorder", sample.kind.value, self.kind.value
            )
            return

        count = session.buffer.append(sample)
        if self._loop is not None:
            self._last_sample_at = self._loop.time()
        if self.kind is SampleKind.LOCATION or count <= DETAILED_SAMPLE_LOG_LIMIT:
            logger.debug("%s sample #%d at %s: %s", self.kind.value, count, sample.timestamp, sample.describe())
        self._broadcast()

    def _on_error(self, error: BaseException) -> None:
        logger.warning("%s source reported an error: %s", self.kind.value, error)
        self._set_message(f"Error: {error}")

    async def _consume(
        self,
        subscription: Subscription[Any],
        handler: Callable[[Any], None],
    ) -> None:
        async for item in subscription:
            try:
                handler(item)
            except Exception:
                logger.exception("Failed to handle %s stream item %r", self.kind.value, item)

    # -- export ------------------------------------------------------------------

    async def _export(self, session: Session, samples: tuple[Sample, ...]) -> None:
        reason = session.stop_reason or StopReason.USER
        try:
            path = await asyncio.to_thread(self._exporter.export, samples)
        except WriteError as exc:
            logger.error("Export of %s session %s failed: %s", self.kind.value, session.id, exc)
            self._finish_export(session, ExportResult(error=str(exc)), f"Save failed: {exc}")
            return
        except Exception as exc:
            logger.exception("Export of %s session %s crashed", self.kind.value, session.id)
            self._finish_export(session, ExportResult(error=str(exc)), f"Save failed: {exc}")
            return

        count = len(samples)
        if reason.message:
            message = f"{reason.message} ({count} samples saved)"
        else:
            message = f"Saved ({count} samples)"
        self._finish_export(session, ExportResult(path=path), message)

    def _finish_export(self, session: Session, result: ExportResult, message: str) -> None:
        session.export_result = result
        self._last_export = result
        self._set_message(message)

    # -- timers --------------------------------------------------------------------

    def _arm_timers(self, session: Session) -> None:
        loop = asyncio.get_running_loop()
        self._disarm_timers()
        self._timer = loop.call_later(self._max_duration, self._on_timer, session.id)
        if self._liveness_timeout is not None:
            self._last_sample_at = loop.time()
            self._liveness = loop.call_later(
                self._liveness_timeout, self._check_liveness, session.id
            )

    def _disarm_timers(self) -> None:
        for handle in (self._timer, self._liveness):
            if handle is not None:
                handle.cancel()
        self._timer = None
        self._liveness = None

    def _is_current(self, session_id: str) -> bool:
        return self.recording and self._session is not None and self._session.id == session_id

    def _on_timer(self, session_id: str) -> None:
        self._timer = None
        if not self._is_current(session_id):
            return
        logger.info("%s session %s reached its time limit", self.kind.value, session_id)
        self._spawn(self._stop_if_current(session_id, StopReason.TIMEOUT))

    def _check_liveness(self, session_id: str) -> None:
        self._liveness = None
        timeout = self._liveness_timeout
        if timeout is None or self._loop is None or not self._is_current(session_id):
            return
        silent_for = self._loop.time() - self._last_sample_at
        if silent_for >= timeout:
            logger.warning(
                "%s source silent for %.1fs; stopping session %s",
                self.kind.value,
                silent_for,
                session_id,
            )
            self._spawn(self._stop_if_current(session_id, StopReason.SOURCE_LOST))
            return
        self._liveness = self._loop.call_later(
            timeout - silent_for, self._check_liveness, session_id
        )

    async def _stop_if_current(self, session_id: str, reason: StopReason) -> Session | None:
        # A user stop and a fresh start may run before this task does.
        if not self._is_current(session_id):
            return None
        return await self.stop(reason)

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # -- status fan-out --------------------------------------------------------

    def _set_message(self, message: str) -> None:
        self._message = message
        self._broadcast()

    def _broadcast(self) -> None:
        self._revision += 1
        if not self._subscribers:
            return
        snapshot = self.status()
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(snapshot)
            except asyncio.QueueFull:
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                queue.put_nowait(snapshot)


async def _invoke(operation: Callable[[], Awaitable[T]]) -> T:
    return await operation()


__all__ = [
    "NO_DATA_MESSAGE",
    "READY_MESSAGE",
    "RECORDING_MESSAGE",
    "RecorderController",
    "UNAVAILABLE_MESSAGES",
]
