from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

import pytest

from sensorlog import (
    CsvExporter,
    PreconditionError,
    RecorderController,
    SampleKind,
    SourceError,
    StopReason,
)
from sensorlog.runtime import SessionState
from sensorlog.sources import PushEventSource
from tests.conftest import make_controller, make_location, make_motion

LOCATION_HEADER = (
    "timestamp,latitude,longitude,altitude,horizontalAccuracy,verticalAccuracy,speed,course"
)


class _SlowStopSource(PushEventSource):
    """Push source whose stop() blocks until released."""

    def __init__(self) -> None:
        super().__init__(SampleKind.LOCATION)
        self.release = asyncio.Event()
        self.stop_calls = 0

    async def stop(self) -> None:
        self.stop_calls += 1
        await self.release.wait()
        await super().stop()


def _csv_files(root: Path) -> list[Path]:
    return sorted(root.glob("*.csv")) if root.exists() else []


@pytest.mark.asyncio
async def test_stop_exports_every_sample_in_arrival_order(output_root: Path) -> None:
    controller, source = make_controller(output_root)
    async with controller:
        await controller.start()
        for second in (1, 2, 3):
            source.publish_sample(make_location(second))
        await source.drain()

        session = await controller.stop(StopReason.USER)
        await controller.drain()

    files = _csv_files(output_root)
    assert len(files) == 1
    assert files[0].name.startswith("location_")
    lines = files[0].read_text(encoding="utf-8").splitlines()
    assert lines[0] == LOCATION_HEADER
    assert lines[1] == "2025-11-03T10:30:01Z,35.0,139.0,12.5,5.0,3.0,1.25,90.0"
    assert [line.split(",")[0] for line in lines[1:]] == [
        "2025-11-03T10:30:01Z",
        "2025-11-03T10:30:02Z",
        "2025-11-03T10:30:03Z",
    ]
    assert controller.recorded_count == 3
    assert "3" in controller.message
    assert session is not None
    assert session.export_result is not None and session.export_result.path == files[0]


@pytest.mark.asyncio
async def test_samples_outside_the_session_are_not_counted(output_root: Path) -> None:
    controller, source = make_controller(output_root)
    async with controller:
        source.publish_sample(make_location(0))
        await source.drain()

        await controller.start()
        source.publish_sample(make_location(1))
        source.publish_sample(make_location(2))
        await source.drain()

        await controller.stop()
        source.publish_sample(make_location(3))
        await source.drain()
        await controller.drain()

    assert controller.recorded_count == 2
    lines = _csv_files(output_root)[0].read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3


@pytest.mark.asyncio
async def test_display_window_is_the_latest_ten_samples(output_root: Path) -> None:
    controller, source = make_controller(output_root)
    published = [make_location(second % 60, latitude=35.0 + second) for second in range(25)]
    async with controller:
        await controller.start()
        for index, sample in enumerate(published, start=1):
            source.publish_sample(sample)
            await source.drain()
            window = controller.display
            assert len(window) == min(10, index)
            assert window == published[:index][-10:]

        status = controller.status()
        assert status.recorded_count == 25
        assert list(status.display) == published[-10:]
        await controller.stop()


@pytest.mark.asyncio
async def test_racing_stops_export_exactly_once(output_root: Path) -> None:
    controller, source = make_controller(output_root)
    async with controller:
        await controller.start()
        source.publish_sample(make_location(1))
        await source.drain()

        first, second = await asyncio.gather(
            controller.stop(StopReason.TIMEOUT),
            controller.stop(StopReason.USER),
        )
        await controller.drain()

    assert first is not None and first.stop_reason is StopReason.TIMEOUT
    assert second is None
    assert len(_csv_files(output_root)) == 1


@pytest.mark.asyncio
async def test_toggle_during_stop_is_ignored(output_root: Path) -> None:
    source = _SlowStopSource()
    controller, _ = make_controller(output_root, source=source)
    async with controller:
        await controller.start()
        source.publish_sample(make_location(1))
        await source.drain()

        stop_task = asyncio.create_task(controller.stop())
        await asyncio.sleep(0)
        assert controller.stopping
        assert controller.state is SessionState.IDLE

        assert await controller.toggle() is None
        with pytest.raises(PreconditionError):
            await controller.start()
        assert not controller.recording

        source.release.set()
        session = await stop_task
        await controller.drain()

    assert session is not None
    assert source.stop_calls == 1
    assert len(_csv_files(output_root)) == 1


@pytest.mark.asyncio
async def test_start_while_recording_keeps_the_buffer(output_root: Path) -> None:
    controller, source = make_controller(output_root)
    async with controller:
        session = await controller.start()
        source.publish_sample(make_location(1))
        source.publish_sample(make_location(2))
        await source.drain()

        with pytest.raises(PreconditionError):
            await controller.start()

        assert controller.recording
        assert controller.session is session
        assert controller.recorded_count == 2
        assert len(controller.display) == 2
        await controller.stop()


@pytest.mark.asyncio
async def test_empty_session_reports_no_data_without_writing(output_root: Path) -> None:
    controller, _ = make_controller(output_root)
    async with controller:
        await controller.start()
        session = await controller.stop()
        await controller.drain()

    assert session is not None and session.export_result is None
    assert controller.message == "No data"
    assert _csv_files(output_root) == []


@pytest.mark.asyncio
async def test_background_signal_while_idle_changes_nothing(output_root: Path) -> None:
    controller, _ = make_controller(output_root)
    async with controller:
        before = controller.status()
        assert await controller.on_background() is None
        after = controller.status()

    assert after == before
    assert controller.message == "Ready"
    assert _csv_files(output_root) == []


@pytest.mark.asyncio
async def test_background_signal_stops_an_active_session(output_root: Path) -> None:
    controller, source = make_controller(output_root)
    async with controller:
        await controller.start()
        source.publish_sample(make_location(1))
        await source.drain()

        session = await controller.on_background()
        await controller.drain()

    assert session is not None and session.stop_reason is StopReason.BACKGROUNDED
    assert controller.message.endswith("(1 samples saved)")
    assert "background" in controller.message


@pytest.mark.asyncio
async def test_auto_stop_timer_ends_the_session(output_root: Path) -> None:
    controller, source = make_controller(output_root, max_duration=0.05)
    async with controller:
        session = await controller.start()
        source.publish_sample(make_location(1))
        source.publish_sample(make_location(2))
        await source.drain()

        await asyncio.sleep(0.15)
        await controller.drain()

        assert not controller.recording
        assert session.stop_reason is StopReason.TIMEOUT
        assert controller.message.startswith("Stopped automatically after time limit")
        assert await controller.stop() is None

    assert len(_csv_files(output_root)) == 1


@pytest.mark.asyncio
async def test_user_stop_disarms_the_timer(output_root: Path) -> None:
    controller, _ = make_controller(output_root, max_duration=0.05)
    async with controller:
        session = await controller.start()
        await controller.stop()
        await asyncio.sleep(0.15)
        await controller.drain()

    assert session.stop_reason is StopReason.USER
    assert controller.message == "No data"


@pytest.mark.asyncio
async def test_silent_source_triggers_liveness_stop(output_root: Path) -> None:
    controller, source = make_controller(output_root, max_duration=5, liveness_timeout=0.05)
    async with controller:
        session = await controller.start()
        source.publish_sample(make_location(1))
        await source.drain()

        await asyncio.sleep(0.2)
        await controller.drain()

    assert session.stop_reason is StopReason.SOURCE_LOST
    assert len(_csv_files(output_root)) == 1


@pytest.mark.asyncio
async def test_source_errors_update_status_only(output_root: Path) -> None:
    controller, source = make_controller(output_root)
    async with controller:
        source.publish_error(SourceError("sensor warming up"))
        await source.drain()
        assert controller.message == "Error: sensor warming up"

        await controller.start()
        source.publish_sample(make_location(1))
        source.publish_error(SourceError("signal lost"))
        await source.drain()

        assert controller.recording
        assert controller.recorded_count == 1
        assert controller.message == "Error: signal lost"
        await controller.stop()


@pytest.mark.asyncio
async def test_unavailable_capability_is_reported_not_raised_by_toggle(output_root: Path) -> None:
    source = PushEventSource(SampleKind.MOTION, available=False)
    controller, _ = make_controller(output_root, source=source)
    async with controller:
        assert await controller.toggle() is None
        assert controller.state is SessionState.IDLE
        assert controller.message == "Device motion not available"

        with pytest.raises(PreconditionError):
            await controller.start()

        source.available = True
        assert await controller.toggle() is not None
        assert controller.recording
        await controller.toggle()


@pytest.mark.asyncio
async def test_write_failure_is_reported_and_recorder_stays_usable(tmp_path: Path) -> None:
    blocked = tmp_path / "blocked"
    blocked.write_text("not a directory", encoding="utf-8")
    controller, source = make_controller(blocked)
    async with controller:
        first = await controller.start()
        source.publish_sample(make_location(1))
        await source.drain()
        await controller.stop()
        await controller.drain()

        assert controller.message.startswith("Save failed:")
        assert first.export_result is not None and not first.export_result.ok
        assert first.buffer.samples() == ()

        second = await controller.start()
        assert second.id != first.id
        assert controller.recorded_count == 0
        await controller.stop()


@pytest.mark.asyncio
async def test_new_session_discards_previous_state(output_root: Path) -> None:
    controller, source = make_controller(output_root, kind=SampleKind.MOTION)
    async with controller:
        await controller.start()
        source.publish_sample(make_motion(1))
        await source.drain()
        await controller.stop()
        await controller.drain()
        assert controller.recorded_count == 1

        await controller.start()
        assert controller.recorded_count == 0
        assert controller.display == []
        assert controller.message == "Recording..."
        await controller.stop()

    assert controller.message == "No data"
    assert len(_csv_files(output_root)) == 1


@pytest.mark.asyncio
async def test_submit_marshals_calls_from_other_threads(output_root: Path) -> None:
    controller, source = make_controller(output_root)
    async with controller:
        future = await asyncio.to_thread(controller.submit, controller.start)
        session = await asyncio.wrap_future(future)
        assert controller.recording and controller.session is session

        await asyncio.to_thread(source.publish_sample, make_location(1))
        await source.drain()
        assert controller.recorded_count == 1

        future = await asyncio.to_thread(controller.submit, controller.on_background)
        stopped = await asyncio.wrap_future(future)
        await controller.drain()

    assert stopped is session
    assert len(_csv_files(output_root)) == 1


@pytest.mark.asyncio
async def test_subscribers_receive_status_updates(output_root: Path) -> None:
    controller, source = make_controller(output_root)
    async with controller:
        updates = controller.subscribe()
        initial = await updates.__anext__()
        assert initial.message == "Ready" and not initial.recording

        await controller.start()
        started = await updates.__anext__()
        assert started.recording and started.message == "Recording..."

        source.publish_sample(make_location(1))
        await source.drain()
        latest = await updates.__anext__()
        assert latest.recorded_count == 1
        assert latest.revision > started.revision

        await updates.aclose()
        await controller.stop()


@pytest.mark.asyncio
async def test_stale_timer_does_not_stop_the_next_session(output_root: Path) -> None:
    controller, _ = make_controller(output_root)
    async with controller:
        first = await controller.start()

        # Expiry of the first session is queued, then the user stops and restarts.
        controller._on_timer(first.id)
        await controller.stop(StopReason.USER)
        second = await controller.start()
        await asyncio.sleep(0)
        await controller.drain()

        assert second is not first
        assert controller.recording
        assert controller.session is second
        assert second.stop_reason is None
        assert first.stop_reason is StopReason.USER
        await controller.stop()


@pytest.mark.asyncio
async def test_stale_liveness_check_does_not_stop_the_next_session(output_root: Path) -> None:
    controller, _ = make_controller(output_root, liveness_timeout=60)
    async with controller:
        first = await controller.start()
        stale = controller._stop_if_current(first.id, StopReason.SOURCE_LOST)

        await controller.stop(StopReason.USER)
        second = await controller.start()

        assert await stale is None
        assert controller.recording
        assert second.stop_reason is None
        await controller.stop()


@pytest.mark.asyncio
async def test_back_to_back_sessions_each_get_their_own_file(output_root: Path) -> None:
    source = PushEventSource(SampleKind.LOCATION)
    exporter = CsvExporter(output_root, now=lambda: datetime(2025, 11, 3, 10, 30, 45))
    controller = RecorderController(source, exporter)
    async with controller:
        for second in range(12):
            await controller.start()
            source.publish_sample(make_location(second))
            await source.drain()
            await controller.stop()
        await controller.drain()

    files = _csv_files(output_root)
    assert len(files) == 12
    assert {path.read_text(encoding="utf-8").splitlines()[1][:20] for path in files} == {
        f"2025-11-03T10:30:{second:02d}Z" for second in range(12)
    }
    assert not list(output_root.glob(".*.tmp"))


class _BrokenExporter(CsvExporter):
    def export(self, samples):
        raise RuntimeError("disk controller reset")


@pytest.mark.asyncio
async def test_unexpected_export_failure_is_reported_not_raised(output_root: Path) -> None:
    source = PushEventSource(SampleKind.LOCATION)
    controller = RecorderController(source, _BrokenExporter(output_root))
    async with controller:
        session = await controller.start()
        source.publish_sample(make_location(1))
        await source.drain()
        await controller.stop()
        await controller.drain()

        assert controller.message == "Save failed: disk controller reset"
        assert session.export_result is not None and not session.export_result.ok

        await controller.start()
        assert controller.recording
