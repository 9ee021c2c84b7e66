"""Shared pytest fixtures and sample builders."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backend import create_app
from sensorlog import CsvExporter, LocationSample, MotionSample, RecorderController, SampleKind
from sensorlog.sources import PushEventSource


def make_location(second: int, *, latitude: float = 35.0, longitude: float = 139.0) -> LocationSample:
    """Return a deterministic location fix captured at ``10:30:<second>`` UTC."""

    return LocationSample(
        timestamp=datetime(2025, 11, 3, 10, 30, second, tzinfo=UTC),
        latitude=latitude,
        longitude=longitude,
        altitude=12.5,
        horizontal_accuracy=5.0,
        vertical_accuracy=3.0,
        speed=1.25,
        course=90.0,
    )


def make_motion(millisecond: int) -> MotionSample:
    return MotionSample(
        timestamp=datetime(2025, 11, 3, 10, 30, 45, millisecond * 1000, tzinfo=UTC),
        roll=0.1,
        pitch=-0.2,
        yaw=1.5,
        rotation_rate=(0.01, 0.02, 0.03),
        user_acceleration=(0.0, 0.5, -0.25),
        gravity=(0.0, 0.0, -1.0),
        magnetic_field=(30.5, -5.0, -40.0),
        magnetic_field_accuracy=2,
    )


def make_controller(
    output_root: Path,
    kind: SampleKind = SampleKind.LOCATION,
    *,
    source: PushEventSource | None = None,
    **kwargs,
) -> tuple[RecorderController, PushEventSource]:
    """Build a controller fed by a push source, writing under ``output_root``."""

    source = source or PushEventSource(kind)
    controller = RecorderController(source, CsvExporter(output_root), **kwargs)
    return controller, source


@pytest.fixture()
def output_root(tmp_path: Path) -> Path:
    return tmp_path / "recordings"


@pytest.fixture()
def client(output_root: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Provide a TestClient whose recorders accept pushed samples."""

    monkeypatch.setenv("SENSORLOG_OUTPUT_ROOT", str(output_root))
    monkeypatch.setenv("SENSORLOG_SOURCE", "push")
    monkeypatch.setenv("SENSORLOG_MAX_DURATION_SEC", "30")
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def simulated_client(output_root: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Provide a TestClient backed by the synthetic sensor sources."""

    monkeypatch.setenv("SENSORLOG_OUTPUT_ROOT", str(output_root))
    monkeypatch.setenv("SENSORLOG_SOURCE", "simulated")
    monkeypatch.setenv("SENSORLOG_LOCATION_INTERVAL_SEC", "0.01")
    monkeypatch.setenv("SENSORLOG_MOTION_INTERVAL_SEC", "0.01")
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
