"""Tests for environment driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from sensorlog import RecorderSettings, resolve_output_root


def test_resolve_output_root_prefers_explicit_over_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("SENSORLOG_OUTPUT_ROOT", str(tmp_path / "env"))

    assert resolve_output_root(tmp_path / "explicit") == tmp_path / "explicit"
    assert resolve_output_root() == tmp_path / "env"


def test_resolve_output_root_defaults_to_recordings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("SENSORLOG_OUTPUT_ROOT", raising=False)
    monkeypatch.chdir(tmp_path)

    root = resolve_output_root()

    assert root.is_absolute()
    assert root == tmp_path.resolve() / "recordings"


def test_settings_defaults(tmp_path: Path) -> None:
    settings = RecorderSettings.from_env({}, output_root=tmp_path)

    assert settings.output_root == tmp_path
    assert settings.max_duration == 10.0
    assert settings.liveness_timeout is None
    assert settings.source_mode == "simulated"
    assert settings.motion_interval == 0.1
    assert settings.location_interval == 1.0


def test_settings_read_environment(tmp_path: Path) -> None:
    settings = RecorderSettings.from_env(
        {
            "SENSORLOG_OUTPUT_ROOT": str(tmp_path),
            "SENSORLOG_MAX_DURATION_SEC": "2.5",
            "SENSORLOG_LIVENESS_TIMEOUT_SEC": "1",
            "SENSORLOG_SOURCE": " Push ",
            "SENSORLOG_MOTION_INTERVAL_SEC": "0.02",
        }
    )

    assert settings.output_root == tmp_path
    assert settings.max_duration == 2.5
    assert settings.liveness_timeout == 1.0
    assert settings.source_mode == "push"
    assert settings.motion_interval == 0.02


@pytest.mark.parametrize(
    "environ",
    [
        {"SENSORLOG_MAX_DURATION_SEC": "0"},
        {"SENSORLOG_MAX_DURATION_SEC": "soon"},
        {"SENSORLOG_LIVENESS_TIMEOUT_SEC": "-1"},
        {"SENSORLOG_SOURCE": "bluetooth"},
    ],
)
def test_settings_reject_invalid_values(tmp_path: Path, environ: dict[str, str]) -> None:
    with pytest.raises(ValueError):
        RecorderSettings.from_env(environ, output_root=tmp_path)
