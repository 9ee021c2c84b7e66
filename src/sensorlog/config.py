"""Environment-driven settings for recorders and the service."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

DEFAULT_MAX_DURATION_SEC = 10.0
DEFAULT_MOTION_INTERVAL_SEC = 0.1
DEFAULT_LOCATION_INTERVAL_SEC = 1.0
SOURCE_MODES = ("simulated", "push")


def resolve_output_root(explicit: Path | None = None) -> Path:
    """Return the absolute CSV output directory honoring environment overrides."""

    env_root = os.environ.get("SENSORLOG_OUTPUT_ROOT")
    if explicit is not None:
        root_path = Path(explicit)
    elif env_root:
        root_path = Path(env_root).expanduser()
    else:
        root_path = Path("recordings")
    return root_path if root_path.is_absolute() else root_path.resolve()


def _positive_float(raw: str | None, default: float | None, name: str) -> float | None:
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be greater than zero")
    return value


@dataclass(slots=True)
class RecorderSettings:
    """Tunables shared by every recorder in a process."""

    output_root: Path
    max_duration: float = DEFAULT_MAX_DURATION_SEC
    liveness_timeout: float | None = None
    source_mode: str = "simulated"
    motion_interval: float = DEFAULT_MOTION_INTERVAL_SEC
    location_interval: float = DEFAULT_LOCATION_INTERVAL_SEC

    def __post_init__(self) -> None:
        if self.max_duration <= 0:
            raise ValueError("max_duration must be greater than zero")
        if self.liveness_timeout is not None and self.liveness_timeout <= 0:
            raise ValueError("liveness_timeout must be greater than zero")
        if self.source_mode not in SOURCE_MODES:
            raise ValueError(f"source_mode must be one of {', '.join(SOURCE_MODES)}")
        if self.motion_interval <= 0 or self.location_interval <= 0:
            raise ValueError("source intervals must be greater than zero")

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        output_root: Path | None = None,
    ) -> "RecorderSettings":
        env = os.environ if environ is None else environ
        if output_root is None and env.get("SENSORLOG_OUTPUT_ROOT"):
            output_root = Path(env["SENSORLOG_OUTPUT_ROOT"]).expanduser()
        return cls(
            output_root=resolve_output_root(output_root),
            max_duration=_positive_float(
                env.get("SENSORLOG_MAX_DURATION_SEC"),
                DEFAULT_MAX_DURATION_SEC,
                "SENSORLOG_MAX_DURATION_SEC",
            ),
            liveness_timeout=_positive_float(
                env.get("SENSORLOG_LIVENESS_TIMEOUT_SEC"),
                None,
                "SENSORLOG_LIVENESS_TIMEOUT_SEC",
            ),
            source_mode=env.get("SENSORLOG_SOURCE", "simulated").strip().lower(),
            motion_interval=_positive_float(
                env.get("SENSORLOG_MOTION_INTERVAL_SEC"),
                DEFAULT_MOTION_INTERVAL_SEC,
                "SENSORLOG_MOTION_INTERVAL_SEC",
            ),
            location_interval=_positive_float(
                env.get("SENSORLOG_LOCATION_INTERVAL_SEC"),
                DEFAULT_LOCATION_INTERVAL_SEC,
                "SENSORLOG_LOCATION_INTERVAL_SEC",
            ),
        )


__all__ = ["RecorderSettings", "resolve_output_root"]
