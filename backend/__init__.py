"""Backend package for the sensorlog recording service."""
from __future__ import annotations

import os
from typing import Any

import uvicorn

from .app import create_app
from .hub import RecorderHub, RecorderNotFoundError


def _server_options() -> dict[str, Any]:
    """Read listen address, reload and log level from ``SENSORLOG_*`` variables."""

    return {
        "host": os.environ.get("SENSORLOG_HOST", "0.0.0.0"),
        "port": int(os.environ.get("SENSORLOG_PORT", "8000")),
        "reload": os.environ.get("SENSORLOG_RELOAD", "false").lower() == "true",
        "log_level": os.environ.get("SENSORLOG_LOG_LEVEL", "info").lower(),
    }


def main(**overrides: Any) -> None:
    """Serve the recorder API; ``overrides`` win over the environment."""

    options = _server_options()
    options.update(overrides)
    # The factory builds its recorder hub from the same environment.
    uvicorn.run("backend.app:create_app", factory=True, **options)


__all__ = ["create_app", "main", "RecorderHub", "RecorderNotFoundError"]
