"""Session state, stop reasons and the read-only status snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from uuid import uuid4

from ..samples import Sample, SampleKind
from .buffer import SampleBuffer


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


class StopReason(str, Enum):
    """Why a recording session ended."""

    USER = "user"
    TIMEOUT = "timeout"
    BACKGROUNDED = "backgrounded"
    SOURCE_LOST = "source_lost"

    @property
    def message(self) -> str | None:
        """Status text announcing an automatic stop, ``None`` for user stops."""

        return _STOP_MESSAGES.get(self)


_STOP_MESSAGES = {
    StopReason.TIMEOUT: "Stopped automatically after time limit",
    StopReason.BACKGROUNDED: "Stopped automatically when app moved to background",
    StopReason.SOURCE_LOST: "Stopped automatically after sensor went silent",
}


@dataclass(frozen=True, slots=True)
class ExportResult:
    """Outcome of writing one session to disk."""

    path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.path is not None


@dataclass(slots=True)
class Session:
    """One recording run and everything accepted while it was active."""

    kind: SampleKind
    started_at: datetime
    id: str = field(default_factory=lambda: uuid4().hex)
    buffer: SampleBuffer[Sample] = field(default_factory=SampleBuffer)
    ended_at: datetime | None = None
    stop_reason: StopReason | None = None
    export_result: ExportResult | None = None

    @property
    def recorded_count(self) -> int:
        return self.buffer.count


@dataclass(frozen=True, slots=True)
class RecorderStatus:
    """Point-in-time view of a recorder for UI consumers."""

    revision: int
    kind: SampleKind
    message: str
    recording: bool
    recorded_count: int
    display: tuple[Sample, ...]
    session_id: str | None = None
    started_at: datetime | None = None
    last_export: ExportResult | None = None


__all__ = [
    "ExportResult",
    "RecorderStatus",
    "Session",
    "SessionState",
    "StopReason",
]
