"""Runtime orchestration primitives for sensor recording sessions."""

from .buffer import DISPLAY_WINDOW_SIZE, SampleBuffer
from .controller import RecorderController
from .exceptions import PreconditionError, SourceError, WriteError
from .session import ExportResult, RecorderStatus, Session, SessionState, StopReason

__all__ = [
    "DISPLAY_WINDOW_SIZE",
    "ExportResult",
    "PreconditionError",
    "RecorderController",
    "RecorderStatus",
    "SampleBuffer",
    "Session",
    "SessionState",
    "SourceError",
    "StopReason",
    "WriteError",
]
