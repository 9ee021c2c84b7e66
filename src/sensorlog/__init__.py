"""Bounded-duration sensor recording sessions with CSV export."""

from .config import RecorderSettings, resolve_output_root
from .export import CsvExporter
from .runtime import (
    PreconditionError,
    RecorderController,
    RecorderStatus,
    SourceError,
    StopReason,
    WriteError,
)
from .samples import LocationSample, MotionSample, Sample, SampleKind

__all__ = [
    "CsvExporter",
    "LocationSample",
    "MotionSample",
    "PreconditionError",
    "RecorderController",
    "RecorderSettings",
    "RecorderStatus",
    "Sample",
    "SampleKind",
    "SourceError",
    "StopReason",
    "WriteError",
    "resolve_output_root",
]
