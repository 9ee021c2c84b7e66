"""Custom exceptions used by the recording runtime."""

from __future__ import annotations


class PreconditionError(RuntimeError):
    """Raised when a session cannot start in the current recorder state."""


class SourceError(RuntimeError):
    """Raised or reported when an event source faults."""


class WriteError(RuntimeError):
    """Raised when a finished session cannot be written to disk."""
