"""Append-only sample storage with a bounded live-display window."""

from __future__ import annotations

from collections import deque
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")

DISPLAY_WINDOW_SIZE = 10


class SampleBuffer(Generic[T]):
    """
    Hold every accepted sample of a session plus the most recent few.

    The full sequence is what gets exported; the display window only feeds
    live feedback and evicts oldest-first once it exceeds its capacity.
    """

    def __init__(self, display_size: int = DISPLAY_WINDOW_SIZE) -> None:
        if display_size <= 0:
            raise ValueError("display_size must be positive")
        self._samples: list[T] = []
        self._display: deque[T] = deque(maxlen=display_size)
        self._count = 0
        self._released = False

    def append(self, sample: T) -> int:
        """Store ``sample`` and return the new recorded count."""

        if self._released:
            raise RuntimeError("buffer has already been handed off for export")
        self._samples.append(sample)
        self._display.append(sample)
        self._count += 1
        return self._count

    def release(self) -> tuple[T, ...]:
        """Hand the full sequence over and drop the buffer's reference to it.

        The recorded count and display window stay readable afterwards.
        """

        samples = tuple(self._samples)
        self._samples = []
        self._released = True
        return samples

    @property
    def count(self) -> int:
        return self._count

    @property
    def released(self) -> bool:
        return self._released

    def display(self) -> list[T]:
        return list(self._display)

    def samples(self) -> tuple[T, ...]:
        return tuple(self._samples)

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[T]:
        return iter(tuple(self._samples))
