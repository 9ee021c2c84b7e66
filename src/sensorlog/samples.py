"""Immutable sensor readings and their CSV column schemas."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import ClassVar, Union


class SampleKind(str, Enum):
    """Sensor families a recorder can capture."""

    LOCATION = "location"
    MOTION = "motion"


def format_decimal(value: float) -> str:
    """Render a float with the shortest round-tripping, locale-free form."""

    return repr(float(value))


def format_timestamp(value: datetime, *, milliseconds: bool = False) -> str:
    """Render ``value`` as an ISO-8601 UTC instant with a ``Z`` designator."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    if milliseconds:
        return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def describe_accuracy(accuracy: float) -> str:
    """Grade a horizontal accuracy radius in metres."""

    if accuracy < 0:
        return "invalid"
    if accuracy < 10:
        return "excellent (<10 m)"
    if accuracy < 50:
        return "good (<50 m)"
    if accuracy < 100:
        return "fair (<100 m)"
    return "poor (>=100 m)"


@dataclass(frozen=True, slots=True)
class LocationSample:
    """A single location fix.

    Negative accuracy, speed or course values follow the platform convention
    of meaning "not available" and are exported unchanged.
    """

    kind: ClassVar[SampleKind] = SampleKind.LOCATION
    columns: ClassVar[tuple[str, ...]] = (
        "timestamp",
        "latitude",
        "longitude",
        "altitude",
        "horizontalAccuracy",
        "verticalAccuracy",
        "speed",
        "course",
    )

    timestamp: datetime
    latitude: float
    longitude: float
    altitude: float = 0.0
    horizontal_accuracy: float = 0.0
    vertical_accuracy: float = -1.0
    speed: float = -1.0
    course: float = -1.0

    @property
    def speed_kmh(self) -> float:
        return self.speed * 3.6

    def to_row(self) -> list[str]:
        """Return the CSV fields in :attr:`columns` order."""

        return [
            format_timestamp(self.timestamp),
            format_decimal(self.latitude),
            format_decimal(self.longitude),
            format_decimal(self.altitude),
            format_decimal(self.horizontal_accuracy),
            format_decimal(self.vertical_accuracy),
            format_decimal(self.speed),
            format_decimal(self.course),
        ]

    def describe(self) -> str:
        return (
            f"lat={self.latitude} lon={self.longitude} alt={self.altitude} m "
            f"speed={self.speed} m/s ({self.speed_kmh:.1f} km/h) course={self.course} "
            f"accuracy={self.horizontal_accuracy} m [{describe_accuracy(self.horizontal_accuracy)}]"
        )


@dataclass(frozen=True, slots=True)
class MotionSample:
    """A device-motion reading.

    Attitude is in radians, rotation rate in rad/s, accelerations in G and
    the magnetic field in microtesla.
    """

    kind: ClassVar[SampleKind] = SampleKind.MOTION
    columns: ClassVar[tuple[str, ...]] = (
        "timestamp",
        "roll",
        "pitch",
        "yaw",
        "rotationRate_x",
        "rotationRate_y",
        "rotationRate_z",
        "userAcceleration_x",
        "userAcceleration_y",
        "userAcceleration_z",
        "gravity_x",
        "gravity_y",
        "gravity_z",
        "magneticField_x",
        "magneticField_y",
        "magneticField_z",
        "magneticField_accuracy",
    )

    timestamp: datetime
    roll: float
    pitch: float
    yaw: float
    rotation_rate: tuple[float, float, float] = (0.0, 0.0, 0.0)
    user_acceleration: tuple[float, float, float] = (0.0, 0.0, 0.0)
    gravity: tuple[float, float, float] = (0.0, 0.0, -1.0)
    magnetic_field: tuple[float, float, float] = (0.0, 0.0, 0.0)
    magnetic_field_accuracy: int = -1

    @property
    def attitude_degrees(self) -> tuple[float, float, float]:
        return (
            math.degrees(self.roll),
            math.degrees(self.pitch),
            math.degrees(self.yaw),
        )

    @property
    def user_acceleration_magnitude(self) -> float:
        return math.sqrt(sum(component * component for component in self.user_acceleration))

    def to_row(self) -> list[str]:
        """Return the CSV fields in :attr:`columns` order."""

        row = [format_timestamp(self.timestamp, milliseconds=True)]
        row.extend(format_decimal(value) for value in (self.roll, self.pitch, self.yaw))
        for vector in (
            self.rotation_rate,
            self.user_acceleration,
            self.gravity,
            self.magnetic_field,
        ):
            row.extend(format_decimal(component) for component in vector)
        row.append(str(int(self.magnetic_field_accuracy)))
        return row

    def describe(self) -> str:
        roll, pitch, yaw = self.attitude_degrees
        return (
            f"roll={roll:.1f}deg pitch={pitch:.1f}deg yaw={yaw:.1f}deg "
            f"rotation={self.rotation_rate} gravity={self.gravity} "
            f"|userAccel|={self.user_acceleration_magnitude:.3f} G"
        )


Sample = Union[LocationSample, MotionSample]

SAMPLE_TYPES: dict[SampleKind, type] = {
    SampleKind.LOCATION: LocationSample,
    SampleKind.MOTION: MotionSample,
}


__all__ = [
    "LocationSample",
    "MotionSample",
    "SAMPLE_TYPES",
    "Sample",
    "SampleKind",
    "describe_accuracy",
    "format_decimal",
    "format_timestamp",
]
