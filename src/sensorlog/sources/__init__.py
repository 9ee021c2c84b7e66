"""Event sources feeding recorder controllers."""

from .base import Channel, EventSource, PushEventSource, Subscription
from .simulated import SimulatedLocationSource, SimulatedMotionSource

__all__ = [
    "Channel",
    "EventSource",
    "PushEventSource",
    "SimulatedLocationSource",
    "SimulatedMotionSource",
    "Subscription",
]
