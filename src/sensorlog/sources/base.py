"""Event source contract and a push-driven implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Generic, Protocol, TypeVar, runtime_checkable

from ..samples import Sample, SampleKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription(Generic[T]):
    """Async iterator over the items published on a :class:`Channel`.

    Items are acknowledged when the consumer asks for the next one, which
    lets :meth:`Channel.join` wait until every delivered item was handled.
    """

    def __init__(self, channel: "Channel[T]") -> None:
        self._channel = channel
        self._queue: asyncio.Queue[T] = asyncio.Queue()
        self._pending = False

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        self._acknowledge()
        item = await self._queue.get()
        self._pending = True
        return item

    def put(self, item: T) -> None:
        self._queue.put_nowait(item)

    async def join(self) -> None:
        await self._queue.join()

    def close(self) -> None:
        self._acknowledge()
        self._channel.unsubscribe(self)

    def _acknowledge(self) -> None:
        if self._pending:
            self._pending = False
            self._queue.task_done()


class Channel(Generic[T]):
    """Unbounded fan-out of published items to every live subscription."""

    def __init__(self) -> None:
        self._subscribers: set[Subscription[T]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    def subscribe(self) -> Subscription[T]:
        """Register a subscription immediately, before any item is awaited."""

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            pass
        subscription: Subscription[T] = Subscription(self)
        self._subscribers.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription[T]) -> None:
        self._subscribers.discard(subscription)

    def publish(self, item: T) -> None:
        """Deliver ``item`` to every subscriber; safe to call from any thread."""

        loop = self._loop
        if loop is not None and not loop.is_closed() and not _running_on(loop):
            loop.call_soon_threadsafe(self._deliver, item)
            return
        self._deliver(item)

    async def join(self) -> None:
        """Wait until every subscriber has handled all delivered items."""

        await asyncio.gather(*(sub.join() for sub in list(self._subscribers)))

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _deliver(self, item: T) -> None:
        for subscription in list(self._subscribers):
            subscription.put(item)


def _running_on(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


@runtime_checkable
class EventSource(Protocol):
    """Producer of live sample and error streams for one sensor kind."""

    kind: SampleKind

    def capability_available(self) -> bool:
        """Return ``True`` when the sensor can be used right now."""

    async def start(self) -> None:
        """Begin producing samples."""

    async def stop(self) -> None:
        """Stop producing samples."""

    def samples(self) -> Subscription[Sample]:
        """Return a new subscription to the sample stream."""

    def errors(self) -> Subscription[BaseException]:
        """Return a new subscription to the error stream."""


class PushEventSource:
    """Event source fed by an external producer.

    Samples and errors are injected with :meth:`publish_sample` and
    :meth:`publish_error`, from the owning loop or from any other thread.
    Publishing while stopped is allowed; the consumer decides what to keep.
    """

    external = True

    def __init__(self, kind: SampleKind, *, available: bool = True) -> None:
        self.kind = kind
        self.available = available
        self.running = False
        self._samples: Channel[Sample] = Channel()
        self._errors: Channel[BaseException] = Channel()

    def capability_available(self) -> bool:
        return self.available

    async def start(self) -> None:
        if self.running:
            return
        self.running = True
        logger.info("%s source started", self.kind.value)

    async def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        logger.info("%s source stopped", self.kind.value)

    def samples(self) -> Subscription[Sample]:
        return self._samples.subscribe()

    def errors(self) -> Subscription[BaseException]:
        return self._errors.subscribe()

    def publish_sample(self, sample: Sample) -> None:
        if sample.kind is not self.kind:
            raise ValueError(
                f"{self.kind.value} source cannot publish {sample.kind.value} samples"
            )
        self._samples.publish(sample)

    def publish_error(self, error: BaseException) -> None:
        self._errors.publish(error)

    async def drain(self) -> None:
        """Wait until every subscriber has consumed what was published so far."""

        await self._samples.join()
        await self._errors.join()


__all__ = [
    "Channel",
    "EventSource",
    "PushEventSource",
    "Subscription",
]
