"""Position source: a cancellable subscription to raw position samples.

Producers (the OwnTracks endpoint, the replay CLI) push samples or report an
error; each subscriber receives them in arrival order through an async
iterator. A cancelled subscription stays finished: restarting means calling
``subscribe()`` again.
"""

from __future__ import annotations

import asyncio

import structlog

from modules.tracking.errors import SourceError
from modules.tracking.models import Coordinate

logger = structlog.get_logger()

_CLOSED = object()


class Subscription:
    """A lazy, infinite stream of coordinates until cancelled or failed."""

    def __init__(self, source: PositionSource):
        self._source = source
        self._queue: asyncio.Queue = asyncio.Queue()
        self._finished = False

    @property
    def active(self) -> bool:
        return not self._finished

    @property
    def backlog(self) -> int:
        """Samples delivered but not yet consumed."""
        return self._queue.qsize()

    def _deliver(self, item: Coordinate | SourceError) -> None:
        if not self._finished:
            self._queue.put_nowait(item)

    def cancel(self) -> None:
        """Stop the stream. Further samples are not delivered."""
        if self._finished:
            return
        self._finished = True
        self._source._detach(self)
        # Wake a consumer blocked in __anext__
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Coordinate:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        # Samples still buffered when the stream was cancelled are discarded
        if item is _CLOSED or self._finished:
            raise StopAsyncIteration
        if isinstance(item, SourceError):
            self.cancel()
            raise item
        return item


class PositionSource:
    """Fan-out point for raw position samples."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self)
        self._subscriptions.append(subscription)
        logger.debug("position_source_subscribed", subscribers=len(self._subscriptions))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.cancel()

    def push(self, coordinate: Coordinate) -> int:
        """Deliver a raw sample to every subscriber. Returns the delivery count."""
        if not self._subscriptions:
            logger.debug("position_sample_dropped", lat=coordinate.lat, lon=coordinate.lon)
        for subscription in list(self._subscriptions):
            subscription._deliver(coordinate)
        return len(self._subscriptions)

    def fail(self, error: SourceError) -> None:
        """Report a source failure. Each current subscription ends with ``error``."""
        logger.warning("position_source_failed", error=str(error))
        for subscription in list(self._subscriptions):
            subscription._deliver(error)

    def close(self) -> None:
        """Cancel every subscription."""
        for subscription in list(self._subscriptions):
            subscription.cancel()

    def _detach(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
