"""In-process change feed for committed store writes.

Hosted table stores push row-level change events to subscribed clients.
``ChangeFeed`` provides the same contract for the SQL-backed store: writers
``publish`` after commit, and each ``Subscription`` buffers matching events
on its own asyncio queue until the consumer reads them.
"""

import asyncio
import logging

from agenda.core.config import settings
from agenda.store.base import ChangeEvent, ChangeFilter

logger = logging.getLogger(__name__)


class Subscription:
    """A consumer's handle on the change feed.

    Iterate with ``async for`` to receive events. Call ``close()`` (or use
    ``async with``) to release it; a closed subscription ends iteration.
    """

    def __init__(self, feed: "ChangeFeed", change_filter: ChangeFilter, maxsize: int):
        self._feed = feed
        self.filter = change_filter
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self.dropped = 0

    def deliver(self, event: ChangeEvent) -> None:
        if self.closed or not self.filter.matches(event):
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            # Consumers re-aggregate on any event, so a full queue already
            # guarantees a pending refresh.
            self.dropped += 1
            logger.warning(
                f"Change queue full for {self.filter.entity.value} subscription, "
                f"dropped event ({self.dropped} total)"
            )

    async def get(self) -> ChangeEvent | None:
        """Wait for the next event. Returns None once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed.remove(self)
        # Wake up a consumer blocked in get()
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()


class ChangeFeed:
    """Fan-out of committed change events to open subscriptions."""

    def __init__(self, queue_size: int | None = None):
        self._queue_size = queue_size or settings.feed_queue_size
        self._subscriptions: list[Subscription] = []

    @property
    def listener_count(self) -> int:
        """Number of open subscriptions (store-side listeners)."""
        return len(self._subscriptions)

    def subscribe(self, change_filter: ChangeFilter) -> Subscription:
        subscription = Subscription(self, change_filter, self._queue_size)
        self._subscriptions.append(subscription)
        logger.debug(
            f"Opened {change_filter.entity.value} subscription ({self.listener_count} open)"
        )
        return subscription

    def remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug(
                f"Closed {subscription.filter.entity.value} subscription "
                f"({self.listener_count} open)"
            )

    def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions):
            subscription.deliver(event)
