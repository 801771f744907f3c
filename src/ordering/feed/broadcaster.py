"""Fan-out of feed events to every open stream.

Each subscriber owns a bounded queue of ready-to-send frames. A subscriber
that falls behind loses its oldest undelivered frames, never blocking the
poller or the other subscribers.
"""

import asyncio

import structlog

from ordering.feed.events import CONNECTED_FRAME, FeedEvent

logger = structlog.get_logger(__name__)

_CLOSE = object()


class Subscription:
    def __init__(self, broadcaster: "Broadcaster", buffer_size: int) -> None:
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=buffer_size)
        self.dropped = 0
        self.closed = False

    def _put(self, item) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(
                "Dropping oldest frame for slow subscriber",
                dropped=self.dropped,
                buffer_size=self._queue.maxsize,
            )
        self._queue.put_nowait(item)

    def deliver(self, frame: str) -> None:
        if not self.closed:
            self._put(frame)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._put(_CLOSE)

    async def frames(self):
        """Frames for one connection, starting with the liveness comment."""
        try:
            yield CONNECTED_FRAME
            while True:
                item = await self._queue.get()
                if item is _CLOSE:
                    break
                yield item
        finally:
            self._broadcaster.unsubscribe(self)

    def __aiter__(self):
        return self.frames()


class Broadcaster:
    def __init__(self, buffer_size: int = 64) -> None:
        self.buffer_size = buffer_size
        self._subscribers: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self.buffer_size)
        self._subscribers.add(subscription)
        logger.info("Stream subscriber attached", subscribers=self.subscriber_count)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.discard(subscription)
            subscription.closed = True
            logger.info("Stream subscriber detached", subscribers=self.subscriber_count)

    async def publish(self, event: FeedEvent) -> None:
        frame = event.frame()
        for subscription in list(self._subscribers):
            subscription.deliver(frame)
        if event.fatal:
            self.close()

    def fail(self, message: str) -> None:
        """Send every subscriber a final error frame and close the streams."""
        logger.error("Order stream failed", error=message, subscribers=self.subscriber_count)
        frame = FeedEvent.failure(message, fatal=True).frame()
        for subscription in list(self._subscribers):
            subscription.deliver(frame)
        self.close()

    def close(self) -> None:
        for subscription in list(self._subscribers):
            subscription.close()
