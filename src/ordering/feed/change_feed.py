"""Process-wide change feed: one poller task feeding one broadcaster."""

import asyncio
import contextlib

import structlog

from ordering.feed.broadcaster import Broadcaster, Subscription
from ordering.feed.cursor import Cursor
from ordering.feed.events import FeedEvent
from ordering.feed.poller import ChangeFeedPoller
from ordering.store.port import OrderStore
from ordering.utils.settings import Settings

logger = structlog.get_logger(__name__)


class ChangeFeed:
    def __init__(self, settings: Settings | None = None, store: OrderStore | None = None) -> None:
        self.settings = settings or Settings.from_env()
        self.broadcaster = Broadcaster(buffer_size=self.settings.subscriber_buffer)
        self.poller = ChangeFeedPoller(
            self.broadcaster.publish,
            store=store,
            interval=self.settings.poll_interval,
            batch_size=self.settings.batch_size,
            cursor=Cursor.starting_now(self.settings.lookback_seconds),
        )
        self._task: asyncio.Task | None = None
        self.failure: str | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self) -> Subscription:
        """Attach a stream. After a poller crash it only carries the error frame."""
        subscription = self.broadcaster.subscribe()
        if self.failure is not None:
            subscription.deliver(FeedEvent.failure(self.failure, fatal=True).frame())
            subscription.close()
        return subscription

    async def start(self) -> None:
        if self.running:
            return
        self.failure = None
        self._task = asyncio.create_task(self.poller.run(), name="order-change-feed")
        self._task.add_done_callback(self._on_poller_done)

    def _on_poller_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Order feed poller crashed", error=str(exc), error_type=type(exc).__name__)
            self.failure = f"Order feed unavailable: {exc}"
            self.broadcaster.fail(self.failure)

    async def stop(self) -> None:
        task, self._task = self._task, None
        # A crashed task was already reported by _on_poller_done
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.broadcaster.close()
