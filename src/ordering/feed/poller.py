"""Change-feed poller.

Turns the pull-only order store into a push stream: on a fixed interval it
asks the store for orders created after its cursor and publishes either the
new batch or a heartbeat. The cursor moves only after a batch was published.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime

import structlog

from ordering.feed.cursor import Cursor
from ordering.feed.events import FeedEvent
from ordering.store import get_store
from ordering.store.port import OrderStore

logger = structlog.get_logger(__name__)

Publish = Callable[[FeedEvent], Awaitable[None] | None]


def _created_at(order) -> datetime | None:
    """Creation stamp of a store row, or ``None`` when the row is unusable."""
    if not isinstance(order, dict) or order.get("id") is None:
        return None
    value = order.get("created_at")
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


class ChangeFeedPoller:
    def __init__(
        self,
        publish: Publish,
        store: OrderStore | None = None,
        interval: float = 5.0,
        batch_size: int = 100,
        cursor: Cursor | None = None,
    ) -> None:
        self._publish = publish
        self._store = store
        self.interval = interval
        self.batch_size = batch_size
        self.cursor = cursor or Cursor()

    @property
    def store(self) -> OrderStore:
        return self._store or get_store()

    async def _emit(self, event: FeedEvent) -> None:
        result = self._publish(event)
        if inspect.isawaitable(result):
            await result

    async def poll_once(self) -> FeedEvent:
        """Run a single tick and return the event it published."""
        try:
            orders = await asyncio.to_thread(
                self.store.find_orders_created_after,
                self.cursor.last_fetched_at,
                self.batch_size,
            )
        except Exception as exc:
            # The next tick retries; the loop never dies on a store failure
            logger.warning("Order feed poll failed", error=str(exc), error_type=type(exc).__name__)
            event = FeedEvent.failure(str(exc))
            await self._emit(event)
            return event

        usable = [order for order in orders if _created_at(order) is not None]
        if len(usable) != len(orders):
            logger.warning("Skipping malformed order rows", skipped=len(orders) - len(usable))
            orders = usable

        if not orders or str(orders[-1]["id"]) == self.cursor.last_fetched_id:
            event = FeedEvent.heartbeat()
            await self._emit(event)
            return event

        event = FeedEvent.batch(orders)
        await self._emit(event)
        last = orders[-1]
        self.cursor.advance(_created_at(last), last["id"])
        logger.info(
            "Order feed batch published",
            count=len(orders),
            last_fetched_id=self.cursor.last_fetched_id,
        )
        return event

    async def run(self) -> None:
        logger.info("Order feed poller started", interval=self.interval, batch_size=self.batch_size)
        try:
            while True:
                try:
                    await self.poll_once()
                except Exception as exc:
                    logger.exception("Order feed tick failed", error=str(exc), error_type=type(exc).__name__)
                await asyncio.sleep(self.interval)
        finally:
            logger.info("Order feed poller stopped")
