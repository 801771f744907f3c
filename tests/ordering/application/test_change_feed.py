"""Application tests for the process-wide change feed."""

import asyncio

import pytest
from ordering.feed.change_feed import ChangeFeed
from ordering.feed.events import CONNECTED_FRAME, HEARTBEAT_FRAME
from ordering.utils.settings import Settings


class QuietStore:
    def find_orders_created_after(self, created_after, limit):
        return []


class MalformedRowStore(QuietStore):
    """Returns a row without a creation stamp."""

    def find_orders_created_after(self, created_after, limit):
        return [{"id": "o1"}]


@pytest.fixture()
def settings():
    return Settings(poll_interval=0.01, subscriber_buffer=8)


class TestChangeFeed:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, settings):
        feed = ChangeFeed(settings=settings, store=QuietStore())

        await feed.start()
        assert feed.running is True
        await feed.stop()

        assert feed.running is False

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_poller(self, settings):
        feed = ChangeFeed(settings=settings, store=QuietStore())

        await feed.start()
        task = feed._task
        await feed.start()

        assert feed._task is task
        await feed.stop()

    @pytest.mark.asyncio
    async def test_subscribers_receive_heartbeats(self, settings):
        feed = ChangeFeed(settings=settings, store=QuietStore())
        subscription = feed.subscribe()
        await feed.start()

        frames = subscription.frames()
        received = [await anext(frames), await anext(frames)]
        await frames.aclose()
        await feed.stop()

        assert received == [CONNECTED_FRAME, HEARTBEAT_FRAME]

    @pytest.mark.asyncio
    async def test_stop_ends_open_streams(self, settings):
        feed = ChangeFeed(settings=settings, store=QuietStore())
        subscription = feed.subscribe()
        await feed.start()

        await feed.stop()
        frames = [frame async for frame in subscription]

        assert frames[0] == CONNECTED_FRAME
        assert feed.broadcaster.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_malformed_rows_do_not_stop_the_feed(self, settings):
        feed = ChangeFeed(settings=settings, store=MalformedRowStore())
        subscription = feed.subscribe()
        await feed.start()

        frames = subscription.frames()
        received = [await anext(frames), await anext(frames), await anext(frames)]
        await frames.aclose()

        assert received == [CONNECTED_FRAME, HEARTBEAT_FRAME, HEARTBEAT_FRAME]
        assert feed.running is True
        await feed.stop()

    @pytest.mark.asyncio
    async def test_crashed_poller_sends_error_event(self, settings):
        feed = ChangeFeed(settings=settings, store=QuietStore())

        async def crash():
            raise RuntimeError("poller bug")

        feed.poller.run = crash
        subscription = feed.subscribe()
        await feed.start()

        frames = await asyncio.wait_for(_collect(subscription), timeout=2)

        assert frames[-1].startswith("event: error\n")
        assert "poller bug" in frames[-1]
        assert feed.running is False

    @pytest.mark.asyncio
    async def test_late_subscriber_after_crash_gets_error_and_closes(self, settings):
        feed = ChangeFeed(settings=settings, store=QuietStore())

        async def crash():
            raise RuntimeError("poller bug")

        feed.poller.run = crash
        await feed.start()
        for _ in range(100):
            if not feed.running:
                break
            await asyncio.sleep(0.01)

        frames = await asyncio.wait_for(_collect(feed.subscribe()), timeout=2)

        assert frames[0] == CONNECTED_FRAME
        assert frames[-1].startswith("event: error\n")
        assert feed.failure is not None

    @pytest.mark.asyncio
    async def test_stop_after_crash_does_not_raise(self, settings):
        feed = ChangeFeed(settings=settings, store=QuietStore())

        async def crash():
            raise RuntimeError("poller bug")

        feed.poller.run = crash
        await feed.start()
        for _ in range(100):
            if not feed.running:
                break
            await asyncio.sleep(0.01)

        await feed.stop()

        assert feed.running is False
        assert feed.broadcaster.subscriber_count == 0



async def _collect(subscription):
    return [frame async for frame in subscription]
