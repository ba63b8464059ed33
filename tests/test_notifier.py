"""Tests for price update fan-out."""

import json
from datetime import datetime
from decimal import Decimal

from marketdata.schemas.market import PriceInterval, StockPriceMessage
from marketdata.services.notifications.notifier import TOPIC_ALL, PriceUpdateNotifier, stock_topic
from marketdata.services.notifications.redis_client import channel_for


def message(stock_id=1, symbol="RELIANCE", day=25):
    return StockPriceMessage(
        id=day,
        stock_id=stock_id,
        symbol=symbol,
        timestamp=datetime(2024, 1, day),
        interval=PriceInterval.ONE_DAY,
        open=Decimal("1.5"),
        high=Decimal("2"),
        low=Decimal("1"),
        close=Decimal("1.75"),
        volume=100,
    )


class FakeRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.published = []

    async def publish(self, channel, data):
        if self.fail:
            raise ConnectionError("redis down")
        self.published.append((channel, json.loads(data)))


class TestLocalDelivery:
    """In-process subscriber queues."""

    async def test_global_and_per_stock_topics(self):
        notifier = PriceUpdateNotifier()
        everything = notifier.subscribe("a", TOPIC_ALL)
        reliance = notifier.subscribe("b", stock_topic(1))
        tcs = notifier.subscribe("c", stock_topic(2))

        await notifier.notify_saved([message(1), message(2, "TCS"), message(1, day=26)])

        assert len(everything.get_nowait()["data"]) == 3
        reliance_event = reliance.get_nowait()
        assert reliance_event["topic"] == "stock-prices/1"
        assert [d["timestamp"] for d in reliance_event["data"]] == ["2024-01-25T00:00:00", "2024-01-26T00:00:00"]
        assert [d["symbol"] for d in tcs.get_nowait()["data"]] == ["TCS"]

    async def test_empty_list_not_published(self):
        notifier = PriceUpdateNotifier()
        queue = notifier.subscribe("a")
        await notifier.notify_saved([])
        assert queue.empty()

    async def test_full_queue_drops_oldest(self):
        notifier = PriceUpdateNotifier(queue_size=2)
        queue = notifier.subscribe("a")

        for day in (24, 25, 26):
            await notifier.publish(TOPIC_ALL, [message(day=day)])

        assert queue.qsize() == 2
        assert queue.get_nowait()["data"][0]["id"] == 25
        assert queue.get_nowait()["data"][0]["id"] == 26

    async def test_unsubscribe(self):
        notifier = PriceUpdateNotifier()
        queue = notifier.subscribe("a")
        notifier.unsubscribe("a")
        notifier.unsubscribe("missing")

        await notifier.notify_saved([message()])

        assert notifier.subscriber_count == 0
        assert queue.empty()


class TestRedisDelivery:
    """Redis pub/sub fan-out."""

    async def test_published_on_prefixed_channels(self):
        fake = FakeRedis()
        notifier = PriceUpdateNotifier(redis_client=fake)

        await notifier.notify_saved([message(1)])

        assert [channel for channel, _ in fake.published] == [
            channel_for(TOPIC_ALL),
            channel_for(stock_topic(1)),
        ]
        assert fake.published[0][0] == "marketdata:stock-prices"
        assert fake.published[0][1][0]["close"] == "1.75"

    async def test_redis_failure_does_not_raise(self):
        notifier = PriceUpdateNotifier(redis_client=FakeRedis(fail=True))
        queue = notifier.subscribe("a")

        await notifier.notify_saved([message()])

        assert not queue.empty()
