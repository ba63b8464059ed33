"""
Price Update Notifier

Publishes newly saved price records:
- one message on the global topic with every record of a fetch
- one message per instrument on stock-prices/{stock_id}

Delivery goes to in-process subscriber queues (SSE clients) and, when
connected, to Redis pub/sub. Failures are logged and never raised.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Sequence

import redis.asyncio as redis

from marketdata.schemas.market import StockPriceMessage
from marketdata.services.notifications.redis_client import channel_for, get_redis

logger = logging.getLogger(__name__)

TOPIC_ALL = "stock-prices"


def stock_topic(stock_id: int) -> str:
    return f"{TOPIC_ALL}/{stock_id}"


class PriceUpdateNotifier:
    """
    Topic-based fan-out of StockPriceMessage lists.

    Usage:
        notifier = PriceUpdateNotifier()
        queue = notifier.subscribe("client-1", "stock-prices")
        await notifier.notify_saved(messages)
        event = await queue.get()  # {"topic": ..., "data": [...]}
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, queue_size: int = 100):
        self._redis = redis_client
        self._queue_size = queue_size
        # client_id -> (topic, queue)
        self._subscribers: dict[str, tuple[str, asyncio.Queue]] = {}

    @property
    def redis(self) -> Optional[redis.Redis]:
        return self._redis or get_redis()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # ============ Subscriber Queue Management ============

    def subscribe(self, client_id: str, topic: str = TOPIC_ALL) -> asyncio.Queue:
        """Create a queue receiving messages published on a topic."""
        queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[client_id] = (topic, queue)
        return queue

    def unsubscribe(self, client_id: str) -> None:
        """Remove a subscriber queue."""
        self._subscribers.pop(client_id, None)

    def _deliver_local(self, topic: str, event: dict[str, Any]) -> int:
        delivered = 0
        for subscribed_topic, queue in list(self._subscribers.values()):
            if subscribed_topic != topic:
                continue
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                # Drop oldest message if queue is full
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                queue.put_nowait(event)
            delivered += 1
        return delivered

    # ============ Publishing ============

    async def publish(self, topic: str, payload: Sequence[StockPriceMessage]) -> None:
        """Publish a list of records on a topic."""
        data = [m.model_dump(mode="json") for m in payload]
        event = {"topic": topic, "data": data}

        try:
            self._deliver_local(topic, event)
        except Exception as e:
            logger.error(f"Local delivery failed on {topic}: {e}")

        client = self.redis
        if client is None:
            return
        try:
            await client.publish(channel_for(topic), json.dumps(data))
        except Exception as e:
            logger.error(f"Redis publish failed on {topic}: {e}")

    async def notify_saved(self, messages: Sequence[StockPriceMessage]) -> None:
        """Publish saved records on the global topic and per instrument."""
        if not messages:
            return
        try:
            await self.publish(TOPIC_ALL, messages)

            by_stock: dict[int, list[StockPriceMessage]] = {}
            for message in messages:
                by_stock.setdefault(message.stock_id, []).append(message)
            for stock_id, stock_messages in by_stock.items():
                await self.publish(stock_topic(stock_id), stock_messages)

            logger.debug(f"Broadcasted {len(messages)} price updates")
        except Exception as e:
            logger.error(f"Failed to broadcast price updates: {e}")


# Singleton instance
_notifier: Optional[PriceUpdateNotifier] = None


def get_notifier() -> PriceUpdateNotifier:
    """Get or create the notifier singleton."""
    global _notifier
    if _notifier is None:
        _notifier = PriceUpdateNotifier()
    return _notifier
