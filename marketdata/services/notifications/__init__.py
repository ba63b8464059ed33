"""
Notifications

Fan-out of newly saved price records to in-process subscribers and Redis.
"""

from marketdata.services.notifications.notifier import (
    PriceUpdateNotifier,
    TOPIC_ALL,
    stock_topic,
    get_notifier,
)
from marketdata.services.notifications.redis_client import init_redis, close_redis, get_redis

__all__ = [
    "PriceUpdateNotifier",
    "TOPIC_ALL",
    "stock_topic",
    "get_notifier",
    "init_redis",
    "close_redis",
    "get_redis",
]
