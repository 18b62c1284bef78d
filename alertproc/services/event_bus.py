"""Outbound change notifications.

The engine only needs ``publish(topic, key, value)``. In production each topic
is a Redis stream; consumers (log sink, metrics aggregation) read it with
consumer groups and are not part of this service.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import redis

from alertproc.core.config import settings

logger = logging.getLogger(__name__)


class EventPublisher(Protocol):
    def publish(self, topic: str, key: str, value: dict[str, Any]) -> None:
        ...


class RedisStreamPublisher:
    """Appends ``{key, value}`` entries to a capped Redis stream per topic."""

    def __init__(self, redis_client: redis.Redis, maxlen: int | None = None):
        self._redis = redis_client
        self._maxlen = maxlen

    def publish(self, topic: str, key: str, value: dict[str, Any]) -> None:
        fields = {"key": key, "value": json.dumps(value, default=str)}
        entry_id = self._redis.xadd(topic, fields, maxlen=self._maxlen, approximate=True)
        logger.debug("Published event | topic=%s key=%s entry_id=%s", topic, key, entry_id)


def build_event_publisher() -> EventPublisher:
    from alertproc.db.redis_client import get_redis_client

    return RedisStreamPublisher(get_redis_client(), maxlen=settings.ALERT_EVENTS_MAXLEN)
