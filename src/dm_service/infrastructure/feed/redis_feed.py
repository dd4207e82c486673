from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as aioredis

from dm_service.application.dto.events import ChangeEvent
from dm_service.application.ports.feed import OnChangeCallback
from dm_service.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber
from dm_service.infrastructure.feed.dispatcher import FeedDispatcher, FeedSubscription

logger = logging.getLogger(__name__)


class RedisChangeFeed:
    """Implements application.ports.feed.ChangeFeed on top of Redis Pub/Sub.

    The outbox worker publishes committed changes to one channel; every
    process runs one subscriber and fans events out locally.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        dispatcher: FeedDispatcher | None = None,
    ) -> None:
        self._dispatcher = dispatcher or FeedDispatcher()
        self._subscriber = RedisPubSubSubscriber(redis, channel, self._on_event)

    @property
    def running(self) -> bool:
        return self._subscriber.running

    async def start(self) -> None:
        await self._subscriber.start()

    async def stop(self) -> None:
        await self._subscriber.stop()

    def subscribe(
        self,
        table: str,
        callback: OnChangeCallback,
        *,
        column: str | None = None,
        value: Any = None,
    ) -> FeedSubscription:
        return self._dispatcher.subscribe(table, callback, column=column, value=value)

    async def _on_event(self, event_type: str, data: dict[str, Any]) -> None:
        event = ChangeEvent.parse(event_type, data)
        delivered = await self._dispatcher.dispatch(event)
        logger.debug("Change %s delivered to %d listener(s)", event.event_type, delivered)
