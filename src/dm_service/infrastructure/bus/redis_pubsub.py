"""Redis Pub/Sub transport for the change feed: publisher and background subscriber."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from dm_service.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 5


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, event_type: str, payload: dict[str, Any]) -> None:
        await self._redis.publish(channel, serialize_event(event_type, payload))


OnEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches events.

    Messages are handled one at a time so the callback sees channel order.
    Events published while the connection is down are lost.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self._listen()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Pub/Sub connection lost on %s, reconnecting in %ss",
                    self._channel,
                    RECONNECT_DELAY_SECONDS,
                )
                await asyncio.sleep(RECONNECT_DELAY_SECONDS)

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event_type, data = deserialize_event(message["data"])
                    await self._callback(event_type, data)
                except Exception:
                    logger.exception("Error processing pubsub message")
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()
