"""Outbox worker: publishes committed change events to the Redis change feed."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis

from dm_service.application.ports.bus import EventPublisher
from dm_service.application.uow import UnitOfWork
from dm_service.config import settings
from dm_service.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from dm_service.infrastructure.db.session import open_uow

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 1
MAX_DELAY_SECONDS = 60


def _calc_backoff(attempts: int) -> datetime:
    delay = min(BASE_DELAY_SECONDS * (2 ** attempts), MAX_DELAY_SECONDS)
    return datetime.now(timezone.utc) + timedelta(seconds=delay)


async def process_batch(
    uow: UnitOfWork,
    publisher: EventPublisher,
    *,
    channel: str,
    batch_size: int,
    max_attempts: int,
) -> int:
    """Publish one batch in id order. Returns the number of records sent.

    Publishing stops at the first failed or not-yet-due record and the rest
    of the batch goes back to pending, so later events never overtake an
    earlier one on the channel. Run a single worker per channel.
    """
    batch = await uow.outbox.fetch_pending(batch_size)
    if not batch:
        return 0

    now = datetime.now(timezone.utc)
    sent_ids: list[int] = []
    dead_ids: list[int] = []
    for idx, record in enumerate(batch):
        if record.attempts >= max_attempts:
            logger.warning("Outbox record %d exceeded max attempts, dropping", record.id)
            dead_ids.append(record.id)
            continue
        if record.next_retry_at is not None and record.next_retry_at > now:
            await uow.outbox.release([r.id for r in batch[idx:]])
            break
        try:
            event = record.to_event()
        except ValueError:
            logger.error("Outbox record %d has malformed event type %r", record.id, record.event_type)
            dead_ids.append(record.id)
            continue
        try:
            await publisher.publish(channel, event.event_type, event.record)
        except Exception:
            logger.exception("Failed to publish outbox record %d", record.id)
            await uow.outbox.mark_failed(record.id, _calc_backoff(record.attempts))
            await uow.outbox.release([r.id for r in batch[idx + 1:]])
            break
        sent_ids.append(record.id)

    if sent_ids:
        await uow.outbox.mark_sent(sent_ids)
    if dead_ids:
        await uow.outbox.mark_dead(dead_ids)

    await uow.commit()
    if sent_ids:
        logger.info("Published %d change event(s)", len(sent_ids))
    return len(sent_ids)


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    publisher = RedisPubSubPublisher(redis)

    logger.info(
        "Outbox worker started (poll=%.1fs, batch=%d, max_attempts=%d, channel=%s)",
        settings.OUTBOX_POLL_INTERVAL,
        settings.OUTBOX_BATCH_SIZE,
        settings.OUTBOX_MAX_ATTEMPTS,
        settings.CHANGE_FEED_CHANNEL,
    )

    try:
        while True:
            try:
                async with open_uow() as uow:
                    await process_batch(
                        uow,
                        publisher,
                        channel=settings.CHANGE_FEED_CHANNEL,
                        batch_size=settings.OUTBOX_BATCH_SIZE,
                        max_attempts=settings.OUTBOX_MAX_ATTEMPTS,
                    )
            except Exception:
                logger.exception("Outbox worker loop error")
            await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)
    finally:
        await redis.aclose()


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
