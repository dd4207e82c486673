"""Realtime delivery on top of the change feed.

Handles are scoped resources: cancel them (or use them as context managers)
when the owning screen or connection goes away.
"""
from __future__ import annotations

import logging
import uuid
from typing import Awaitable, Callable

from dm_service.application.dto.events import ChangeEvent, message_from_record
from dm_service.application.ports.feed import ChangeFeed, Subscription, SubscriptionGroup
from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.message import Message
from dm_service.domain.value_objects.enums import ChangeType, FeedTable

logger = logging.getLogger(__name__)

OnMessageCallback = Callable[[Message], Awaitable[None]]
OnEventCallback = Callable[[ChangeEvent], Awaitable[None]]


def subscribe(
    conversation_id: uuid.UUID,
    on_message: OnMessageCallback,
    feed: ChangeFeed,
) -> Subscription:
    """Invoke ``on_message`` for every message inserted into the conversation.

    Delivery follows feed order. History fetched separately may overlap with
    live messages; merge by message id on the receiving side.
    """

    async def _on_change(event: ChangeEvent) -> None:
        if event.type != ChangeType.INSERT:
            return
        await on_message(message_from_record(event.record))

    return feed.subscribe(
        FeedTable.MESSAGES,
        _on_change,
        column="conversation_id",
        value=conversation_id,
    )


async def subscribe_all_for_user(
    user_id: uuid.UUID,
    on_event: OnEventCallback,
    feed: ChangeFeed,
    uow: UnitOfWork,
) -> Subscription:
    """Invoke ``on_event`` on any message change in the user's conversations.

    Joining a new conversation is reported too, and from then on its
    messages are included. Meant to trigger a full list_conversations
    re-fetch, not incremental updates.
    """
    known: set[str] = set()

    async def _on_message_change(event: ChangeEvent) -> None:
        if str(event.record.get("conversation_id")) in known:
            await on_event(event)

    async def _on_participant_change(event: ChangeEvent) -> None:
        if event.type == ChangeType.INSERT:
            known.add(str(event.record["conversation_id"]))
        await on_event(event)

    # Subscribe before loading membership so nothing committed in between is lost
    handle = SubscriptionGroup(
        feed.subscribe(FeedTable.MESSAGES, _on_message_change),
        feed.subscribe(
            FeedTable.PARTICIPANTS,
            _on_participant_change,
            column="user_id",
            value=user_id,
        ),
    )
    try:
        conversation_ids = await uow.participants.list_conversation_ids(user_id)
    except Exception:
        handle.cancel()
        raise
    known.update(str(cid) for cid in conversation_ids)
    logger.debug("User %s watching %d conversation(s)", user_id, len(known))
    return handle
