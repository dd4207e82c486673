from __future__ import annotations

import logging
import uuid

from dm_service.application.dto.events import message_event
from dm_service.application.exceptions import NotFoundError, ValidationError
from dm_service.application.policies.permissions import assert_participant
from dm_service.application.ports.clock import Clock, SystemClock
from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.message import Message

logger = logging.getLogger(__name__)


async def send_message(
    conversation_id: uuid.UUID,
    sender_id: uuid.UUID,
    body: str | None,
    uow: UnitOfWork,
    *,
    clock: Clock | None = None,
) -> Message:
    """Append a message and stage its change event in the same transaction.

    Not idempotent: a blind retry after an ambiguous failure can store the
    message twice.
    """
    text = (body or "").strip()
    if not text:
        raise ValidationError("Message body must not be empty")

    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_participant(sender_id, conversation, uow.participants)

    msg = Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id,
        body=text,
        created_at=(clock or SystemClock()).now(),
    )
    msg = await uow.messages_w.add(msg)
    await uow.outbox.add(message_event(msg))
    await uow.commit()

    logger.debug("Message %s appended to conversation %s", msg.id, conversation_id)
    return msg


async def fetch_messages(
    conversation_id: uuid.UUID,
    uow: UnitOfWork,
    *,
    viewer_id: uuid.UUID | None = None,
) -> list[Message]:
    """All messages of the conversation, oldest first (ties: id ascending).

    When ``viewer_id`` is given the viewer must be a participant.
    """
    conversation = await uow.conversations.get_by_id(conversation_id)
    if viewer_id is not None:
        await assert_participant(viewer_id, conversation, uow.participants)
    elif conversation is None:
        raise NotFoundError("Conversation not found")

    messages = await uow.messages.list_messages(conversation_id)
    return sorted(messages, key=lambda m: m.sort_key)
