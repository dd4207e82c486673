from __future__ import annotations

import logging
import uuid

from dm_service.application.dto.conversation import ConversationSummary
from dm_service.application.dto.events import participant_event
from dm_service.application.exceptions import NotFoundError, ValidationError
from dm_service.application.policies.permissions import assert_participant
from dm_service.application.ports.clock import Clock, SystemClock
from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.conversation import Conversation
from dm_service.domain.entities.participant import Participant
from dm_service.domain.entities.profile import Profile

logger = logging.getLogger(__name__)


async def find_or_create_conversation(
    user_a: uuid.UUID,
    user_b: uuid.UUID,
    uow: UnitOfWork,
    *,
    clock: Clock | None = None,
) -> uuid.UUID:
    """Return the id of the one-to-one conversation between two users, creating it if needed.

    The lookup and the insert are separate statements with no pair-level
    uniqueness in the store, so two concurrent calls for the same pair can
    both create a conversation. Both survive and show up as separate entries
    in list_conversations. Sequential calls converge on the oldest one.
    """
    if user_a == user_b:
        raise ValidationError("Cannot start a conversation with yourself")

    profiles = await uow.profiles.get_many([user_a, user_b])
    known = {p.id for p in profiles}
    for user_id in (user_a, user_b):
        if user_id not in known:
            raise NotFoundError(f"Profile {user_id} not found")

    existing = await uow.conversations.find_direct(user_a, user_b)
    if existing is not None:
        return existing.id

    now = (clock or SystemClock()).now()
    conversation = await uow.conversations_w.create(
        Conversation(id=uuid.uuid4(), created_at=now)
    )
    for user_id in (user_a, user_b):
        participant = Participant(
            conversation_id=conversation.id,
            user_id=user_id,
            joined_at=now,
        )
        await uow.participants_w.add(participant)
        await uow.outbox.add(participant_event(participant))

    await uow.commit()
    logger.info("Created conversation %s between %s and %s", conversation.id, user_a, user_b)
    return conversation.id


async def list_conversations(
    user_id: uuid.UUID,
    uow: UnitOfWork,
) -> list[ConversationSummary]:
    """Conversations of ``user_id``, most recent activity first (ties: id descending)."""
    conversation_ids = list(dict.fromkeys(await uow.participants.list_conversation_ids(user_id)))
    if not conversation_ids:
        return []

    conversations = await uow.conversations.get_many(conversation_ids)
    participants = await uow.participants.list_for_conversations(conversation_ids)
    other_by_conversation = {
        p.conversation_id: p.user_id for p in participants if p.user_id != user_id
    }
    profiles = {
        p.id: p
        for p in await uow.profiles.get_many(list(set(other_by_conversation.values())))
    }
    latest = await uow.messages.latest_for_conversations(conversation_ids)

    summaries = []
    for conversation in conversations:
        other_id = other_by_conversation.get(conversation.id)
        summaries.append(
            ConversationSummary(
                conversation=conversation,
                other_user=profiles.get(other_id) if other_id else None,
                last_message=latest.get(conversation.id),
            )
        )
    summaries.sort(key=lambda s: (s.last_activity_at, s.id), reverse=True)
    return summaries


async def get_conversation(
    conversation_id: uuid.UUID,
    user_id: uuid.UUID,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    return await assert_participant(user_id, conversation, uow.participants)


async def get_conversation_partner(
    conversation_id: uuid.UUID,
    user_id: uuid.UUID,
    uow: UnitOfWork,
) -> Profile:
    """Profile of the other participant, for the chat header."""
    await get_conversation(conversation_id, user_id, uow)
    profile = await find_partner(conversation_id, user_id, uow)
    if profile is None:
        raise NotFoundError("Conversation has no other participant profile")
    return profile


async def find_partner(
    conversation_id: uuid.UUID,
    user_id: uuid.UUID,
    uow: UnitOfWork,
) -> Profile | None:
    """Like get_conversation_partner, without the access check and without raising.

    Callers must have checked access with get_conversation first.
    """
    participants = await uow.participants.list_participants(conversation_id)
    others = [p.user_id for p in participants if p.user_id != user_id]
    if not others:
        return None
    return await uow.profiles.get_by_id(others[0])
