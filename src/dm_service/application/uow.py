from __future__ import annotations

from typing import Protocol

from dm_service.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from dm_service.application.repositories.message import MessageReader, MessageWriter
from dm_service.application.repositories.outbox import OutboxWriter
from dm_service.application.repositories.participant import (
    ParticipantReader,
    ParticipantWriter,
)
from dm_service.application.repositories.profile import ProfileReader


class UnitOfWork(Protocol):
    conversations: ConversationReader
    conversations_w: ConversationWriter
    participants: ParticipantReader
    participants_w: ParticipantWriter
    messages: MessageReader
    messages_w: MessageWriter
    profiles: ProfileReader
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...
