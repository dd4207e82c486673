from __future__ import annotations

from typing import Protocol
from uuid import UUID

from dm_service.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        """All messages, ascending by (created_at, id)."""
        ...

    async def latest_for_conversations(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, Message]: ...


class MessageWriter(Protocol):
    async def add(self, message: Message) -> Message: ...
