from __future__ import annotations

from typing import Protocol
from uuid import UUID

from dm_service.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def get_many(self, conversation_ids: list[UUID]) -> list[Conversation]: ...

    async def find_direct(self, user_a: UUID, user_b: UUID) -> Conversation | None:
        """Find a conversation whose participant set is exactly {user_a, user_b}.

        If several exist, return the oldest.
        """
        ...


class ConversationWriter(Protocol):
    async def create(self, conversation: Conversation) -> Conversation: ...
