from __future__ import annotations

from typing import Protocol
from uuid import UUID

from dm_service.domain.entities.participant import Participant


class ParticipantReader(Protocol):
    async def is_participant(self, conversation_id: UUID, user_id: UUID) -> bool: ...

    async def list_participants(self, conversation_id: UUID) -> list[Participant]: ...

    async def list_conversation_ids(self, user_id: UUID) -> list[UUID]: ...

    async def list_for_conversations(
        self, conversation_ids: list[UUID]
    ) -> list[Participant]: ...


class ParticipantWriter(Protocol):
    async def add(self, participant: Participant) -> None: ...
