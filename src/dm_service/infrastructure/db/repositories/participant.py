from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from dm_service.domain.entities.participant import Participant
from dm_service.infrastructure.db.mappers import participant as mapper
from dm_service.infrastructure.db.models.participant import ParticipantModel
from dm_service.infrastructure.db.repositories._base import SessionRepo


class ParticipantReaderRepo(SessionRepo):
    async def is_participant(self, conversation_id: UUID, user_id: UUID) -> bool:
        stmt = (
            select(ParticipantModel.id)
            .where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.user_id == user_id,
            )
            .limit(1)
        )
        result = await self._execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_participants(self, conversation_id: UUID) -> list[Participant]:
        stmt = select(ParticipantModel).where(
            ParticipantModel.conversation_id == conversation_id
        )
        result = await self._execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_conversation_ids(self, user_id: UUID) -> list[UUID]:
        stmt = select(ParticipantModel.conversation_id).where(
            ParticipantModel.user_id == user_id
        )
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def list_for_conversations(
        self, conversation_ids: list[UUID]
    ) -> list[Participant]:
        if not conversation_ids:
            return []
        stmt = select(ParticipantModel).where(
            ParticipantModel.conversation_id.in_(conversation_ids)
        )
        result = await self._execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ParticipantWriterRepo(SessionRepo):
    async def add(self, participant: Participant) -> None:
        await self._add(mapper.entity_to_model(participant))
