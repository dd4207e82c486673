from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from dm_service.domain.entities.conversation import Conversation
from dm_service.infrastructure.db.mappers import conversation as mapper
from dm_service.infrastructure.db.models.conversation import ConversationModel
from dm_service.infrastructure.db.models.participant import ParticipantModel
from dm_service.infrastructure.db.repositories._base import SessionRepo


class ConversationReaderRepo(SessionRepo):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        result = await self._get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    async def get_many(self, conversation_ids: list[UUID]) -> list[Conversation]:
        if not conversation_ids:
            return []
        stmt = select(ConversationModel).where(ConversationModel.id.in_(conversation_ids))
        result = await self._execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def find_direct(self, user_a: UUID, user_b: UUID) -> Conversation | None:
        candidates = select(ParticipantModel.conversation_id).where(
            ParticipantModel.user_id == user_a
        )
        matching = (
            select(ParticipantModel.conversation_id)
            .where(ParticipantModel.conversation_id.in_(candidates))
            .group_by(ParticipantModel.conversation_id)
            .having(
                func.count() == 2,
                func.count().filter(ParticipantModel.user_id.in_([user_a, user_b])) == 2,
            )
        )
        stmt = (
            select(ConversationModel)
            .where(ConversationModel.id.in_(matching))
            .order_by(ConversationModel.created_at.asc(), ConversationModel.id.asc())
            .limit(1)
        )
        result = await self._execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None


class ConversationWriterRepo(SessionRepo):
    async def create(self, conversation: Conversation) -> Conversation:
        model = mapper.entity_to_model(conversation)
        await self._add(model)
        return mapper.model_to_entity(model)
