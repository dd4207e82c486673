from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from dm_service.domain.entities.message import Message
from dm_service.infrastructure.db.mappers import message as mapper
from dm_service.infrastructure.db.models.message import MessageModel
from dm_service.infrastructure.db.repositories._base import SessionRepo


class MessageReaderRepo(SessionRepo):
    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        result = await self._execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def latest_for_conversations(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, Message]:
        if not conversation_ids:
            return {}
        # DISTINCT ON keeps the first row per conversation in ORDER BY order
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id.in_(conversation_ids))
            .order_by(
                MessageModel.conversation_id,
                MessageModel.created_at.desc(),
                MessageModel.id.desc(),
            )
            .distinct(MessageModel.conversation_id)
        )
        result = await self._execute(stmt)
        return {m.conversation_id: mapper.model_to_entity(m) for m in result.scalars().all()}


class MessageWriterRepo(SessionRepo):
    async def add(self, message: Message) -> Message:
        model = mapper.entity_to_model(message)
        await self._add(model)
        return mapper.model_to_entity(model)
