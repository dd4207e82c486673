from __future__ import annotations

from dm_service.domain.entities.conversation import Conversation
from dm_service.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(id=model.id, created_at=model.created_at)


def entity_to_model(entity: Conversation) -> ConversationModel:
    return ConversationModel(id=entity.id, created_at=entity.created_at)
