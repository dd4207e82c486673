"""Import all models so Alembic can discover them via Base.metadata."""
from dm_service.infrastructure.db.models.conversation import ConversationModel
from dm_service.infrastructure.db.models.message import MessageModel
from dm_service.infrastructure.db.models.outbox import OutboxMessageModel
from dm_service.infrastructure.db.models.participant import ParticipantModel
from dm_service.infrastructure.db.models.profile import ProfileModel

__all__ = [
    "ConversationModel",
    "MessageModel",
    "OutboxMessageModel",
    "ParticipantModel",
    "ProfileModel",
]
