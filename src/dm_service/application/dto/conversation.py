from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from dm_service.domain.entities.conversation import Conversation
from dm_service.domain.entities.message import Message
from dm_service.domain.entities.profile import Profile


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    """A conversation decorated for list display."""

    conversation: Conversation
    other_user: Profile | None
    last_message: Message | None

    @property
    def id(self) -> UUID:
        return self.conversation.id

    @property
    def last_activity_at(self) -> datetime:
        if self.last_message is not None:
            return self.last_message.created_at
        return self.conversation.created_at
