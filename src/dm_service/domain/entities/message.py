from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    body: str
    created_at: datetime

    @property
    def sort_key(self) -> tuple[datetime, UUID]:
        """Display order within a conversation: oldest first, ties by id."""
        return self.created_at, self.id
