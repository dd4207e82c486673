from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from dm_service.domain.entities.message import Message
from dm_service.domain.entities.participant import Participant
from dm_service.domain.value_objects.enums import ChangeType, FeedTable


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A committed row change as delivered by the change feed.

    ``record`` is JSON-safe: identifiers and timestamps are strings.
    """

    table: str
    type: ChangeType
    record: dict[str, Any] = field(default_factory=dict)

    @property
    def event_type(self) -> str:
        return f"{self.table}.{self.type}"

    @classmethod
    def parse(cls, event_type: str, record: dict[str, Any]) -> ChangeEvent:
        table, _, change = event_type.rpartition(".")
        if not table:
            raise ValueError(f"Malformed change event type: {event_type!r}")
        return cls(table=table, type=ChangeType(change), record=dict(record))


def message_event(message: Message, change: ChangeType = ChangeType.INSERT) -> ChangeEvent:
    return ChangeEvent(
        table=FeedTable.MESSAGES,
        type=change,
        record={
            "id": str(message.id),
            "conversation_id": str(message.conversation_id),
            "sender_id": str(message.sender_id),
            "body": message.body,
            "created_at": message.created_at.isoformat(),
        },
    )


def participant_event(participant: Participant) -> ChangeEvent:
    return ChangeEvent(
        table=FeedTable.PARTICIPANTS,
        type=ChangeType.INSERT,
        record={
            "conversation_id": str(participant.conversation_id),
            "user_id": str(participant.user_id),
            "joined_at": participant.joined_at.isoformat(),
        },
    )


def message_from_record(record: dict[str, Any]) -> Message:
    return Message(
        id=UUID(str(record["id"])),
        conversation_id=UUID(str(record["conversation_id"])),
        sender_id=UUID(str(record["sender_id"])),
        body=record["body"],
        created_at=datetime.fromisoformat(str(record["created_at"])),
    )
