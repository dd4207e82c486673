"""Receiving-side message list for one conversation.

History (fetch_messages) and live delivery (subscribe) overlap with no ordering
guarantee between them, so every message is merged by id.
"""
from __future__ import annotations

import bisect
from datetime import date, datetime
from uuid import UUID

from dm_service.domain.entities.message import Message


class MessageTimeline:
    def __init__(self, conversation_id: UUID) -> None:
        self.conversation_id = conversation_id
        self._messages: list[Message] = []
        self._keys: list[tuple[datetime, UUID]] = []
        self._ids: set[UUID] = set()

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def add(self, message: Message) -> bool:
        """Insert if absent by id. Returns False for duplicates."""
        if message.conversation_id != self.conversation_id:
            raise ValueError(
                f"Message {message.id} belongs to conversation {message.conversation_id}"
            )
        if message.id in self._ids:
            return False
        key = message.sort_key
        idx = bisect.bisect_right(self._keys, key)
        self._keys.insert(idx, key)
        self._messages.insert(idx, message)
        self._ids.add(message.id)
        return True

    def merge(self, messages: list[Message]) -> int:
        """Add many messages, return how many were new."""
        return sum(1 for m in messages if self.add(m))

    def by_day(self) -> list[tuple[date, list[Message]]]:
        groups: list[tuple[date, list[Message]]] = []
        for message in self._messages:
            day = message.created_at.date()
            if groups and groups[-1][0] == day:
                groups[-1][1].append(message)
            else:
                groups.append((day, [message]))
        return groups
