from __future__ import annotations

from enum import StrEnum


class ChangeType(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class FeedTable(StrEnum):
    """Tables whose row changes are published on the change feed."""

    MESSAGES = "messages"
    PARTICIPANTS = "conversation_participants"
