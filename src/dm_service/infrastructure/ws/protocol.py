"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # ping | subscribe | unsubscribe | subscribe_inbox | message.send
    data: dict[str, Any] = {}


class ConversationRef(BaseModel):
    """``data`` of subscribe / unsubscribe."""

    conversation_id: UUID


class SendMessageData(BaseModel):
    """``data`` of message.send; same body limit as the REST endpoint."""

    conversation_id: UUID
    body: str = Field(max_length=4000)


class WsOutbound(BaseModel):
    """Server → Client."""

    # pong | subscribed | unsubscribed | message.created | message.sent
    # | conversations.changed | error
    type: str
    data: dict[str, Any] = {}
