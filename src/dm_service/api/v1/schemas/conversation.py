from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from dm_service.api.v1.schemas.message import MessageResponse
from dm_service.api.v1.schemas.profile import ProfileResponse
from dm_service.application.dto.conversation import ConversationSummary


class StartConversationRequest(BaseModel):
    user_id: UUID


class StartConversationResponse(BaseModel):
    conversation_id: UUID


class ConversationSummaryResponse(BaseModel):
    id: UUID
    created_at: datetime
    last_activity_at: datetime
    other_user: ProfileResponse | None
    last_message: MessageResponse | None

    @classmethod
    def from_summary(cls, summary: ConversationSummary) -> ConversationSummaryResponse:
        return cls(
            id=summary.id,
            created_at=summary.conversation.created_at,
            last_activity_at=summary.last_activity_at,
            other_user=(
                ProfileResponse.model_validate(summary.other_user)
                if summary.other_user
                else None
            ),
            last_message=(
                MessageResponse.model_validate(summary.last_message)
                if summary.last_message
                else None
            ),
        )


class ConversationDetailResponse(BaseModel):
    id: UUID
    created_at: datetime
    other_user: ProfileResponse | None
