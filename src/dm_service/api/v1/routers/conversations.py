from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from dm_service.api.deps import CurrentPrincipal, UoWDep
from dm_service.api.v1.schemas.conversation import (
    ConversationDetailResponse,
    ConversationSummaryResponse,
    StartConversationRequest,
    StartConversationResponse,
)
from dm_service.api.v1.schemas.profile import ProfileResponse
from dm_service.services import conversation_service

router = APIRouter(prefix="/api/v1/dm/conversations", tags=["conversations"])


@router.post("", response_model=StartConversationResponse)
async def start_conversation(
    body: StartConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> StartConversationResponse:
    conversation_id = await conversation_service.find_or_create_conversation(
        principal.user_id, body.user_id, uow,
    )
    return StartConversationResponse(conversation_id=conversation_id)


@router.get("", response_model=list[ConversationSummaryResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[ConversationSummaryResponse]:
    summaries = await conversation_service.list_conversations(principal.user_id, uow)
    return [ConversationSummaryResponse.from_summary(s) for s in summaries]


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationDetailResponse:
    conversation = await conversation_service.get_conversation(
        conversation_id, principal.user_id, uow,
    )
    # partner profile may be gone from the directory; the conversation is still readable
    partner = await conversation_service.find_partner(conversation.id, principal.user_id, uow)
    return ConversationDetailResponse(
        id=conversation.id,
        created_at=conversation.created_at,
        other_user=ProfileResponse.model_validate(partner) if partner else None,
    )
