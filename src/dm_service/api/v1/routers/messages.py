from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter

from dm_service.api.deps import CurrentPrincipal, UoWDep
from dm_service.api.v1.schemas.message import MessageResponse, SendMessageRequest
from dm_service.services import message_service

router = APIRouter(prefix="/api/v1/dm/conversations", tags=["messages"])


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[MessageResponse]:
    messages = await message_service.fetch_messages(
        conversation_id, uow, viewer_id=principal.user_id,
    )
    return [MessageResponse.model_validate(m) for m in messages]


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: UUID,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg = await message_service.send_message(
        conversation_id, principal.user_id, body.body, uow,
    )
    return MessageResponse.model_validate(msg)
