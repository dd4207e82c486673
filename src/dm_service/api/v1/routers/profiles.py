from __future__ import annotations

from fastapi import APIRouter, Query

from dm_service.api.deps import CurrentPrincipal, UoWDep
from dm_service.api.v1.schemas.profile import ProfileResponse
from dm_service.config import settings
from dm_service.services import profile_service

router = APIRouter(prefix="/api/v1/dm/profiles", tags=["profiles"])


@router.get("/search", response_model=list[ProfileResponse])
async def search_profiles(
    principal: CurrentPrincipal,
    uow: UoWDep,
    q: str = Query("", max_length=100),
) -> list[ProfileResponse]:
    profiles = await profile_service.search_profiles(
        q, uow, exclude_user_id=principal.user_id, limit=settings.PROFILE_SEARCH_LIMIT,
    )
    return [ProfileResponse.model_validate(p) for p in profiles]
