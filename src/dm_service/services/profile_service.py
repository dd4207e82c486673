from __future__ import annotations

import uuid

from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.profile import Profile


async def search_profiles(
    query: str,
    uow: UnitOfWork,
    *,
    exclude_user_id: uuid.UUID | None = None,
    limit: int = 10,
) -> list[Profile]:
    """Find people to message by username or display name."""
    query = query.strip()
    if not query:
        return []
    return await uow.profiles.search(query, exclude_id=exclude_user_id, limit=max(1, limit))
