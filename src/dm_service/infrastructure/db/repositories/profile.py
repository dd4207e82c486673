from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select

from dm_service.domain.entities.profile import Profile
from dm_service.infrastructure.db.mappers import profile as mapper
from dm_service.infrastructure.db.models.profile import ProfileModel
from dm_service.infrastructure.db.repositories._base import SessionRepo


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class ProfileReaderRepo(SessionRepo):
    async def get_by_id(self, user_id: UUID) -> Profile | None:
        result = await self._get(ProfileModel, user_id)
        return mapper.model_to_entity(result) if result else None

    async def get_many(self, user_ids: list[UUID]) -> list[Profile]:
        if not user_ids:
            return []
        stmt = select(ProfileModel).where(ProfileModel.id.in_(user_ids))
        result = await self._execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def search(
        self, query: str, *, exclude_id: UUID | None = None, limit: int = 10
    ) -> list[Profile]:
        pattern = _like_pattern(query)
        stmt = select(ProfileModel).where(
            or_(
                ProfileModel.username.ilike(pattern, escape="\\"),
                ProfileModel.display_name.ilike(pattern, escape="\\"),
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(ProfileModel.id != exclude_id)
        stmt = stmt.order_by(ProfileModel.username).limit(limit)
        result = await self._execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]
