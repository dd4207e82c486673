from __future__ import annotations

from typing import Protocol
from uuid import UUID

from dm_service.domain.entities.profile import Profile


class ProfileReader(Protocol):
    async def get_by_id(self, user_id: UUID) -> Profile | None: ...

    async def get_many(self, user_ids: list[UUID]) -> list[Profile]: ...

    async def search(
        self, query: str, *, exclude_id: UUID | None = None, limit: int = 10
    ) -> list[Profile]:
        """Case-insensitive substring match on username or display name."""
        ...
