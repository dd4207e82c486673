from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class ProfileResponse(BaseModel):
    id: UUID
    username: str
    display_name: str | None
    avatar_url: str | None

    model_config = {"from_attributes": True}
