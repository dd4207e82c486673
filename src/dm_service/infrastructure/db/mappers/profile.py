from __future__ import annotations

from dm_service.domain.entities.profile import Profile
from dm_service.infrastructure.db.models.profile import ProfileModel


def model_to_entity(model: ProfileModel) -> Profile:
    return Profile(
        id=model.id,
        username=model.username,
        display_name=model.display_name,
        avatar_url=model.avatar_url,
    )
