from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Profile:
    """Read-only view of a user from the external profile directory."""

    id: UUID
    username: str
    display_name: str | None = None
    avatar_url: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.username
