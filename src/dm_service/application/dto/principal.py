from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity extracted from JWT."""

    user_id: UUID
    role: str = "authenticated"

    @property
    def principal_key(self) -> str:
        """Unique key for WS connection registry."""
        return f"user:{self.user_id}"
