from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Conversation:
    """A two-party messaging thread.

    Last activity is not stored; it is derived from the newest message.
    """

    id: UUID
    created_at: datetime
