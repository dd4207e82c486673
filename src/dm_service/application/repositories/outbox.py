from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from dm_service.application.dto.events import ChangeEvent


class OutboxWriter(Protocol):
    async def add(self, event: ChangeEvent) -> None:
        """Stage a change event in the current transaction."""
        ...

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        """Claim the oldest unsent records in id order, due or not."""
        ...


    async def mark_sent(self, ids: list[int]) -> None: ...

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None: ...

    async def release(self, ids: list[int]) -> None:
        """Return claimed records to pending without counting an attempt."""
        ...

    async def mark_dead(self, ids: list[int]) -> None: ...


class OutboxRecord:
    """Lightweight read-model for the outbox worker."""

    __slots__ = ("id", "event_type", "payload", "attempts", "next_retry_at")

    def __init__(
        self,
        id: int,
        event_type: str,
        payload: dict[str, Any],
        attempts: int,
        next_retry_at: datetime | None = None,
    ) -> None:
        self.id = id
        self.event_type = event_type
        self.payload = payload
        self.attempts = attempts
        self.next_retry_at = next_retry_at

    def to_event(self) -> ChangeEvent:
        return ChangeEvent.parse(self.event_type, self.payload)
