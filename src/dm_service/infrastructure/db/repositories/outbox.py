from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update

from dm_service.application.dto.events import ChangeEvent
from dm_service.application.repositories.outbox import OutboxRecord
from dm_service.infrastructure.db.models.outbox import OutboxMessageModel
from dm_service.infrastructure.db.repositories._base import SessionRepo


class OutboxWriterRepo(SessionRepo):
    async def add(self, event: ChangeEvent) -> None:
        await self._add(OutboxMessageModel(event_type=event.event_type, payload=event.record))

    async def fetch_pending(self, batch_size: int) -> list[OutboxRecord]:
        # id order is insertion order, which the feed preserves on publish
        stmt = (
            select(OutboxMessageModel)
            .where(OutboxMessageModel.status.in_(["pending", "failed"]))
            .order_by(OutboxMessageModel.id.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        result = await self._execute(stmt)
        rows = result.scalars().all()

        if rows:
            ids = [r.id for r in rows]
            await self._execute(
                update(OutboxMessageModel)
                .where(OutboxMessageModel.id.in_(ids))
                .values(status="processing")
            )

        return [
            OutboxRecord(
                id=r.id,
                event_type=r.event_type,
                payload=r.payload,
                attempts=r.attempts,
                next_retry_at=r.next_retry_at,
            )
            for r in rows
        ]

    async def mark_sent(self, ids: list[int]) -> None:
        if not ids:
            return
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(ids))
            .values(status="sent", published_at=func.now())
        )
        await self._execute(stmt)

    async def mark_failed(self, record_id: int, next_retry_at: datetime) -> None:
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id == record_id)
            .values(
                status="failed",
                attempts=OutboxMessageModel.attempts + 1,
                next_retry_at=next_retry_at,
            )
        )
        await self._execute(stmt)

    async def release(self, ids: list[int]) -> None:
        if not ids:
            return
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(ids))
            .values(status="pending")
        )
        await self._execute(stmt)

    async def mark_dead(self, ids: list[int]) -> None:
        if not ids:
            return
        stmt = (
            update(OutboxMessageModel)
            .where(OutboxMessageModel.id.in_(ids))
            .values(status="dead")
        )
        await self._execute(stmt)
