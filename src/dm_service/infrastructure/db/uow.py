from __future__ import annotations

from types import TracebackType
from typing import Self

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dm_service.application.exceptions import StoreError
from dm_service.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from dm_service.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from dm_service.infrastructure.db.repositories.outbox import OutboxWriterRepo
from dm_service.infrastructure.db.repositories.participant import (
    ParticipantReaderRepo,
    ParticipantWriterRepo,
)
from dm_service.infrastructure.db.repositories.profile import ProfileReaderRepo


class SqlAlchemyUoW:
    """Concrete Unit-of-Work backed by a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.conversations = ConversationReaderRepo(session)
        self.conversations_w = ConversationWriterRepo(session)
        self.participants = ParticipantReaderRepo(session)
        self.participants_w = ParticipantWriterRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.profiles = ProfileReaderRepo(session)
        self.outbox = OutboxWriterRepo(session)

    async def flush(self) -> None:
        try:
            await self._session.flush()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()
