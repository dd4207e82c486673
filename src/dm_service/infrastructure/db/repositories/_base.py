from __future__ import annotations

from typing import Any

from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import Executable

from dm_service.application.exceptions import StoreError


class SessionRepo:
    """Common session access; store failures surface as StoreError."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _execute(self, stmt: Executable) -> Result[Any]:
        try:
            return await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    async def _get(self, model: type[Any], ident: Any) -> Any:
        try:
            return await self._session.get(model, ident)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    async def _add(self, model: Any) -> None:
        self._session.add(model)
        try:
            await self._session.flush()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
