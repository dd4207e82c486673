"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncContextManager, AsyncIterator, Callable

from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dm_service.application.dto.principal import Principal
from dm_service.application.ports.auth import TokenVerifier
from dm_service.application.ports.feed import ChangeFeed
from dm_service.application.uow import UnitOfWork
from dm_service.config import settings
from dm_service.infrastructure.auth.hs256_verifier import HS256Verifier
from dm_service.infrastructure.db.session import open_uow

_bearer_scheme = HTTPBearer()

UoWFactory = Callable[[], AsyncContextManager[UnitOfWork]]


def get_uow_factory() -> UoWFactory:
    """Long-lived handlers (WebSocket) open one unit of work per operation."""
    return open_uow


async def get_uow(
    factory: Annotated[UoWFactory, Depends(get_uow_factory)],
) -> AsyncIterator[UnitOfWork]:
    async with factory() as uow:
        yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]
UoWFactoryDep = Annotated[UoWFactory, Depends(get_uow_factory)]


def get_feed(conn: HTTPConnection) -> ChangeFeed:
    return conn.app.state.feed


FeedDep = Annotated[ChangeFeed, Depends(get_feed)]

_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = HS256Verifier(
            settings.JWT_SECRET,
            settings.JWT_ALGORITHM,
            audience=settings.JWT_AUDIENCE,
        )
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
