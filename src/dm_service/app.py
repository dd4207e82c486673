from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dm_service.api.middleware.correlation_id import CorrelationIdMiddleware
from dm_service.api.middleware.metrics import RequestTimingMiddleware
from dm_service.api.v1.routers import (
    conversations,
    health,
    messages,
    profiles,
    ws,
)
from dm_service.application.exceptions import (
    AppError,
    ForbiddenError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from dm_service.config import settings
from dm_service.infrastructure.feed.redis_feed import RedisChangeFeed

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    feed = RedisChangeFeed(redis, settings.CHANGE_FEED_CHANNEL)
    await feed.start()
    app.state.redis = redis
    app.state.feed = feed
    try:
        yield
    finally:
        await feed.stop()
        await redis.aclose()
        logger.info("Change feed and Redis pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Direct Messages Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(profiles.router)
    app.include_router(ws.router)

    return app


_ERROR_STATUS: dict[type[AppError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    ForbiddenError: 403,
    StoreError: 503,
}


async def _app_error(request: Request, exc: AppError) -> JSONResponse:
    status_code = _ERROR_STATUS.get(type(exc), 400)
    if isinstance(exc, StoreError):
        # driver messages can leak connection details
        logger.error("Store error on %s: %s", request.url.path, exc.detail)
        return JSONResponse(status_code=status_code, content={"detail": "Storage unavailable"})
    return JSONResponse(status_code=status_code, content={"detail": exc.detail})


def _register_exception_handlers(app: FastAPI) -> None:
    for error_type in _ERROR_STATUS:
        app.add_exception_handler(error_type, _app_error)
