from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from dm_service.infrastructure.db.session import AsyncSessionLocal

router = APIRouter(tags=["health"])


async def _check_postgres() -> str | None:
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        return f"postgres: {exc}"
    return None


async def _check_redis(request: Request) -> str | None:
    try:
        await request.app.state.redis.ping()
    except Exception as exc:  # noqa: BLE001
        return f"redis: {exc}"
    return None


def _check_feed(request: Request) -> str | None:
    feed = getattr(request.app.state, "feed", None)
    if feed is None or not getattr(feed, "running", False):
        return "change feed: subscriber not running"
    return None


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    """Ready when the store, Redis and the change-feed subscriber all respond."""
    results = [
        await _check_postgres(),
        await _check_redis(request),
        _check_feed(request),
    ]
    errors = [r for r in results if r is not None]
    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors},
        )
    return JSONResponse(content={"status": "ready"})
