from __future__ import annotations

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")

HEADER = "X-Request-ID"
MAX_LENGTH = 64


def _incoming_id(request: Request) -> str | None:
    value = request.headers.get(HEADER, "").strip()
    if not value or len(value) > MAX_LENGTH:
        return None
    return value


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's request id (or mint one) and echo it back."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        cid = _incoming_id(request) or uuid.uuid4().hex
        token = correlation_id_ctx.set(cid)
        try:
            response = await call_next(request)
            response.headers[HEADER] = cid
            return response
        finally:
            correlation_id_ctx.reset(token)
