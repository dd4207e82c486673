"""In-process WebSocket connection manager."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import WebSocket

from dm_service.application.ports.feed import Subscription
from dm_service.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks WebSocket connections and the feed subscriptions each one holds.

    Subscriptions are owned by their connection: disconnect cancels all of them.
    """

    def __init__(self) -> None:
        self._principals: dict[WebSocket, str] = {}
        self._subscriptions: dict[WebSocket, dict[str, Subscription]] = {}

    @property
    def connection_count(self) -> int:
        return len(self._principals)

    async def connect(self, ws: WebSocket, principal_key: str) -> None:
        await ws.accept()
        self._principals[ws] = principal_key
        self._subscriptions[ws] = {}
        logger.debug("WS connected: %s (total=%d)", principal_key, len(self._principals))

    def disconnect(self, ws: WebSocket) -> None:
        principal_key = self._principals.pop(ws, None)
        for subscription in self._subscriptions.pop(ws, {}).values():
            subscription.cancel()
        if principal_key is not None:
            logger.debug("WS disconnected: %s", principal_key)

    def add_subscription(self, ws: WebSocket, key: str, subscription: Subscription) -> None:
        subs = self._subscriptions.get(ws)
        if subs is None:
            # connection already gone
            subscription.cancel()
            return
        previous = subs.pop(key, None)
        if previous is not None:
            previous.cancel()
        subs[key] = subscription

    def remove_subscription(self, ws: WebSocket, key: str) -> bool:
        subscription = self._subscriptions.get(ws, {}).pop(key, None)
        if subscription is None:
            return False
        subscription.cancel()
        return True

    def has_subscription(self, ws: WebSocket, key: str) -> bool:
        return key in self._subscriptions.get(ws, {})

    async def send(self, ws: WebSocket, event_type: str, data: dict[str, Any]) -> None:
        payload = WsOutbound(type=event_type, data=data)
        await ws.send_text(payload.model_dump_json())
