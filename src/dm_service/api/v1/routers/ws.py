from __future__ import annotations

import asyncio
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PayloadError

from dm_service.api.deps import FeedDep, UoWFactory, UoWFactoryDep, get_verifier
from dm_service.application.dto.events import ChangeEvent
from dm_service.application.dto.principal import Principal
from dm_service.application.exceptions import AppError
from dm_service.application.ports.feed import ChangeFeed
from dm_service.config import settings
from dm_service.domain.entities.message import Message
from dm_service.infrastructure.ws.manager import ConnectionManager
from dm_service.infrastructure.ws.protocol import (
    ConversationRef,
    SendMessageData,
    WsInbound,
    WsOutbound,
)
from dm_service.services import conversation_service, message_service, subscription_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

manager = ConnectionManager()

INBOX_KEY = "inbox"


def _message_data(msg: Message) -> dict[str, Any]:
    return {
        "id": str(msg.id),
        "conversation_id": str(msg.conversation_id),
        "sender_id": str(msg.sender_id),
        "body": msg.body,
        "created_at": msg.created_at.isoformat(),
    }


def _describe(exc: PayloadError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


class _Session:
    """One authenticated WebSocket connection."""

    def __init__(
        self,
        ws: WebSocket,
        principal: Principal,
        feed: ChangeFeed,
        open_uow: UoWFactory,
    ) -> None:
        self.ws = ws
        self.principal = principal
        self.feed = feed
        self.open_uow = open_uow

    async def send(self, event_type: str, data: dict[str, Any]) -> None:
        await manager.send(self.ws, event_type, data)

    async def error(self, code: str, detail: str = "") -> None:
        await self.send("error", {"code": code, "detail": detail})

    async def read_loop(self) -> None:
        while True:
            raw = await self.ws.receive_text()
            try:
                msg = WsInbound.model_validate_json(raw)
            except Exception:
                await self.error("invalid_payload")
                continue

            try:
                await self._handle(msg)
            except AppError as exc:
                await self.error(type(exc).__name__, exc.detail)
            except PayloadError as exc:
                await self.error("invalid_data", _describe(exc))

    async def _handle(self, msg: WsInbound) -> None:
        if msg.type == "ping":
            await self.send("pong", {})

        elif msg.type == "subscribe":
            ref = ConversationRef.model_validate(msg.data)
            await self._subscribe(ref.conversation_id)

        elif msg.type == "unsubscribe":
            ref = ConversationRef.model_validate(msg.data)
            manager.remove_subscription(self.ws, str(ref.conversation_id))
            await self.send("unsubscribed", {"conversation_id": str(ref.conversation_id)})

        elif msg.type == "subscribe_inbox":
            await self._subscribe_inbox()

        elif msg.type == "message.send":
            payload = SendMessageData.model_validate(msg.data)
            await self._send_message(payload.conversation_id, payload.body)

        else:
            await self.error("unknown_type", msg.type)

    async def _subscribe(self, conversation_id: UUID) -> None:
        async with self.open_uow() as uow:
            await conversation_service.get_conversation(
                conversation_id, self.principal.user_id, uow,
            )

        async def _on_message(message: Message) -> None:
            await self.send("message.created", _message_data(message))

        subscription = subscription_service.subscribe(conversation_id, _on_message, self.feed)
        manager.add_subscription(self.ws, str(conversation_id), subscription)
        await self.send("subscribed", {"conversation_id": str(conversation_id)})

    async def _subscribe_inbox(self) -> None:
        async def _on_event(event: ChangeEvent) -> None:
            await self.send(
                "conversations.changed",
                {
                    "table": event.table,
                    "type": event.type,
                    "conversation_id": event.record.get("conversation_id"),
                },
            )

        async with self.open_uow() as uow:
            subscription = await subscription_service.subscribe_all_for_user(
                self.principal.user_id, _on_event, self.feed, uow,
            )
        manager.add_subscription(self.ws, INBOX_KEY, subscription)
        await self.send("subscribed", {"inbox": True})

    async def _send_message(self, conversation_id: UUID, body: str) -> None:
        # Delivery back to this and other clients goes through the change feed
        async with self.open_uow() as uow:
            msg = await message_service.send_message(
                conversation_id, self.principal.user_id, body, uow,
            )
        await self.send("message.sent", _message_data(msg))


@router.websocket("/ws/dm")
async def ws_dm(
    websocket: WebSocket,
    feed: FeedDep,
    open_uow: UoWFactoryDep,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    pkey = principal.principal_key
    await manager.connect(websocket, pkey)
    session = _Session(websocket, principal, feed, open_uow)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{pkey}",
    )
    try:
        await session.read_loop()
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", pkey)
    finally:
        heartbeat_task.cancel()
        manager.disconnect(websocket)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(WsOutbound(type="pong", data={}).model_dump_json())
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("WS heartbeat stopped", exc_info=True)
