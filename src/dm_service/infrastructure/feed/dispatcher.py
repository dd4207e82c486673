"""In-process fan-out of change events to subscribed listeners."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Self

from dm_service.application.dto.events import ChangeEvent
from dm_service.application.ports.feed import OnChangeCallback

logger = logging.getLogger(__name__)


class FeedSubscription:
    """Handle returned by FeedDispatcher.subscribe."""

    def __init__(self, dispatcher: FeedDispatcher, table: str) -> None:
        self._dispatcher = dispatcher
        self._table = table
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._dispatcher._remove(self._table, self)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.cancel()


@dataclass(frozen=True, slots=True)
class _Listener:
    subscription: FeedSubscription
    callback: OnChangeCallback
    column: str | None
    value: Any

    def matches(self, event: ChangeEvent) -> bool:
        if self.column is None:
            return True
        if self.column not in event.record:
            return False
        return str(event.record[self.column]) == str(self.value)


class FeedDispatcher:
    """Routes each event to the listeners of its table, in subscription order.

    Callbacks are awaited one after another, so every listener observes
    events in the order they were dispatched. A cancelled subscription is
    skipped even if it was cancelled while the event was being delivered.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[_Listener]] = {}

    def subscribe(
        self,
        table: str,
        callback: OnChangeCallback,
        *,
        column: str | None = None,
        value: Any = None,
    ) -> FeedSubscription:
        subscription = FeedSubscription(self, table)
        self._listeners.setdefault(table, []).append(
            _Listener(subscription, callback, column, value)
        )
        logger.debug("Feed listener added: table=%s %s=%s", table, column, value)
        return subscription

    def listener_count(self, table: str | None = None) -> int:
        if table is not None:
            return len(self._listeners.get(table, []))
        return sum(len(v) for v in self._listeners.values())

    async def dispatch(self, event: ChangeEvent) -> int:
        """Deliver one event; returns the number of callbacks invoked."""
        delivered = 0
        for listener in list(self._listeners.get(event.table, [])):
            if not listener.subscription.active or not listener.matches(event):
                continue
            try:
                await listener.callback(event)
            except Exception:
                logger.exception("Feed listener failed for %s", event.event_type)
            delivered += 1
        return delivered

    def _remove(self, table: str, subscription: FeedSubscription) -> None:
        listeners = self._listeners.get(table)
        if not listeners:
            return
        listeners[:] = [entry for entry in listeners if entry.subscription is not subscription]
        if not listeners:
            del self._listeners[table]
