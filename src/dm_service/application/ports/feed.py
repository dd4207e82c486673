from __future__ import annotations

from types import TracebackType
from typing import Any, Awaitable, Callable, Protocol, Self

from dm_service.application.dto.events import ChangeEvent

OnChangeCallback = Callable[[ChangeEvent], Awaitable[None]]


class Subscription(Protocol):
    """Handle for an active feed listener.

    ``cancel()`` is synchronous and idempotent. Use as a context manager to
    release the listener on every exit path of the owning scope.
    """

    @property
    def active(self) -> bool: ...

    def cancel(self) -> None: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...


class ChangeFeed(Protocol):
    def subscribe(
        self,
        table: str,
        callback: OnChangeCallback,
        *,
        column: str | None = None,
        value: Any = None,
    ) -> Subscription:
        """Listen to committed changes of ``table``.

        When ``column`` is given only events whose record has
        ``record[column] == value`` are delivered.
        """
        ...


class SubscriptionGroup:
    """Several subscriptions released together."""

    def __init__(self, *subscriptions: Subscription) -> None:
        self._subscriptions = list(subscriptions)

    @property
    def active(self) -> bool:
        return any(s.active for s in self._subscriptions)

    def cancel(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.cancel()
