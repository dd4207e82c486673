from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ForbiddenError(AppError):
    """Actor is not a participant of the target conversation."""


class ValidationError(AppError):
    """Malformed input, raised before any store access."""


class StoreError(AppError):
    """Record store failure (network, timeout, constraint). Never retried here."""
