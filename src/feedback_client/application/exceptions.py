from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class ValidationError(AppError):
    pass


class StoreError(AppError):
    """The backing record store failed."""


class EnqueueError(StoreError):
    """A payload could not be durably queued; the caller's action did not happen."""
