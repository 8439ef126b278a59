"""Exceptions raised by tabular store implementations."""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for all store errors."""


class StoreUnavailable(StoreError):
    """The backing store could not be reached or rejected the request.

    Always fatal for the current invocation; the core never retries.
    """

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        super().__init__(message)


class SheetNotFound(StoreError):
    """A range addressed a sheet that does not exist yet."""

    def __init__(self, title: str) -> None:
        self.title = title
        super().__init__(f"Sheet '{title}' does not exist.")


class InvalidRange(StoreError):
    """An A1-notation range could not be parsed."""
