"""Store failures surfaced by the stock and progression engines."""

from __future__ import annotations


class StoreError(Exception):
    """A backing-store call failed.

    ``step`` names the operation that failed (e.g. ``"read stock"``) so the
    engines can log and report it without inspecting driver exceptions.
    """

    def __init__(self, step: str, cause: BaseException | None = None) -> None:
        self.step = step
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{step} failed{detail}")


class StoreReadError(StoreError):
    """Reading dose history, schedules or stock failed."""


class StoreWriteError(StoreError):
    """Persisting a stock mutation failed."""
