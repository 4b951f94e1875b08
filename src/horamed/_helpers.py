"""Shared helpers for the HoraMed store functions."""

from __future__ import annotations

import json
import math
import uuid
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

import asyncpg

from horamed.errors import StoreReadError, StoreWriteError

P = ParamSpec("P")
T = TypeVar("T")

# Driver-level failures the store translates; anything else is a bug and propagates.
STORE_FAILURES: tuple[type[BaseException], ...] = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    TimeoutError,
)


def _row_to_dict(row: Any) -> dict[str, Any]:
    """Convert an asyncpg Record to a dict, parsing JSONB strings."""
    d = dict(row)
    for key in ("times", "consumption_history"):
        if key in d and isinstance(d[key], str):
            d[key] = json.loads(d[key])
    return d


def _wrap_store_call(
    error_cls: type[StoreReadError] | type[StoreWriteError], step: str
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except STORE_FAILURES as exc:
                raise error_cls(step, exc) from exc

        return wrapper

    return decorator


def store_read(step: str):
    """Translate driver failures raised by *func* into ``StoreReadError(step)``."""
    return _wrap_store_call(StoreReadError, step)


def store_write(step: str):
    """Translate driver failures raised by *func* into ``StoreWriteError(step)``."""
    return _wrap_store_call(StoreWriteError, step)


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    return uuid.UUID(value) if isinstance(value, str) else value


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (``round`` uses banker's rounding)."""
    return math.floor(value + 0.5)
