"""Queries against the ``stock``, ``schedules`` and ``dose_instances`` tables."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

import asyncpg

from horamed._helpers import _row_to_dict, store_read, store_write
from horamed.models import ScheduleDefinition, StockRecord

logger = logging.getLogger(__name__)


@store_read("read stock")
async def fetch_stock(pool: asyncpg.Pool, item_id: uuid.UUID) -> StockRecord | None:
    """Return the item's stock record, or None when stock tracking is off."""
    row = await pool.fetchrow(
        """
        SELECT id, item_id, units_left, units_total, projected_end_at, updated_at
        FROM stock
        WHERE item_id = $1
        """,
        item_id,
    )
    if row is None:
        return None
    return StockRecord.from_row(_row_to_dict(row))


@store_read("count taken doses")
async def count_taken_doses_since(
    pool: asyncpg.Pool,
    item_id: uuid.UUID,
    since: datetime,
) -> int:
    count = await pool.fetchval(
        """
        SELECT count(*)
        FROM dose_instances
        WHERE item_id = $1 AND status = 'taken' AND taken_at >= $2
        """,
        item_id,
        since,
    )
    return int(count or 0)


@store_read("read schedules")
async def fetch_active_schedules(
    pool: asyncpg.Pool,
    item_id: uuid.UUID,
) -> list[ScheduleDefinition]:
    rows = await pool.fetch(
        "SELECT item_id, times, is_active FROM schedules WHERE item_id = $1 AND is_active = true",
        item_id,
    )
    schedules = []
    for row in rows:
        d = _row_to_dict(row)
        schedules.append(
            ScheduleDefinition(
                item_id=d["item_id"],
                times=list(d.get("times") or []),
                is_active=d["is_active"],
            )
        )
    return schedules


@store_write("write stock")
async def decrement_stock(
    pool: asyncpg.Pool,
    item_id: uuid.UUID,
    now: datetime,
    daily_rate: float,
) -> dict[str, Any] | None:
    """Atomically take one unit and re-project depletion in a single statement.

    Column references on the right-hand side of SET see the pre-update row,
    so ``units_left - 1`` is the new count. Returns None when no row with
    ``units_left > 0`` exists (already at zero, or lost a race to zero).
    """
    row = await pool.fetchrow(
        """
        UPDATE stock
        SET units_left = units_left - 1,
            projected_end_at = CASE
                WHEN units_left - 1 <= 0 THEN $2::timestamptz
                ELSE $2::timestamptz + make_interval(secs => (units_left - 1) / $3::float8 * 86400)
            END,
            updated_at = $2
        WHERE item_id = $1 AND units_left > 0
        RETURNING units_left, projected_end_at
        """,
        item_id,
        now,
        daily_rate,
    )
    return _row_to_dict(row) if row is not None else None


@store_write("write projection")
async def update_projection(
    pool: asyncpg.Pool,
    item_id: uuid.UUID,
    projected_end_at: datetime | None,
) -> None:
    await pool.execute(
        "UPDATE stock SET projected_end_at = $2 WHERE item_id = $1",
        item_id,
        projected_end_at,
    )


@store_read("read user stock")
async def fetch_user_stock(pool: asyncpg.Pool, user_id: str) -> list[dict[str, Any]]:
    """Stock rows joined with their item, for the user's active items."""
    rows = await pool.fetch(
        """
        SELECT s.id, s.item_id, s.units_left, s.units_total, s.projected_end_at,
               s.last_refill_at, i.name AS item_name, i.treatment_end_date
        FROM stock s
        JOIN items i ON i.id = s.item_id
        WHERE i.user_id = $1 AND i.is_active = true
        """,
        user_id,
    )
    return [_row_to_dict(r) for r in rows]


@store_read("read item doses")
async def fetch_item_doses_due_since(
    pool: asyncpg.Pool,
    item_ids: list[uuid.UUID],
    since: datetime,
) -> list[dict[str, Any]]:
    if not item_ids:
        return []
    rows = await pool.fetch(
        """
        SELECT item_id, status, taken_at, due_at
        FROM dose_instances
        WHERE item_id = ANY($1::uuid[]) AND due_at >= $2
        """,
        item_ids,
        since,
    )
    return [_row_to_dict(r) for r in rows]
