"""Dose-history queries scoped to a user through ``items.user_id``."""

from __future__ import annotations

from datetime import datetime

import asyncpg

from horamed._helpers import _row_to_dict, store_read
from horamed.models import DoseInstance

_DOSE_COLUMNS = "d.id, d.item_id, d.due_at, d.status, d.taken_at, d.delay_minutes"


@store_read("read taken doses")
async def fetch_taken_doses(pool: asyncpg.Pool, user_id: str) -> list[DoseInstance]:
    """Every taken dose of the user, across all items."""
    rows = await pool.fetch(
        f"""
        SELECT {_DOSE_COLUMNS}
        FROM dose_instances d
        JOIN items i ON i.id = d.item_id
        WHERE i.user_id = $1 AND d.status = 'taken'
        """,
        user_id,
    )
    return [DoseInstance.from_row(_row_to_dict(r)) for r in rows]


@store_read("read dose history")
async def fetch_doses_due_since(
    pool: asyncpg.Pool,
    user_id: str,
    since: datetime,
) -> list[DoseInstance]:
    """All doses of the user (any status) due at or after *since*, oldest first."""
    rows = await pool.fetch(
        f"""
        SELECT {_DOSE_COLUMNS}
        FROM dose_instances d
        JOIN items i ON i.id = d.item_id
        WHERE i.user_id = $1 AND d.due_at >= $2
        ORDER BY d.due_at
        """,
        user_id,
        since,
    )
    return [DoseInstance.from_row(_row_to_dict(r)) for r in rows]
