"""Daily consumption rate estimation.

Fallback order: doses taken in the trailing 7 days, then the number of
daily times across the item's active schedules, then one dose a day.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta

import asyncpg

from horamed.models import ScheduleDefinition
from horamed.stock import store
from horamed.stock.cache import ScheduleCache

logger = logging.getLogger(__name__)

CONSUMPTION_WINDOW_DAYS = 7
DEFAULT_DAILY_RATE = 1.0


def scheduled_doses_per_day(schedules: Iterable[ScheduleDefinition]) -> int:
    return sum(len(s.times) for s in schedules if s.is_active)


def daily_rate(taken_count: int, schedules: Iterable[ScheduleDefinition] = ()) -> float:
    """Resolve the daily rate from a 7-day taken count and the schedule fallback.

    Always returns a value > 0.
    """
    rate = taken_count / CONSUMPTION_WINDOW_DAYS
    if rate > 0:
        return rate
    scheduled = scheduled_doses_per_day(schedules)
    if scheduled > 0:
        return float(scheduled)
    return DEFAULT_DAILY_RATE


async def _active_schedules(
    pool: asyncpg.Pool,
    item_id: uuid.UUID,
    cache: ScheduleCache | None,
) -> list[ScheduleDefinition]:
    if cache is not None:
        cached = cache.get(item_id)
        if cached is not None:
            return cached
    schedules = await store.fetch_active_schedules(pool, item_id)
    if cache is not None:
        cache.put(item_id, schedules)
    return schedules


async def estimate_daily_consumption(
    pool: asyncpg.Pool,
    item_id: uuid.UUID,
    now: datetime,
    cache: ScheduleCache | None = None,
) -> float:
    """Estimate how many units of *item_id* are consumed per day.

    Schedules are only read when there is no recent history.

    Raises
    ------
    StoreReadError
        If the dose count or schedule lookup fails.
    """
    since = now - timedelta(days=CONSUMPTION_WINDOW_DAYS)
    taken = await store.count_taken_doses_since(pool, item_id, since)
    if taken > 0:
        rate = daily_rate(taken)
        logger.debug("Item %s: %d doses taken in window, rate %.3f/day", item_id, taken, rate)
        return rate

    schedules = await _active_schedules(pool, item_id, cache)
    rate = daily_rate(0, schedules)
    logger.debug("Item %s: no recent history, rate %.3f/day from schedules", item_id, rate)
    return rate
