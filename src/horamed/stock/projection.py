"""Linear depletion projection and the 7-day consumption summary."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from horamed._helpers import round_half_up
from horamed.models import ConsumptionTrend, DoseStatus

TREND_SPLIT = timedelta(days=3.5)
TREND_RISE_FACTOR = 1.2
TREND_FALL_FACTOR = 0.8


def calculate_projected_end_at(units_left: int, daily_rate: float, now: datetime) -> datetime:
    """Project when *units_left* runs out at a constant *daily_rate*.

    Stock at or below zero is already exhausted, so the projection is *now*.
    The day count is real-valued; no rounding is applied.
    """
    if units_left <= 0:
        return now
    if daily_rate <= 0:
        raise ValueError(f"daily_rate must be > 0, got {daily_rate!r}")
    return now + timedelta(days=units_left / daily_rate)


def consumption_trend(taken_at: Iterable[datetime], now: datetime) -> ConsumptionTrend:
    """Compare doses taken before and after the midpoint of the last week."""
    split = now - TREND_SPLIT
    earlier = later = 0
    for ts in taken_at:
        if ts <= split:
            earlier += 1
        else:
            later += 1

    trend = ConsumptionTrend.STABLE
    if later > earlier * TREND_RISE_FACTOR:
        trend = ConsumptionTrend.INCREASING
    if later < earlier * TREND_FALL_FACTOR:
        trend = ConsumptionTrend.DECREASING
    return trend


def days_until(projected_end_at: datetime, now: datetime) -> int:
    """Whole days between *now* and *projected_end_at*, truncated toward zero."""
    seconds = (projected_end_at - now).total_seconds()
    return int(seconds / 86400)


def days_remaining(
    units_left: int,
    projected_end_at: datetime | None,
    daily_avg: float,
    now: datetime,
) -> int | None:
    if projected_end_at is not None:
        return days_until(projected_end_at, now)
    if daily_avg > 0:
        return round_half_up(units_left / daily_avg)
    return None


def summarize_week(doses: Iterable[dict[str, Any]], window_days: int = 7) -> dict[str, Any]:
    """Taken/scheduled counts, average and adherence over a dose window.

    Doses in *doses* are assumed to already be restricted to the window.
    """
    taken: list[dict[str, Any]] = []
    scheduled = 0
    for dose in doses:
        status = dose["status"]
        if status == DoseStatus.TAKEN:
            taken.append(dose)
        if status in (DoseStatus.SCHEDULED, DoseStatus.TAKEN):
            scheduled += 1

    adherence = round_half_up(len(taken) / scheduled * 100) if scheduled > 0 else 0
    return {
        "taken": taken,
        "taken_count": len(taken),
        "scheduled_count": scheduled,
        "daily_avg": len(taken) / window_days,
        "adherence": adherence,
    }
