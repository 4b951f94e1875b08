"""Adherence streaks over the last 90 days.

A streak day is a local calendar day on which at least 80% of the doses due
were taken.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta, tzinfo

from horamed._helpers import round_half_up
from horamed.models import DoseInstance, StreakState
from horamed.progression.calendar import local_date, start_of_day

STREAK_LOOKBACK_DAYS = 90
STREAK_DAY_THRESHOLD = 0.8


def streak_cutoff(now: datetime, tz: tzinfo) -> datetime:
    return start_of_day(now - timedelta(days=STREAK_LOOKBACK_DAYS), tz)


def _is_streak_day(total: int, taken: int) -> bool:
    return total > 0 and taken / total >= STREAK_DAY_THRESHOLD


def _percent_taken(taken: int, total: int) -> float:
    return taken / total * 100 if total > 0 else 0.0


def compute_streaks(doses: Iterable[DoseInstance], now: datetime, tz: tzinfo) -> StreakState:
    """Current/longest streak and this-week vs last-week adherence.

    The current streak walks back from today and ends at the first day that
    has no doses or misses the threshold. The longest streak only looks at
    days that have doses, so a day with nothing scheduled does not break it.
    """
    doses = list(doses)
    days: dict[date, list[int]] = {}
    for dose in doses:
        bucket = days.setdefault(local_date(dose.due_at, tz), [0, 0])
        bucket[0] += 1
        if dose.is_taken:
            bucket[1] += 1

    current = 0
    check = local_date(now, tz)
    while check in days and _is_streak_day(*days[check]):
        current += 1
        check -= timedelta(days=1)

    longest = run = 0
    for day in sorted(days):
        if _is_streak_day(*days[day]):
            run += 1
            longest = max(longest, run)
        else:
            run = 0

    today = start_of_day(now, tz)
    this_week_start = today - timedelta(days=6)
    last_week_start = today - timedelta(days=13)
    last_week_end = today - timedelta(days=7)

    this_taken = this_total = last_taken = last_total = 0
    for dose in doses:
        if dose.due_at >= this_week_start:
            this_total += 1
            this_taken += dose.is_taken
        elif last_week_start <= dose.due_at < last_week_end:
            last_total += 1
            last_taken += dose.is_taken

    this_avg = _percent_taken(this_taken, this_total)
    last_avg = _percent_taken(last_taken, last_total)
    return StreakState(
        current_streak=current,
        longest_streak=max(longest, current),
        is_improving=this_avg > last_avg,
        last_week_average=round_half_up(last_avg),
        this_week_average=round_half_up(this_avg),
    )
