"""XP accrual from taken doses and perfect days."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from horamed.config import PerfectDayWindow, ProgressionConfig
from horamed.models import DoseInstance, XPState
from horamed.progression.calendar import local_date, midnight, start_of_month, start_of_week
from horamed.progression.levels import resolve_level

BASE_DOSE_XP = 10
ON_TIME_BONUS_XP = 5
ON_TIME_MAX_DELAY_MINUTES = 30
PERFECT_DAY_XP = 50
PERFECT_DAY_LOOKBACK_DAYS = 30


@dataclass
class XPTotals:
    """Overlapping running sums over the same events."""

    total: int = 0
    weekly: int = 0
    monthly: int = 0

    def add(self, amount: int, moment: datetime, week_start: datetime, month_start: datetime):
        self.total += amount
        if moment >= week_start:
            self.weekly += amount
        if moment >= month_start:
            self.monthly += amount


def dose_award(dose: DoseInstance) -> int:
    """XP for one taken dose: base plus the on-time bonus.

    Any dose with ``delay_minutes <= 30`` is on time, however early.
    """
    xp = BASE_DOSE_XP
    if dose.delay_minutes is not None and dose.delay_minutes <= ON_TIME_MAX_DELAY_MINUTES:
        xp += ON_TIME_BONUS_XP
    return xp


def perfect_days(doses: Iterable[DoseInstance], tz) -> list[date]:
    """Local calendar days of ``due_at`` on which every dose was taken."""
    counts: dict[date, list[int]] = {}
    for dose in doses:
        bucket = counts.setdefault(local_date(dose.due_at, tz), [0, 0])
        bucket[0] += 1
        if dose.is_taken:
            bucket[1] += 1
    return sorted(day for day, (total, taken) in counts.items() if total > 0 and taken == total)


def accumulate_xp(
    taken_doses: Iterable[DoseInstance],
    recent_doses: Iterable[DoseInstance],
    now: datetime,
    settings: ProgressionConfig,
) -> XPTotals:
    """Sum dose awards and perfect-day bonuses into total/weekly/monthly XP.

    *taken_doses* is the user's full taken history; *recent_doses* holds every
    dose (any status) due in the last 30 days and feeds the perfect-day scan.
    """
    tz = settings.tzinfo
    week_start = start_of_week(now, tz, settings.week_starts_on)
    month_start = start_of_month(now, tz)

    totals = XPTotals()
    for dose in taken_doses:
        if not dose.is_taken:
            continue
        totals.add(dose_award(dose), dose.occurred_at, week_start, month_start)

    for day in perfect_days(recent_doses, tz):
        if settings.perfect_day_window is PerfectDayWindow.BONUS_DAY:
            reference = midnight(day, tz)
        else:
            reference = now
        totals.add(PERFECT_DAY_XP, reference, week_start, month_start)

    return totals


def perfect_day_cutoff(now: datetime) -> datetime:
    return now - timedelta(days=PERFECT_DAY_LOOKBACK_DAYS)


def compute_xp_state(
    taken_doses: Iterable[DoseInstance],
    recent_doses: Iterable[DoseInstance],
    now: datetime,
    settings: ProgressionConfig,
) -> XPState:
    """Derive the full XP/level snapshot from dose history."""
    totals = accumulate_xp(taken_doses, recent_doses, now, settings)
    level, current_xp, xp_to_next_level = resolve_level(totals.total)
    return XPState(
        current_xp=current_xp,
        level=level,
        xp_to_next_level=xp_to_next_level,
        total_xp=totals.total,
        weekly_xp=totals.weekly,
        monthly_xp=totals.monthly,
    )
