"""Local calendar boundaries (day, week, month) for the XP and streak windows."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo

from horamed.config import WeekStart


def local_date(moment: datetime, tz: tzinfo) -> date:
    return moment.astimezone(tz).date()


def midnight(day: date, tz: tzinfo) -> datetime:
    """Aware datetime for the start of *day* in *tz*."""
    return datetime.combine(day, time.min, tzinfo=tz)


def start_of_day(moment: datetime, tz: tzinfo) -> datetime:
    return midnight(local_date(moment, tz), tz)


def start_of_week(moment: datetime, tz: tzinfo, week_starts_on: WeekStart) -> datetime:
    day = local_date(moment, tz)
    days_back = (day.weekday() - week_starts_on.weekday) % 7
    return midnight(day - timedelta(days=days_back), tz)


def start_of_month(moment: datetime, tz: tzinfo) -> datetime:
    return midnight(local_date(moment, tz).replace(day=1), tz)
