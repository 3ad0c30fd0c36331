"""
pointbot.engine.calendar — UTC Day & ISO Week Helpers
======================================================

Quota windows and lotto periods are calendar aligned: daily limits reset at
00:00 UTC and lotto weeks follow ISO-8601 (Monday start, week 1 holds the
first Thursday of the year).
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

from pointbot.database.models import utcnow

__all__ = [
    "as_utc",
    "days_since",
    "iso_week",
    "previous_iso_week",
    "start_of_iso_week",
    "start_of_utc_day",
    "utcnow",
]


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def start_of_utc_day(moment: datetime) -> datetime:
    """Midnight UTC of the day containing *moment*."""
    return as_utc(moment).replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_iso_week(moment: datetime) -> datetime:
    """Monday 00:00 UTC of the ISO week containing *moment*."""
    day = start_of_utc_day(moment)
    return day - timedelta(days=day.weekday())


def iso_week(moment: datetime) -> tuple[int, int]:
    """Return ``(iso_year, iso_week)`` for *moment* in UTC."""
    cal = as_utc(moment).isocalendar()
    return cal.year, cal.week


def previous_iso_week(year: int, week: int) -> tuple[int, int]:
    """The ISO week before ``(year, week)``.

    Week 1 wraps to week 52 or 53 of the prior ISO year, whichever that
    year actually has.
    """
    cal = (date.fromisocalendar(year, week, 1) - timedelta(weeks=1)).isocalendar()
    return cal.year, cal.week


def days_since(start: date, moment: datetime) -> int:
    """Whole days elapsed from *start* to *moment* (UTC)."""
    return (as_utc(moment).date() - start).days
