"""Start-date resolution for the four time windows."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from enum import Enum

URL_DATE_FORMAT = "%Y-%m-%d"


class TimeWindow(str, Enum):
    """Calendar range selectors for the article list."""

    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def resolve(window: TimeWindow, now: datetime, first_weekday: int = calendar.MONDAY) -> date:
    """Return the first calendar date covered by ``window`` at ``now``.

    Args:
        window: Selected time window
        now: Reference instant; its own timezone decides the calendar date
        first_weekday: Week start, 0 = Monday .. 6 = Sunday

    Returns:
        Date only. TODAY resolves to yesterday so that a day without
        published articles yet still shows results.
    """
    # Zero the time of day before any arithmetic
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if window == TimeWindow.TODAY:
        start = midnight - timedelta(days=1)
    elif window == TimeWindow.WEEK:
        offset = (midnight.weekday() - first_weekday) % 7
        start = midnight - timedelta(days=offset)
    elif window == TimeWindow.MONTH:
        start = midnight.replace(day=1)
    elif window == TimeWindow.YEAR:
        start = midnight.replace(month=1, day=1)
    else:
        raise ValueError(f"Unknown time window: {window!r}")

    return start.date()


def format_date(value: date) -> str:
    """Format a date as ``yyyy-MM-dd`` for the from-date filter."""
    return value.strftime(URL_DATE_FORMAT)
