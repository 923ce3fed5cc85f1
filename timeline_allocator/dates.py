from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator

# Index 0 is Sunday, matching the weekday numbering used by recurrence configs.
WEEKDAY_NAMES = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)

DATE_KEY_FMT = "%Y-%m-%d"


def weekday_index(day: date) -> int:
    return (day.weekday() + 1) % 7


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[weekday_index(day)]


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def span_days(start: date, end: date) -> int:
    """Inclusive number of calendar days covered by [start, end]."""
    return (end - start).days + 1


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current = add_days(current, 1)


def date_key(day: date) -> str:
    return day.strftime(DATE_KEY_FMT)


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    return start_a <= end_b and end_a >= start_b
