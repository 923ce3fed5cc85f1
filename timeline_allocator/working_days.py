from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Sequence

from .dates import iter_days, weekday_name
from .models import Holiday, Project, Settings


def is_holiday(day: date, holidays: Iterable[Holiday]) -> bool:
    return any(holiday.contains(day) for holiday in holidays)


def is_working_day(
    day: date,
    settings: Settings,
    holidays: Sequence[Holiday],
    project: Optional[Project] = None,
) -> bool:
    """Holidays always win; a project's weekday override beats the weekly pattern."""
    if is_holiday(day, holidays):
        return False
    name = weekday_name(day)
    if project is not None:
        override = project.works_on(name)
        if override is not None:
            return override
    return settings.has_work_on(name)


def get_working_days_between(
    start: date,
    end: date,
    settings: Settings,
    holidays: Sequence[Holiday],
    project: Optional[Project] = None,
) -> List[date]:
    return [day for day in iter_days(start, end) if is_working_day(day, settings, holidays, project)]


def count_working_days(
    start: date,
    end: date,
    settings: Settings,
    holidays: Sequence[Holiday],
    project: Optional[Project] = None,
) -> int:
    return len(get_working_days_between(start, end, settings, holidays, project))


def working_hours_on(day: date, settings: Settings, holidays: Sequence[Holiday]) -> float:
    if is_holiday(day, holidays):
        return 0.0
    return settings.hours_for(weekday_name(day))
