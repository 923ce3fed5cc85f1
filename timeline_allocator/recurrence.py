"""
Recurrence expansion for recurring milestones.

A recurring milestone is a template anchored at its due date. Occurrences are
derived from the anchor by whole intervals (days, weeks or months) so a clamped
month end never drifts into the following occurrences.

Each occurrence owns a working period: the days after the previous occurrence up
to and including the occurrence itself (one interval backward, no lead-time).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta

from .dates import add_days, weekday_index
from .models import (
    LAST_WEEK,
    MONTHLY_PATTERNS,
    RECURRENCE_TYPES,
    SECOND_TO_LAST_WEEK,
    Milestone,
    RecurringConfig,
)

logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 100
CONTINUOUS_HORIZON_DAYS = 365

_WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)
_DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
_WEEK_NAMES = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th", LAST_WEEK: "last", SECOND_TO_LAST_WEEK: "second-to-last"}
VALID_WEEKS_OF_MONTH = tuple(_WEEK_NAMES)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    @property
    def reason(self) -> Optional[str]:
        return self.errors[0] if self.errors else None


def validate_recurring_config(config: Optional[RecurringConfig]) -> ValidationResult:
    if config is None:
        return ValidationResult(False, ["recurring milestone must have a recurrence configuration"])
    errors: List[str] = []
    if config.type not in RECURRENCE_TYPES:
        errors.append(f"invalid recurrence type '{config.type}': must be daily, weekly or monthly")
    if not isinstance(config.interval, int) or config.interval < 1:
        errors.append("recurrence interval must be at least 1")
    if config.end_date is not None and config.count is not None:
        errors.append("cannot specify both end date and count")
    if config.count is not None and config.count <= 0:
        errors.append("count must be greater than 0")
    if config.type == "weekly" and config.day_of_week is not None:
        if not 0 <= config.day_of_week <= 6:
            errors.append("weekly day of week must be between 0 (Sunday) and 6 (Saturday)")
    if config.type == "monthly" and config.monthly_pattern is not None:
        if config.monthly_pattern not in MONTHLY_PATTERNS:
            errors.append(f"invalid monthly pattern '{config.monthly_pattern}': must be date or dayOfWeek")
        elif config.monthly_pattern == "date":
            if config.monthly_date is None:
                errors.append("monthly date pattern must specify a date (1-31)")
            elif not 1 <= config.monthly_date <= 31:
                errors.append("monthly date must be between 1 and 31")
        else:
            if config.monthly_week_of_month is None or config.monthly_day_of_week is None:
                errors.append("monthly dayOfWeek pattern must specify week of month and day of week")
            else:
                if config.monthly_week_of_month not in VALID_WEEKS_OF_MONTH:
                    errors.append("monthly week of month must be 1-4, last (-1) or second-to-last (-2)")
                if not 0 <= config.monthly_day_of_week <= 6:
                    errors.append("monthly day of week must be between 0 (Sunday) and 6 (Saturday)")
    return ValidationResult(not errors, errors)


def _interval(config: RecurringConfig) -> int:
    # Unvalidated configs still expand; a non-positive interval would never advance.
    return config.interval if isinstance(config.interval, int) and config.interval > 0 else 1


def _resolve_in_month(config: RecurringConfig, month_start: date, anchor: date) -> date:
    if config.monthly_pattern == "date" and config.monthly_date:
        return month_start + relativedelta(day=config.monthly_date)
    if (
        config.monthly_pattern == "dayOfWeek"
        and config.monthly_week_of_month is not None
        and config.monthly_day_of_week is not None
    ):
        weekday = _WEEKDAYS[config.monthly_day_of_week % 7]
        week = config.monthly_week_of_month
        if week < 0:
            return month_start + relativedelta(day=31, weekday=weekday(week))
        resolved = month_start + relativedelta(day=1, weekday=weekday(week))
        if resolved.month != month_start.month:
            return month_start + relativedelta(day=31, weekday=weekday(-1))
        return resolved
    return month_start + relativedelta(day=anchor.day)


def _first_occurrence(config: RecurringConfig, anchor: date) -> Tuple[date, int]:
    """First occurrence on or after the anchor, plus its month offset for monthly series."""
    if config.type == "weekly" and config.day_of_week is not None:
        diff = (config.day_of_week - weekday_index(anchor)) % 7
        return add_days(anchor, diff), 0
    if config.type == "monthly":
        month_start = anchor.replace(day=1)
        first = _resolve_in_month(config, month_start, anchor)
        if first < anchor:
            return _resolve_in_month(config, month_start + relativedelta(months=1), anchor), 1
        return first, 0
    return anchor, 0


def occurrence_at(config: RecurringConfig, anchor: date, step: int) -> date:
    """The ``step``-th occurrence of the series anchored at ``anchor`` (step 0 is the first)."""
    first, month_offset = _first_occurrence(config, anchor)
    interval = _interval(config)
    if config.type == "daily":
        return add_days(first, step * interval)
    if config.type == "weekly":
        return add_days(first, step * interval * 7)
    if config.type == "monthly":
        month_start = anchor.replace(day=1) + relativedelta(months=month_offset + step * interval)
        return _resolve_in_month(config, month_start, anchor)
    raise ValueError(f"unsupported recurrence type '{config.type}'")


def previous_occurrence(config: RecurringConfig, occurrence: date) -> date:
    interval = _interval(config)
    if config.type == "daily":
        return add_days(occurrence, -interval)
    if config.type == "weekly":
        return add_days(occurrence, -7 * interval)
    if config.type == "monthly":
        return occurrence - relativedelta(months=interval)
    raise ValueError(f"unsupported recurrence type '{config.type}'")


def occurrence_period(config: RecurringConfig, occurrence: date) -> Tuple[date, date]:
    return add_days(previous_occurrence(config, occurrence), 1), occurrence


def series_end_limit(project_start: date, project_end: date, project_continuous: bool) -> date:
    if project_continuous:
        return add_days(project_start, CONTINUOUS_HORIZON_DAYS)
    return project_end


def generate_occurrences(
    milestone: Milestone,
    project_start: date,
    project_end: date,
    project_continuous: bool,
) -> List[date]:
    config = milestone.recurring_config
    if not milestone.is_recurring or config is None:
        return [milestone.end_date]
    limit = series_end_limit(project_start, project_end, project_continuous)
    if config.end_date is not None:
        limit = min(limit, config.end_date)
    budget = MAX_OCCURRENCES if config.count is None else min(MAX_OCCURRENCES, config.count)
    occurrences: List[date] = []
    for step in range(budget):
        current = occurrence_at(config, milestone.end_date, step)
        if current > limit:
            break
        if current < project_start:
            continue
        occurrences.append(current)
    else:
        if budget == MAX_OCCURRENCES:
            logger.warning(
                "milestone %s hit the %d occurrence limit before %s",
                milestone.id,
                MAX_OCCURRENCES,
                limit.isoformat(),
            )
    return occurrences


def describe_recurrence(config: RecurringConfig) -> str:
    interval = _interval(config)
    plural = "s" if interval > 1 else ""
    every = f"Every {interval} " if interval > 1 else "Every "
    if config.type == "daily":
        return f"{every}day{plural}"
    if config.type == "weekly":
        day = _DAY_NAMES[config.day_of_week] if config.day_of_week is not None else None
        base = f"{every}week{plural}"
        return f"{base} on {day}" if day else base
    if config.type == "monthly":
        base = f"{every}month{plural}"
        if config.monthly_pattern == "date" and config.monthly_date:
            return f"{base} on the {config.monthly_date}{_ordinal_suffix(config.monthly_date)}"
        if (
            config.monthly_pattern == "dayOfWeek"
            and config.monthly_week_of_month in _WEEK_NAMES
            and config.monthly_day_of_week is not None
        ):
            week = _WEEK_NAMES[config.monthly_week_of_month]
            return f"{base} on the {week} {_DAY_NAMES[config.monthly_day_of_week]}"
        return base
    return "Unknown recurrence pattern"


def _ordinal_suffix(num: int) -> str:
    if num % 100 in (11, 12, 13):
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(num % 10, "th")


def estimate_occurrence_count(config: RecurringConfig, duration_days: int) -> int:
    """Rough count without expanding the series (30-day months)."""
    interval = _interval(config)
    if config.type == "daily":
        return duration_days // interval
    if config.type == "weekly":
        return duration_days // (7 * interval)
    if config.type == "monthly":
        return duration_days // (30 * interval)
    return 0
