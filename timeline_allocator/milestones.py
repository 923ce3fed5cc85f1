from __future__ import annotations

from datetime import date
from typing import List, Optional, Sequence

from .dates import add_days
from .distribution import spread_evenly
from .events import NO_CLAIMS, EventClaims
from .models import SOURCE_MILESTONE, DayEstimate, Holiday, Milestone, Project, Settings
from .recurrence import generate_occurrences, occurrence_period, validate_recurring_config
from .working_days import get_working_days_between

EPSILON = 1e-9


def spread_hours(
    total: float,
    start: date,
    end: date,
    project: Project,
    settings: Settings,
    holidays: Sequence[Holiday],
    *,
    source: str,
    fallback_day: date,
    milestone_id: Optional[str] = None,
    claims: EventClaims = NO_CLAIMS,
) -> List[DayEstimate]:
    """Spread ``total`` hours evenly over the unclaimed working days of [start, end].

    Event hours already scheduled inside the period count against ``total``.
    With no working day left, everything lands on ``fallback_day`` unless an
    event owns that day.
    """
    if total <= 0:
        return []
    remaining = max(0.0, total - claims.hours_between(start, end))
    if remaining <= EPSILON:
        return []
    days = [
        day
        for day in get_working_days_between(start, end, settings, holidays, project)
        if not claims.is_claimed(day)
    ]
    if not days:
        if claims.is_claimed(fallback_day):
            return []
        return [
            DayEstimate(
                date=fallback_day,
                project_id=project.id,
                hours=remaining,
                source=source,  # type: ignore[arg-type]
                milestone_id=milestone_id,
                is_working_day=False,
            )
        ]
    return [
        DayEstimate(
            date=day,
            project_id=project.id,
            hours=share,
            source=source,  # type: ignore[arg-type]
            milestone_id=milestone_id,
            is_working_day=True,
        )
        for day, share in zip(days, spread_evenly(remaining, len(days)))
    ]


def _clip_to_project(day: date, project: Project) -> date:
    if project.continuous:
        return day
    return min(day, project.end_date)


def segment_starts(milestones: Sequence[Milestone], project: Project) -> List[date]:
    """Implicit period start of each milestone, in input order.

    A milestone starts the day after the latest earlier non-recurring milestone
    that is due before it, or at the project start. The milestone's own stored
    start date is never consulted.
    """
    starts: List[date] = []
    for idx, milestone in enumerate(milestones):
        start = project.start_date
        previous_ends = [
            earlier.end_date
            for earlier in milestones[:idx]
            if not earlier.is_recurring and earlier.end_date < milestone.end_date
        ]
        if previous_ends:
            start = max(start, add_days(max(previous_ends), 1))
        starts.append(start)
    return starts


def allocate_recurring_milestone(
    milestone: Milestone,
    project: Project,
    settings: Settings,
    holidays: Sequence[Holiday],
    claims: EventClaims = NO_CLAIMS,
) -> List[DayEstimate]:
    config = milestone.recurring_config
    validation = validate_recurring_config(config)
    if config is None or not validation.is_valid:
        raise ValueError(f"milestone {milestone.id}: {validation.reason}")
    estimates: List[DayEstimate] = []
    occurrences = generate_occurrences(
        milestone, project.start_date, project.end_date, project.continuous
    )
    for occurrence in occurrences:
        period_start, period_end = occurrence_period(config, occurrence)
        estimates.extend(
            spread_hours(
                milestone.time_allocation_hours,
                max(period_start, project.start_date),
                period_end,
                project,
                settings,
                holidays,
                source=SOURCE_MILESTONE,
                fallback_day=occurrence,
                milestone_id=milestone.id,
                claims=claims,
            )
        )
    return estimates


def allocate_milestone(
    milestone: Milestone,
    project: Project,
    settings: Settings,
    holidays: Sequence[Holiday],
    period_start: Optional[date] = None,
    claims: EventClaims = NO_CLAIMS,
) -> List[DayEstimate]:
    if milestone.is_recurring:
        return allocate_recurring_milestone(milestone, project, settings, holidays, claims)
    end = _clip_to_project(milestone.end_date, project)
    start = period_start if period_start is not None else project.start_date
    return spread_hours(
        milestone.time_allocation_hours,
        start,
        end,
        project,
        settings,
        holidays,
        source=SOURCE_MILESTONE,
        fallback_day=end,
        milestone_id=milestone.id,
        claims=claims,
    )
