from datetime import date

import pytest

from timeline_allocator.milestones import (
    allocate_milestone,
    allocate_recurring_milestone,
    segment_starts,
    spread_hours,
)
from timeline_allocator.models import (
    SOURCE_MILESTONE,
    Holiday,
    Milestone,
    RecurringConfig,
)


def _milestone(milestone_id, end, hours, **kwargs):
    return Milestone(id=milestone_id, project_id="p1", end_date=end, time_allocation_hours=hours, **kwargs)


def test_spread_hours_splits_evenly(settings, make_project):
    project = make_project()
    estimates = spread_hours(
        10.0,
        date(2024, 1, 1),
        date(2024, 1, 5),
        project,
        settings,
        [],
        source=SOURCE_MILESTONE,
        fallback_day=date(2024, 1, 5),
    )
    assert [e.date for e in estimates] == [date(2024, 1, d) for d in range(1, 6)]
    assert all(e.hours == pytest.approx(2.0) for e in estimates)
    assert sum(e.hours for e in estimates) == pytest.approx(10.0)


def test_zero_hours_produce_nothing(settings, make_project):
    estimates = spread_hours(
        0.0,
        date(2024, 1, 1),
        date(2024, 1, 5),
        make_project(),
        settings,
        [],
        source=SOURCE_MILESTONE,
        fallback_day=date(2024, 1, 5),
    )
    assert estimates == []


def test_period_without_working_days_collapses_onto_due_date(settings, make_project):
    holiday = Holiday(id="h1", start_date=date(2024, 1, 1), end_date=date(2024, 1, 5))
    project = make_project(end=date(2024, 1, 12))
    estimates = allocate_milestone(_milestone("m1", date(2024, 1, 7), 12.0), project, settings, [holiday])
    assert len(estimates) == 1
    assert estimates[0].date == date(2024, 1, 7)
    assert estimates[0].hours == 12.0
    assert not estimates[0].is_working_day
    assert estimates[0].milestone_id == "m1"


def test_segment_starts_follow_previous_milestone(make_project):
    project = make_project(end=date(2024, 1, 31))
    milestones = [
        _milestone("m1", date(2024, 1, 10), 8),
        _milestone("m2", date(2024, 1, 20), 8),
        _milestone("weekly", date(2024, 1, 5), 1, is_recurring=True, recurring_config=RecurringConfig(type="weekly")),
    ]
    assert segment_starts(milestones, project) == [date(2024, 1, 1), date(2024, 1, 11), date(2024, 1, 1)]


def test_milestone_due_after_project_end_is_clipped(settings, make_project):
    project = make_project(end=date(2024, 1, 3))
    estimates = allocate_milestone(_milestone("m1", date(2024, 1, 10), 9.0), project, settings, [])
    assert [e.date for e in estimates] == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]


def test_recurring_milestone_spreads_each_occurrence_period(settings, make_project):
    project = make_project(end=date(2024, 1, 14))
    weekly = _milestone(
        "m1",
        date(2024, 1, 5),
        10.0,
        is_recurring=True,
        recurring_config=RecurringConfig(type="weekly", day_of_week=5),
    )
    estimates = allocate_recurring_milestone(weekly, project, settings, [])
    assert [e.date for e in estimates] == [date(2024, 1, d) for d in (1, 2, 3, 4, 5, 8, 9, 10, 11, 12)]
    assert all(e.hours == pytest.approx(2.0) for e in estimates)
    assert {e.milestone_id for e in estimates} == {"m1"}


def test_recurring_without_config_raises(settings, make_project):
    broken = _milestone("m1", date(2024, 1, 5), 4.0, is_recurring=True)
    with pytest.raises(ValueError):
        allocate_recurring_milestone(broken, make_project(), settings, [])


def test_allocate_milestone_rejects_recurring_without_config(settings, make_project):
    broken = _milestone("m1", date(2024, 1, 5), 4.0, is_recurring=True)
    with pytest.raises(ValueError, match="must have a recurrence configuration"):
        allocate_milestone(broken, make_project(), settings, [])


@pytest.mark.parametrize(
    "config, message",
    [
        (RecurringConfig(type="daily", interval=0), "interval must be at least 1"),
        (RecurringConfig(type="daily", count=0), "count must be greater than 0"),
        (RecurringConfig(type="daily", count=2, end_date=date(2024, 1, 3)), "both end date and count"),
        (RecurringConfig(type="monthly", monthly_pattern="date", monthly_date=-3), "between 1 and 31"),
    ],
)
def test_invalid_recurrence_is_never_expanded(settings, make_project, config, message):
    milestone = _milestone("m1", date(2024, 1, 1), 4.0, is_recurring=True, recurring_config=config)
    with pytest.raises(ValueError, match=message):
        allocate_milestone(milestone, make_project(), settings, [])
