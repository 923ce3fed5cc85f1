from datetime import date

import pytest

from timeline_allocator.models import Milestone, RecurringConfig
from timeline_allocator.recurrence import (
    MAX_OCCURRENCES,
    describe_recurrence,
    estimate_occurrence_count,
    generate_occurrences,
    occurrence_period,
    validate_recurring_config,
)


def _recurring(end, config, hours=4.0):
    return Milestone(
        id="m1",
        project_id="p1",
        end_date=end,
        time_allocation_hours=hours,
        is_recurring=True,
        recurring_config=config,
    )


def test_non_recurring_milestone_yields_its_due_date():
    milestone = Milestone(id="m1", project_id="p1", end_date=date(2024, 1, 5), time_allocation_hours=8)
    assert generate_occurrences(milestone, date(2024, 1, 1), date(2024, 1, 31), False) == [date(2024, 1, 5)]


def test_weekly_snaps_forward_to_configured_day():
    milestone = _recurring(date(2024, 1, 1), RecurringConfig(type="weekly", day_of_week=5))
    occurrences = generate_occurrences(milestone, date(2024, 1, 1), date(2024, 1, 31), False)
    assert occurrences == [date(2024, 1, 5), date(2024, 1, 12), date(2024, 1, 19), date(2024, 1, 26)]


def test_daily_count_limits_series():
    milestone = _recurring(date(2024, 1, 1), RecurringConfig(type="daily", count=3))
    occurrences = generate_occurrences(milestone, date(2024, 1, 1), date(2024, 12, 31), False)
    assert occurrences == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]


def test_occurrences_before_project_start_consume_budget():
    milestone = _recurring(date(2024, 1, 1), RecurringConfig(type="daily", count=3))
    occurrences = generate_occurrences(milestone, date(2024, 1, 2), date(2024, 12, 31), False)
    assert occurrences == [date(2024, 1, 2), date(2024, 1, 3)]


def test_series_end_date_caps_occurrences():
    config = RecurringConfig(type="daily", interval=2, end_date=date(2024, 1, 6))
    occurrences = generate_occurrences(_recurring(date(2024, 1, 1), config), date(2024, 1, 1), date(2024, 1, 31), False)
    assert occurrences == [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 5)]


def test_monthly_date_clamps_to_month_end_without_drift():
    config = RecurringConfig(type="monthly", monthly_pattern="date", monthly_date=31)
    occurrences = generate_occurrences(_recurring(date(2024, 1, 31), config), date(2024, 1, 1), date(2024, 4, 30), False)
    assert occurrences == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_monthly_without_pattern_repeats_anchor_day():
    config = RecurringConfig(type="monthly")
    occurrences = generate_occurrences(_recurring(date(2023, 1, 31), config), date(2023, 1, 1), date(2023, 3, 31), False)
    assert occurrences == [date(2023, 1, 31), date(2023, 2, 28), date(2023, 3, 31)]


def test_monthly_last_weekday_of_month():
    config = RecurringConfig(
        type="monthly", monthly_pattern="dayOfWeek", monthly_week_of_month=-1, monthly_day_of_week=5
    )
    occurrences = generate_occurrences(_recurring(date(2024, 1, 1), config), date(2024, 1, 1), date(2024, 3, 31), False)
    assert occurrences == [date(2024, 1, 26), date(2024, 2, 23), date(2024, 3, 29)]


def test_monthly_second_tuesday():
    config = RecurringConfig(
        type="monthly", monthly_pattern="dayOfWeek", monthly_week_of_month=2, monthly_day_of_week=2
    )
    occurrences = generate_occurrences(_recurring(date(2024, 1, 1), config), date(2024, 1, 1), date(2024, 2, 29), False)
    assert occurrences == [date(2024, 1, 9), date(2024, 2, 13)]


def test_continuous_project_is_capped_at_limit():
    milestone = _recurring(date(2024, 1, 1), RecurringConfig(type="daily"))
    occurrences = generate_occurrences(milestone, date(2024, 1, 1), date(2024, 1, 1), True)
    assert len(occurrences) == MAX_OCCURRENCES
    assert occurrences[-1] == date(2024, 4, 9)


def test_continuous_horizon_bounds_sparse_series():
    milestone = _recurring(date(2024, 1, 1), RecurringConfig(type="monthly", interval=3))
    occurrences = generate_occurrences(milestone, date(2024, 1, 1), date(2024, 1, 1), True)
    assert occurrences == [date(2024, 1, 1), date(2024, 4, 1), date(2024, 7, 1), date(2024, 10, 1)]


def test_unvalidated_zero_interval_is_still_bounded():
    milestone = _recurring(date(2024, 1, 1), RecurringConfig(type="daily", interval=0))
    occurrences = generate_occurrences(milestone, date(2024, 1, 1), date(2025, 1, 1), False)
    assert len(occurrences) <= MAX_OCCURRENCES
    assert all(date(2024, 1, 1) <= day <= date(2025, 1, 1) for day in occurrences)


@pytest.mark.parametrize(
    "config, message",
    [
        (RecurringConfig(type="yearly"), "invalid recurrence type"),
        (RecurringConfig(type="daily", interval=0), "interval must be at least 1"),
        (RecurringConfig(type="daily", end_date=date(2024, 2, 1), count=3), "cannot specify both"),
        (RecurringConfig(type="daily", count=0), "count must be greater than 0"),
        (RecurringConfig(type="weekly", day_of_week=7), "between 0 (Sunday) and 6"),
        (RecurringConfig(type="monthly", monthly_pattern="date"), "must specify a date"),
        (RecurringConfig(type="monthly", monthly_pattern="dayOfWeek", monthly_day_of_week=1), "week of month"),
    ],
)
def test_validate_rejects_malformed_configs(config, message):
    result = validate_recurring_config(config)
    assert not result.is_valid
    assert message in result.reason


def test_validate_accepts_well_formed_config():
    config = RecurringConfig(type="monthly", monthly_pattern="dayOfWeek", monthly_week_of_month=-2, monthly_day_of_week=4)
    assert validate_recurring_config(config).is_valid
    assert not validate_recurring_config(None).is_valid


def test_occurrence_period_reaches_back_one_interval():
    weekly = RecurringConfig(type="weekly", day_of_week=5)
    assert occurrence_period(weekly, date(2024, 1, 12)) == (date(2024, 1, 6), date(2024, 1, 12))
    monthly = RecurringConfig(type="monthly")
    assert occurrence_period(monthly, date(2024, 3, 15)) == (date(2024, 2, 16), date(2024, 3, 15))


def test_describe_recurrence():
    assert describe_recurrence(RecurringConfig(type="daily")) == "Every day"
    assert describe_recurrence(RecurringConfig(type="weekly", interval=2, day_of_week=1)) == "Every 2 weeks on Monday"
    assert (
        describe_recurrence(RecurringConfig(type="monthly", monthly_pattern="date", monthly_date=3))
        == "Every month on the 3rd"
    )
    assert (
        describe_recurrence(
            RecurringConfig(type="monthly", monthly_pattern="dayOfWeek", monthly_week_of_month=-1, monthly_day_of_week=5)
        )
        == "Every month on the last Friday"
    )


def test_estimate_occurrence_count():
    assert estimate_occurrence_count(RecurringConfig(type="weekly"), 28) == 4
    assert estimate_occurrence_count(RecurringConfig(type="daily", interval=2), 10) == 5
