from datetime import date

from timeline_allocator.dates import span_days, weekday_index, weekday_name
from timeline_allocator.models import Holiday
from timeline_allocator.working_days import (
    count_working_days,
    get_working_days_between,
    is_working_day,
    working_hours_on,
)

NEW_YEAR_WEEK_HOLIDAY = Holiday(id="h1", start_date=date(2024, 1, 3), end_date=date(2024, 1, 3))


def test_weekday_numbering_starts_on_sunday():
    assert weekday_index(date(2024, 1, 7)) == 0
    assert weekday_index(date(2024, 1, 1)) == 1
    assert weekday_name(date(2024, 1, 6)) == "saturday"


def test_span_days_is_inclusive():
    assert span_days(date(2024, 1, 1), date(2024, 1, 1)) == 1
    assert span_days(date(2024, 1, 1), date(2024, 1, 5)) == 5


def test_weekends_are_not_working_days(settings):
    assert is_working_day(date(2024, 1, 1), settings, [])
    assert not is_working_day(date(2024, 1, 6), settings, [])
    assert not is_working_day(date(2024, 1, 7), settings, [])


def test_holiday_is_never_a_working_day(settings, make_project):
    project = make_project(auto_estimate_days={"wednesday": True})
    assert not is_working_day(date(2024, 1, 3), settings, [NEW_YEAR_WEEK_HOLIDAY], project)


def test_project_override_replaces_weekly_pattern(settings, make_project):
    """Only the flagged weekdays count once a project overrides its days."""
    project = make_project(auto_estimate_days={"saturday": True})
    assert is_working_day(date(2024, 1, 6), settings, [], project)
    assert not is_working_day(date(2024, 1, 1), settings, [], project)


def test_working_days_between_skips_weekend_and_holidays(settings):
    week = get_working_days_between(date(2024, 1, 1), date(2024, 1, 7), settings, [])
    assert week == [date(2024, 1, d) for d in range(1, 6)]
    assert count_working_days(date(2024, 1, 1), date(2024, 1, 7), settings, [NEW_YEAR_WEEK_HOLIDAY]) == 4


def test_empty_range_has_no_working_days(settings):
    assert get_working_days_between(date(2024, 1, 5), date(2024, 1, 1), settings, []) == []


def test_working_hours_follow_slots(settings):
    assert working_hours_on(date(2024, 1, 1), settings, []) == 8.0
    assert working_hours_on(date(2024, 1, 6), settings, []) == 0.0
    assert working_hours_on(date(2024, 1, 3), settings, [NEW_YEAR_WEEK_HOLIDAY]) == 0.0
