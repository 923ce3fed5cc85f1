from datetime import date

import pytest

from timeline_allocator.models import Milestone, RecurringConfig
from timeline_allocator.recommendations import (
    BudgetAdvisor,
    can_accommodate,
    validate_milestone_allocations,
)


def _milestone(milestone_id, hours, project_id="p1", **kwargs):
    return Milestone(
        id=milestone_id,
        project_id=project_id,
        end_date=date(2024, 1, 5),
        time_allocation_hours=hours,
        **kwargs,
    )


def test_over_budget_is_reported_not_enforced(make_project):
    check = validate_milestone_allocations(make_project(hours=100.0), [_milestone("m1", 60), _milestone("m2", 50)])
    assert not check.is_valid
    assert check.total_allocated == 110
    assert check.remaining == -10
    assert check.overage == 10
    assert check.utilization_percentage == pytest.approx(110.0)


def test_recurring_and_foreign_milestones_are_not_counted(make_project):
    weekly = _milestone("m3", 500, is_recurring=True, recurring_config=RecurringConfig(type="weekly"))
    check = validate_milestone_allocations(
        make_project(hours=100.0), [_milestone("m1", 40), _milestone("m2", 70, project_id="p2"), weekly]
    )
    assert check.is_valid
    assert check.total_allocated == 40


def test_excluded_milestone_frees_budget(make_project):
    project = make_project(hours=100.0)
    milestones = [_milestone("m1", 60), _milestone("m2", 50)]
    assert validate_milestone_allocations(project, milestones, exclude_milestone_id="m2").is_valid
    assert can_accommodate(project, [_milestone("m1", 60)], 40)
    assert not can_accommodate(project, [_milestone("m1", 60)], 41)


def test_zero_budget_has_zero_utilization(make_project):
    check = validate_milestone_allocations(make_project(hours=0.0), [])
    assert check.utilization_percentage == 0.0
    assert check.is_valid


def test_advisor_flags_and_orders_recommendations(make_project):
    projects = [
        make_project("p1", hours=100.0),
        make_project("p2", hours=100.0),
        make_project("p3", hours=100.0),
        make_project("p4", hours=100.0),
    ]
    milestones = [
        _milestone("m1", 80, project_id="p1"),
        _milestone("m2", 40, project_id="p1"),
        _milestone("m3", 95, project_id="p2"),
        _milestone("m4", 20, project_id="p3"),
    ]
    analysis = BudgetAdvisor(projects, milestones).analyze()
    kinds = [(r["project_id"], r["type"]) for r in analysis["recommendations"]]
    assert kinds[0] == ("p1", "over_budget")
    assert ("p1", "dominant_phase") in kinds
    assert ("p2", "high_utilization") in kinds
    assert ("p3", "unallocated") in kinds
    assert ("p4", "no_phases") in kinds
    assert analysis["summary"]["over_budget"] == 1
    assert analysis["summary"]["projects_checked"] == 4
    assert analysis["checks"]["p1"]["overage"] == 20


def test_advisor_lists_recurring_patterns(make_project):
    weekly = _milestone(
        "m1", 2, is_recurring=True, recurring_config=RecurringConfig(type="weekly", day_of_week=1)
    )
    analysis = BudgetAdvisor([make_project()], [weekly]).analyze()
    assert analysis["recurring"] == [
        {"milestone_id": "m1", "project_id": "p1", "hours_per_occurrence": 2, "pattern": "Every week on Monday"}
    ]
