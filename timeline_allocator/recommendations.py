"""
Budget checks and advice for project phases.

Milestone budgets are compared against the project's estimated hours:
- Over-budget phase plans (advisory, never enforced by the allocator)
- High utilization of the project budget
- Large share of the budget not attached to any phase
- Projects without phases, or dominated by a single phase
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .models import Milestone, Project
from .recurrence import describe_recurrence

HIGH_UTILIZATION_PCT = 90.0
UNALLOCATED_SHARE_PCT = 30.0
DOMINANT_PHASE_PCT = 50.0


@dataclass(frozen=True)
class BudgetCheck:
    is_valid: bool
    total_allocated: float
    project_budget: float
    remaining: float
    overage: float
    utilization_percentage: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "is_valid": self.is_valid,
            "total_allocated": self.total_allocated,
            "project_budget": self.project_budget,
            "remaining": self.remaining,
            "overage": self.overage,
            "utilization_percentage": round(self.utilization_percentage, 2),
        }


@dataclass
class BudgetRecommendation:
    """One piece of advice about a project's phase budgets."""
    project_id: str
    kind: str  # "over_budget", "high_utilization", "unallocated", "no_phases", "dominant_phase"
    message: str
    severity: str  # "critical", "high", "medium", "low"
    milestone_id: Optional[str] = None


def _project_milestones(project: Project, milestones: Sequence[Milestone]) -> List[Milestone]:
    return [m for m in milestones if m.project_id == project.id]


def allocated_hours(milestones: Sequence[Milestone]) -> float:
    """Sum of fixed phase budgets; recurring templates repeat and are not counted."""
    return sum(m.time_allocation_hours for m in milestones if not m.is_recurring)


def validate_milestone_allocations(
    project: Project,
    milestones: Sequence[Milestone],
    exclude_milestone_id: Optional[str] = None,
) -> BudgetCheck:
    relevant = [
        m for m in _project_milestones(project, milestones) if m.id != exclude_milestone_id
    ]
    total = allocated_hours(relevant)
    budget = project.estimated_hours
    return BudgetCheck(
        is_valid=total <= budget,
        total_allocated=total,
        project_budget=budget,
        remaining=budget - total,
        overage=max(0.0, total - budget),
        utilization_percentage=(total / budget * 100.0) if budget > 0 else 0.0,
    )


def can_accommodate(project: Project, milestones: Sequence[Milestone], additional_hours: float) -> bool:
    return validate_milestone_allocations(project, milestones).remaining >= additional_hours


class BudgetAdvisor:
    """Reviews every project's phase budgets and collects recommendations."""

    def __init__(self, projects: Sequence[Project], milestones: Sequence[Milestone]):
        self.projects = list(projects)
        self.milestones = list(milestones)

        self.checks: Dict[str, BudgetCheck] = {}
        self.recommendations: List[BudgetRecommendation] = []

    def analyze(self) -> Dict[str, object]:
        self.checks = {}
        self.recommendations = []
        for project in self.projects:
            self._analyze_project(project)
        self._prioritize_recommendations()

        return {
            "checks": {pid: check.to_dict() for pid, check in self.checks.items()},
            "recommendations": [self._recommendation_to_dict(r) for r in self.recommendations],
            "recurring": self._recurring_summary(),
            "summary": self._generate_summary(),
        }

    def _analyze_project(self, project: Project):
        phases = _project_milestones(project, self.milestones)
        check = validate_milestone_allocations(project, phases)
        self.checks[project.id] = check

        if not phases:
            self.recommendations.append(BudgetRecommendation(
                project_id=project.id,
                kind="no_phases",
                message=f"{project.name or project.id} has no phases; its {project.estimated_hours:g}h are auto-estimated",
                severity="low",
            ))
            return

        if not check.is_valid:
            self.recommendations.append(BudgetRecommendation(
                project_id=project.id,
                kind="over_budget",
                message=(
                    f"Phases allocate {check.total_allocated:g}h against a budget of "
                    f"{check.project_budget:g}h ({check.overage:g}h over)"
                ),
                severity="critical",
            ))
        elif check.utilization_percentage >= HIGH_UTILIZATION_PCT:
            self.recommendations.append(BudgetRecommendation(
                project_id=project.id,
                kind="high_utilization",
                message=f"Phases use {check.utilization_percentage:.0f}% of the budget; {check.remaining:g}h left",
                severity="medium",
            ))

        fixed = [m for m in phases if not m.is_recurring]
        if fixed and check.project_budget > 0:
            unallocated_pct = check.remaining / check.project_budget * 100.0
            if unallocated_pct > UNALLOCATED_SHARE_PCT:
                self.recommendations.append(BudgetRecommendation(
                    project_id=project.id,
                    kind="unallocated",
                    message=f"{unallocated_pct:.0f}% of the budget ({check.remaining:g}h) is not assigned to any phase",
                    severity="medium",
                ))
            for milestone in fixed:
                share = milestone.time_allocation_hours / check.project_budget * 100.0
                if len(fixed) > 1 and share > DOMINANT_PHASE_PCT:
                    self.recommendations.append(BudgetRecommendation(
                        project_id=project.id,
                        kind="dominant_phase",
                        message=f"{milestone.name or milestone.id} holds {share:.0f}% of the budget",
                        severity="low",
                        milestone_id=milestone.id,
                    ))

    def _prioritize_recommendations(self):
        severity_order = {"critical": 0, "high": 1, "medium": 2, "low": 3}
        self.recommendations.sort(
            key=lambda r: (severity_order.get(r.severity, 999), r.project_id)
        )

    def _recurring_summary(self) -> List[Dict[str, object]]:
        return [
            {
                "milestone_id": m.id,
                "project_id": m.project_id,
                "hours_per_occurrence": m.time_allocation_hours,
                "pattern": describe_recurrence(m.recurring_config),
            }
            for m in self.milestones
            if m.is_recurring and m.recurring_config is not None
        ]

    def _generate_summary(self) -> Dict[str, object]:
        return {
            "projects_checked": len(self.checks),
            "over_budget": sum(1 for c in self.checks.values() if not c.is_valid),
            "critical": sum(1 for r in self.recommendations if r.severity == "critical"),
            "total_recommendations": len(self.recommendations),
        }

    @staticmethod
    def _recommendation_to_dict(r: BudgetRecommendation) -> Dict:
        return {
            "type": r.kind,
            "project_id": r.project_id,
            "milestone_id": r.milestone_id,
            "message": r.message,
            "severity": r.severity,
        }
