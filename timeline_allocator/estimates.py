"""
Day-estimate aggregation.

Allocation runs as an ordered pipeline of named stages. Each stage sees the
dates claimed by the stages before it and may only write hours on unclaimed
dates, which gives the precedence: planned events > milestones > project
auto-estimate.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pandas as pd

from .dates import date_key
from .events import EventClaims, resolve_event_claims
from .milestones import allocate_milestone, segment_starts, spread_hours
from .models import (
    SOURCE_AUTO_ESTIMATE,
    SOURCE_MILESTONE,
    SOURCE_PLANNED_EVENT,
    CalendarEvent,
    DayEstimate,
    Holiday,
    Milestone,
    Project,
    Settings,
)

logger = logging.getLogger(__name__)

ESTIMATE_COLUMNS = ["date", "project_id", "hours", "source", "milestone_id", "is_working_day"]


@dataclass(frozen=True)
class AllocationInputs:
    project: Project
    milestones: Tuple[Milestone, ...]
    settings: Settings
    holidays: Tuple[Holiday, ...]
    events: Tuple[CalendarEvent, ...]


@dataclass
class PipelineState:
    claims: EventClaims
    estimates: List[DayEstimate] = field(default_factory=list)
    claimed: Set[date] = field(default_factory=set)


Stage = Callable[[AllocationInputs, PipelineState], List[DayEstimate]]


def _planned_event_stage(inputs: AllocationInputs, state: PipelineState) -> List[DayEstimate]:
    return [
        DayEstimate(
            date=day,
            project_id=inputs.project.id,
            hours=hours,
            source=SOURCE_PLANNED_EVENT,
            is_working_day=True,
        )
        for day, hours in state.claims.hours_by_date.items()
    ]


def _milestone_stage(inputs: AllocationInputs, state: PipelineState) -> List[DayEstimate]:
    estimates: List[DayEstimate] = []
    starts = segment_starts(inputs.milestones, inputs.project)
    for milestone, start in zip(inputs.milestones, starts):
        estimates.extend(
            allocate_milestone(
                milestone,
                inputs.project,
                inputs.settings,
                inputs.holidays,
                period_start=start,
                claims=state.claims,
            )
        )
    return estimates


def _auto_estimate_stage(inputs: AllocationInputs, state: PipelineState) -> List[DayEstimate]:
    project = inputs.project
    if inputs.milestones or project.continuous or project.estimated_hours <= 0:
        return []
    return spread_hours(
        project.estimated_hours,
        project.start_date,
        project.end_date,
        project,
        inputs.settings,
        inputs.holidays,
        source=SOURCE_AUTO_ESTIMATE,
        fallback_day=project.end_date,
        claims=state.claims,
    )


PIPELINE: Tuple[Tuple[str, Stage], ...] = (
    (SOURCE_PLANNED_EVENT, _planned_event_stage),
    (SOURCE_MILESTONE, _milestone_stage),
    (SOURCE_AUTO_ESTIMATE, _auto_estimate_stage),
)


def run_pipeline(inputs: AllocationInputs) -> List[DayEstimate]:
    claims = resolve_event_claims(
        inputs.events,
        inputs.project.id,
        split_across_midnight=inputs.settings.split_events_across_midnight,
    )
    state = PipelineState(claims=claims)
    for name, stage in PIPELINE:
        produced = stage(inputs, state)
        if name != SOURCE_PLANNED_EVENT:
            kept = [estimate for estimate in produced if estimate.date not in state.claimed]
            if len(kept) != len(produced):
                logger.debug(
                    "stage %s dropped %d estimates on claimed dates for project %s",
                    name,
                    len(produced) - len(kept),
                    inputs.project.id,
                )
            produced = kept
        state.estimates.extend(produced)
        if name == SOURCE_PLANNED_EVENT:
            state.claimed.update(estimate.date for estimate in produced)
    return state.estimates


class EstimateCache:
    """Read-through memo holding the latest input snapshot of each project.

    A project whose inputs changed replaces its previous entry, so the cache
    never holds more than one entry per project id. ``clear`` drops everything
    at once.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[str, Tuple[DayEstimate, ...]]] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(inputs: AllocationInputs) -> str:
        return repr(inputs)

    def get_or_compute(self, inputs: AllocationInputs) -> List[DayEstimate]:
        key = self.key_for(inputs)
        cached = self._entries.get(inputs.project.id)
        if cached is not None and cached[0] == key:
            self.hits += 1
            return list(cached[1])
        if cached is not None:
            logger.debug("inputs of project %s changed; replacing cached estimates", inputs.project.id)
        self.misses += 1
        estimates = run_pipeline(inputs)
        self._entries[inputs.project.id] = (key, tuple(estimates))
        return estimates

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)


def calculate_project_day_estimates(
    project: Project,
    milestones: Sequence[Milestone],
    settings: Settings,
    holidays: Sequence[Holiday],
    events: Sequence[CalendarEvent] = (),
    cache: Optional[EstimateCache] = None,
) -> List[DayEstimate]:
    if project is None or settings is None:
        raise ValueError("project and settings are required")
    inputs = AllocationInputs(
        project=project,
        milestones=tuple(m for m in milestones if m.project_id == project.id),
        settings=settings,
        holidays=tuple(holidays),
        events=tuple(events),
    )
    if cache is not None:
        return cache.get_or_compute(inputs)
    return run_pipeline(inputs)


def calculate_portfolio_day_estimates(
    projects: Iterable[Project],
    milestones: Sequence[Milestone],
    settings: Settings,
    holidays: Sequence[Holiday],
    events: Sequence[CalendarEvent] = (),
    cache: Optional[EstimateCache] = None,
) -> List[DayEstimate]:
    estimates: List[DayEstimate] = []
    for project in projects:
        estimates.extend(
            calculate_project_day_estimates(project, milestones, settings, holidays, events, cache)
        )
    return estimates


def aggregate_by_date(estimates: Iterable[DayEstimate]) -> Dict[date, List[DayEstimate]]:
    by_date: Dict[date, List[DayEstimate]] = defaultdict(list)
    for estimate in estimates:
        by_date[estimate.date].append(estimate)
    return dict(sorted(by_date.items()))


def total_hours(estimates: Iterable[DayEstimate]) -> float:
    return sum(estimate.hours for estimate in estimates)


def estimates_to_frame(estimates: Iterable[DayEstimate]) -> pd.DataFrame:
    rows = [
        {
            "date": date_key(estimate.date),
            "project_id": estimate.project_id,
            "hours": round(estimate.hours, 4),
            "source": estimate.source,
            "milestone_id": estimate.milestone_id or "",
            "is_working_day": estimate.is_working_day,
        }
        for estimate in estimates
    ]
    return pd.DataFrame(rows, columns=ESTIMATE_COLUMNS)


def daily_totals_frame(estimates: Iterable[DayEstimate]) -> pd.DataFrame:
    """Summed hours per (date, project) across sources and milestones."""
    frame = estimates_to_frame(estimates)
    if frame.empty:
        return pd.DataFrame(columns=["date", "project_id", "hours"])
    totals = frame.groupby(["date", "project_id"], as_index=False, sort=True)["hours"].sum()
    totals["hours"] = totals["hours"].round(4)
    return totals
