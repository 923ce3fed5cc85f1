from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .models import CalendarEvent


@dataclass(frozen=True)
class EventClaims:
    """Scheduled hours per calendar day for one project.

    Every key of ``hours_by_date`` is claimed: allocation stages must not add
    hours on those days.
    """

    hours_by_date: Dict[date, float]

    @property
    def claimed(self) -> FrozenSet[date]:
        return frozenset(self.hours_by_date)

    def is_claimed(self, day: date) -> bool:
        return day in self.hours_by_date

    def hours_between(self, start: date, end: date) -> float:
        return sum(hours for day, hours in self.hours_by_date.items() if start <= day <= end)

    def __bool__(self) -> bool:
        return bool(self.hours_by_date)


NO_CLAIMS = EventClaims(hours_by_date={})


def filter_events_for_project(events: Iterable[CalendarEvent], project_id: str) -> List[CalendarEvent]:
    return [event for event in events if event.project_id == project_id]


def _split_by_day(event: CalendarEvent) -> List[Tuple[date, float]]:
    parts: List[Tuple[date, float]] = []
    cursor = event.start_time
    while cursor < event.end_time:
        next_midnight = datetime.combine(cursor.date() + timedelta(days=1), time.min, tzinfo=cursor.tzinfo)
        segment_end = min(next_midnight, event.end_time)
        parts.append((cursor.date(), (segment_end - cursor).total_seconds() / 3600.0))
        cursor = segment_end
    return parts


def event_hours_by_day(event: CalendarEvent, split_across_midnight: bool = False) -> List[Tuple[date, float]]:
    if event.end_time <= event.start_time:
        return []
    if split_across_midnight:
        return _split_by_day(event)
    return [(event.start_time.date(), event.duration_hours)]


def resolve_event_claims(
    events: Iterable[CalendarEvent],
    project_id: Optional[str] = None,
    split_across_midnight: bool = False,
) -> EventClaims:
    """Bucket event hours by calendar day.

    Events are attributed to the day of their start time unless
    ``split_across_midnight`` is set. Events with a non-positive duration are
    ignored and claim nothing.
    """
    selected = events if project_id is None else filter_events_for_project(events, project_id)
    buckets: Dict[date, float] = {}
    for event in selected:
        for day, hours in event_hours_by_day(event, split_across_midnight):
            if hours <= 0:
                continue
            buckets[day] = buckets.get(day, 0.0) + hours
    return EventClaims(hours_by_date={day: buckets[day] for day in sorted(buckets)})
