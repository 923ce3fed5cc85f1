from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Literal, Mapping, Optional, Tuple

from .dates import WEEKDAY_NAMES, date_key

RecurrenceType = Literal["daily", "weekly", "monthly"]
MonthlyPattern = Literal["date", "dayOfWeek"]
EstimateSource = Literal["planned-event", "milestone-allocation", "project-auto-estimate"]
DragAction = Literal["move", "resize-start-date", "resize-end-date"]
ViewMode = Literal["days", "weeks"]

RECURRENCE_TYPES: Tuple[str, ...] = ("daily", "weekly", "monthly")
MONTHLY_PATTERNS: Tuple[str, ...] = ("date", "dayOfWeek")
DRAG_ACTIONS: Tuple[str, ...] = ("move", "resize-start-date", "resize-end-date")
VIEW_MODES: Tuple[str, ...] = ("days", "weeks")

SOURCE_PLANNED_EVENT: EstimateSource = "planned-event"
SOURCE_MILESTONE: EstimateSource = "milestone-allocation"
SOURCE_AUTO_ESTIMATE: EstimateSource = "project-auto-estimate"

# Special week-of-month values for the monthly dayOfWeek pattern.
LAST_WEEK = -1
SECOND_TO_LAST_WEEK = -2


@dataclass(frozen=True)
class WorkSlot:
    start_time: str
    end_time: str
    duration: float


@dataclass(frozen=True)
class Settings:
    """Organization-wide work pattern plus engine options."""

    weekly_work_hours: Dict[str, Tuple[WorkSlot, ...]]
    logging_level: str = "INFO"
    split_events_across_midnight: bool = False

    def slots_for(self, weekday: str) -> Tuple[WorkSlot, ...]:
        return self.weekly_work_hours.get(weekday, ())

    def hours_for(self, weekday: str) -> float:
        return sum(slot.duration for slot in self.slots_for(weekday))

    def has_work_on(self, weekday: str) -> bool:
        return any(slot.duration > 0 for slot in self.slots_for(weekday))


@dataclass(frozen=True)
class Project:
    """Timeline bar owning a budget of hours."""

    id: str
    name: str
    start_date: date
    end_date: date
    estimated_hours: float
    continuous: bool = False
    row_id: str = ""
    auto_estimate_days: Optional[Mapping[str, bool]] = None

    def works_on(self, weekday: str) -> Optional[bool]:
        """Weekday override flag, or None when the project has no override."""
        if self.auto_estimate_days is None:
            return None
        return bool(self.auto_estimate_days.get(weekday, False))


@dataclass(frozen=True)
class RecurringConfig:
    type: RecurrenceType
    interval: int = 1
    day_of_week: Optional[int] = None
    monthly_pattern: Optional[MonthlyPattern] = None
    monthly_date: Optional[int] = None
    monthly_week_of_month: Optional[int] = None
    monthly_day_of_week: Optional[int] = None
    end_date: Optional[date] = None
    count: Optional[int] = None


@dataclass(frozen=True)
class Milestone:
    """Sub-budget of a project's hours due on ``end_date``.

    Recurring milestones are templates: their occurrences are computed on demand.
    """

    id: str
    project_id: str
    end_date: date
    time_allocation_hours: float
    is_recurring: bool = False
    recurring_config: Optional[RecurringConfig] = None
    name: str = ""


@dataclass(frozen=True)
class Holiday:
    id: str
    start_date: date
    end_date: date
    name: str = ""

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    start_time: datetime
    end_time: datetime
    project_id: Optional[str] = None
    completed: bool = False
    type: str = "planned"

    @property
    def duration_hours(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 3600.0


@dataclass(frozen=True)
class DayEstimate:
    date: date
    project_id: str
    hours: float
    source: EstimateSource
    milestone_id: Optional[str] = None
    is_working_day: bool = True

    def to_dict(self) -> Dict[str, object]:
        return {
            "date": date_key(self.date),
            "project_id": self.project_id,
            "hours": self.hours,
            "source": self.source,
            "milestone_id": self.milestone_id,
            "is_working_day": self.is_working_day,
        }


@dataclass(frozen=True)
class TimelineEntity:
    """Any bar occupying a row on the timeline (project, holiday or milestone)."""

    id: str
    start_date: date
    end_date: date
    row_id: str = ""
    kind: str = "project"


@dataclass(frozen=True)
class DragState:
    """Transient state of one pointer-driven drag session."""

    action: DragAction
    start_x: float
    start_y: float
    original_start: date
    original_end: date
    last_days_delta: int = 0
    mode: ViewMode = "days"
    project_id: Optional[str] = None
    holiday_id: Optional[str] = None
    milestone_id: Optional[str] = None

    @property
    def entity_id(self) -> Optional[str]:
        return self.project_id or self.holiday_id or self.milestone_id

    @property
    def entity_kind(self) -> str:
        if self.project_id:
            return "project"
        if self.holiday_id:
            return "holiday"
        if self.milestone_id:
            return "milestone"
        raise ValueError("drag state does not identify an entity")


def empty_week() -> Dict[str, Tuple[WorkSlot, ...]]:
    return {name: () for name in WEEKDAY_NAMES}


def standard_settings(hours_per_day: float = 8.0, **options: object) -> Settings:
    """Monday to Friday, one 09:00 slot of ``hours_per_day`` hours."""
    week = empty_week()
    end_hour = 9 + int(hours_per_day)
    slot = WorkSlot(start_time="09:00", end_time=f"{end_hour:02d}:00", duration=float(hours_per_day))
    for name in ("monday", "tuesday", "wednesday", "thursday", "friday"):
        week[name] = (slot,)
    return Settings(weekly_work_hours=week, **options)  # type: ignore[arg-type]
