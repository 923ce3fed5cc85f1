"""
Drag and resize resolution for timeline bars.

Pointer deltas are converted into whole-day offsets, applied to the dragged
entity's original range and validated in a fixed order:

1. duration within [MIN_DURATION_DAYS, MAX_DURATION_DAYS] (inclusive days)
2. start before end (holidays and milestones may span a single day)
3. optional date bounds supplied by the caller
4. no overlap with another entity in the same row

Nothing here mutates state: results are proposals the caller may apply.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from .dates import add_days, date_key, ranges_overlap, span_days
from .models import DRAG_ACTIONS, DragState, TimelineEntity

DAYS_MODE_COLUMN_WIDTH = 40.0
WEEKS_MODE_COLUMN_WIDTH = 77.0
MIN_DURATION_DAYS = 1
MAX_DURATION_DAYS = 365
DRAG_THRESHOLD_PX = 3.0
AUTO_SCROLL_THRESHOLD_PX = 50.0
MIN_AUTO_SCROLL_SPEED = 0.1

# Suggested pointer-move cadence per view mode, in milliseconds.
THROTTLE_MS: Dict[str, int] = {"days": 16, "weeks": 50}

REASON_TOO_SHORT = "duration-too-short"
REASON_TOO_LONG = "duration-too-long"
REASON_INVERTED = "inverted-range"
REASON_OUT_OF_BOUNDS = "outside-bounds"
REASON_OVERLAP = "overlap-detected"

SINGLE_DAY_KINDS = frozenset({"holiday", "milestone"})


class DragSessionError(RuntimeError):
    pass


@dataclass(frozen=True)
class Pointer:
    x: float
    y: float = 0.0


@dataclass(frozen=True)
class AutoScroll:
    should_scroll: bool
    direction: Optional[str] = None
    speed: float = 0.0


@dataclass(frozen=True)
class TimelineContext:
    """What the viewport and the row layout tell the resolver about the timeline."""

    siblings: Tuple[TimelineEntity, ...] = ()
    row_id: Optional[str] = None
    day_column_width: float = DAYS_MODE_COLUMN_WIDTH
    week_column_width: float = WEEKS_MODE_COLUMN_WIDTH
    viewport_left: Optional[float] = None
    viewport_right: Optional[float] = None
    auto_scroll_threshold: float = AUTO_SCROLL_THRESHOLD_PX
    bounds: Optional[Tuple[date, date]] = None

    def column_width(self, mode: str) -> float:
        width = self.week_column_width if mode == "weeks" else self.day_column_width
        if width <= 0:
            raise ValueError(f"column width for {mode} mode must be positive")
        return width

    def row_for(self, entity_id: Optional[str]) -> str:
        if self.row_id is not None:
            return self.row_id
        for sibling in self.siblings:
            if sibling.id == entity_id:
                return sibling.row_id
        return ""


@dataclass(frozen=True)
class DragResult:
    days_delta: int
    new_start: date
    new_end: date
    is_valid: bool
    reason: Optional[str] = None
    proposed_start: Optional[date] = None
    proposed_end: Optional[date] = None
    conflicts: Tuple[str, ...] = ()
    should_update: bool = False
    auto_scroll: Optional[AutoScroll] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "days_delta": self.days_delta,
            "new_start": date_key(self.new_start),
            "new_end": date_key(self.new_end),
            "is_valid": self.is_valid,
            "reason": self.reason,
            "proposed_start": date_key(self.proposed_start) if self.proposed_start else None,
            "proposed_end": date_key(self.proposed_end) if self.proposed_end else None,
            "conflicts": list(self.conflicts),
            "should_update": self.should_update,
            "auto_scroll": (
                {
                    "should_scroll": self.auto_scroll.should_scroll,
                    "direction": self.auto_scroll.direction,
                    "speed": self.auto_scroll.speed,
                }
                if self.auto_scroll
                else None
            ),
        }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_days_delta(delta_x: float, mode: str = "days", column_width: Optional[float] = None) -> int:
    """Whole days represented by a horizontal pixel offset.

    In weeks mode a column spans seven days, so the offset inside a column
    still moves the range by single days.
    """
    if mode == "weeks":
        width = column_width if column_width is not None else WEEKS_MODE_COLUMN_WIDTH
        return _round_half_up(delta_x / width * 7)
    width = column_width if column_width is not None else DAYS_MODE_COLUMN_WIDTH
    return _round_half_up(delta_x / width)


def apply_delta(action: str, start: date, end: date, days_delta: int) -> Tuple[date, date]:
    if action == "move":
        return add_days(start, days_delta), add_days(end, days_delta)
    if action == "resize-start-date":
        return add_days(start, days_delta), end
    if action == "resize-end-date":
        return start, add_days(end, days_delta)
    raise ValueError(f"unsupported drag action '{action}'")


def find_overlaps(
    entity_id: Optional[str],
    row_id: str,
    start: date,
    end: date,
    siblings: Sequence[TimelineEntity],
) -> List[TimelineEntity]:
    return [
        sibling
        for sibling in siblings
        if sibling.row_id == row_id
        and sibling.id != entity_id
        and ranges_overlap(start, end, sibling.start_date, sibling.end_date)
    ]


def validate_range(
    start: date,
    end: date,
    kind: str,
    entity_id: Optional[str],
    context: TimelineContext,
) -> Tuple[Optional[str], Tuple[str, ...]]:
    """Return (reason, conflicting ids); reason is None for a valid range."""
    duration = span_days(start, end)
    if duration < MIN_DURATION_DAYS:
        return REASON_TOO_SHORT, ()
    if duration > MAX_DURATION_DAYS:
        return REASON_TOO_LONG, ()
    if start == end and kind not in SINGLE_DAY_KINDS:
        return REASON_INVERTED, ()
    if context.bounds is not None:
        lower, upper = context.bounds
        if start < lower or end > upper:
            return REASON_OUT_OF_BOUNDS, ()
    overlaps = find_overlaps(entity_id, context.row_for(entity_id), start, end, context.siblings)
    if overlaps:
        return REASON_OVERLAP, tuple(sibling.id for sibling in overlaps)
    return None, ()


def calculate_auto_scroll(
    pointer_x: float,
    viewport_left: float,
    viewport_right: float,
    threshold: float = AUTO_SCROLL_THRESHOLD_PX,
) -> AutoScroll:
    left_distance = pointer_x - viewport_left
    right_distance = viewport_right - pointer_x
    if 0 <= left_distance < threshold:
        speed = max(MIN_AUTO_SCROLL_SPEED, (threshold - left_distance) / threshold)
        return AutoScroll(True, "left", speed)
    if 0 <= right_distance < threshold:
        speed = max(MIN_AUTO_SCROLL_SPEED, (threshold - right_distance) / threshold)
        return AutoScroll(True, "right", speed)
    return AutoScroll(False)


def is_drag_threshold_exceeded(
    start_x: float,
    start_y: float,
    current_x: float,
    current_y: float,
    threshold: float = DRAG_THRESHOLD_PX,
) -> bool:
    return math.hypot(current_x - start_x, current_y - start_y) >= threshold


def coordinate_drag(drag_state: DragState, pointer: Pointer, context: TimelineContext) -> DragResult:
    if drag_state.action not in DRAG_ACTIONS:
        raise ValueError(f"unsupported drag action '{drag_state.action}'")
    kind = drag_state.entity_kind
    days_delta = calculate_days_delta(
        pointer.x - drag_state.start_x,
        drag_state.mode,
        context.column_width(drag_state.mode),
    )
    proposed_start, proposed_end = apply_delta(
        drag_state.action, drag_state.original_start, drag_state.original_end, days_delta
    )
    auto_scroll = None
    if context.viewport_left is not None and context.viewport_right is not None:
        auto_scroll = calculate_auto_scroll(
            pointer.x, context.viewport_left, context.viewport_right, context.auto_scroll_threshold
        )
    reason, conflicts = validate_range(
        proposed_start, proposed_end, kind, drag_state.entity_id, context
    )
    if reason is not None:
        last_start, last_end = apply_delta(
            drag_state.action,
            drag_state.original_start,
            drag_state.original_end,
            drag_state.last_days_delta,
        )
        return DragResult(
            days_delta=days_delta,
            new_start=last_start,
            new_end=last_end,
            is_valid=False,
            reason=reason,
            proposed_start=proposed_start,
            proposed_end=proposed_end,
            conflicts=conflicts,
            should_update=False,
            auto_scroll=auto_scroll,
        )
    return DragResult(
        days_delta=days_delta,
        new_start=proposed_start,
        new_end=proposed_end,
        is_valid=True,
        proposed_start=proposed_start,
        proposed_end=proposed_end,
        should_update=days_delta != drag_state.last_days_delta,
        auto_scroll=auto_scroll,
    )


def advance(drag_state: DragState, result: DragResult) -> DragState:
    """Record a valid delta; invalid results leave the state untouched."""
    if not result.is_valid or result.days_delta == drag_state.last_days_delta:
        return drag_state
    return replace(drag_state, last_days_delta=result.days_delta)


def find_nearest_available_slot(
    row_id: str,
    start: date,
    end: date,
    siblings: Sequence[TimelineEntity],
    direction: str = "auto",
    exclude_id: Optional[str] = None,
) -> Tuple[date, date]:
    """Closest range of the same length that overlaps nothing in the row."""
    if direction not in {"auto", "forward", "backward"}:
        raise ValueError(f"unsupported direction '{direction}'")
    length = span_days(start, end)
    row = sorted(
        (s for s in siblings if s.row_id == row_id and s.id != exclude_id),
        key=lambda s: (s.start_date, s.end_date, s.id),
    )

    def _is_free(candidate: date) -> bool:
        candidate_end = add_days(candidate, length - 1)
        return not any(ranges_overlap(candidate, candidate_end, s.start_date, s.end_date) for s in row)

    if _is_free(start):
        return start, end

    def _search(step: int) -> Optional[date]:
        candidate = start
        for _ in range(len(row) + 1):
            conflicts = [
                s for s in row if ranges_overlap(candidate, add_days(candidate, length - 1), s.start_date, s.end_date)
            ]
            if not conflicts:
                return candidate
            if step > 0:
                candidate = add_days(max(s.end_date for s in conflicts), 1)
            else:
                candidate = add_days(min(s.start_date for s in conflicts), -length)
        return candidate if _is_free(candidate) else None

    forward = _search(1) if direction in {"auto", "forward"} else None
    backward = _search(-1) if direction in {"auto", "backward"} else None
    if forward is not None and backward is not None:
        chosen = backward if (start - backward) <= (forward - start) else forward
    else:
        chosen = forward if forward is not None else backward
    if chosen is None:
        raise ValueError(f"no free slot of {length} days found in row '{row_id}'")
    return chosen, add_days(chosen, length - 1)


class DragSession:
    """Idle -> Dragging -> Idle state machine for a single pointer drag."""

    def __init__(self) -> None:
        self._state: Optional[DragState] = None
        self._last_valid: Optional[Tuple[date, date]] = None

    @property
    def is_dragging(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> Optional[DragState]:
        return self._state

    @property
    def current_range(self) -> Optional[Tuple[date, date]]:
        return self._last_valid

    def begin(self, drag_state: DragState) -> None:
        if self._state is not None:
            raise DragSessionError("a drag session is already in progress")
        self._state = replace(drag_state, last_days_delta=0)
        self._last_valid = (drag_state.original_start, drag_state.original_end)

    def update(self, pointer: Pointer, context: TimelineContext) -> DragResult:
        if self._state is None:
            raise DragSessionError("no drag session in progress")
        result = coordinate_drag(self._state, pointer, context)
        if result.is_valid:
            self._state = advance(self._state, result)
            self._last_valid = (result.new_start, result.new_end)
        return result

    def end(self, commit: bool = True) -> Optional[Tuple[date, date]]:
        if self._state is None:
            raise DragSessionError("no drag session in progress")
        final = self._last_valid if commit else None
        self._state = None
        self._last_valid = None
        return final

    def cancel(self) -> None:
        self._state = None
        self._last_valid = None
