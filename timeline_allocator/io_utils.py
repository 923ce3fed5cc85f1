from __future__ import annotations

import json
import math
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
from dateutil import parser as dateparser

from .dates import WEEKDAY_NAMES
from .models import (
    DRAG_ACTIONS,
    RECURRENCE_TYPES,
    VIEW_MODES,
    CalendarEvent,
    DragState,
    Holiday,
    Milestone,
    Project,
    RecurringConfig,
    Settings,
    TimelineEntity,
    WorkSlot,
    empty_week,
)
from .recurrence import validate_recurring_config

_PROJECT_REQUIRED_COLUMNS = {
    "id",
    "name",
    "start_date",
    "end_date",
    "estimated_hours",
}

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _require_columns(df: pd.DataFrame, required: Iterable[str], source: str) -> None:
    missing = [col for col in sorted(required) if col not in df.columns]
    if missing:
        raise ValueError(f"{source} missing required columns: {', '.join(missing)}")


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def _pick(entry: Mapping[str, object], *keys: str) -> object:
    """First present value among camelCase/snake_case/legacy spellings."""
    for key in keys:
        if key in entry and not _is_missing(entry[key]):
            return entry[key]
    return None


def _parse_bool(value: object, field_name: str = "value") -> bool:
    if isinstance(value, bool):
        return value
    if _is_missing(value):
        return False
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "t", "1", "yes", "y"}:
            return True
        if lowered in {"false", "f", "0", "no", "n"}:
            return False
    raise ValueError(f"cannot interpret boolean value '{value}' in '{field_name}'")


def _parse_date(value: object, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if _is_missing(value):
        raise ValueError(f"'{field_name}' is required")
    try:
        return dateparser.isoparse(str(value).strip()).date()
    except (ValueError, TypeError) as exc:
        raise ValueError(f"invalid date in '{field_name}': {value}") from exc


def _parse_optional_date(value: object, field_name: str) -> Optional[date]:
    if _is_missing(value):
        return None
    return _parse_date(value, field_name)


def _parse_timestamp(value: object, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if _is_missing(value):
        raise ValueError(f"'{field_name}' is required")
    try:
        return dateparser.isoparse(str(value).strip())
    except (ValueError, TypeError) as exc:
        raise ValueError(f"invalid timestamp in '{field_name}': {value}") from exc


def _parse_hours(value: object, field_name: str, default: Optional[float] = None) -> float:
    if _is_missing(value):
        if default is None:
            raise ValueError(f"'{field_name}' is required")
        return default
    if isinstance(value, bool):
        raise ValueError(f"'{field_name}' must be a number")
    try:
        hours = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid numeric value in '{field_name}': {value}") from exc
    if hours < 0:
        raise ValueError(f"'{field_name}' must not be negative")
    return hours


def _parse_optional_int(value: object, field_name: str) -> Optional[int]:
    if _is_missing(value):
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"'{field_name}' must be an integer")
    try:
        number = float(value)
    except ValueError as exc:
        raise ValueError(f"'{field_name}' must be an integer") from exc
    if not math.isfinite(number) or number != int(number):
        raise ValueError(f"'{field_name}' must be an integer")
    return int(number)


def _parse_weekday_list(value: object, field_name: str) -> Optional[Dict[str, bool]]:
    """Weekday override from a mapping, a JSON array or a ``mon;tue`` style list."""
    if _is_missing(value):
        return None
    if isinstance(value, Mapping):
        flags = {name: False for name in WEEKDAY_NAMES}
        for key, flag in value.items():
            flags[_weekday_key(str(key), field_name)] = _parse_bool(flag, field_name)
        return flags
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("[") and stripped.endswith("]"):
            try:
                items = json.loads(stripped)
            except json.JSONDecodeError as exc:
                raise ValueError(f"invalid JSON array in '{field_name}'") from exc
        else:
            items = [part for part in stripped.split(";")]
    elif isinstance(value, Sequence):
        items = list(value)
    else:
        raise ValueError(f"unsupported value for '{field_name}': {value!r}")
    selected = {_weekday_key(str(item), field_name) for item in items if str(item).strip()}
    return {name: name in selected for name in WEEKDAY_NAMES}


def _weekday_key(raw: str, field_name: str) -> str:
    lowered = raw.strip().lower()
    for name in WEEKDAY_NAMES:
        if lowered == name or (len(lowered) >= 3 and name.startswith(lowered)):
            return name
    raise ValueError(f"unknown weekday '{raw}' in '{field_name}'")


def _read_json_array(path: str | Path, source: str) -> List[Mapping[str, object]]:
    data = json.loads(Path(path).read_text())
    if not isinstance(data, list):
        raise ValueError(f"{source} must be a JSON array")
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError(f"{source} entries must be objects")
    return data


def project_from_dict(entry: Mapping[str, object]) -> Project:
    project_id = _pick(entry, "id")
    if project_id is None:
        raise ValueError("project id is required")
    project_id = str(project_id)
    continuous = _parse_bool(_pick(entry, "continuous"), "continuous")
    start = _parse_date(_pick(entry, "startDate", "start_date"), "start_date")
    end_raw = _pick(entry, "endDate", "end_date")
    if end_raw is None and continuous:
        end = start
    else:
        end = _parse_date(end_raw, "end_date")
    if end < start and not continuous:
        raise ValueError(f"project {project_id} ends before it starts")
    hours = _parse_hours(_pick(entry, "estimatedHours", "estimated_hours"), "estimated_hours")
    row_id = _pick(entry, "rowId", "row_id")
    return Project(
        id=project_id,
        name=str(_pick(entry, "name") or project_id),
        start_date=start,
        end_date=end,
        estimated_hours=hours,
        continuous=continuous,
        row_id="" if row_id is None else str(row_id),
        auto_estimate_days=_parse_weekday_list(
            _pick(entry, "autoEstimateDays", "auto_estimate_days"), "auto_estimate_days"
        ),
    )


def projects_from_df(df: pd.DataFrame) -> List[Project]:
    projects = [project_from_dict(row) for row in df.astype(object).to_dict(orient="records")]
    seen = set()
    for project in projects:
        if project.id in seen:
            raise ValueError(f"duplicate project id '{project.id}'")
        seen.add(project.id)
    return projects


def load_projects(path: str | Path) -> pd.DataFrame:
    df = pd.read_csv(path, dtype={"id": str, "row_id": str})
    if df.empty:
        raise ValueError("projects file is empty")
    _require_columns(df, _PROJECT_REQUIRED_COLUMNS, "projects.csv")
    try:
        df["estimated_hours"] = pd.to_numeric(df["estimated_hours"])
    except ValueError as exc:
        raise ValueError("invalid numeric value in column 'estimated_hours'") from exc
    if (df["estimated_hours"] < 0).any():
        raise ValueError("column 'estimated_hours' contains negative values")
    for column_name in ("continuous", "row_id", "auto_estimate_days"):
        if column_name not in df.columns:
            df[column_name] = None
    return df


def recurring_config_from_dict(entry: Mapping[str, object]) -> RecurringConfig:
    kind = _pick(entry, "type")
    if kind not in RECURRENCE_TYPES:
        raise ValueError(f"invalid recurrence type '{kind}': must be daily, weekly or monthly")
    interval = _parse_optional_int(_pick(entry, "interval"), "interval")
    return RecurringConfig(
        type=str(kind),
        interval=1 if interval is None else interval,
        day_of_week=_parse_optional_int(_pick(entry, "weeklyDayOfWeek", "dayOfWeek", "day_of_week"), "day_of_week"),
        monthly_pattern=_pick(entry, "monthlyPattern", "monthly_pattern"),  # type: ignore[arg-type]
        monthly_date=_parse_optional_int(_pick(entry, "monthlyDate", "monthly_date"), "monthly_date"),
        monthly_week_of_month=_parse_optional_int(
            _pick(entry, "monthlyWeekOfMonth", "monthly_week_of_month"), "monthly_week_of_month"
        ),
        monthly_day_of_week=_parse_optional_int(
            _pick(entry, "monthlyDayOfWeek", "monthly_day_of_week"), "monthly_day_of_week"
        ),
        end_date=_parse_optional_date(_pick(entry, "endDate", "end_date"), "recurring end_date"),
        count=_parse_optional_int(_pick(entry, "count"), "count"),
    )


def milestone_from_dict(entry: Mapping[str, object], validate: bool = True) -> Milestone:
    """Normalize one milestone; a stored start date is legacy data and is dropped.

    Recurring milestones are rejected unless their recurrence config validates.
    Pass ``validate=False`` to inspect a config without rejecting it.
    """
    milestone_id = _pick(entry, "id")
    project_id = _pick(entry, "projectId", "project_id")
    if milestone_id is None or project_id is None:
        raise ValueError("milestone id and project id are required")
    is_recurring = _parse_bool(_pick(entry, "isRecurring", "is_recurring"), "is_recurring")
    config_raw = _pick(entry, "recurringConfig", "recurring_config")
    config = None
    if config_raw is not None:
        if not isinstance(config_raw, Mapping):
            raise ValueError(f"recurring config of milestone {milestone_id} must be an object")
        config = recurring_config_from_dict(config_raw)
    if is_recurring and validate:
        validation = validate_recurring_config(config)
        if not validation.is_valid:
            raise ValueError(f"milestone {milestone_id}: {validation.reason}")
    return Milestone(
        id=str(milestone_id),
        project_id=str(project_id),
        end_date=_parse_date(_pick(entry, "endDate", "end_date", "dueDate", "due_date"), "end_date"),
        time_allocation_hours=_parse_hours(
            _pick(entry, "timeAllocationHours", "time_allocation_hours", "timeAllocation", "time_allocation"),
            "time_allocation_hours",
            default=0.0,
        ),
        is_recurring=is_recurring,
        recurring_config=config,
        name=str(_pick(entry, "name") or ""),
    )


def holiday_from_dict(entry: Mapping[str, object]) -> Holiday:
    holiday_id = _pick(entry, "id")
    if holiday_id is None:
        raise ValueError("holiday id is required")
    start = _parse_date(_pick(entry, "startDate", "start_date"), "start_date")
    end_raw = _pick(entry, "endDate", "end_date")
    end = start if end_raw is None else _parse_date(end_raw, "end_date")
    if end < start:
        raise ValueError(f"holiday {holiday_id} ends before it starts")
    return Holiday(id=str(holiday_id), start_date=start, end_date=end, name=str(_pick(entry, "name", "title") or ""))


def event_from_dict(entry: Mapping[str, object]) -> CalendarEvent:
    event_id = _pick(entry, "id")
    if event_id is None:
        raise ValueError("event id is required")
    project_id = _pick(entry, "projectId", "project_id")
    return CalendarEvent(
        id=str(event_id),
        start_time=_parse_timestamp(_pick(entry, "startTime", "start_time"), "start_time"),
        end_time=_parse_timestamp(_pick(entry, "endTime", "end_time"), "end_time"),
        project_id=None if project_id is None else str(project_id),
        completed=_parse_bool(_pick(entry, "completed"), "completed"),
        type=str(_pick(entry, "type") or "planned"),
    )


def timeline_entity_from_dict(entry: Mapping[str, object], kind: str = "project") -> TimelineEntity:
    entity_id = _pick(entry, "id")
    if entity_id is None:
        raise ValueError("timeline entity id is required")
    start = _parse_date(_pick(entry, "startDate", "start_date"), "start_date")
    end_raw = _pick(entry, "endDate", "end_date", "dueDate", "due_date")
    row_id = _pick(entry, "rowId", "row_id")
    return TimelineEntity(
        id=str(entity_id),
        start_date=start,
        end_date=start if end_raw is None else _parse_date(end_raw, "end_date"),
        row_id="" if row_id is None else str(row_id),
        kind=str(_pick(entry, "kind") or kind),
    )


def drag_state_from_dict(entry: Mapping[str, object]) -> DragState:
    action = _pick(entry, "action")
    if action not in DRAG_ACTIONS:
        raise ValueError(f"unsupported drag action '{action}'")
    mode = str(_pick(entry, "mode") or "days")
    if mode not in VIEW_MODES:
        raise ValueError(f"unsupported view mode '{mode}'")
    ids = {
        "project_id": _pick(entry, "projectId", "project_id"),
        "holiday_id": _pick(entry, "holidayId", "holiday_id"),
        "milestone_id": _pick(entry, "milestoneId", "milestone_id"),
    }
    if all(value is None for value in ids.values()):
        raise ValueError("drag state must name a project, holiday or milestone")
    try:
        start_x = float(_pick(entry, "startX", "start_x") or 0.0)  # type: ignore[arg-type]
        start_y = float(_pick(entry, "startY", "start_y") or 0.0)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError("drag start coordinates must be numbers") from exc
    last_delta = _parse_optional_int(_pick(entry, "lastDaysDelta", "last_days_delta"), "last_days_delta")
    return DragState(
        action=str(action),
        start_x=start_x,
        start_y=start_y,
        original_start=_parse_date(_pick(entry, "originalStartDate", "original_start"), "original_start"),
        original_end=_parse_date(_pick(entry, "originalEndDate", "original_end"), "original_end"),
        last_days_delta=last_delta or 0,
        mode=mode,
        **{key: None if value is None else str(value) for key, value in ids.items()},
    )


def _slot_from_value(value: object, weekday: str) -> Tuple[WorkSlot, ...]:
    if _is_missing(value):
        return ()
    # Legacy numeric form: N hours starting at 09:00.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        hours = float(value)
        if hours < 0:
            raise ValueError(f"work hours for {weekday} must not be negative")
        if hours == 0:
            return ()
        end_minutes = 9 * 60 + int(round(hours * 60))
        end_time = f"{(end_minutes // 60) % 24:02d}:{end_minutes % 60:02d}"
        return (WorkSlot(start_time="09:00", end_time=end_time, duration=hours),)
    if not isinstance(value, list):
        raise ValueError(f"work hours for {weekday} must be a number or an array of slots")
    slots = []
    for slot in value:
        if not isinstance(slot, dict):
            raise ValueError(f"work slots for {weekday} must be objects")
        slots.append(
            WorkSlot(
                start_time=str(_pick(slot, "startTime", "start_time") or ""),
                end_time=str(_pick(slot, "endTime", "end_time") or ""),
                duration=_parse_hours(_pick(slot, "duration"), f"{weekday} slot duration"),
            )
        )
    return tuple(slots)


def settings_from_dict(data: Mapping[str, object]) -> Settings:
    weekly_raw = _pick(data, "weeklyWorkHours", "weekly_work_hours")
    if weekly_raw is None:
        raise ValueError("weekly_work_hours is required")
    if not isinstance(weekly_raw, Mapping):
        raise ValueError("weekly_work_hours must be an object")
    week = empty_week()
    for key, value in weekly_raw.items():
        name = _weekday_key(str(key), "weekly_work_hours")
        week[name] = _slot_from_value(value, name)
    logging_level = str(_pick(data, "loggingLevel", "logging_level") or "INFO").upper()
    if logging_level not in _VALID_LOG_LEVELS:
        raise ValueError(f"logging_level must be one of {', '.join(sorted(_VALID_LOG_LEVELS))}")
    split = _pick(data, "splitEventsAcrossMidnight", "split_events_across_midnight")
    if split is not None and not isinstance(split, bool):
        raise ValueError("split_events_across_midnight must be a boolean")
    return Settings(
        weekly_work_hours=week,
        logging_level=logging_level,
        split_events_across_midnight=bool(split),
    )


def load_settings(path: str | Path) -> Settings:
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError("settings file must be a JSON object")
    return settings_from_dict(data)


def load_milestones(path: str | Path) -> List[Milestone]:
    return [milestone_from_dict(entry) for entry in _read_json_array(path, "milestones file")]


def load_holidays(path: str | Path) -> List[Holiday]:
    return [holiday_from_dict(entry) for entry in _read_json_array(path, "holidays file")]


def load_events(path: str | Path) -> List[CalendarEvent]:
    return [event_from_dict(entry) for entry in _read_json_array(path, "events file")]


def load_optional(path: Optional[str | Path], loader) -> list:
    """Run ``loader`` when ``path`` exists, else return an empty list."""
    if path is None or not Path(path).exists():
        return []
    return loader(path)


def ensure_directory(path: str | Path) -> Path:
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


def date_bounds_from_dict(entry: Optional[Mapping[str, object]]) -> Optional[Tuple[date, date]]:
    if entry is None:
        return None
    if not isinstance(entry, Mapping):
        raise ValueError("bounds must be an object with start and end")
    start = _parse_date(_pick(entry, "start", "startDate", "start_date"), "bounds.start")
    end = _parse_date(_pick(entry, "end", "endDate", "end_date"), "bounds.end")
    if end < start:
        raise ValueError("bounds end before they start")
    return start, end
