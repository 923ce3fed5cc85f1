from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from flask import Flask, jsonify, request

from timeline_allocator.dates import date_key
from timeline_allocator.drag import (
    THROTTLE_MS,
    Pointer,
    TimelineContext,
    coordinate_drag,
    find_nearest_available_slot,
)
from timeline_allocator.estimates import (
    EstimateCache,
    aggregate_by_date,
    calculate_portfolio_day_estimates,
    total_hours,
)
from timeline_allocator.io_utils import (
    date_bounds_from_dict,
    drag_state_from_dict,
    event_from_dict,
    holiday_from_dict,
    milestone_from_dict,
    project_from_dict,
    settings_from_dict,
    timeline_entity_from_dict,
)
from timeline_allocator.recommendations import BudgetAdvisor, validate_milestone_allocations
from timeline_allocator.recurrence import (
    describe_recurrence,
    generate_occurrences,
    occurrence_period,
    validate_recurring_config,
)

logger = logging.getLogger(__name__)


def _payload() -> Dict[str, object]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("request body must be a JSON object")
    return data


def _list_of(data: Mapping[str, object], key: str) -> List[Mapping[str, object]]:
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise ValueError(f"{key} must be an array of objects")
    return value


def _object(data: Mapping[str, object], key: str) -> Mapping[str, object]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise ValueError(f"{key} is required and must be an object")
    return value


def _projects(data: Mapping[str, object]):
    if "project" in data:
        return [project_from_dict(_object(data, "project"))]
    projects = [project_from_dict(entry) for entry in _list_of(data, "projects")]
    if not projects:
        raise ValueError("project or projects is required")
    return projects


def _optional_float(data: Mapping[str, object], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _context(data: Mapping[str, object]) -> TimelineContext:
    siblings = tuple(timeline_entity_from_dict(entry) for entry in _list_of(data, "siblings"))
    row_id = data.get("row_id")
    options = {}
    for key in ("day_column_width", "week_column_width", "viewport_left", "viewport_right"):
        value = _optional_float(data, key)
        if value is not None:
            options[key] = value
    return TimelineContext(
        siblings=siblings,
        row_id=None if row_id is None else str(row_id),
        bounds=date_bounds_from_dict(data.get("bounds")),
        **options,
    )


def create_app() -> Flask:
    app = Flask(__name__)
    cache = EstimateCache()
    app.config["ESTIMATE_CACHE"] = cache

    @app.post("/api/estimates")
    def estimates():
        try:
            data = _payload()
            projects = _projects(data)
            settings = settings_from_dict(_object(data, "settings"))
            milestones = [milestone_from_dict(entry) for entry in _list_of(data, "milestones")]
            holidays = [holiday_from_dict(entry) for entry in _list_of(data, "holidays")]
            events = [event_from_dict(entry) for entry in _list_of(data, "events")]
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        results = calculate_portfolio_day_estimates(projects, milestones, settings, holidays, events, cache)
        by_date = aggregate_by_date(results)
        return jsonify(
            {
                "estimates": [estimate.to_dict() for estimate in results],
                "daily_totals": {date_key(day): total_hours(items) for day, items in by_date.items()},
                "total_hours": total_hours(results),
            }
        )

    @app.post("/api/recurrence/preview")
    def recurrence_preview():
        try:
            data = _payload()
            project = project_from_dict(_object(data, "project"))
            milestone = milestone_from_dict(_object(data, "milestone"), validate=False)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        if not milestone.is_recurring:
            return jsonify({"is_valid": False, "errors": ["milestone is not recurring"]}), 400
        validation = validate_recurring_config(milestone.recurring_config)
        if not validation.is_valid:
            return jsonify({"is_valid": False, "errors": validation.errors}), 400
        occurrences = generate_occurrences(
            milestone, project.start_date, project.end_date, project.continuous
        )
        periods = [occurrence_period(milestone.recurring_config, day) for day in occurrences]
        return jsonify(
            {
                "is_valid": True,
                "description": describe_recurrence(milestone.recurring_config),
                "occurrences": [date_key(day) for day in occurrences],
                "periods": [
                    {"start": date_key(max(start, project.start_date)), "end": date_key(end)}
                    for start, end in periods
                ],
            }
        )

    @app.post("/api/budget")
    def budget():
        try:
            data = _payload()
            projects = _projects(data)
            milestones = [milestone_from_dict(entry) for entry in _list_of(data, "milestones")]
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        if len(projects) == 1 and "project" in data:
            return jsonify(validate_milestone_allocations(projects[0], milestones).to_dict())
        return jsonify(BudgetAdvisor(projects, milestones).analyze())

    @app.post("/api/drag")
    def drag():
        try:
            data = _payload()
            drag_state = drag_state_from_dict(_object(data, "drag_state"))
            pointer_raw = _object(data, "pointer")
            pointer = Pointer(
                x=_optional_float(pointer_raw, "x") or 0.0,
                y=_optional_float(pointer_raw, "y") or 0.0,
            )
            context = _context(data)
            result = coordinate_drag(drag_state, pointer, context)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        payload = result.to_dict()
        payload["throttle_ms"] = THROTTLE_MS[drag_state.mode]
        return jsonify(payload)

    @app.post("/api/drag/nearest-slot")
    def nearest_slot():
        try:
            data = _payload()
            entity = timeline_entity_from_dict(_object(data, "entity"))
            siblings = [timeline_entity_from_dict(entry) for entry in _list_of(data, "siblings")]
            direction = str(data.get("direction") or "auto")
            start, end = find_nearest_available_slot(
                entity.row_id, entity.start_date, entity.end_date, siblings, direction, exclude_id=entity.id
            )
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        return jsonify({"start": date_key(start), "end": date_key(end)})

    @app.get("/api/cache")
    def cache_stats():
        return jsonify({"entries": len(cache), "hits": cache.hits, "misses": cache.misses})

    @app.post("/api/cache/clear")
    def clear_cache():
        cleared = len(cache)
        cache.clear()
        logger.info("cleared %d cached estimate sets", cleared)
        return jsonify({"cleared": cleared})

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
