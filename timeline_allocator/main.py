from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .estimates import (
    EstimateCache,
    calculate_portfolio_day_estimates,
    daily_totals_frame,
    estimates_to_frame,
)
from .io_utils import (
    ensure_directory,
    load_events,
    load_holidays,
    load_milestones,
    load_optional,
    load_projects,
    load_settings,
    projects_from_df,
    write_csv,
)
from .models import Project
from .recommendations import BudgetAdvisor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputPaths:
    projects: Path
    settings: Path
    milestones: Optional[Path]
    holidays: Optional[Path]
    events: Optional[Path]
    outdir: Path


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Timeline allocation batch tool (CSV/JSON in, CSV out, no UI)."
    )
    parser.add_argument(
        "--project-dir",
        help="Planning directory containing input/ and output/ subfolders",
    )
    parser.add_argument("--projects", help="Path to projects CSV input (overrides project-dir default)")
    parser.add_argument("--milestones", help="Path to milestones JSON input (optional)")
    parser.add_argument("--holidays", help="Path to holidays JSON input (optional)")
    parser.add_argument("--events", help="Path to calendar events JSON input (optional)")
    parser.add_argument("--settings", help="Path to settings JSON file (overrides project-dir default)")
    parser.add_argument(
        "--outdir",
        default=None,
        help="Output directory for generated files (default: <project-dir>/output or ./out)",
    )
    parser.add_argument(
        "--project",
        action="append",
        dest="project_ids",
        help="Only allocate the given project id (repeatable)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail if any project's phases exceed its estimated hours",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Allocate and print a summary without writing output files",
    )
    return parser.parse_args(argv)


def _resolve_io_paths(args: argparse.Namespace) -> InputPaths:
    project_dir = Path(args.project_dir).resolve() if args.project_dir else None
    if project_dir and not project_dir.exists():
        raise ValueError(f"project directory not found: {project_dir}")
    input_dir = project_dir / "input" if project_dir else None

    def _pick(path_value: Optional[str], default_name: str) -> Optional[Path]:
        if path_value:
            return Path(path_value)
        if input_dir:
            return input_dir / default_name
        return None

    projects_path = _pick(args.projects, "projects.csv")
    settings_path = _pick(args.settings, "settings.json")

    missing = [
        name
        for name, value in (("projects", projects_path), ("settings", settings_path))
        if value is None
    ]
    if missing:
        joined = ", ".join(f"--{name}" for name in missing)
        raise ValueError(f"missing required input paths: {joined} (or provide --project-dir)")

    for label, path in (("projects", projects_path), ("settings", settings_path)):
        if not path.exists():
            raise ValueError(f"{label} file not found at {path}")

    optional: Dict[str, Optional[Path]] = {}
    for label in ("milestones", "holidays", "events"):
        explicit = getattr(args, label)
        path = _pick(explicit, f"{label}.json")
        if explicit and not path.exists():
            raise ValueError(f"{label} file not found at {path}")
        optional[label] = path

    if args.outdir:
        outdir = Path(args.outdir)
    elif project_dir:
        outdir = project_dir / "output"
    else:
        outdir = Path("out")

    return InputPaths(
        projects=projects_path,
        settings=settings_path,
        milestones=optional["milestones"],
        holidays=optional["holidays"],
        events=optional["events"],
        outdir=outdir,
    )


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")


def _select_projects(projects: List[Project], project_ids: Optional[List[str]]) -> List[Project]:
    if not project_ids:
        return projects
    known = {project.id for project in projects}
    unknown = [pid for pid in project_ids if pid not in known]
    if unknown:
        raise ValueError(f"unknown project id(s): {', '.join(unknown)}")
    wanted = set(project_ids)
    return [project for project in projects if project.id in wanted]


def _print_dry_run_summary(totals: pd.DataFrame, projects: List[Project]) -> None:
    if totals.empty:
        print("No hours allocated.")
        return
    print("Allocated projects:")
    per_project = totals.groupby("project_id")["hours"].agg(["sum", "count"])
    for project in projects:
        if project.id not in per_project.index:
            print(f"- {project.id} {project.name}: no hours allocated")
            continue
        row = per_project.loc[project.id]
        days_label = "day" if int(row["count"]) == 1 else "days"
        print(
            f"- {project.id} {project.name}: {row['sum']:.2f}h over {int(row['count'])} {days_label} "
            f"({project.start_date.isoformat()} → {project.end_date.isoformat()})"
        )


def _write_budget_markdown(analysis: Dict[str, object], projects: List[Project], outdir: Path) -> Path:
    path = outdir / "budget_warnings.md"
    names = {project.id: project.name for project in projects}
    lines: List[str] = ["# Budget Warnings", ""]
    recommendations = analysis.get("recommendations") or []
    if not recommendations:
        lines.append("All phase budgets fit their projects.")
    else:
        checks = analysis.get("checks") or {}
        for item in recommendations:
            project_id = item["project_id"]
            lines.append(f"- **{project_id} – {names.get(project_id, project_id)}**")
            lines.append(f"  - {item['severity'].capitalize()}: {item['message']}")
            check = checks.get(project_id)
            if check and item["type"] in {"over_budget", "high_utilization"}:
                lines.append(
                    f"  - Allocated: {check['total_allocated']:.2f}h of {check['project_budget']:.2f}h "
                    f"({check['utilization_percentage']:.1f}%)"
                )
            lines.append("")
    recurring = analysis.get("recurring") or []
    if recurring:
        lines.append("## Recurring Phases")
        lines.append("")
        for item in recurring:
            lines.append(
                f"- {item['milestone_id']} ({item['project_id']}): "
                f"{item['hours_per_occurrence']:.2f}h, {item['pattern']}"
            )
    path.write_text("\n".join(lines).strip() + "\n")
    return path


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    try:
        paths = _resolve_io_paths(args)
        settings = load_settings(paths.settings)
        projects = _select_projects(projects_from_df(load_projects(paths.projects)), args.project_ids)
        milestones = load_optional(paths.milestones, load_milestones)
        holidays = load_optional(paths.holidays, load_holidays)
        events = load_optional(paths.events, load_events)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(2)

    _configure_logging(settings.logging_level)
    logger.debug(
        "loaded %d projects, %d milestones, %d holidays, %d events",
        len(projects),
        len(milestones),
        len(holidays),
        len(events),
    )

    cache = EstimateCache()
    estimates = calculate_portfolio_day_estimates(projects, milestones, settings, holidays, events, cache)
    estimates_df = estimates_to_frame(estimates)
    totals_df = daily_totals_frame(estimates)
    analysis = BudgetAdvisor(projects, milestones).analyze()
    over_budget = [pid for pid, check in analysis["checks"].items() if not check["is_valid"]]
    for pid in over_budget:
        logger.warning("project %s: phase budgets exceed estimated hours", pid)

    if args.dry_run:
        _print_dry_run_summary(totals_df, projects)
    else:
        outdir_path = ensure_directory(paths.outdir)
        estimates_path = outdir_path / "day_estimates.csv"
        totals_path = outdir_path / "daily_totals.csv"
        write_csv(estimates_df, estimates_path)
        write_csv(totals_df, totals_path)
        warnings_path = _write_budget_markdown(analysis, projects, outdir_path)
        print(f"Wrote {estimates_path}")
        print(f"Wrote {totals_path}")
        print(f"Wrote {warnings_path}")

    if over_budget:
        print("Over-budget projects:")
        for pid in over_budget:
            print(f"- {pid}")
        if args.strict:
            sys.exit(1)


if __name__ == "__main__":
    main()
