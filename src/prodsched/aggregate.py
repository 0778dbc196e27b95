"""Summary and chart-series derivation from scheduling results.

Every function here is pure: the same inputs give the same outputs and no
module state is read.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

from . import models as m
from .dates import days_between, parse_date
from .models import (
    HybridSegment,
    ProjectSummaryRecord,
    StoreSummaryRecord,
    TeamWeekValue,
    WeeklySeriesPoint,
)

TEAM_SORT_ORDER = ["CNC", "Metal", "Scenic", "Paint", "Carpentry", "Assembly", "Tech", "Hybrid"]
TEAM_COLORS = [
    "#3b82f6",
    "#000000",
    "#f97316",
    "#8b5cf6",
    "#10b981",
    "#ef4444",
    "#f59e0b",
    "#826c60",
    "#6366f1",
    "#d946ef",
    "#8b4513",
]
FALLBACK_COLOR = "#94a3b8"
HYBRID_TEAM = "Hybrid"

# Workload chart y-axis: at least this tall, rounded up to this step
WORKLOAD_AXIS_FLOOR = 125.0
WORKLOAD_AXIS_STEP = 50.0

# Utilization bar bands (percent of productive capacity)
LOW_UTILIZATION = 30
MID_UTILIZATION = 50

Metric = Literal["utilization", "workload_ratio", "worked", "capacity"]
UtilizationBand = Literal["low", "mid", "high"]


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _number(value: Any) -> float:
    """Coerce a loosely typed JSON number; anything unusable is 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def build_project_summary(
    remote_rows: Iterable[Mapping[str, Any]], end_overrides: Mapping[str, str]
) -> list[ProjectSummaryRecord]:
    """Build per-project records from the service's project rows.

    The effective due date is the user's end override when one exists,
    otherwise the service's DueDate. Variance is ``effective due - finish`` in
    days (positive means ahead of schedule) and is 0 when either date is
    missing or unparseable.

    Returns:
        Records sorted by store, then project name
    """
    records: list[ProjectSummaryRecord] = []
    for row in remote_rows:
        project = _text(row.get(m.PROJECT))
        due = parse_date(row.get(m.DUE_DATE))
        effective_due = parse_date(end_overrides.get(project) or row.get(m.DUE_DATE))
        finish = parse_date(row.get(m.FINISH_DATE))
        variance = (
            days_between(effective_due, finish) if effective_due and finish else 0
        )
        records.append(
            ProjectSummaryRecord(
                project=project,
                store=_text(row.get(m.STORE)),
                start_date=parse_date(row.get(m.START_DATE)),
                due_date=due,
                effective_due_date=effective_due,
                finish_date=finish,
                days_variance=variance,
            )
        )

    records.sort(key=lambda r: (r.store, r.project))
    return records


@dataclass
class _StoreAccumulator:
    start: date
    finish: date
    due: date


def build_store_summary(
    project_summary: Iterable[ProjectSummaryRecord],
) -> list[StoreSummaryRecord]:
    """Roll project records up per store.

    A store starts with its earliest project, finishes with its latest
    finishing project and is due at its latest effective due date. Projects
    missing any of those three dates are left out of the rollup.

    Returns:
        Records sorted by store
    """
    stores: dict[str, _StoreAccumulator] = {}
    for record in project_summary:
        start, finish, due = record.start_date, record.finish_date, record.effective_due_date
        if start is None or finish is None or due is None:
            continue

        acc = stores.get(record.store)
        if acc is None:
            stores[record.store] = _StoreAccumulator(start, finish, due)
            continue
        acc.start = min(acc.start, start)
        acc.finish = max(acc.finish, finish)
        acc.due = max(acc.due, due)

    return [
        StoreSummaryRecord(
            store=store,
            start_date=acc.start,
            finish_date=acc.finish,
            due_date=acc.due,
            days_variance=days_between(acc.due, acc.finish),
        )
        for store, acc in sorted(stores.items())
    ]


def team_rank(name: str) -> tuple[int, str]:
    """Sort key placing known teams in display order and unknown ones last."""
    try:
        return (TEAM_SORT_ORDER.index(name), "")
    except ValueError:
        return (len(TEAM_SORT_ORDER), name)


def sort_teams(names: Iterable[str]) -> list[str]:
    return sorted(set(names), key=team_rank)


def team_color(name: str) -> str:
    if name in TEAM_SORT_ORDER:
        return TEAM_COLORS[TEAM_SORT_ORDER.index(name) % len(TEAM_COLORS)]
    return FALLBACK_COLOR


def _team_value(raw: Mapping[str, Any]) -> TeamWeekValue:
    breakdown_raw = raw.get("breakdown") or {}
    breakdown = {
        str(team): _number(hours)
        for team, hours in sorted(breakdown_raw.items(), key=lambda item: team_rank(str(item[0])))
    }
    ratio = raw.get("workloadRatio")
    return TeamWeekValue(
        name=_text(raw.get("name")),
        worked=_number(raw.get("worked")),
        capacity=_number(raw.get("capacity")),
        utilization=_number(raw.get("utilization")),
        workload_ratio=_number(ratio) if ratio is not None else None,
        breakdown=breakdown,
    )


def reshape_weekly(raw_weeks: Iterable[Mapping[str, Any]]) -> list[WeeklySeriesPoint]:
    """Turn the service's nested week/team structures into series points.

    Weeks whose date does not parse are dropped, the rest are returned in
    chronological order. Missing weeks are not filled in.
    """
    points: list[WeeklySeriesPoint] = []
    for raw in raw_weeks:
        week = parse_date(raw.get("week"))
        if week is None:
            continue
        teams = [_team_value(t) for t in raw.get("teams") or []]
        teams.sort(key=lambda t: team_rank(t.name))
        points.append(WeeklySeriesPoint(week=week, teams=teams))

    points.sort(key=lambda p: p.week)
    return points


def hybrid_segments(team: TeamWeekValue) -> list[HybridSegment]:
    """Split a composite team's bar by contributing sub-team.

    Each segment's fraction is its share of this team's worked *hours* for the
    week, not of its utilization percentage.
    """
    if team.name != HYBRID_TEAM or not team.breakdown or team.worked <= 0:
        return []
    return [
        HybridSegment(team=sub_team, hours=hours, fraction=hours / team.worked)
        for sub_team, hours in team.breakdown.items()
    ]


def utilization_band(team: TeamWeekValue, productivity: float) -> UtilizationBand:
    """Classify a bar by worked hours against productive capacity."""
    effective_capacity = team.capacity * productivity
    percent = round(team.worked / effective_capacity * 100) if effective_capacity > 0 else 0
    if percent < LOW_UTILIZATION:
        return "low"
    if percent <= MID_UTILIZATION:
        return "mid"
    return "high"


def series_by_team(
    points: Sequence[WeeklySeriesPoint], metric: Metric
) -> dict[str, list[tuple[date, float]]]:
    """Regroup weekly points into one chronological line per team."""
    series: dict[str, list[tuple[date, float]]] = {}
    for point in points:
        for team in point.teams:
            value = getattr(team, metric)
            if value is None:
                continue
            series.setdefault(team.name, []).append((point.week, value))

    return {
        name: sorted(series[name], key=lambda item: item[0])
        for name in sorted(series, key=team_rank)
    }


def workload_axis_max(points: Sequence[WeeklySeriesPoint]) -> float:
    """Top of the workload chart's y-axis."""
    highest = WORKLOAD_AXIS_FLOOR
    for point in points:
        for team in point.teams:
            if team.workload_ratio is not None and team.workload_ratio > highest:
                highest = team.workload_ratio
    return math.ceil(highest / WORKLOAD_AXIS_STEP) * WORKLOAD_AXIS_STEP
