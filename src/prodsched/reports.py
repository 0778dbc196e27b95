"""CSV exports of loaded tasks and scheduling results."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .csvio import unparse_csv
from .dates import format_date
from .models import (
    ProjectSummaryRecord,
    StoreSummaryRecord,
    TaskRecord,
    task_export_columns,
)
from .remote import ScheduleResult

SCHEDULE_COLUMNS = [
    "Date",
    "Job",
    "Store",
    "SKU",
    "SKU Name",
    "Operation",
    "Team",
    "TeamMember",
    "Team Member Name",
    "Order",
    "Task Hours Completed",
    "Time Spent (Hours)",
    "DynamicPriority",
    "StartDate",
    "DueDate",
]
UTILIZATION_COLUMNS = ["Week", "Team", "WorkedHours", "CapacityHours", "Utilization"]
COMPLETIONS_COLUMNS = ["Date", "Job", "Store", "SKU", "SKU Name", "Value"]
COMPLETED_TASK_COLUMNS = ["Project", "SKU", "Operation", "CompletionDate"]

SAMPLE_PROJECT_CSV = "\n".join(
    [
        "Project,Store,SKU,SKU Name,Operation,Order,Estimated Hours,Value,StartDate,DueDate",
        "Job-001,Store-A,SKU-01-A,Widget A,Carpentry/Woodwork,1,10,1500.00,2025-07-01,2025-07-15",
        "Job-001,Store-A,SKU-01-A,Widget A,Paint Prep,2,5,1500.00,2025-07-01,2025-07-15",
    ]
)
SAMPLE_ROUTING_CSV = "\n".join(
    [
        "TemplateName,SKU,SKU Name,Operation,Order,Estimated Hours,Value",
        "Standard Widget,WIDGET-STD,Standard Widget,Carpentry/Woodwork,1,10,1500.00",
        "Standard Widget,WIDGET-STD,Standard Widget,Paint Prep,2,5,1500.00",
        "Standard Widget,WIDGET-STD,Standard Widget,Final Assembly,3,8,1500.00",
    ]
)
SAMPLES = {
    "project": ("sample_project_data.csv", SAMPLE_PROJECT_CSV),
    "routing": ("sample_routing_data.csv", SAMPLE_ROUTING_CSV),
}


def _priority(value: Any) -> float:
    try:
        return round(float(value or 0), 2)
    except (TypeError, ValueError):
        return 0.0


def project_tasks_csv(tasks: Iterable[TaskRecord]) -> str:
    tasks = list(tasks)
    return unparse_csv([t.to_row() for t in tasks], task_export_columns(tasks))


def schedule_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    """The master daily work log; one line per task per worked day."""
    return unparse_csv(
        [
            {
                "Date": row.get("Date"),
                "Job": row.get("Project"),
                "Store": row.get("Store"),
                "SKU": row.get("SKU"),
                "SKU Name": row.get("SKU Name"),
                "Operation": row.get("Operation"),
                "Team": row.get("Team"),
                "TeamMember": row.get("TeamMember"),
                "Team Member Name": row.get("TeamMemberName"),
                "Order": row.get("Order"),
                "Task Hours Completed": row.get("Task Hours Completed"),
                "Time Spent (Hours)": row.get("Time Spent (Hours)"),
                "DynamicPriority": _priority(row.get("DynamicPriority")),
                "StartDate": format_date(row.get("StartDate")),
                "DueDate": format_date(row.get("DueDate")),
            }
            for row in rows
        ],
        SCHEDULE_COLUMNS,
    )


def utilization_csv(weeks: Iterable[Mapping[str, Any]]) -> str:
    return unparse_csv(
        [
            {
                "Week": week.get("week"),
                "Team": team.get("name"),
                "WorkedHours": team.get("worked"),
                "CapacityHours": team.get("capacity"),
                "Utilization": team.get("utilization"),
            }
            for week in weeks
            for team in week.get("teams") or []
        ],
        UTILIZATION_COLUMNS,
    )


def _pick(rows: Iterable[Mapping[str, Any]], columns: Sequence[str]) -> str:
    return unparse_csv([{c: row.get(c) for c in columns} for row in rows], columns)


def completions_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    return _pick(rows, COMPLETIONS_COLUMNS)


def completed_tasks_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    return _pick(rows, COMPLETED_TASK_COLUMNS)


def project_summary_csv(records: Iterable[ProjectSummaryRecord]) -> str:
    return unparse_csv([r.to_row() for r in records])


def store_summary_csv(records: Iterable[StoreSummaryRecord]) -> str:
    return unparse_csv([r.to_row() for r in records])


@dataclass(frozen=True)
class ResultReport:
    """A downloadable export built from a schedule result."""

    filename: str
    rows: Callable[[ScheduleResult], list[dict[str, Any]]]
    write: Callable[[list[dict[str, Any]]], str]

    def render(self, result: ScheduleResult) -> str | None:
        """The CSV text, or None when the result has nothing to export."""
        rows = self.rows(result)
        if not rows:
            return None
        return self.write(rows)


RESULT_REPORTS = {
    "schedule": ResultReport(
        "master_daily_work_log.csv", lambda r: r.final_schedule, schedule_csv
    ),
    "utilization": ResultReport(
        "weekly_team_utilization.csv", lambda r: r.team_utilization, utilization_csv
    ),
    "completions": ResultReport(
        "daily_completions_report.csv", lambda r: r.daily_completions, completions_csv
    ),
    "completed_tasks": ResultReport(
        "completed_tasks_from_snowflake.csv", lambda r: r.completed_tasks, completed_tasks_csv
    ),
}
