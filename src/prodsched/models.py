"""Record types for each pipeline stage.

Raw CSV rows (``dict[str, str]``) become ``TaskRecord`` in the normalizer,
and the remote service's project rows become ``ProjectSummaryRecord`` in the
aggregation engine. Records are immutable; stages build new ones.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from .dates import format_date

# Canonical column names as they appear in CSV files and on the wire
PROJECT = "Project"
STORE = "Store"
SKU = "SKU"
SKU_NAME = "SKU Name"
OPERATION = "Operation"
ORDER = "Order"
ESTIMATED_HOURS = "Estimated Hours"
VALUE = "Value"
START_DATE = "StartDate"
DUE_DATE = "DueDate"
FINISH_DATE = "FinishDate"
LAG_AFTER_HOURS = "LagAfterHours"
ASSEMBLY_GROUP = "AssemblyGroup"
TEMPLATE_NAME = "TemplateName"
TEAM_MEMBER_NUMBER = "TeamMemberNumber"
TEAM_MEMBER_NAME = "TeamMemberName"
EFFICIENCY = "Efficiency"

TASK_EXPORT_COLUMNS = [
    PROJECT,
    STORE,
    SKU,
    SKU_NAME,
    OPERATION,
    ORDER,
    ESTIMATED_HOURS,
    VALUE,
    START_DATE,
    DUE_DATE,
]
# Written only when at least one exported task carries them
OPTIONAL_EXPORT_COLUMNS = [LAG_AFTER_HOURS, ASSEMBLY_GROUP]


def _default_extras() -> dict[str, str]:
    return {}


@dataclass(frozen=True)
class TaskRecord:
    """One routed operation belonging to a project."""

    project: str
    store: str
    sku: str
    operation: str
    order: int
    estimated_hours: float
    start_date: date
    due_date: date
    sku_name: str = ""
    value: float = 0.0
    lag_after_hours: float | None = None
    assembly_group: str | None = None
    extras: dict[str, str] = field(default_factory=_default_extras, compare=False)

    def to_row(self) -> dict[str, Any]:
        """Return the canonical export row (dates as ISO strings)."""
        row: dict[str, Any] = {
            PROJECT: self.project,
            STORE: self.store,
            SKU: self.sku,
            SKU_NAME: self.sku_name,
            OPERATION: self.operation,
            ORDER: self.order,
            ESTIMATED_HOURS: self.estimated_hours,
            VALUE: self.value,
            START_DATE: format_date(self.start_date),
            DUE_DATE: format_date(self.due_date),
        }
        if self.lag_after_hours is not None:
            row[LAG_AFTER_HOURS] = self.lag_after_hours
        if self.assembly_group:
            row[ASSEMBLY_GROUP] = self.assembly_group
        return row

    def to_payload(self) -> dict[str, Any]:
        """Return the row sent to the scheduling service.

        Extra source columns ride along so the service sees the whole row.
        """
        payload: dict[str, Any] = dict(self.extras)
        payload.update(self.to_row())
        return payload


def task_export_columns(tasks: Iterable[TaskRecord]) -> list[str]:
    """Export header: the canonical columns plus any optional column in use."""
    used: set[str] = set()
    for task in tasks:
        used.update(task.to_row())
    return TASK_EXPORT_COLUMNS + [c for c in OPTIONAL_EXPORT_COLUMNS if c in used]


@dataclass(frozen=True)
class RoutingTemplateTask:
    """Reference routing step used to stamp out new projects."""

    template_name: str
    sku: str
    sku_name: str
    operation: str
    order: int
    estimated_hours: float
    value: float = 0.0

    def instantiate(
        self, project: str, store: str, start_date: date, due_date: date
    ) -> TaskRecord:
        return TaskRecord(
            project=project,
            store=store,
            sku=self.sku,
            sku_name=self.sku_name,
            operation=self.operation,
            order=self.order,
            estimated_hours=self.estimated_hours,
            value=self.value,
            start_date=start_date,
            due_date=due_date,
        )


@dataclass(frozen=True)
class ProjectSummaryRecord:
    """Per-project plan vs. computed finish.

    ``start_date`` is the plan start reported by the service and also where
    the actual bar begins. ``due_date`` is the service's plan due date and
    ``effective_due_date`` is that value after applying a user override.
    """

    project: str
    store: str
    start_date: date | None
    due_date: date | None
    effective_due_date: date | None
    finish_date: date | None
    days_variance: int = 0

    def to_row(self) -> dict[str, Any]:
        return {
            PROJECT: self.project,
            STORE: self.store,
            START_DATE: format_date(self.start_date),
            DUE_DATE: format_date(self.effective_due_date),
            FINISH_DATE: format_date(self.finish_date),
            "daysVariance": self.days_variance,
        }


@dataclass(frozen=True)
class StoreSummaryRecord:
    """Rollup of every project delivered to one store."""

    store: str
    start_date: date
    finish_date: date
    due_date: date
    days_variance: int

    def to_row(self) -> dict[str, Any]:
        return {
            STORE: self.store,
            START_DATE: format_date(self.start_date),
            FINISH_DATE: format_date(self.finish_date),
            DUE_DATE: format_date(self.due_date),
            "daysVariance": self.days_variance,
        }


@dataclass(frozen=True)
class EfficiencyTable:
    """Per-member efficiency ratings and display names, keyed by member number."""

    ratings: dict[str, float] = field(default_factory=dict[str, float])
    names: dict[str, str] = field(default_factory=dict[str, str])


def _default_breakdown() -> dict[str, float]:
    return {}


@dataclass(frozen=True)
class TeamWeekValue:
    """One team's numbers for one week."""

    name: str
    worked: float = 0.0
    capacity: float = 0.0
    utilization: float = 0.0
    workload_ratio: float | None = None
    breakdown: dict[str, float] = field(default_factory=_default_breakdown)


@dataclass(frozen=True)
class WeeklySeriesPoint:
    """All teams' values for a single week."""

    week: date
    teams: list[TeamWeekValue]


@dataclass(frozen=True)
class HybridSegment:
    """A sub-team's share of a composite team's worked hours."""

    team: str
    hours: float
    fraction: float
