"""Pytest configuration and fixtures for prodsched tests."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date
from typing import Any

import pytest

from prodsched.logger import reset_logger
from prodsched.models import ProjectSummaryRecord

PROJECT_CSV = "\n".join(
    [
        "Project,Store,SKU,SKU Name,Operation,Order,Estimated Hours,Value,StartDate,DueDate",
        "Job-001,Store-A,SKU-01-A,Widget A,Carpentry/Woodwork,1,10,1500.00,2025-07-01,2025-07-15",
        "Job-001,Store-A,SKU-01-A,Widget A,Paint Prep,2,5,1500.00,2025-07-01,2025-07-15",
        "Job-002,Store-B,SKU-02-B,Widget B,Final Assembly,1,8,900.00,2025-07-03,2025-07-20",
    ]
)


@pytest.fixture(autouse=True)
def quiet_logger() -> Iterator[None]:
    """Return the shared logger to its default state around each test."""
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def project_csv() -> str:
    """A small, valid project upload covering two stores."""
    return PROJECT_CSV


def summary_row(  # noqa: PLR0913 - mirrors the service's project row
    project: str,
    store: str = "Store-A",
    start: str | None = "2025-07-01",
    due: str | None = "2025-07-15",
    finish: str | None = "2025-07-12",
    **extra: Any,
) -> dict[str, Any]:
    """Build one ``projectSummary`` row as the scheduling service returns it."""
    row: dict[str, Any] = {
        "Project": project,
        "Store": store,
        "StartDate": start,
        "DueDate": due,
        "FinishDate": finish,
    }
    row.update(extra)
    return row


def summary_record(
    project: str,
    start: date | None = date(2025, 7, 1),
    due: date | None = date(2025, 7, 15),
    finish: date | None = date(2025, 7, 12),
    store: str = "Store-A",
) -> ProjectSummaryRecord:
    """Build a ProjectSummaryRecord directly (no overrides applied)."""
    return ProjectSummaryRecord(
        project=project,
        store=store,
        start_date=start,
        due_date=due,
        effective_due_date=due,
        finish_date=finish,
    )
