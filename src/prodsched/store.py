"""In-memory task store with upload and project-builder entry points."""

from __future__ import annotations

import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date

from .csvio import CsvIssue, parse_csv
from .dates import parse_date
from .exceptions import DuplicateProjectError, EmptyResultError, ValidationError
from .logger import get_logger
from .models import RoutingTemplateTask, TaskRecord
from .normalize import clean_rows

logger = get_logger()


@dataclass(slots=True)
class IngestReport:
    """Outcome of one CSV upload."""

    source: str
    added: int = 0
    projects: list[str] = field(default_factory=list[str])
    warnings: list[CsvIssue] = field(default_factory=list[CsvIssue])


def template_names(templates: Iterable[RoutingTemplateTask]) -> list[str]:
    """Return the sorted, de-duplicated template names."""
    return sorted({t.template_name for t in templates})


class TaskStore:
    """Holds every loaded task for the session.

    Projects are identified by name alone; two stores cannot each have a
    project with the same name.
    """

    def __init__(self, tasks: Iterable[TaskRecord] | None = None):
        self._tasks: list[TaskRecord] = list(tasks or [])

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def tasks(self) -> list[TaskRecord]:
        return list(self._tasks)

    def project_names(self) -> set[str]:
        return {t.project for t in self._tasks}

    def projects(self) -> list[tuple[str, str]]:
        """Return ``(project, store)`` pairs sorted by project name.

        The store shown for a project is the one on its first task.
        """
        seen: dict[str, str] = {}
        for task in self._tasks:
            seen.setdefault(task.project, task.store)
        return sorted(seen.items())

    def add_batch(self, tasks: Sequence[TaskRecord]) -> None:
        """Append a batch of tasks, all or nothing.

        Raises:
            DuplicateProjectError: If any project in the batch is already loaded
        """
        existing = self.project_names()
        incoming: list[str] = []
        for task in tasks:
            if task.project not in incoming:
                incoming.append(task.project)
        duplicates = [name for name in incoming if name in existing]
        if duplicates:
            raise DuplicateProjectError(duplicates)

        self._tasks.extend(tasks)
        logger.changes("Added %d tasks across %d projects.", len(tasks), len(incoming))

    def ingest_csv(
        self, text: str, *, source: str = "<upload>", default_store: str | None = None
    ) -> IngestReport:
        """Parse, clean and add an uploaded project CSV.

        Line-level problems are logged and returned as warnings; the rest of
        the file is still used.

        Raises:
            EmptyResultError: If nothing usable was found in the file
            DuplicateProjectError: If the file reuses loaded project names
        """
        parsed = parse_csv(text)
        for issue in parsed.errors:
            logger.warning("Parsing Warning (%s): %s", source, issue.message)

        cleaned = clean_rows(parsed.rows, default_store=default_store)
        if cleaned is None:
            raise EmptyResultError(
                "No valid data rows found after cleaning. Check required columns: "
                "Project, SKU, Store, Order, DueDate, StartDate, and Estimated Hours."
            )
        if not cleaned:
            raise EmptyResultError(
                f"No valid data could be processed from the project CSV file '{source}'."
            )

        self.add_batch(cleaned)
        projects = sorted({t.project for t in cleaned})
        return IngestReport(
            source=source, added=len(cleaned), projects=projects, warnings=parsed.errors
        )

    def remove_project(self, project: str) -> int:
        """Remove every task of a project; returns how many were removed."""
        before = len(self._tasks)
        self._tasks = [t for t in self._tasks if t.project != project]
        removed = before - len(self._tasks)
        if removed:
            logger.changes("Removed project %s (%d tasks).", project, removed)
        return removed

    def set_project_store(self, project: str, store: str) -> None:
        self._tasks = [replace(t, store=store) if t.project == project else t for t in self._tasks]

    def clear(self) -> None:
        self._tasks = []

    def build_from_templates(  # noqa: PLR0913 - mirrors the builder form fields
        self,
        templates: Sequence[RoutingTemplateTask],
        selected: Sequence[str],
        store: str,
        start_date: str | date | None,
        due_date: str | date | None,
        rng: random.Random | None = None,
    ) -> list[str]:
        """Create one new project per selected template.

        Each project gets a generated name ``"<template> #NNNN"`` that does
        not collide with any loaded project.

        Returns:
            The generated project names, in selection order

        Raises:
            ValidationError: If the selection, store or either date is missing
        """
        start = parse_date(start_date)
        due = parse_date(due_date)
        if not selected or not store.strip() or start is None or due is None:
            raise ValidationError(
                "Please select at least one template and fill all fields in the Project Builder."
            )

        rng = rng or random.Random()
        taken = self.project_names()
        new_tasks: list[TaskRecord] = []
        names: list[str] = []

        for template in selected:
            name = f"{template} #{rng.randint(1000, 9999)}"
            while name in taken:
                name = f"{template} #{rng.randint(1000, 9999)}"
            taken.add(name)
            names.append(name)

            steps = [t for t in templates if t.template_name == template]
            new_tasks.extend(step.instantiate(name, store.strip(), start, due) for step in steps)

        self.add_batch(new_tasks)
        return names

    def to_payload(self) -> list[dict[str, object]]:
        return [t.to_payload() for t in self._tasks]
