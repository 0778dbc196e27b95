"""Schema normalization: raw CSV rows to validated task records."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence

from . import models as m
from .dates import parse_date
from .logger import get_logger
from .models import EfficiencyTable, RoutingTemplateTask, TaskRecord

# Source column -> canonical column. Earlier entries win over later ones.
COLUMN_ALIASES: list[tuple[str, str]] = [
    ("Project", m.PROJECT),
    ("Game", m.PROJECT),
    ("Estimated Hours", m.ESTIMATED_HOURS),
    ("Expected Hours", m.ESTIMATED_HOURS),
    ("Labor Time", m.ESTIMATED_HOURS),
    ("DueDate", m.DUE_DATE),
    ("Due Date", m.DUE_DATE),
    ("StartDate", m.START_DATE),
    ("Start Date", m.START_DATE),
    ("Value", m.VALUE),
    ("Store", m.STORE),
]

REQUIRED_TASK_COLUMNS = [
    m.PROJECT,
    m.SKU,
    m.STORE,
    m.ORDER,
    m.DUE_DATE,
    m.START_DATE,
    m.ESTIMATED_HOURS,
]

REQUIRED_ROUTING_COLUMNS = [
    m.TEMPLATE_NAME,
    m.SKU,
    m.SKU_NAME,
    m.OPERATION,
    m.ORDER,
    m.ESTIMATED_HOURS,
    m.VALUE,
]

_KNOWN_COLUMNS = {
    m.PROJECT,
    m.STORE,
    m.SKU,
    m.SKU_NAME,
    m.OPERATION,
    m.ORDER,
    m.ESTIMATED_HOURS,
    m.VALUE,
    m.START_DATE,
    m.DUE_DATE,
    m.LAG_AFTER_HOURS,
    m.ASSEMBLY_GROUP,
} | {alias for alias, _ in COLUMN_ALIASES}

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

logger = get_logger()


def apply_aliases(row: Mapping[str, str]) -> dict[str, str]:
    """Copy a row with every alias folded onto its canonical column.

    A canonical column that already holds a non-empty value keeps it.
    """
    result = dict(row)
    for alias, canonical in COLUMN_ALIASES:
        value = row.get(alias)
        if value and not result.get(canonical):
            result[canonical] = value
    return result


def parse_float(value: object) -> float | None:
    """Parse a finite float, returning None for blanks, garbage, NaN and infinities."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def parse_int(value: object) -> int | None:
    """Parse the leading integer of a value ("3", "3.0" and "3rd" all give 3)."""
    if value is None:
        return None
    match = _LEADING_INT_RE.match(str(value))
    return int(match.group(1)) if match else None


def parse_money(value: object) -> float:
    """Parse a currency amount, dropping thousands separators. Defaults to 0."""
    parsed = parse_float(str(value).replace(",", "")) if value is not None else None
    return parsed if parsed is not None else 0.0


def _clean_row(row: Mapping[str, str], default_store: str | None) -> TaskRecord | None:
    row = apply_aliases(row)

    project = (row.get(m.PROJECT) or "").strip()
    sku = (row.get(m.SKU) or "").strip()
    store = (row.get(m.STORE) or "").strip() or (default_store or "")
    if not project or not sku or not store:
        return None

    hours = parse_float(row.get(m.ESTIMATED_HOURS))
    order = parse_int(row.get(m.ORDER))
    start_date = parse_date(row.get(m.START_DATE))
    due_date = parse_date(row.get(m.DUE_DATE))
    if hours is None or hours < 0 or order is None or start_date is None or due_date is None:
        return None

    lag = parse_float(row.get(m.LAG_AFTER_HOURS))
    group = (row.get(m.ASSEMBLY_GROUP) or "").strip() or None
    extras = {k: v for k, v in row.items() if k not in _KNOWN_COLUMNS}

    return TaskRecord(
        project=project,
        store=store,
        sku=sku,
        sku_name=row.get(m.SKU_NAME) or "",
        operation=row.get(m.OPERATION) or "",
        order=order,
        estimated_hours=hours,
        value=parse_money(row.get(m.VALUE)),
        start_date=start_date,
        due_date=due_date,
        lag_after_hours=lag,
        assembly_group=group,
        extras=extras,
    )


def clean_rows(
    rows: Sequence[Mapping[str, str]], *, default_store: str | None = None
) -> list[TaskRecord] | None:
    """Normalize raw rows into task records.

    Args:
        rows: Header-keyed string rows from the CSV reader
        default_store: Store used for rows whose Store column is blank

    Returns:
        The surviving records, ``[]`` when ``rows`` was empty, or ``None`` when
        rows were given but every one of them failed validation.
    """
    logger.changes("Loading and cleaning project data...")
    if not rows:
        logger.changes("No data provided to clean.")
        return []

    records: list[TaskRecord] = []
    for row in rows:
        record = _clean_row(row, default_store)
        if record is None:
            logger.checks("Dropped row failing validation: %s", dict(row))
            continue
        records.append(record)

    if not records:
        logger.error(
            "No valid data rows found after cleaning. Check required columns: %s.",
            ", ".join(REQUIRED_TASK_COLUMNS),
        )
        return None

    dropped = len(rows) - len(records)
    logger.changes(
        "Successfully loaded and cleaned %d rows (%d dropped).", len(records), dropped
    )
    return records


def clean_routing_rows(rows: Sequence[Mapping[str, str]]) -> list[RoutingTemplateTask]:
    """Normalize routing-template rows; rows missing a required column are dropped."""
    templates: list[RoutingTemplateTask] = []
    for row in rows:
        if any(not (row.get(col) or "").strip() for col in REQUIRED_ROUTING_COLUMNS):
            continue
        hours = parse_float(row[m.ESTIMATED_HOURS])
        order = parse_int(row[m.ORDER])
        if hours is None or hours < 0 or order is None:
            continue
        templates.append(
            RoutingTemplateTask(
                template_name=row[m.TEMPLATE_NAME].strip(),
                sku=row[m.SKU].strip(),
                sku_name=row[m.SKU_NAME],
                operation=row[m.OPERATION],
                order=order,
                estimated_hours=hours,
                value=parse_money(row[m.VALUE]),
            )
        )

    names = {t.template_name for t in templates}
    logger.changes("Successfully loaded %d project templates.", len(names))
    return templates


def parse_percent(value: object) -> float | None:
    """Parse a percentage such as ``"85%"`` or ``"85"`` into a fraction (0.85)."""
    if value is None:
        return None
    parsed = parse_float(str(value).replace("%", ""))
    return parsed / 100 if parsed is not None else None


def clean_efficiency_rows(rows: Sequence[Mapping[str, str]]) -> EfficiencyTable:
    """Build the efficiency table from a team-member roster.

    A row contributes a rating when it has a member number and a parseable
    Efficiency, and a display name when it has a member number and a name.
    Later rows for the same member win.
    """
    table = EfficiencyTable()
    for row in rows:
        member = (row.get(m.TEAM_MEMBER_NUMBER) or "").strip()
        if not member:
            continue
        rating = parse_percent(row.get(m.EFFICIENCY))
        if rating is not None:
            table.ratings[member] = rating
        else:
            logger.checks("No usable efficiency for team member %s", member)
        name = (row.get(m.TEAM_MEMBER_NAME) or "").strip()
        if name:
            table.names[member] = name

    logger.changes("Successfully loaded %d efficiency ratings.", len(table.ratings))
    return table
