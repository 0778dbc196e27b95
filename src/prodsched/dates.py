"""Calendar-date helpers shared by the pipeline and the timeline.

Dates in this package never carry a time component. Anything that fails to
parse becomes ``None`` and is treated as absent by callers.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

# YYYY-MM-DD or YYYY/MM/DD, optionally followed by a time part we ignore
_YMD_RE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?:[T ].*)?$")
# M/D/YYYY as exported by spreadsheets
_MDY_RE = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$")


def parse_date(value: str | date | None) -> date | None:
    """Parse a date string or date object to a date.

    Accepts ``YYYY-MM-DD``, ``YYYY/MM/DD`` (an ISO time suffix is dropped) and
    ``M/D/YYYY``.

    Args:
        value: String, date/datetime, or None

    Returns:
        date object or None if parsing fails
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    match = _YMD_RE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
    else:
        match = _MDY_RE.match(text)
        if not match:
            return None
        month, day, year = (int(g) for g in match.groups())

    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_date(value: str | date | None) -> str:
    """Format to ``YYYY-MM-DD``; empty string when the value does not parse."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else ""


def format_short(value: str | date | None) -> str:
    """Format to ``M/D`` for bar labels."""
    parsed = parse_date(value)
    if parsed is None:
        return ""
    return f"{parsed.month}/{parsed.day}"


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def days_between(later: date, earlier: date) -> int:
    """Whole calendar days from ``earlier`` to ``later`` (negative if reversed)."""
    return (later - earlier).days
