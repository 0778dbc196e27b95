"""Delimited-text reading and writing.

The reader is deliberately forgiving: a malformed line is reported and
skipped, and the rest of the file is still returned. It splits on newlines
before scanning fields, so quoted fields cannot span lines.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .exceptions import RowFormatError


@dataclass(slots=True, frozen=True)
class CsvIssue:
    """A non-fatal problem found while parsing."""

    message: str
    line: int | None = None


@dataclass(slots=True)
class ParseResult:
    """Rows keyed by header name plus any issues found along the way."""

    rows: list[dict[str, str]] = field(default_factory=list[dict[str, str]])
    errors: list[CsvIssue] = field(default_factory=list[CsvIssue])


def split_row(line: str) -> list[str]:
    """Split one line into fields.

    Outside quotes, commas separate fields. A field that starts with ``"``
    runs to the matching closing quote, with ``""`` standing for a literal
    quote. A trailing comma yields a trailing empty field.
    """
    fields: list[str] = []
    i = 0
    length = len(line)

    while i < length:
        if line[i] == '"':
            i += 1
            start = i
            while i < length:
                if line[i] == '"':
                    if i + 1 < length and line[i + 1] == '"':
                        i += 1
                    else:
                        break
                i += 1
            value = line[start:i].replace('""', '"')
            i += 1  # closing quote
        else:
            start = i
            while i < length and line[i] != ",":
                i += 1
            value = line[start:i]

        fields.append(value)
        if i < length and line[i] == ",":
            i += 1

    if line.endswith(","):
        fields.append("")
    return fields


def parse_csv(text: str, *, strict: bool = False) -> ParseResult:
    """Parse delimited text into header-keyed rows.

    Args:
        text: Full file contents
        strict: Raise on the first malformed line instead of skipping it

    Returns:
        ParseResult with string-valued rows and line-numbered issues

    Raises:
        RowFormatError: Only when ``strict`` is set and a line has the wrong width
    """
    lines = text.replace("\r\n", "\n").replace("\r", "\n").strip().split("\n")
    if len(lines) < 2:
        return ParseResult(errors=[CsvIssue("CSV has no data rows.")])

    header = [name.strip() for name in split_row(lines[0])]
    result = ParseResult()

    for index, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        values = split_row(line)
        if len(values) != len(header):
            message = (
                f"Row {index} has incorrect columns "
                f"(expected {len(header)}, found {len(values)}). Skipping."
            )
            if strict:
                raise RowFormatError(message, line=index)
            result.errors.append(CsvIssue(message, line=index))
            continue
        result.rows.append(dict(zip(header, values, strict=True)))

    return result


def _quote(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = "" if value is None else str(value)
    if "," in text or '"' in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def unparse_csv(
    rows: Iterable[Mapping[str, Any]], headers: Sequence[str] | None = None
) -> str:
    """Serialize rows of named fields back to delimited text.

    The header comes from ``headers`` or, failing that, from the first row's
    keys. Returns an empty string when there is nothing to write.
    """
    rows = list(rows)
    if headers is None:
        if not rows:
            return ""
        headers = list(rows[0].keys())

    out = [",".join(_quote(h) for h in headers)]
    out.extend(",".join(_quote(row.get(h)) for h in headers) for row in rows)
    return "\n".join(out)
