"""SVG drawing for the project timeline."""

from __future__ import annotations

from xml.sax.saxutils import escape

from .dates import format_date
from .timeline import DragSession, Timeline, TimelineBar

PLAN_FILL = "#cbd5e1"
PLAN_FILL_ACTIVE = "#94a3b8"
LATE_FILL = "#ef4444"
ON_TIME_FILL = "#22c55e"
DUE_STROKE = "#64748b"
LATE_STROKE = "#dc2626"
GRID_STROKE = "#e2e8f0"
TEXT_FILL = "#1e293b"
MUTED_FILL = "#64748b"

_ATTR = {'"': "&quot;"}


def _num(value: float) -> str:
    return f"{value:.1f}".rstrip("0").rstrip(".")


def _tick_lines(timeline: Timeline) -> list[str]:
    scale = timeline.scale
    if scale is None:
        return []
    top = timeline.margin.top
    bottom = timeline.height - timeline.margin.bottom
    lines = ['  <g class="grid-lines">']
    for tick in timeline.ticks():
        x = _num(scale.x(tick))
        label = tick.strftime("%b '%y")
        lines.append(
            f'    <line x1="{x}" x2="{x}" y1="{_num(top - 10)}" y2="{_num(bottom)}" '
            f'stroke="{GRID_STROKE}"/>'
        )
        lines.append(
            f'    <text x="{x}" y="{_num(top - 5)}" text-anchor="middle" font-size="10" '
            f'fill="{MUTED_FILL}">{escape(label)}</text>'
        )
    lines.append("  </g>")
    return lines


def _bar_lines(timeline: Timeline, bar: TimelineBar) -> list[str]:
    layout = timeline.layout
    height = layout.bar_height
    mid = bar.y + height / 2
    label_x = _num(timeline.margin.left - 10)
    due_stroke = LATE_STROKE if bar.is_late else DUE_STROKE
    title = (
        f"Project: {bar.project}\nStore: {bar.store}\n\n"
        f"Plan: {format_date(bar.plan_start)} to {format_date(bar.plan_due)}"
    )

    lines = [
        f'  <g class="project" data-project="{escape(bar.project, _ATTR)}">',
        f"    <title>{escape(title)}</title>",
        f'    <text x="{label_x}" y="{_num(mid - 2)}" text-anchor="end" font-size="12" '
        f'font-weight="bold" fill="{TEXT_FILL}">{escape(bar.project)}</text>',
        f'    <text x="{label_x}" y="{_num(mid + 12)}" text-anchor="end" font-size="10" '
        f'fill="{MUTED_FILL}">{escape(bar.store)}</text>',
        f'    <rect class="plan" x="{_num(bar.plan_x)}" y="{_num(bar.y)}" '
        f'width="{_num(bar.plan_width)}" height="{_num(height)}" rx="4" '
        f'fill="{PLAN_FILL_ACTIVE if bar.interacting else PLAN_FILL}"/>',
    ]

    if bar.actual_width > 0:
        fill = LATE_FILL if bar.is_late else ON_TIME_FILL
        lines.append(
            f'    <rect class="actual {"late" if bar.is_late else "on-time"}" '
            f'x="{_num(bar.actual_x)}" y="{_num(bar.y + layout.actual_inset)}" '
            f'width="{_num(bar.actual_width)}" '
            f'height="{_num(height - 2 * layout.actual_inset)}" rx="2" fill="{fill}"/>'
        )

    if bar.show_label:
        lines.append(
            f'    <text x="{_num(bar.plan_x + bar.plan_width / 2)}" y="{_num(mid + 4)}" '
            f'text-anchor="middle" font-size="10" fill="{TEXT_FILL}">'
            f"{escape(bar.label)}</text>"
        )

    lines.append(
        f'    <line class="due" x1="{_num(bar.due_x)}" x2="{_num(bar.due_x)}" '
        f'y1="{_num(bar.y - 2)}" y2="{_num(bar.y + height + 2)}" '
        f'stroke="{due_stroke}" stroke-width="2"/>'
    )
    lines.append("  </g>")
    return lines


def render_timeline_svg(timeline: Timeline, session: DragSession | None = None) -> str:
    """Draw the timeline as a standalone SVG document.

    Returns an empty string when there is nothing to draw (no projects, no
    valid dates or no width).
    """
    bars = timeline.bars(session)
    if timeline.scale is None:
        return ""

    lines = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{_num(timeline.width)}" '
        f'height="{_num(timeline.height)}" font-family="sans-serif">'
    ]
    lines.extend(_tick_lines(timeline))
    for bar in bars:
        lines.extend(_bar_lines(timeline, bar))
    lines.append("</svg>")
    return "\n".join(lines) + "\n"
