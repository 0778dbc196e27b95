"""Editable project timeline: date scale, bar layout and drag/resize handling.

The drag handling is a small state machine. The pure functions ``press``,
``move`` and ``release`` (and ``transition``, which dispatches events to
them) take a state and return a new one; nothing is drawn here. A
``DragController`` wraps the machine for an interactive surface, owning the
pointer listeners for the lifetime of one gesture and forwarding committed
date changes to callbacks. ``render.render_timeline_svg`` draws the layout.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import Enum
from typing import Literal, TypeAlias

from .dates import add_days, format_date, format_short, parse_date
from .logger import get_logger
from .models import ProjectSummaryRecord

logger = get_logger()

DOMAIN_PAD_DAYS = 7
MIN_PLAN_BAR_WIDTH = 2.0
LABEL_CHAR_WIDTH = 5


@dataclass(frozen=True)
class Margin:
    """Space around the plot area, in pixels."""

    top: float = 20
    right: float = 20
    bottom: float = 20
    left: float = 150


@dataclass(frozen=True)
class BarLayout:
    """Row geometry for project bars."""

    bar_height: float = 35
    bar_padding: float = 15
    handle_width: float = 8
    actual_inset: float = 6


def plan_dates(
    record: ProjectSummaryRecord,
    start_overrides: Mapping[str, str],
    end_overrides: Mapping[str, str],
) -> tuple[date, date] | None:
    """Return the override-resolved plan (start, due) or None if either is missing."""
    start = parse_date(start_overrides.get(record.project) or record.start_date)
    due = parse_date(end_overrides.get(record.project) or record.due_date)
    if start is None or due is None:
        return None
    return start, due


def is_late(record: ProjectSummaryRecord, end_overrides: Mapping[str, str]) -> bool:
    """True when the computed finish falls after the effective due date."""
    due = parse_date(end_overrides.get(record.project) or record.due_date)
    finish = record.finish_date
    return due is not None and finish is not None and finish > due


def compute_domain(
    projects: Iterable[ProjectSummaryRecord],
    start_overrides: Mapping[str, str],
    end_overrides: Mapping[str, str],
    pad_days: int = DOMAIN_PAD_DAYS,
) -> tuple[date, date] | None:
    """Date range shared by all bars, padded on both sides.

    Considers each project's plan start and due dates together with the
    override-resolved start and finish. Returns None when no date is valid.
    """
    candidates: list[date | None] = []
    for p in projects:
        candidates.extend(
            [
                p.start_date,
                p.due_date,
                parse_date(start_overrides.get(p.project) or p.start_date),
                parse_date(end_overrides.get(p.project) or p.finish_date),
            ]
        )

    valid = [d for d in candidates if d is not None]
    if not valid:
        return None
    return add_days(min(valid), -pad_days), add_days(max(valid), pad_days)


@dataclass(frozen=True)
class TimeScale:
    """Linear date-to-x mapping across the padded domain."""

    domain_min: date
    domain_max: date
    width: float
    margin: Margin = Margin()

    @property
    def plot_width(self) -> float:
        return self.width - self.margin.left - self.margin.right

    @property
    def total_days(self) -> int:
        return (self.domain_max - self.domain_min).days

    @property
    def pixels_per_day(self) -> float:
        """Pixels per calendar day; 0 when the domain or plot is degenerate."""
        if self.total_days <= 0 or self.plot_width <= 0:
            return 0.0
        return self.plot_width / self.total_days

    def x(self, value: date) -> float:
        return self.margin.left + (value - self.domain_min).days * self.pixels_per_day


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


# --- Drag state machine -----------------------------------------------------


class DragKind(str, Enum):
    """Which part of a plan bar the pointer grabbed."""

    MOVE = "move"
    RESIZE_START = "resize-start"
    RESIZE_END = "resize-end"


@dataclass(frozen=True)
class Idle:
    """No gesture in progress."""


IDLE = Idle()


@dataclass(frozen=True)
class DragSession:
    """A gesture between pointer-down and pointer-up.

    ``initial_*`` are the dates when the gesture began; ``visual_*`` are the
    live dates to draw while it is in progress.
    """

    kind: DragKind
    project: str
    origin_x: float
    initial_start: date
    initial_finish: date
    visual_start: date
    visual_finish: date

    @property
    def duration(self) -> timedelta:
        return self.initial_finish - self.initial_start


DragState: TypeAlias = Idle | DragSession


@dataclass(frozen=True)
class PointerDown:
    project: str
    kind: DragKind
    x: float


@dataclass(frozen=True)
class PointerMove:
    x: float


@dataclass(frozen=True)
class PointerUp:
    pass


PointerEvent: TypeAlias = PointerDown | PointerMove | PointerUp


@dataclass(frozen=True)
class DateChange:
    """A committed override produced by a finished gesture."""

    project: str
    field: Literal["start", "end"]
    value: str


def press(  # noqa: PLR0913 - state plus the gesture and the override context
    state: DragState,
    record: ProjectSummaryRecord,
    kind: DragKind,
    x: float,
    start_overrides: Mapping[str, str],
    end_overrides: Mapping[str, str],
) -> DragState:
    """Begin a gesture on ``record``'s plan bar.

    Stays idle if a gesture is already running or the bar has no valid plan
    dates.
    """
    if isinstance(state, DragSession):
        return state
    dates = plan_dates(record, start_overrides, end_overrides)
    if dates is None:
        return state
    start, finish = dates
    return DragSession(
        kind=kind,
        project=record.project,
        origin_x=x,
        initial_start=start,
        initial_finish=finish,
        visual_start=start,
        visual_finish=finish,
    )


def move(state: DragState, x: float, scale: TimeScale) -> DragState:
    """Update a gesture's live dates from the pointer's current x."""
    if not isinstance(state, DragSession):
        return state
    pixels_per_day = scale.pixels_per_day
    if pixels_per_day <= 0:
        return state

    day_delta = round_half_up((x - state.origin_x) / pixels_per_day)
    start, finish = state.initial_start, state.initial_finish

    if state.kind is DragKind.MOVE:
        start = add_days(state.initial_start, day_delta)
        finish = start + state.duration
    elif state.kind is DragKind.RESIZE_END:
        finish = add_days(state.initial_finish, day_delta)
        if finish <= start:
            finish = add_days(start, 1)
    else:
        start = add_days(state.initial_start, day_delta)
        if start >= finish:
            start = add_days(finish, -1)

    logger.debug(
        "Drag %s %s: delta=%+d days -> %s..%s",
        state.kind.value,
        state.project,
        day_delta,
        start,
        finish,
    )
    return replace(state, visual_start=start, visual_finish=finish)


def release(state: DragState) -> tuple[DragState, list[DateChange]]:
    """End a gesture and report the dates it changed.

    Nothing is reported for a gesture that ends where it began. A move that
    changed the start always reports the end as well, so the duration is kept.
    """
    if not isinstance(state, DragSession):
        return state, []

    changes: list[DateChange] = []
    start_changed = state.visual_start != state.initial_start

    if state.kind is DragKind.MOVE:
        if start_changed:
            changes.append(DateChange(state.project, "start", format_date(state.visual_start)))
            new_end = state.visual_start + state.duration
            changes.append(DateChange(state.project, "end", format_date(new_end)))
    elif state.kind is DragKind.RESIZE_START:
        if start_changed:
            changes.append(DateChange(state.project, "start", format_date(state.visual_start)))
    elif state.visual_finish != state.initial_finish:
        changes.append(DateChange(state.project, "end", format_date(state.visual_finish)))

    return IDLE, changes


def transition(  # noqa: PLR0913 - explicit context keeps the function pure
    state: DragState,
    event: PointerEvent,
    *,
    scale: TimeScale,
    projects: Mapping[str, ProjectSummaryRecord],
    start_overrides: Mapping[str, str],
    end_overrides: Mapping[str, str],
) -> tuple[DragState, list[DateChange]]:
    """Apply one pointer event to the drag state."""
    if isinstance(event, PointerDown):
        record = projects.get(event.project)
        if record is None:
            return state, []
        return press(state, record, event.kind, event.x, start_overrides, end_overrides), []
    if isinstance(event, PointerMove):
        return move(state, event.x, scale), []
    return release(state)


DateCallback = Callable[[str, str], None]
ListenerHook = Callable[[], None]


def _noop() -> None:
    return None


class DragController:
    """Runs the drag state machine against a live drawing surface.

    Global move/up listeners are attached when a gesture starts and detached
    exactly once when it ends, whether by pointer-up or by ``teardown()``.
    """

    def __init__(  # noqa: PLR0913 - callbacks and hooks are all keyword-configurable
        self,
        timeline: Timeline,
        *,
        on_start_date_change: DateCallback,
        on_end_date_change: DateCallback,
        attach_listeners: ListenerHook = _noop,
        detach_listeners: ListenerHook = _noop,
    ):
        self.timeline = timeline
        self.on_start_date_change = on_start_date_change
        self.on_end_date_change = on_end_date_change
        self._attach = attach_listeners
        self._detach = detach_listeners
        self.state: DragState = IDLE
        self.listening = False

    @property
    def session(self) -> DragSession | None:
        return self.state if isinstance(self.state, DragSession) else None

    def dispatch(self, event: PointerEvent) -> list[DateChange]:
        """Feed one pointer event through the state machine.

        Pointer-up always ends the gesture, even when the chart can no longer
        be scaled.
        """
        if isinstance(event, PointerUp):
            self.state, changes = release(self.state)
        else:
            scale = self.timeline.scale
            if scale is None:
                return []
            self.state, changes = transition(
                self.state,
                event,
                scale=scale,
                projects=self.timeline.projects_by_name,
                start_overrides=self.timeline.start_overrides,
                end_overrides=self.timeline.end_overrides,
            )

        if isinstance(self.state, DragSession) and not self.listening:
            self._attach()
            self.listening = True
        elif isinstance(self.state, Idle) and self.listening:
            self._release_listeners()

        for change in changes:
            logger.changes(
                "Timeline %s date for %s -> %s", change.field, change.project, change.value
            )
            if change.field == "start":
                self.on_start_date_change(change.project, change.value)
            else:
                self.on_end_date_change(change.project, change.value)
        return changes

    def pointer_down(self, project: str, kind: DragKind, x: float) -> None:
        self.dispatch(PointerDown(project, kind, x))

    def pointer_move(self, x: float) -> None:
        self.dispatch(PointerMove(x))

    def pointer_up(self) -> list[DateChange]:
        return self.dispatch(PointerUp())

    def teardown(self) -> None:
        """Abandon any gesture without committing it."""
        self.state = IDLE
        if self.listening:
            self._release_listeners()

    def _release_listeners(self) -> None:
        self.listening = False
        self._detach()


# --- Layout -----------------------------------------------------------------


@dataclass(frozen=True)
class TimelineBar:
    """Geometry and state for one project row."""

    project: str
    store: str
    row: int
    y: float
    plan_start: date
    plan_due: date
    plan_x: float
    plan_width: float
    actual_x: float
    actual_width: float
    due_x: float
    is_late: bool
    label: str
    show_label: bool
    interacting: bool


def filter_projects(
    projects: Sequence[ProjectSummaryRecord], text: str
) -> list[ProjectSummaryRecord]:
    """Case-insensitive project-name filter; empty text keeps everything."""
    if not text:
        return list(projects)
    needle = text.lower()
    return [p for p in projects if needle in p.project.lower()]


def _next_month(value: date) -> date:
    if value.month == 12:
        return date(value.year + 1, 1, 1)
    return date(value.year, value.month + 1, 1)


def month_ticks(domain_min: date, domain_max: date) -> list[date]:
    """First day of each month falling inside the domain."""
    current = domain_min.replace(day=1)
    if current < domain_min:
        current = _next_month(current)

    ticks: list[date] = []
    while current <= domain_max:
        ticks.append(current)
        current = _next_month(current)
    return ticks


class Timeline:
    """Visible projects plus the overrides and width they are drawn with."""

    def __init__(  # noqa: PLR0913 - chart geometry is configurable
        self,
        projects: Sequence[ProjectSummaryRecord],
        width: float,
        *,
        start_overrides: Mapping[str, str] | None = None,
        end_overrides: Mapping[str, str] | None = None,
        margin: Margin | None = None,
        layout: BarLayout | None = None,
        pad_days: int = DOMAIN_PAD_DAYS,
    ):
        self.projects = list(projects)
        self.width = width
        self.start_overrides: Mapping[str, str] = (
            start_overrides if start_overrides is not None else {}
        )
        self.end_overrides: Mapping[str, str] = end_overrides if end_overrides is not None else {}
        self.margin = margin or Margin()
        self.layout = layout or BarLayout()
        self.pad_days = pad_days

    @property
    def projects_by_name(self) -> dict[str, ProjectSummaryRecord]:
        return {p.project: p for p in self.projects}

    @property
    def domain(self) -> tuple[date, date] | None:
        return compute_domain(
            self.projects, self.start_overrides, self.end_overrides, self.pad_days
        )

    @property
    def scale(self) -> TimeScale | None:
        """Current scale, or None when there is nothing to draw."""
        domain = self.domain
        if not self.projects or self.width <= 0 or domain is None:
            return None
        return TimeScale(domain[0], domain[1], self.width, self.margin)

    @property
    def height(self) -> float:
        rows = len(self.projects) * (self.layout.bar_height + self.layout.bar_padding)
        return rows + self.margin.top + self.margin.bottom

    def ticks(self) -> list[date]:
        domain = self.domain
        return month_ticks(*domain) if domain else []

    def bars(self, session: DragSession | None = None) -> list[TimelineBar]:
        """Lay out every drawable project.

        Projects without a valid plan start or due date are skipped; their
        row stays empty so the other rows do not shift. While ``session`` is
        active its project is drawn at the session's live dates.
        """
        scale = self.scale
        if scale is None:
            return []

        layout = self.layout
        bars: list[TimelineBar] = []
        for row, p in enumerate(self.projects):
            dates = plan_dates(p, self.start_overrides, self.end_overrides)
            if dates is None:
                continue
            plan_start, plan_due = dates

            interacting = session is not None and session.project == p.project
            visual_start = session.visual_start if interacting and session else plan_start
            visual_due = session.visual_finish if interacting and session else plan_due

            plan_x = scale.x(visual_start)
            plan_width = max(MIN_PLAN_BAR_WIDTH, scale.x(visual_due) - plan_x)

            actual_x, actual_width = 0.0, 0.0
            if p.start_date is not None and p.finish_date is not None:
                actual_x = scale.x(p.start_date)
                actual_width = max(0.0, scale.x(p.finish_date) - actual_x)

            label = f"{format_short(visual_start)} - {format_short(visual_due)}"
            bars.append(
                TimelineBar(
                    project=p.project,
                    store=p.store,
                    row=row,
                    y=self.margin.top + row * (layout.bar_height + layout.bar_padding),
                    plan_start=visual_start,
                    plan_due=visual_due,
                    plan_x=plan_x,
                    plan_width=plan_width,
                    actual_x=actual_x,
                    actual_width=actual_width,
                    due_x=scale.x(plan_due),
                    is_late=is_late(p, self.end_overrides),
                    label=label,
                    show_label=plan_width > len(label) * LABEL_CHAR_WIDTH,
                    interacting=interacting,
                )
            )
        return bars

    def hit_test(self, x: float, y: float) -> tuple[str, DragKind] | None:
        """Find which bar part lies under a point.

        Edge handles win over the body, and the end handle is drawn over the
        start handle where the two overlap on a narrow bar.
        """
        handle = self.layout.handle_width
        for bar in self.bars():
            if not bar.y <= y <= bar.y + self.layout.bar_height:
                continue
            right = bar.plan_x + bar.plan_width
            if right - handle <= x <= right:
                return bar.project, DragKind.RESIZE_END
            if bar.plan_x <= x <= bar.plan_x + handle:
                return bar.project, DragKind.RESIZE_START
            if bar.plan_x <= x <= right:
                return bar.project, DragKind.MOVE
        return None

    def controller(
        self,
        on_start_date_change: DateCallback,
        on_end_date_change: DateCallback,
        **hooks: ListenerHook,
    ) -> DragController:
        return DragController(
            self,
            on_start_date_change=on_start_date_change,
            on_end_date_change=on_end_date_change,
            **hooks,
        )
