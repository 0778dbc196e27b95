"""Tests for the timeline scale, layout and drag state machine."""

from datetime import date

import pytest

from prodsched.timeline import (
    IDLE,
    DateChange,
    DragKind,
    DragSession,
    Idle,
    Margin,
    PointerDown,
    PointerMove,
    PointerUp,
    TimeScale,
    Timeline,
    compute_domain,
    filter_projects,
    is_late,
    month_ticks,
    move,
    press,
    release,
    round_half_up,
    transition,
)
from tests.conftest import summary_record

# 100 days across 1000 plot pixels: 10 px per day
SCALE = TimeScale(date(2025, 6, 1), date(2025, 9, 9), width=1170, margin=Margin())


def _session(kind: DragKind, start: date = date(2025, 7, 1), finish: date = date(2025, 7, 11)):
    state = press(IDLE, summary_record("P", start=start, due=finish), kind, 500.0, {}, {})
    assert isinstance(state, DragSession)
    return state


class TestDomainAndScale:
    """Tests for the padded domain and the linear scale."""

    def test_domain_padding(self) -> None:
        """Test that a July-only project pads a week either side."""
        domain = compute_domain(
            [summary_record("P", start=date(2025, 7, 1), due=date(2025, 7, 31), finish=None)],
            {},
            {},
        )

        assert domain == (date(2025, 6, 24), date(2025, 8, 7))

    def test_domain_includes_overrides_and_finish(self) -> None:
        """Test that override and finish dates widen the domain."""
        domain = compute_domain(
            [summary_record("P", finish=date(2025, 8, 10))],
            {"P": "2025-06-20"},
            {},
        )

        assert domain == (date(2025, 6, 13), date(2025, 8, 17))

    def test_domain_none_without_dates(self) -> None:
        """Test that no valid dates gives no domain."""
        record = summary_record("P", start=None, due=None, finish=None)

        assert compute_domain([record], {}, {}) is None

    def test_scale(self) -> None:
        """Test date-to-pixel mapping."""
        assert SCALE.plot_width == 1000
        assert SCALE.pixels_per_day == 10
        assert SCALE.x(date(2025, 6, 1)) == 150
        assert SCALE.x(date(2025, 6, 11)) == 250

    def test_degenerate_scale(self) -> None:
        """Test that a zero-day domain has no pixels per day."""
        scale = TimeScale(date(2025, 6, 1), date(2025, 6, 1), width=500)

        assert scale.pixels_per_day == 0

    def test_round_half_up(self) -> None:
        """Test rounding ties towards positive infinity."""
        assert round_half_up(2.5) == 3
        assert round_half_up(-2.5) == -2
        assert round_half_up(0.49) == 0


class TestDragStateMachine:
    """Tests for press, move and release."""

    def test_press_starts_session_at_plan_dates(self) -> None:
        """Test that pressing records the override-resolved plan dates."""
        record = summary_record("P")

        state = press(IDLE, record, DragKind.MOVE, 300.0, {"P": "2025-07-03"}, {})

        assert isinstance(state, DragSession)
        assert state.initial_start == date(2025, 7, 3)
        assert state.initial_finish == date(2025, 7, 15)
        assert state.origin_x == 300.0

    def test_press_ignored_without_plan_dates(self) -> None:
        """Test that a bar without a plan start cannot be grabbed."""
        record = summary_record("P", start=None)

        assert press(IDLE, record, DragKind.MOVE, 0.0, {}, {}) is IDLE

    def test_move_shifts_both_dates(self) -> None:
        """Test that a move keeps the duration."""
        state = move(_session(DragKind.MOVE), 534.0, SCALE)

        assert isinstance(state, DragSession)
        assert state.visual_start == date(2025, 7, 4)
        assert state.visual_finish == date(2025, 7, 14)

    def test_resize_end_clamped(self) -> None:
        """Test that the finish cannot reach the start."""
        state = move(_session(DragKind.RESIZE_END), 0.0, SCALE)

        assert isinstance(state, DragSession)
        assert state.visual_start == date(2025, 7, 1)
        assert state.visual_finish == date(2025, 7, 2)

    def test_resize_start_clamped(self) -> None:
        """Test that the start cannot reach the finish."""
        state = move(_session(DragKind.RESIZE_START), 2000.0, SCALE)

        assert isinstance(state, DragSession)
        assert state.visual_start == date(2025, 7, 10)
        assert state.visual_finish == date(2025, 7, 11)

    @pytest.mark.parametrize("kind", list(DragKind))
    @pytest.mark.parametrize("x", [-5000.0, 0.0, 480.0, 495.0, 505.0, 620.0, 5000.0])
    def test_finish_always_after_start(self, kind: DragKind, x: float) -> None:
        """Test the clamp invariant for every gesture kind and position."""
        state = move(_session(kind), x, SCALE)

        assert isinstance(state, DragSession)
        assert state.visual_finish > state.visual_start

    def test_release_without_net_movement_emits_nothing(self) -> None:
        """Test that wandering away and back commits no change."""
        for kind in DragKind:
            state = move(move(_session(kind), 700.0, SCALE), 502.0, SCALE)

            new_state, changes = release(state)

            assert new_state is IDLE
            assert changes == []

    def test_release_move_emits_start_and_end(self) -> None:
        """Test that a move reports both dates."""
        state = move(_session(DragKind.MOVE), 480.0, SCALE)

        _, changes = release(state)

        assert changes == [
            DateChange("P", "start", "2025-06-29"),
            DateChange("P", "end", "2025-07-09"),
        ]

    def test_release_resize_emits_one_side(self) -> None:
        """Test that resizes report only the edge that moved."""
        _, start_changes = release(move(_session(DragKind.RESIZE_START), 520.0, SCALE))
        _, end_changes = release(move(_session(DragKind.RESIZE_END), 520.0, SCALE))

        assert start_changes == [DateChange("P", "start", "2025-07-03")]
        assert end_changes == [DateChange("P", "end", "2025-07-13")]

    def test_release_while_idle(self) -> None:
        """Test that pointer-up without a gesture does nothing."""
        assert release(IDLE) == (IDLE, [])

    def test_transition_dispatches_events(self) -> None:
        """Test a full gesture through transition()."""
        projects = {"P": summary_record("P", due=date(2025, 7, 11))}
        context = {
            "scale": SCALE,
            "projects": projects,
            "start_overrides": {},
            "end_overrides": {},
        }

        state, _ = transition(IDLE, PointerDown("P", DragKind.RESIZE_END, 500.0), **context)
        state, _ = transition(state, PointerMove(530.0), **context)
        state, changes = transition(state, PointerUp(), **context)

        assert isinstance(state, Idle)
        assert changes == [DateChange("P", "end", "2025-07-14")]

    def test_pointer_down_on_unknown_project(self) -> None:
        """Test that pressing a bar that no longer exists stays idle."""
        state, changes = transition(
            IDLE,
            PointerDown("missing", DragKind.MOVE, 0.0),
            scale=SCALE,
            projects={},
            start_overrides={},
            end_overrides={},
        )

        assert state is IDLE
        assert changes == []


class TestDragController:
    """Tests for the controller that owns pointer listeners."""

    def _controller(self, calls: list[str], changes: list[tuple[str, str, str]]):
        timeline = Timeline([summary_record("P")], 1170)
        return timeline.controller(
            lambda p, v: changes.append(("start", p, v)),
            lambda p, v: changes.append(("end", p, v)),
            attach_listeners=lambda: calls.append("attach"),
            detach_listeners=lambda: calls.append("detach"),
        )

    def test_listeners_attached_and_released_once(self) -> None:
        """Test that a gesture attaches once and detaches once."""
        calls: list[str] = []
        changes: list[tuple[str, str, str]] = []
        controller = self._controller(calls, changes)

        controller.pointer_down("P", DragKind.MOVE, 400.0)
        controller.pointer_move(450.0)
        controller.pointer_move(500.0)
        controller.pointer_up()
        controller.teardown()

        assert calls == ["attach", "detach"]
        assert controller.state is IDLE
        assert [c[0] for c in changes] == ["start", "end"]

    def test_teardown_mid_gesture_commits_nothing(self) -> None:
        """Test that tearing down during a drag releases listeners only."""
        calls: list[str] = []
        changes: list[tuple[str, str, str]] = []
        controller = self._controller(calls, changes)

        controller.pointer_down("P", DragKind.RESIZE_END, 400.0)
        controller.pointer_move(600.0)
        controller.teardown()
        controller.pointer_up()

        assert calls == ["attach", "detach"]
        assert changes == []
        assert not controller.listening

    def test_pointer_up_after_chart_collapses_still_releases(self) -> None:
        """Test that a gesture ends even when the chart loses its scale mid-drag."""
        calls: list[str] = []
        changes: list[tuple[str, str, str]] = []
        controller = self._controller(calls, changes)

        controller.pointer_down("P", DragKind.MOVE, 400.0)
        controller.pointer_move(450.0)
        controller.timeline.width = 0
        controller.pointer_move(600.0)
        controller.pointer_up()

        assert controller.timeline.scale is None
        assert calls == ["attach", "detach"]
        assert controller.state is IDLE
        assert not controller.listening
        assert changes == [("start", "P", "2025-07-02"), ("end", "P", "2025-07-16")]


class TestLayout:
    """Tests for bar layout helpers."""

    def test_is_late_uses_override(self) -> None:
        """Test lateness against the effective due date."""
        record = summary_record("P", due=date(2025, 7, 15), finish=date(2025, 7, 18))

        assert is_late(record, {})
        assert not is_late(record, {"P": "2025-07-20"})

    def test_filter_projects(self) -> None:
        """Test the case-insensitive name filter."""
        records = [summary_record("Alpha"), summary_record("beta"), summary_record("ALPINE")]

        assert [r.project for r in filter_projects(records, "alp")] == ["Alpha", "ALPINE"]
        assert len(filter_projects(records, "")) == 3

    def test_month_ticks(self) -> None:
        """Test month starts inside the domain across a year boundary."""
        assert month_ticks(date(2025, 11, 20), date(2026, 2, 1)) == [
            date(2025, 12, 1),
            date(2026, 1, 1),
            date(2026, 2, 1),
        ]

    def test_bars(self) -> None:
        """Test geometry of a drawn bar and the gap left by an invalid row."""
        timeline = Timeline(
            [
                summary_record("Bad", start=None),
                summary_record("P", start=date(2025, 7, 1), due=date(2025, 7, 31)),
            ],
            1170,
        )

        [bar] = timeline.bars()

        assert bar.project == "P"
        assert bar.row == 1
        assert bar.y == 20 + 50
        assert bar.plan_width > 0
        assert bar.label == "7/1 - 7/31"
        assert not bar.is_late
        assert timeline.height == 2 * 50 + 40

    def test_empty_timeline(self) -> None:
        """Test that no projects means no scale and no bars."""
        timeline = Timeline([], 800)

        assert timeline.scale is None
        assert timeline.bars() == []

    def test_hit_test(self) -> None:
        """Test that edges resolve to resize handles and the middle to move."""
        timeline = Timeline([summary_record("P")], 1170)
        [bar] = timeline.bars()
        y = bar.y + 10

        assert timeline.hit_test(bar.plan_x + 2, y) == ("P", DragKind.RESIZE_START)
        assert timeline.hit_test(bar.plan_x + bar.plan_width - 2, y) == ("P", DragKind.RESIZE_END)
        assert timeline.hit_test(bar.plan_x + bar.plan_width / 2, y) == ("P", DragKind.MOVE)
        assert timeline.hit_test(bar.plan_x + bar.plan_width / 2, bar.y - 5) is None

    def test_hit_test_narrow_bar_prefers_end_handle(self) -> None:
        """Test that overlapping handles resolve to the end handle drawn on top."""
        record = summary_record("P", start=date(2025, 7, 1), due=date(2025, 7, 2))
        timeline = Timeline([record], 200)
        [bar] = timeline.bars()

        assert bar.plan_width < timeline.layout.handle_width
        assert timeline.hit_test(bar.plan_x + 1, bar.y + 10) == ("P", DragKind.RESIZE_END)
