"""Tests for summary and chart-series derivation."""

from datetime import date

import pytest

from prodsched.aggregate import (
    FALLBACK_COLOR,
    build_project_summary,
    build_store_summary,
    hybrid_segments,
    reshape_weekly,
    series_by_team,
    sort_teams,
    team_color,
    utilization_band,
    workload_axis_max,
)
from prodsched.models import TeamWeekValue
from tests.conftest import summary_row


class TestProjectSummary:
    """Tests for build_project_summary."""

    def test_variance_ahead_of_schedule(self) -> None:
        """Test that finishing 3 days before due gives +3."""
        [record] = build_project_summary([summary_row("P", finish="2025-07-12")], {})

        assert record.effective_due_date == date(2025, 7, 15)
        assert record.days_variance == 3

    def test_variance_late(self) -> None:
        """Test that finishing 3 days after due gives -3."""
        [record] = build_project_summary([summary_row("P", finish="2025-07-18")], {})

        assert record.days_variance == -3

    def test_end_override_sets_effective_due(self) -> None:
        """Test that an end override replaces the service's due date."""
        [record] = build_project_summary(
            [summary_row("P", finish="2025-07-18")], {"P": "2025-07-20"}
        )

        assert record.due_date == date(2025, 7, 15)
        assert record.effective_due_date == date(2025, 7, 20)
        assert record.days_variance == 2

    def test_missing_dates_give_zero_variance(self) -> None:
        """Test that a missing finish yields variance 0 instead of an error."""
        [record] = build_project_summary([summary_row("P", finish=None)], {})

        assert record.finish_date is None
        assert record.days_variance == 0

    def test_sorted_by_store_then_project(self) -> None:
        """Test the summary ordering."""
        rows = [
            summary_row("B", store="Store-B"),
            summary_row("Z", store="Store-A"),
            summary_row("A", store="Store-A"),
        ]

        records = build_project_summary(rows, {})

        assert [(r.store, r.project) for r in records] == [
            ("Store-A", "A"),
            ("Store-A", "Z"),
            ("Store-B", "B"),
        ]


class TestStoreSummary:
    """Tests for build_store_summary."""

    def test_store_rollup(self) -> None:
        """Test the rollup of two projects into one store."""
        projects = build_project_summary(
            [
                summary_row("Project X", start="2025-07-01", due="2025-07-12", finish="2025-07-10"),
                summary_row("Project Y", start="2025-07-03", due="2025-07-15", finish="2025-07-20"),
            ],
            {},
        )

        [store] = build_store_summary(projects)

        assert store.store == "Store-A"
        assert store.start_date == date(2025, 7, 1)
        assert store.finish_date == date(2025, 7, 20)
        assert store.due_date == date(2025, 7, 15)
        assert store.days_variance == -5

    def test_projects_missing_dates_are_skipped(self) -> None:
        """Test that an unfinished project does not affect its store."""
        projects = build_project_summary(
            [
                summary_row("X", finish="2025-07-10"),
                summary_row("Y", start="2025-06-01", finish=None),
                summary_row("Z", store="Store-B", start=None),
            ],
            {},
        )

        stores = build_store_summary(projects)

        assert [s.store for s in stores] == ["Store-A"]
        assert stores[0].start_date == date(2025, 7, 1)


class TestTeams:
    """Tests for team ordering and colors."""

    def test_sort_teams_known_first_then_alphabetical(self) -> None:
        """Test that unknown teams sort after the known order, alphabetically."""
        assert sort_teams(["Tech", "Zeta", "CNC", "Alpha", "Hybrid", "Paint"]) == [
            "CNC",
            "Paint",
            "Tech",
            "Hybrid",
            "Alpha",
            "Zeta",
        ]

    def test_team_color(self) -> None:
        """Test that known teams map to the palette and unknown to the fallback."""
        assert team_color("CNC") == "#3b82f6"
        assert team_color("Metal") == "#000000"
        assert team_color("Nobody") == FALLBACK_COLOR


class TestWeekly:
    """Tests for weekly series reshaping."""

    def test_reshape_sorts_and_drops_bad_weeks(self) -> None:
        """Test chronological order, team order and dropped weeks."""
        raw = [
            {"week": "2025-07-14", "teams": [{"name": "Tech", "worked": 10}]},
            {"week": "not a date", "teams": []},
            {
                "week": "2025-07-07",
                "teams": [
                    {"name": "Paint", "worked": 5, "capacity": 40, "utilization": 12.5},
                    {"name": "CNC", "worked": None, "workloadRatio": 80},
                ],
            },
        ]

        points = reshape_weekly(raw)

        assert [p.week for p in points] == [date(2025, 7, 7), date(2025, 7, 14)]
        first = points[0]
        assert [t.name for t in first.teams] == ["CNC", "Paint"]
        assert first.teams[0].worked == 0.0
        assert first.teams[0].workload_ratio == 80.0
        assert first.teams[1].workload_ratio is None

    def test_hybrid_segments_by_hours(self) -> None:
        """Test that a hybrid bar splits by each sub-team's share of hours."""
        team = TeamWeekValue(
            name="Hybrid", worked=20, capacity=40, breakdown={"Tech": 15, "Metal": 5}
        )

        segments = hybrid_segments(team)

        assert {s.team: s.fraction for s in segments} == {"Tech": 0.75, "Metal": 0.25}

    def test_hybrid_segments_other_team_or_no_work(self) -> None:
        """Test that non-hybrid or idle teams have no segments."""
        assert hybrid_segments(TeamWeekValue(name="Tech", worked=5, breakdown={"X": 5})) == []
        assert hybrid_segments(TeamWeekValue(name="Hybrid", worked=0, breakdown={"X": 0})) == []

    @pytest.mark.parametrize(
        ("worked", "band"), [(9, "low"), (12, "mid"), (20, "mid"), (21, "high"), (0, "low")]
    )
    def test_utilization_band(self, worked: float, band: str) -> None:
        """Test the band thresholds against productive capacity (40 * 1.0)."""
        assert utilization_band(TeamWeekValue(name="T", worked=worked, capacity=40), 1.0) == band

    def test_utilization_band_zero_capacity(self) -> None:
        """Test that zero capacity is treated as 0%."""
        assert utilization_band(TeamWeekValue(name="T", worked=10, capacity=0), 0.78) == "low"

    def test_series_by_team_and_axis(self) -> None:
        """Test regrouping per team and the workload axis ceiling."""
        points = reshape_weekly(
            [
                {"week": "2025-07-07", "teams": [{"name": "Tech", "workloadRatio": 90}]},
                {"week": "2025-07-14", "teams": [{"name": "Tech", "workloadRatio": 180}]},
                {"week": "2025-07-14", "teams": [{"name": "CNC"}]},
            ]
        )

        series = series_by_team(points, "workload_ratio")

        assert list(series) == ["Tech"]
        assert series["Tech"] == [(date(2025, 7, 7), 90.0), (date(2025, 7, 14), 180.0)]
        assert workload_axis_max(points) == 200
        assert workload_axis_max([]) == 150
