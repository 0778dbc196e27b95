"""Tests for the dashboard session."""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from prodsched.exceptions import RemoteJobError, ValidationError
from prodsched.remote import JobStatus, PollSession, ScheduleResult
from prodsched.session import DashboardSession
from prodsched.timeline import DragKind
from tests.conftest import summary_row


class StubClient:
    """Scheduling client that answers from memory."""

    def __init__(self, statuses: list[dict[str, Any]] | None = None):
        self.statuses = list(statuses or [])
        self.payloads: list[dict[str, Any]] = []

    def submit(self, payload: dict[str, Any]) -> str:
        self.payloads.append(payload)
        return f"job-{len(self.payloads)}"

    def poll_status(self, job_id: str) -> JobStatus:
        return JobStatus.model_validate(self.statuses.pop(0))


def _result(**fields: Any) -> ScheduleResult:
    data: dict[str, Any] = {
        "projectSummary": [
            summary_row("Job-001", due="2025-07-15", finish="2025-07-12"),
            summary_row("Job-002", store="Store-B", due="2025-07-20", finish="2025-07-25"),
        ],
        "teamUtilization": [
            {"week": "2025-07-07", "teams": [{"name": "Paint", "worked": 30, "capacity": 72}]}
        ],
    }
    data.update(fields)
    return ScheduleResult.model_validate(data)


@pytest.fixture
def session(project_csv: str) -> DashboardSession:
    session = DashboardSession()
    session.store.ingest_csv(project_csv)
    return session


class TestPayload:
    """Tests for the request payload and rerun detection."""

    def test_payload_contents(self, session: DashboardSession) -> None:
        """Test that tasks, config and overrides are all sent."""
        session.set_start_override("Job-001", "7/2/2025")

        payload = session.build_payload()

        assert len(payload["projectTasks"]) == 3
        assert payload["projectTasks"][0]["StartDate"] == "2025-07-01"
        assert payload["startDateOverrides"] == {"Job-001": "2025-07-02"}
        assert payload["params"]["hoursPerDay"] == 8.0
        assert "teamDefs" in payload
        assert payload["hybridWorkers"][0]["name"] == "Hybrid1"

    def test_efficiency_roster_sent_with_payload(self, session: DashboardSession) -> None:
        """Test that a loaded roster fills efficiencyData and teamMemberNameMap."""
        text = "TeamMemberNumber,TeamMemberName,Efficiency\n101,Ana Ruiz,85%\n102,Sam Lee,oops,x\n"

        count = session.load_efficiency_csv(text)
        payload = session.build_payload()

        assert count == 1
        assert payload["efficiencyData"] == {"101": 0.85}
        assert payload["teamMemberNameMap"] == {"101": "Ana Ruiz"}

    def test_efficiency_change_needs_rerun(self, session: DashboardSession) -> None:
        """Test that reloading ratings after a run marks the schedule stale."""
        client = StubClient([{"status": "complete", "result": {}}])
        session.run_schedule(client, interval=0)  # type: ignore[arg-type]

        session.load_efficiency_csv("TeamMemberNumber,Efficiency\n101,90%")

        assert session.needs_rerun()

    def test_invalid_override_rejected(self, session: DashboardSession) -> None:
        """Test that an unparseable override date is refused."""
        with pytest.raises(ValidationError):
            session.set_end_override("Job-001", "soon")

    def test_needs_rerun(self, session: DashboardSession) -> None:
        """Test that changes after a run flag the schedule as stale."""
        client = StubClient([{"status": "complete", "result": {}}])
        assert not session.needs_rerun()

        session.run_schedule(client, interval=0)  # type: ignore[arg-type]
        assert not session.needs_rerun()

        session.set_end_override("Job-001", "2025-07-30")
        assert session.needs_rerun()

    def test_run_requires_tasks(self) -> None:
        """Test that running without tasks is refused before submitting."""
        client = StubClient()

        with pytest.raises(ValidationError):
            DashboardSession().run_schedule(client)  # type: ignore[arg-type]

        assert client.payloads == []


class TestRunAndApply:
    """Tests for running a job and applying its result."""

    def test_run_schedule_applies_result(self, session: DashboardSession) -> None:
        """Test that a completed job rebuilds every summary."""
        client = StubClient(
            [
                {"status": "running", "progress": 50},
                {"status": "complete", "result": _result().model_dump(by_alias=True)},
            ]
        )

        result = session.run_schedule(client, interval=0)  # type: ignore[arg-type]

        assert result is not None
        assert [p.project for p in session.project_summary] == ["Job-001", "Job-002"]
        assert [p.days_variance for p in session.project_summary] == [3, -5]
        assert [s.store for s in session.store_summary] == ["Store-A", "Store-B"]
        assert session.weekly_utilization[0].week == date(2025, 7, 7)
        assert session.poll is None

    def test_run_failure_propagates(self, session: DashboardSession) -> None:
        """Test that a failed job raises and leaves no summaries."""
        client = StubClient([{"status": "error", "error": "Infeasible"}])

        with pytest.raises(RemoteJobError, match="Infeasible"):
            session.run_schedule(client, interval=0)  # type: ignore[arg-type]

        assert session.project_summary == []

    def test_new_run_cancels_previous_poll(self, session: DashboardSession) -> None:
        """Test that starting a second job cancels the first poll session."""
        client = StubClient()

        first = session.start_schedule(client, interval=0)  # type: ignore[arg-type]
        second = session.start_schedule(client, interval=0)  # type: ignore[arg-type]

        assert isinstance(first, PollSession)
        assert first.released
        assert first.cancelled
        assert not second.released
        assert session.poll is second
        assert len(client.payloads) == 2

    def test_end_override_updates_summaries(self, session: DashboardSession) -> None:
        """Test that moving a due date re-derives variance and store rollup."""
        session.apply_result(_result())

        session.set_end_override("Job-002", "2025-07-28")

        job2 = session.project_summary[1]
        assert job2.effective_due_date == date(2025, 7, 28)
        assert job2.days_variance == 3
        assert session.store_summary[1].due_date == date(2025, 7, 28)

    def test_result_error_is_kept(self, session: DashboardSession) -> None:
        """Test that an error reported inside a result is recorded."""
        session.apply_result(_result(error="2 tasks could not be scheduled"))

        assert session.error == "2 tasks could not be scheduled"
        assert len(session.project_summary) == 2


class TestTimeline:
    """Tests for the session's timeline hooks."""

    def test_drag_commits_overrides(self, session: DashboardSession) -> None:
        """Test that a finished drag lands in the override maps."""
        session.apply_result(_result())
        controller = session.timeline_controller(1200, filter_text="job-001")
        timeline = controller.timeline
        scale = timeline.scale
        assert scale is not None
        [bar] = timeline.bars()

        controller.pointer_down("Job-001", DragKind.RESIZE_END, bar.due_x)
        controller.pointer_move(bar.due_x + 2 * scale.pixels_per_day)
        controller.pointer_up()

        assert session.end_overrides == {"Job-001": "2025-07-17"}
        assert session.start_overrides == {}
        assert session.project_summary[0].days_variance == 5
