"""Dashboard session: the state one user works with between runs.

The session wires the pipeline together. Tasks come in through the task
store, go out to the scheduling service with the configuration snapshot and
the date overrides, and the result is rolled up into summaries and weekly
series that the timeline and reports read.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from .aggregate import build_project_summary, build_store_summary, reshape_weekly
from .config import ConfigSnapshot
from .csvio import parse_csv
from .dates import format_date, parse_date
from .exceptions import ValidationError
from .logger import get_logger
from .models import (
    EfficiencyTable,
    ProjectSummaryRecord,
    StoreSummaryRecord,
    WeeklySeriesPoint,
)
from .normalize import clean_efficiency_rows
from .remote import (
    DEFAULT_POLL_INTERVAL,
    PollSession,
    ProgressCallback,
    RemoteJobClient,
    ScheduleResult,
)
from .store import TaskStore
from .timeline import DragController, Timeline, filter_projects

logger = get_logger()


class DashboardSession:
    """Everything loaded, overridden and computed in one working session."""

    def __init__(
        self,
        snapshot: ConfigSnapshot | None = None,
        store: TaskStore | None = None,
    ):
        self.snapshot = snapshot or ConfigSnapshot()
        self.store = store or TaskStore()
        self.start_overrides: dict[str, str] = {}
        self.end_overrides: dict[str, str] = {}
        self.efficiency_data: dict[str, Any] = {}
        self.team_member_name_map: dict[str, str] = {}

        self.result: ScheduleResult | None = None
        self.project_summary: list[ProjectSummaryRecord] = []
        self.store_summary: list[StoreSummaryRecord] = []
        self.weekly_utilization: list[WeeklySeriesPoint] = []
        self.weekly_workload: list[WeeklySeriesPoint] = []
        self.error: str | None = None

        self.poll: PollSession | None = None
        self._last_run_state: str | None = None

    # --- Overrides ---------------------------------------------------------

    def set_start_override(self, project: str, value: str) -> None:
        self.start_overrides[project] = self._iso(value)
        self._rebuild_summaries()

    def set_end_override(self, project: str, value: str) -> None:
        """Set a project's due date; late flags and variances follow it."""
        self.end_overrides[project] = self._iso(value)
        self._rebuild_summaries()

    def clear_overrides(self, project: str | None = None) -> None:
        if project is None:
            self.start_overrides.clear()
            self.end_overrides.clear()
        else:
            self.start_overrides.pop(project, None)
            self.end_overrides.pop(project, None)
        self._rebuild_summaries()

    @staticmethod
    def _iso(value: str) -> str:
        parsed = parse_date(value)
        if parsed is None:
            raise ValidationError(f"Invalid date: {value!r}")
        return format_date(parsed)

    # --- Team members -------------------------------------------------------

    def load_efficiency(self, table: EfficiencyTable) -> None:
        """Replace the efficiency ratings and member names sent with each run."""
        self.efficiency_data = dict(table.ratings)
        self.team_member_name_map = dict(table.names)

    def load_efficiency_csv(self, text: str) -> int:
        """Load a TeamMemberNumber/TeamMemberName/Efficiency roster.

        Malformed lines are logged and skipped.

        Returns:
            Number of efficiency ratings loaded
        """
        parsed = parse_csv(text)
        for issue in parsed.errors:
            logger.warning("Parsing Warning (Efficiency CSV): %s", issue.message)
        self.load_efficiency(clean_efficiency_rows(parsed.rows))
        return len(self.efficiency_data)

    # --- Remote run --------------------------------------------------------

    def _state(self) -> dict[str, Any]:
        wire = self.snapshot.to_wire()
        return {
            "params": wire["params"],
            "teamDefs": wire["teamDefs"],
            "ptoEntries": wire["ptoEntries"],
            "teamMemberChanges": wire["teamMemberChanges"],
            "workHourOverrides": wire["workHourOverrides"],
            "hybridWorkers": wire["hybridWorkers"],
            "efficiencyData": self.efficiency_data,
            "teamMemberNameMap": self.team_member_name_map,
            "startDateOverrides": dict(self.start_overrides),
            "endDateOverrides": dict(self.end_overrides),
            "projectTasks": self.store.to_payload(),
        }

    def _fingerprint(self) -> str:
        return json.dumps(self._state(), sort_keys=True, default=str)

    def build_payload(self) -> dict[str, Any]:
        """The request body for a scheduling job; dates are ISO strings."""
        return self._state()

    def needs_rerun(self) -> bool:
        """True once anything sent with the last run has changed since."""
        return self._last_run_state is not None and self._fingerprint() != self._last_run_state

    def start_schedule(
        self,
        client: RemoteJobClient,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_progress: ProgressCallback | None = None,
    ) -> PollSession:
        """Submit the current state and return the session polling for it.

        Any poll session still running from an earlier submission is
        cancelled first.

        Raises:
            ValidationError: If no tasks are loaded
            RemoteJobError: If the job could not be started
        """
        if not len(self.store):
            raise ValidationError("Please upload at least one project CSV first.")

        if self.poll is not None:
            self.poll.cancel()
            self.poll = None

        self._last_run_state = self._fingerprint()
        self.error = None
        logger.changes("Sending data to scheduling server to start job...")
        job_id = client.submit(self.build_payload())
        self.poll = PollSession(client, job_id, interval=interval, on_progress=on_progress)
        return self.poll

    def run_schedule(
        self,
        client: RemoteJobClient,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_progress: ProgressCallback | None = None,
    ) -> ScheduleResult | None:
        """Submit, wait for the job and apply its result.

        Returns:
            The applied result, or None if polling was cancelled

        Raises:
            ValidationError: If no tasks are loaded
            RemoteJobError: If the job could not be started or failed
        """
        poll = self.start_schedule(client, interval=interval, on_progress=on_progress)
        try:
            result = poll.run()
        finally:
            if self.poll is poll:
                self.poll = None
        if result is not None:
            self.apply_result(result)
        return result

    def apply_result(self, result: ScheduleResult) -> None:
        """Replace every derived view with the contents of ``result``."""
        self.result = result
        self.error = result.error
        if result.error:
            logger.error("%s", result.error)
        self.weekly_utilization = reshape_weekly(result.team_utilization)
        self.weekly_workload = reshape_weekly(result.team_workload)
        self._rebuild_summaries()
        logger.changes(
            "Schedule complete: %d projects, %d schedule rows.",
            len(self.project_summary),
            len(result.final_schedule),
        )

    def _rebuild_summaries(self) -> None:
        if self.result is None:
            return
        self.project_summary = build_project_summary(
            self.result.project_summary, self.end_overrides
        )
        self.store_summary = build_store_summary(self.project_summary)

    # --- Timeline ----------------------------------------------------------

    def timeline(self, width: float, filter_text: str = "", **kwargs: Any) -> Timeline:
        return Timeline(
            filter_projects(self.project_summary, filter_text),
            width,
            start_overrides=self.start_overrides,
            end_overrides=self.end_overrides,
            **kwargs,
        )

    def timeline_controller(
        self,
        width: float,
        filter_text: str = "",
        **hooks: Callable[[], None],
    ) -> DragController:
        """A drag controller whose committed dates become session overrides."""
        return self.timeline(width, filter_text).controller(
            self.set_start_override, self.set_end_override, **hooks
        )
