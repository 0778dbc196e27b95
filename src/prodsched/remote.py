"""Client for the remote scheduling service.

A run is a submit-then-poll exchange: ``POST /api/schedule`` answers 202 with
a job id, then ``GET /api/schedule/status/<id>`` is polled until the job is
``complete`` or ``error``.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from .exceptions import RemoteJobError
from .logger import get_logger

DEFAULT_POLL_INTERVAL = 1.5
DEFAULT_TIMEOUT = 30.0

logger = get_logger()


def _as_list(value: Any) -> Any:
    return [] if value is None else value


class ScheduleResult(BaseModel):
    """Payload of a completed job. Any field may be absent or null."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    final_schedule: list[dict[str, Any]] = Field(default_factory=list, alias="finalSchedule")
    project_summary: list[dict[str, Any]] = Field(default_factory=list, alias="projectSummary")
    team_utilization: list[dict[str, Any]] = Field(
        default_factory=list, alias="teamUtilization"
    )
    team_workload: list[dict[str, Any]] = Field(default_factory=list, alias="teamWorkload")
    weekly_output: list[dict[str, Any]] = Field(default_factory=list, alias="weeklyOutput")
    daily_completions: list[dict[str, Any]] = Field(
        default_factory=list, alias="dailyCompletions"
    )
    completed_tasks: list[dict[str, Any]] = Field(default_factory=list, alias="completedTasks")
    recommendations: list[Any] = Field(default_factory=list)
    projected_completion: Any = Field(default=None, alias="projectedCompletion")
    logs: list[str] = Field(default_factory=list)
    error: str | None = None

    @field_validator(
        "final_schedule",
        "project_summary",
        "team_utilization",
        "team_workload",
        "weekly_output",
        "daily_completions",
        "completed_tasks",
        "recommendations",
        "logs",
        mode="before",
    )
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return _as_list(value)


class JobStatus(BaseModel):
    """One answer from the status endpoint."""

    model_config = ConfigDict(extra="ignore")

    status: str = "pending"
    progress: int = 0
    message: str = "Processing..."
    step: str = "simulating"
    result: ScheduleResult | None = None
    error: str | None = None

    @field_validator("status", "message", "step", mode="before")
    @classmethod
    def _null_text(cls, value: Any, info: ValidationInfo) -> Any:
        if value:
            return value
        return cls.model_fields[info.field_name].default

    @field_validator("progress", mode="before")
    @classmethod
    def _null_progress(cls, value: Any) -> int:
        try:
            return int(float(value or 0))
        except (TypeError, ValueError):
            return 0

    @property
    def finished(self) -> bool:
        return self.status in ("complete", "error")


class RemoteJobClient:
    """Thin wrapper around the scheduling service's HTTP API."""

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the client.

        Args:
            base_url: Service root, e.g. ``http://localhost:5000``
            session: HTTP session to use; a new one is created if omitted
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def submit(self, payload: dict[str, Any]) -> str:
        """Start a scheduling job.

        Returns:
            The job id assigned by the service

        Raises:
            RemoteJobError: If the request fails or is not accepted with 202
        """
        try:
            response = self.session.post(
                f"{self.base_url}/api/schedule", json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise RemoteJobError(f"Failed to start scheduling job: {e}") from e

        if response.status_code != 202:
            raise RemoteJobError(
                f"Failed to start scheduling job: {_error_text(response)}"
            )

        job_id = _json(response).get("jobId")
        if not job_id:
            raise RemoteJobError("Failed to start scheduling job: no job id in response.")
        logger.changes("Scheduling job started with ID: %s", job_id)
        return str(job_id)

    def poll_status(self, job_id: str) -> JobStatus:
        """Fetch the current status of a job.

        Raises:
            RemoteJobError: If the request fails or returns a non-2xx status
        """
        try:
            response = self.session.get(
                f"{self.base_url}/api/schedule/status/{job_id}", timeout=self.timeout
            )
        except requests.RequestException as e:
            raise RemoteJobError(f"Error checking job status: {e}") from e

        if not response.ok:
            raise RemoteJobError(
                f"Error checking job status: Status check failed with status: "
                f"{response.status_code}"
            )
        try:
            return JobStatus.model_validate(_json(response))
        except ValueError as e:
            raise RemoteJobError(f"Error checking job status: {e}") from e


def _json(response: requests.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_text(response: requests.Response) -> str:
    return str(_json(response).get("error") or "Failed to start scheduling job.")


ProgressCallback = Callable[[JobStatus], None]


class PollSession:
    """Polls one job on a fixed interval until it finishes.

    The session owns the interval timer. It is released exactly once, when
    the job completes, errors, the transport fails or ``cancel()`` is called,
    whichever comes first.
    A status that arrives after ``cancel()`` is discarded.
    """

    def __init__(
        self,
        client: RemoteJobClient,
        job_id: str,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_progress: ProgressCallback | None = None,
    ):
        self.client = client
        self.job_id = job_id
        self.interval = interval
        self.on_progress = on_progress
        self.progress = 0
        self.message = ""
        self.step = ""
        self.result: ScheduleResult | None = None
        self.error: RemoteJobError | None = None
        self.released = False
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set() and self.result is None and self.error is None

    def run(self) -> ScheduleResult | None:
        """Poll until the job finishes, blocking the caller.

        Returns:
            The job result, or None if the session was cancelled

        Raises:
            RemoteJobError: If the job reports an error or polling fails
        """
        try:
            while not self._stop.wait(self.interval):
                status = self.client.poll_status(self.job_id)
                if self._stop.is_set():
                    logger.debug("Dropping status for cancelled job %s", self.job_id)
                    return None
                self._record(status)

                if status.status == "complete":
                    logger.changes("Job complete. Processing final results.")
                    self.result = status.result or ScheduleResult()
                    return self.result
                if status.status == "error":
                    raise RemoteJobError(
                        status.error or "The scheduling job failed on the server.",
                        progress=self.progress,
                    )
            return None
        except RemoteJobError as e:
            if self._stop.is_set():
                logger.debug("Ignoring error for cancelled job %s: %s", self.job_id, e)
                return None
            e.progress = self.progress
            self.error = e
            raise
        finally:
            self._release()

    def start(self) -> None:
        """Poll on a background thread; read ``result``/``error`` after ``wait()``."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run_quietly, daemon=True)
        self._thread.start()

    def wait(self, timeout: float | None = None) -> ScheduleResult | None:
        """Wait for a background session to finish.

        Raises:
            RemoteJobError: If the background poll failed
        """
        if self._thread is not None:
            self._thread.join(timeout)
        if self.error is not None:
            raise self.error
        return self.result

    def cancel(self) -> None:
        """Stop polling; a finished or already cancelled session is unaffected."""
        self._stop.set()
        if self._thread is None:
            self._release()

    def _run_quietly(self) -> None:
        try:
            self.run()
        except RemoteJobError as e:
            logger.error("%s", e)

    def _record(self, status: JobStatus) -> None:
        self.progress = status.progress
        self.message = status.message
        self.step = status.step
        logger.checks("Job %s: %s (%d%%)", self.job_id, self.message, self.progress)
        if self.on_progress is not None:
            self.on_progress(status)

    def _release(self) -> None:
        with self._lock:
            if self.released:
                return
            self.released = True
            self._stop.set()
        logger.debug("Released poll timer for job %s", self.job_id)
