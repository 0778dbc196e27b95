"""Configuration: the application config file and scheduling snapshots.

Two documents are handled here:

- ``prodsched_config.yaml`` configures this tool (service URL, polling,
  timeline geometry, ingestion defaults).
- A *configuration snapshot* captures what the scheduling service needs
  besides the task list: team headcounts and operation mapping, scheduling
  parameters, roster changes, hybrid workers, PTO and work-hour overrides.
  Snapshots are written as JSON or YAML and exchanged with the dashboard.
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ValidationError
from .logger import get_logger

CONFIG_FILENAME = "prodsched_config.yaml"

logger = get_logger()


# --- Application config -----------------------------------------------------


class ServiceConfig(BaseModel):
    """Where and how to reach the scheduling service."""

    base_url: str = "http://localhost:5000"
    poll_interval_seconds: float = 1.5
    timeout_seconds: float = 30.0


class TimelineConfig(BaseModel):
    """Geometry for the timeline chart."""

    width: float = 1200
    margin_left: float = 150
    margin_right: float = 20
    margin_top: float = 20
    margin_bottom: float = 20
    pad_days: int = 7


class IngestConfig(BaseModel):
    """Defaults applied while loading project CSVs."""

    default_store: str | None = None


class AppConfig(BaseModel):
    """Top-level application configuration."""

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    timeline: TimelineConfig = Field(default_factory=TimelineConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)


def load_app_config(config_path: Path | str) -> AppConfig:
    """Load application configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is empty or invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        data: dict[str, Any] | None = yaml.safe_load(f)

    if not data:
        raise ValueError("Empty configuration file")
    return AppConfig.model_validate(data)


def discover_app_config(
    data_path: Path | None = None, config_path: Path | None = None
) -> AppConfig:
    """Find and load the application config, falling back to defaults.

    Search order:
    1. Explicit ``config_path`` (e.g. from ``--config``)
    2. The data file's directory / prodsched_config.yaml
    3. Current directory / prodsched_config.yaml
    """
    if config_path is not None:
        return load_app_config(config_path)

    candidates = []
    if data_path is not None:
        candidates.append(Path(data_path).parent / CONFIG_FILENAME)
    candidates.append(Path(CONFIG_FILENAME))

    for candidate in candidates:
        if candidate.exists():
            logger.checks("Using config %s", candidate)
            return load_app_config(candidate)
    return AppConfig()


# --- Configuration snapshot -------------------------------------------------


class _WireModel(BaseModel):
    """Snapshot models use the dashboard's camelCase keys on the wire."""

    model_config = ConfigDict(populate_by_name=True)


class TeamHeadcount(_WireModel):
    id: int
    name: str
    count: float = 0


class TeamMapping(_WireModel):
    """Which team performs an operation."""

    id: int
    team: str
    operation: str


class TeamDefs(_WireModel):
    headcounts: list[TeamHeadcount] = Field(default_factory=list[TeamHeadcount])
    mapping: list[TeamMapping] = Field(default_factory=list[TeamMapping])


class SchedulingParameters(_WireModel):
    start_date: str = Field(
        default_factory=lambda: date.today().isoformat(),  # noqa: DTZ011
        alias="startDate",
    )
    hours_per_day: float = Field(default=8.0, alias="hoursPerDay")
    productivity_assumption: float = Field(default=0.78, alias="productivityAssumption")
    teams_to_ignore: str = Field(
        default="Unassigned, Quality Review / Testing, Receiving, Wrapping / Packaging, Print",
        alias="teamsToIgnore",
    )
    holidays: str = "2025-07-04, 2025-09-01, 2025-11-24, 2025-12-24, 2025-12-25, 2026-01-01"


class TeamMemberChange(_WireModel):
    """A worker joining or leaving a team on a date."""

    id: int
    name: str
    team: str
    type: str = "Starts"
    date: str


class HybridWorker(_WireModel):
    """A worker split between two teams; reported as the "Hybrid" team."""

    id: int
    name: str
    primary_team: str = Field(alias="primaryTeam")
    secondary_team: str = Field(alias="secondaryTeam")


class PtoEntry(_WireModel):
    id: int
    member_name: str = Field(default="", alias="memberName")
    date: str


class WorkHourOverride(_WireModel):
    """Different daily hours for a team over a date range."""

    id: int
    team: str
    hours: float
    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")


def default_team_defs() -> TeamDefs:
    """The stock shop layout."""
    headcounts = [
        TeamHeadcount(id=3, name="CNC", count=3),
        TeamHeadcount(id=4, name="Metal", count=1),
        TeamHeadcount(id=2, name="Scenic", count=4),
        TeamHeadcount(id=1, name="Paint", count=9),
        TeamHeadcount(id=5, name="Carpentry", count=9),
        TeamHeadcount(id=6, name="Assembly", count=4),
        TeamHeadcount(id=7, name="Tech", count=4),
    ]
    pairs = [
        ("Paint", "Scenic Paint"),
        ("Paint", "Paint Prep"),
        ("Paint", "Finishing"),
        ("Scenic", "Scenic Fabrication"),
        ("CNC", "CNC Operation"),
        ("Metal", "Metal Fabrication"),
        ("Carpentry", "Carpentry/Woodwork"),
        ("Assembly", "Final Assembly"),
        ("Tech", "Tech"),
        ("Tech", "Tech Prep"),
    ]
    mapping = [
        TeamMapping(id=i, team=team, operation=op) for i, (team, op) in enumerate(pairs, start=1)
    ]
    return TeamDefs(headcounts=headcounts, mapping=mapping)


def _default_hybrid_workers() -> list[HybridWorker]:
    return [HybridWorker(id=1, name="Hybrid1", primary_team="Tech", secondary_team="Metal")]


class ConfigSnapshot(_WireModel):
    """Everything the scheduling service needs apart from tasks and overrides."""

    team_defs: TeamDefs = Field(default_factory=default_team_defs, alias="teamDefs")
    params: SchedulingParameters = Field(default_factory=SchedulingParameters)
    team_member_changes: list[TeamMemberChange] = Field(
        default_factory=list[TeamMemberChange], alias="teamMemberChanges"
    )
    hybrid_workers: list[HybridWorker] = Field(
        default_factory=_default_hybrid_workers, alias="hybridWorkers"
    )
    pto_entries: list[PtoEntry] = Field(default_factory=list[PtoEntry], alias="ptoEntries")
    work_hour_overrides: list[WorkHourOverride] = Field(
        default_factory=list[WorkHourOverride], alias="workHourOverrides"
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def merge_default_team_defs(team_defs: TeamDefs, defaults: TeamDefs | None = None) -> TeamDefs:
    """Add stock teams and mappings missing from a loaded document.

    Teams are matched by name and mappings by (team, operation); entries the
    document already has are kept as they are. Mapping ids are renumbered
    1..n afterwards so they stay unique.
    """
    defaults = defaults or default_team_defs()

    headcounts = list(team_defs.headcounts)
    names = {h.name for h in headcounts}
    next_id = max((h.id for h in headcounts), default=0) + 1
    for team in defaults.headcounts:
        if team.name not in names:
            headcounts.append(team.model_copy(update={"id": next_id}))
            names.add(team.name)
            next_id += 1

    mapping = list(team_defs.mapping)
    pairs = {(mp.team, mp.operation) for mp in mapping}
    for entry in defaults.mapping:
        if (entry.team, entry.operation) not in pairs:
            mapping.append(entry)
            pairs.add((entry.team, entry.operation))

    renumbered = [mp.model_copy(update={"id": i}) for i, mp in enumerate(mapping, start=1)]
    return TeamDefs(headcounts=headcounts, mapping=renumbered)


def load_config_snapshot(path: Path | str) -> ConfigSnapshot:
    """Load a saved configuration snapshot (JSON or YAML).

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the document lacks ``teamDefs`` or ``params`` or
            does not validate
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config snapshot not found: {path}")

    with path.open() as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValidationError(f"Failed to parse configuration file: {e}") from e

    if not isinstance(data, dict) or "teamDefs" not in data or "params" not in data:
        raise ValidationError("Invalid configuration file structure.")

    try:
        snapshot = ConfigSnapshot.model_validate(
            {
                "teamDefs": data["teamDefs"],
                "params": data["params"],
                "teamMemberChanges": data.get("teamMemberChanges") or [],
                "hybridWorkers": data.get("hybridWorkers") or [],
                "ptoEntries": data.get("ptoEntries") or [],
                "workHourOverrides": data.get("workHourOverrides") or [],
            }
        )
    except ValueError as e:
        raise ValidationError(f"Invalid configuration file: {e}") from e

    snapshot.team_defs = merge_default_team_defs(snapshot.team_defs)
    logger.changes("Configuration loaded successfully.")
    return snapshot


def save_config_snapshot(path: Path | str, snapshot: ConfigSnapshot) -> None:
    """Write a snapshot; ``.json`` files get JSON, anything else YAML."""
    path = Path(path)
    data = snapshot.to_wire()
    with path.open("w") as f:
        if path.suffix.lower() == ".json":
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
