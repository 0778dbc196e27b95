"""Command-line interface for prodsched."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

import typer

from .aggregate import build_project_summary, build_store_summary
from .config import AppConfig, discover_app_config, load_config_snapshot
from .csvio import parse_csv
from .exceptions import ProdschedError
from .logger import get_logger, setup_logger
from .normalize import clean_routing_rows
from .remote import JobStatus, RemoteJobClient, ScheduleResult
from .render import render_timeline_svg
from .reports import (
    RESULT_REPORTS,
    SAMPLES,
    project_summary_csv,
    project_tasks_csv,
    store_summary_csv,
)
from .session import DashboardSession
from .store import TaskStore, template_names
from .timeline import Margin, Timeline, filter_projects

app = typer.Typer(
    name="prodsched",
    help="Production scheduling dashboard - load tasks, run schedules, review the results",
    add_completion=False,
)

logger = get_logger()

OverrideOption = Annotated[
    list[str] | None,
    typer.Option(help="Date override as PROJECT=YYYY-MM-DD (repeatable)"),
]


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=show changes, 2=show all checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to app config file (default: prodsched_config.yaml)",
        ),
    ] = None,
) -> None:
    """Global options for prodsched commands."""
    setup_logger(verbose)
    ctx.obj = {"config_path": config}


def _app_config(ctx: typer.Context, data_path: Path | None = None) -> AppConfig:
    config_path = (ctx.obj or {}).get("config_path")
    return discover_app_config(data_path, config_path)


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def _parse_overrides(values: list[str] | None) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for value in values or []:
        project, sep, day = value.rpartition("=")
        if not sep or not project or not day:
            raise typer.BadParameter(f"Expected PROJECT=YYYY-MM-DD, got {value!r}")
        overrides[project] = day
    return overrides


def _load_tasks(files: list[Path], default_store: str | None) -> TaskStore:
    store = TaskStore()
    for path in files:
        report = store.ingest_csv(
            path.read_text(encoding="utf-8"), source=path.name, default_store=default_store
        )
        typer.echo(
            f"{path.name}: {report.added} tasks, {len(report.projects)} projects"
            + (f" ({len(report.warnings)} lines skipped)" if report.warnings else "")
        )
    return store


def _load_result(path: Path) -> ScheduleResult:
    """Read a saved result; a full job status document is accepted too."""
    data: Any = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "status" in data and "result" in data:
        return JobStatus.model_validate(data).result or ScheduleResult()
    return ScheduleResult.model_validate(data)


def _write_or_echo(text: str, output: Path | None, what: str) -> None:
    if output:
        output.write_text(text, encoding="utf-8")
        typer.echo(f"{what} written to {output}")
    else:
        typer.echo(text)


@app.command()
def check(
    ctx: typer.Context,
    files: Annotated[list[Path], typer.Argument(help="Project CSV files to validate")],
    *,
    routing: Annotated[
        bool, typer.Option("--routing", help="Treat the files as routing templates")
    ] = False,
) -> None:
    """Parse and clean CSV files without contacting the scheduling service."""
    try:
        if routing:
            for path in files:
                parsed = parse_csv(path.read_text(encoding="utf-8"))
                for issue in parsed.errors:
                    typer.echo(f"{path.name}: {issue.message}", err=True)
                templates = clean_routing_rows(parsed.rows)
                names = template_names(templates)
                typer.echo(f"{path.name}: {len(templates)} steps, {len(names)} templates")
                for name in names:
                    typer.echo(f"  {name}")
            return

        config = _app_config(ctx, files[0] if files else None)
        store = _load_tasks(files, config.ingest.default_store)
    except (ProdschedError, OSError, ValueError) as e:
        raise _fail(str(e)) from None

    typer.echo(f"Total: {len(store)} tasks")
    for project, store_name in store.projects():
        typer.echo(f"  {project} ({store_name})")


@app.command()
def build(  # noqa: PLR0913 - CLI command needs multiple options
    routing: Annotated[Path, typer.Argument(help="Routing template CSV")],
    *,
    template: Annotated[
        list[str], typer.Option("--template", "-t", help="Template name (repeatable)")
    ],
    store: Annotated[str, typer.Option("--store", help="Store the new projects deliver to")],
    start: Annotated[str, typer.Option("--start", help="Start date (YYYY-MM-DD)")],
    due: Annotated[str, typer.Option("--due", help="Due date (YYYY-MM-DD)")],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Create projects from routing templates and export their tasks."""
    try:
        parsed = parse_csv(routing.read_text(encoding="utf-8"))
        templates = clean_routing_rows(parsed.rows)
        tasks = TaskStore()
        names = tasks.build_from_templates(templates, template, store, start, due)
    except (ProdschedError, OSError, ValueError) as e:
        raise _fail(str(e)) from None

    for name in names:
        typer.echo(f"Created {name}", err=output is None)
    _write_or_echo(project_tasks_csv(tasks.tasks), output, "Project tasks")


@app.command()
def run(  # noqa: PLR0913 - CLI command needs multiple options
    ctx: typer.Context,
    files: Annotated[list[Path], typer.Argument(help="Project CSV files to schedule")],
    *,
    snapshot: Annotated[
        Path | None,
        typer.Option("--snapshot", "-s", help="Configuration snapshot (JSON or YAML)"),
    ] = None,
    output: Annotated[
        Path, typer.Option("--output", "-o", help="Where to save the result JSON")
    ] = Path("schedule_result.json"),
    url: Annotated[
        str | None, typer.Option("--url", help="Scheduling service URL (overrides config)")
    ] = None,
    efficiency: Annotated[
        Path | None,
        typer.Option(
            "--efficiency", "-e", help="Team member efficiency CSV (TeamMemberNumber, Efficiency)"
        ),
    ] = None,
    start_override: OverrideOption = None,
    end_override: OverrideOption = None,
) -> None:
    """Submit tasks to the scheduling service and wait for the result."""
    try:
        config = _app_config(ctx, files[0] if files else None)
        session = DashboardSession(
            snapshot=load_config_snapshot(snapshot) if snapshot else None,
            store=_load_tasks(files, config.ingest.default_store),
        )
        if efficiency is not None:
            count = session.load_efficiency_csv(efficiency.read_text(encoding="utf-8"))
            typer.echo(f"{efficiency.name}: {count} efficiency ratings")
        for project, day in _parse_overrides(start_override).items():
            session.set_start_override(project, day)
        for project, day in _parse_overrides(end_override).items():
            session.set_end_override(project, day)

        client = RemoteJobClient(
            url or config.service.base_url, timeout=config.service.timeout_seconds
        )
        result = session.run_schedule(
            client,
            interval=config.service.poll_interval_seconds,
            on_progress=lambda s: logger.changes("%s (%d%%)", s.message, s.progress),
        )
    except (ProdschedError, OSError, ValueError) as e:
        raise _fail(str(e)) from None

    if result is None:
        raise _fail("Scheduling job was cancelled.")

    output.write_text(json.dumps(result.model_dump(by_alias=True, mode="json"), indent=2))
    typer.echo(f"Result written to {output}")
    if session.error:
        typer.echo(f"Warning: {session.error}", err=True)
    _echo_summary(session)


def _echo_summary(session: DashboardSession) -> None:
    if not session.project_summary:
        typer.echo("No projects in result.")
        return

    typer.echo(f"{'Project':<24} {'Store':<12} {'Start':<10} {'Due':<10} {'Finish':<10} Var")
    for p in session.project_summary:
        row = p.to_row()
        typer.echo(
            f"{p.project:<24} {p.store:<12} {row['StartDate']:<10} {row['DueDate']:<10} "
            f"{row['FinishDate']:<10} {p.days_variance:+d}"
        )
    typer.echo()
    typer.echo(f"{'Store':<24} {'Start':<10} {'Due':<10} {'Finish':<10} Var")
    for s in session.store_summary:
        row = s.to_row()
        typer.echo(
            f"{s.store:<24} {row['StartDate']:<10} {row['DueDate']:<10} "
            f"{row['FinishDate']:<10} {s.days_variance:+d}"
        )


@app.command()
def summary(
    result_file: Annotated[Path, typer.Argument(help="Saved schedule result JSON")],
    *,
    end_override: OverrideOption = None,
    format: Annotated[  # noqa: A002 - 'format' is appropriate name for CLI option
        str, typer.Option("--format", "-f", help="Output format (table or csv)")
    ] = "table",
) -> None:
    """Show per-project and per-store plan vs. finish."""
    if format not in ("table", "csv"):
        raise _fail(f"Invalid format '{format}'. Must be 'table' or 'csv'.")
    session = DashboardSession()
    try:
        session.apply_result(_load_result(result_file))
        for project, day in _parse_overrides(end_override).items():
            session.set_end_override(project, day)
    except (ProdschedError, OSError, ValueError) as e:
        raise _fail(str(e)) from None

    if format == "csv":
        typer.echo(project_summary_csv(session.project_summary))
        typer.echo()
        typer.echo(store_summary_csv(session.store_summary))
    else:
        _echo_summary(session)


@app.command()
def timeline(  # noqa: PLR0913 - CLI command needs multiple options
    ctx: typer.Context,
    result_file: Annotated[Path, typer.Argument(help="Saved schedule result JSON")],
    *,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output SVG path")] = None,
    width: Annotated[float | None, typer.Option("--width", help="Chart width in pixels")] = None,
    filter_text: Annotated[
        str, typer.Option("--filter", help="Only show projects whose name contains this")
    ] = "",
    start_override: OverrideOption = None,
    end_override: OverrideOption = None,
) -> None:
    """Draw the project timeline as SVG."""
    try:
        config = _app_config(ctx, result_file).timeline
        result = _load_result(result_file)
    except (OSError, ValueError) as e:
        raise _fail(str(e)) from None

    start_overrides = _parse_overrides(start_override)
    end_overrides = _parse_overrides(end_override)
    projects = build_project_summary(result.project_summary, end_overrides)
    chart = Timeline(
        filter_projects(projects, filter_text),
        width or config.width,
        start_overrides=start_overrides,
        end_overrides=end_overrides,
        margin=Margin(
            top=config.margin_top,
            right=config.margin_right,
            bottom=config.margin_bottom,
            left=config.margin_left,
        ),
        pad_days=config.pad_days,
    )
    svg = render_timeline_svg(chart)
    if not svg:
        raise _fail("Nothing to draw: no projects with valid dates.")
    _write_or_echo(svg, output, "Timeline")


@app.command()
def report(
    result_file: Annotated[Path, typer.Argument(help="Saved schedule result JSON")],
    *,
    kind: Annotated[
        str,
        typer.Option(
            "--type",
            "-t",
            help=f"Report to export: {', '.join([*RESULT_REPORTS, 'stores'])}",
        ),
    ] = "schedule",
    output_dir: Annotated[
        Path, typer.Option("--output-dir", "-d", help="Directory for the CSV file")
    ] = Path(),
) -> None:
    """Export a schedule result as CSV."""
    try:
        result = _load_result(result_file)
    except (OSError, ValueError) as e:
        raise _fail(str(e)) from None

    if kind == "stores":
        records = build_store_summary(build_project_summary(result.project_summary, {}))
        text: str | None = store_summary_csv(records) or None
        filename = "store_summary.csv"
    elif kind in RESULT_REPORTS:
        export = RESULT_REPORTS[kind]
        text, filename = export.render(result), export.filename
    else:
        raise _fail(f"Unknown report type '{kind}'.")

    if text is None:
        typer.echo(f"Nothing to export for '{kind}'.", err=True)
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    path.write_text(text, encoding="utf-8")
    typer.echo(f"Report written to {path}")


@app.command()
def sample(
    kind: Annotated[str, typer.Argument(help="Sample to write: project or routing")] = "project",
    *,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Write a sample input CSV."""
    if kind not in SAMPLES:
        raise _fail(f"Unknown sample '{kind}'. Must be 'project' or 'routing'.")
    default_name, text = SAMPLES[kind]
    if output is not None and output.is_dir():
        output = output / default_name
    _write_or_echo(text, output, "Sample")


def main() -> int:
    """Main entry point."""
    app()
    return 0


if __name__ == "__main__":
    main()
