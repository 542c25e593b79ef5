"""Stored build commands."""

from datetime import UTC, datetime

import typer
from rich.table import Table

from ci_build_sync.cli.common import PipelineArgument, console, resolve_pipeline, run_async_command
from ci_build_sync.db import Build, BuildRepository, get_session
from ci_build_sync.schemas.enums import BuildStatus

app = typer.Typer(help="Stored builds")


def _get_status_style(status: BuildStatus) -> str:
    """Get rich style for a build status."""
    match status:
        case BuildStatus.SUCCESS:
            return "[green]SUCCESS[/green]"
        case BuildStatus.FAILED:
            return "[red]FAILED[/red]"
        case BuildStatus.ABORTED:
            return "[yellow]ABORTED[/yellow]"
        case BuildStatus.IN_PROGRESS:
            return "[blue]IN_PROGRESS[/blue]"
        case _:
            return str(status.value)


def _format_duration(millis: int) -> str:
    """Format milliseconds as human-readable time."""
    seconds = millis // 1000
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


@app.command("list")
def list_builds(
    pipeline_id: PipelineArgument,
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Maximum number of builds to show",
    ),
) -> None:
    """Show stored builds of a pipeline, newest first.

    Examples:
        cisync builds list web
        cisync builds list web --limit 50
    """
    pipeline = resolve_pipeline(pipeline_id)

    async def _list() -> tuple[list[Build], int]:
        async with get_session() as session:
            repository = BuildRepository(session)
            builds = await repository.get_all_builds(pipeline.id, limit=limit)
            total = await repository.count_for_pipeline(pipeline.id)
            return builds, total

    builds, total = run_async_command(_list())
    if not builds:
        console.print(f"[yellow]No builds stored for {pipeline.id}.[/yellow]")
        return

    table = Table(title=f"Builds of {pipeline.name}")
    table.add_column("Number", style="cyan", justify="right")
    table.add_column("Name", max_width=40)
    table.add_column("Branch")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Duration", justify="right")
    table.add_column("Commits", justify="right")

    for build in builds:
        started = datetime.fromtimestamp(build.timestamp / 1000, tz=UTC)
        table.add_row(
            str(build.number),
            build.name,
            build.branch or "-",
            _get_status_style(build.result),
            started.strftime("%Y-%m-%d %H:%M"),
            _format_duration(build.duration),
            str(len(build.change_sets or [])),
        )

    console.print(table)
    if total > len(builds):
        console.print(f"  ... and {total - len(builds)} more")


@app.command("clear")
def clear_builds(
    pipeline_id: PipelineArgument,
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Don't ask for confirmation",
    ),
) -> None:
    """Delete every stored build of a pipeline.

    Examples:
        cisync builds clear web
        cisync builds clear web --yes
    """
    pipeline = resolve_pipeline(pipeline_id)

    if not yes:
        typer.confirm(f"Delete all stored builds of {pipeline.id}?", abort=True)

    async def _clear() -> int:
        async with get_session() as session:
            return await BuildRepository(session).clear(pipeline.id)

    deleted = run_async_command(_clear())
    console.print(f"Deleted {deleted} builds of {pipeline.id}")
