"""Sync commands for CI Build Sync."""

import json
from typing import Any

import typer
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn

from ci_build_sync.cli.common import (
    OutputFormat,
    OutputFormatOption,
    PipelineArgument,
    console,
    resolve_pipeline,
    run_async_command,
)
from ci_build_sync.config import get_settings
from ci_build_sync.db import BuildRepository, get_session
from ci_build_sync.github import BuildSyncService, get_provider_client
from ci_build_sync.github.sync import (
    CommitManager,
    MultiPipelineOrchestrator,
    NullProgressSink,
    ProgressSink,
    SyncProgress,
)
from ci_build_sync.schemas.pipeline import Pipeline

app = typer.Typer(help="Sync builds from CI providers")


class RichProgressSink:
    """Render sync ticks as a rich progress bar (one task per total)."""

    def __init__(self, progress: Progress) -> None:
        self._progress = progress
        self._task: TaskID | None = None
        self._total: int | None = None

    def emit(self, update: SyncProgress) -> None:
        if self._task is None or self._total != update.total:
            self._task = self._progress.add_task(update.pipeline_name, total=update.total)
            self._total = update.total
        self._progress.update(self._task, completed=update.progress)


def _progress_bar() -> Progress:
    return Progress(
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    )


async def _sync_pipeline(pipeline: Pipeline, sink: ProgressSink) -> dict[str, Any]:
    async with get_session() as session:
        commit_manager = CommitManager(session)
        service = BuildSyncService(
            client=get_provider_client(pipeline),
            build_repository=BuildRepository(session),
            commit_manager=commit_manager,
        )
        result = await service.sync(pipeline, sink)
        return result.to_dict()


@app.command("pipeline")
def sync_pipeline(
    pipeline_id: PipelineArgument,
    output_format: OutputFormatOption = OutputFormat.TEXT,
) -> None:
    """Run one incremental sync for a pipeline.

    Examples:
        cisync sync pipeline web
        cisync sync pipeline web --format json
        cisync -v sync pipeline web  # Debug logging
    """
    pipeline = resolve_pipeline(pipeline_id)

    if output_format == OutputFormat.JSON:
        result = run_async_command(_sync_pipeline(pipeline, NullProgressSink()))
        console.print_json(json.dumps(result))
        return

    console.print(f"[dim]Syncing builds of {pipeline.name} ({pipeline.url})...[/dim]")
    with _progress_bar() as progress:
        result = run_async_command(_sync_pipeline(pipeline, RichProgressSink(progress)))

    console.print("[bold]Sync Complete[/bold]")
    console.print()
    console.print(f"  [green]Created:[/green]            {result['created']}")
    console.print(f"  [blue]Updated:[/blue]            {result['updated']}")
    console.print(f"  [dim]Not found:[/dim]          {result['skipped_not_found']}")
    console.print(f"  [dim]Commits attributed:[/dim] {result['attributed_commits']}")
    console.print()
    console.print(f"  Pages fetched: {result['pages_fetched']}")
    console.print(f"  Duration: {result['duration_seconds']:.1f}s")


@app.command("all")
def sync_all_pipelines(
    output_format: OutputFormatOption = OutputFormat.TEXT,
) -> None:
    """Sync every configured pipeline, one after another.

    A pipeline that fails is reported and the remaining pipelines still sync.

    Examples:
        cisync sync all
        cisync sync all --format json
    """
    pipelines = get_settings().get_pipelines()
    if not pipelines:
        console.print("[yellow]No pipelines configured.[/yellow] Set PIPELINES in the environment.")
        raise typer.Exit(1)

    async def _sync_all() -> dict[str, Any]:
        async with get_session() as session:
            orchestrator = MultiPipelineOrchestrator(
                build_repository=BuildRepository(session),
                commit_manager=CommitManager(session),
            )
            result = await orchestrator.sync_all(pipelines)
            return result.to_dict()

    if output_format == OutputFormat.TEXT:
        console.print(f"[dim]Syncing {len(pipelines)} pipelines...[/dim]")

    result = run_async_command(_sync_all(), error_prefix="Sync failed")

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps(result))
    else:
        summary = result["summary"]
        console.print("[bold]Multi-Pipeline Sync Complete[/bold]")
        console.print()
        for entry in result["pipelines"]:
            if entry["success"]:
                console.print(
                    f"  [green]✓[/green] {entry['pipeline_id']}: "
                    f"created={entry['created']}, updated={entry['updated']}"
                )
            else:
                console.print(f"  [red]✗[/red] {entry['pipeline_id']}: {entry['error']}")
        console.print()
        console.print(
            f"  Pipelines: {summary['pipelines_succeeded']} succeeded, "
            f"{summary['pipelines_failed']} failed"
        )
        console.print(f"  Duration: {summary['duration_seconds']:.1f}s")

    if result["summary"]["pipelines_failed"]:
        raise typer.Exit(1)
