"""Pipeline configuration and verification commands."""

import typer
from rich.table import Table

from ci_build_sync.cli.common import PipelineArgument, console, resolve_pipeline, run_async_command
from ci_build_sync.config import get_settings
from ci_build_sync.db import BuildRepository, get_session
from ci_build_sync.github import BuildSyncService, ProviderUnavailableError, get_provider_client

app = typer.Typer(help="Configured pipelines")


@app.command("list")
def list_pipelines() -> None:
    """Show configured pipelines.

    Examples:
        cisync pipelines list
    """
    pipelines = get_settings().get_pipelines()
    if not pipelines:
        console.print("[yellow]No pipelines configured.[/yellow] Set PIPELINES in the environment.")
        return

    table = Table(title="Pipelines")
    table.add_column("Id", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("URL")
    table.add_column("Branches")

    for pipeline in pipelines:
        branches = ", ".join(sorted(pipeline.branches)) if pipeline.branches else "[dim]all[/dim]"
        table.add_row(pipeline.id, pipeline.name, pipeline.type.value, pipeline.url, branches)

    console.print(table)


@app.command("verify")
def verify_pipeline(pipeline_id: PipelineArgument) -> None:
    """Check the CI provider answers for a pipeline.

    Examples:
        cisync pipelines verify web
    """
    pipeline = resolve_pipeline(pipeline_id)

    async def _verify() -> None:
        async with get_session() as session:
            service = BuildSyncService(
                client=get_provider_client(pipeline),
                build_repository=BuildRepository(session),
            )
            try:
                await service.verify_pipeline(pipeline)
            except ProviderUnavailableError as e:
                status = e.status_code if e.status_code is not None else "no response"
                console.print(f"[red]Error:[/red] {pipeline.id} is not reachable ({status})")
                console.print(f"  Endpoint: {e.endpoint}")
                raise typer.Exit(1) from None

    run_async_command(_verify())
    console.print(f"[green]✓[/green] {pipeline.name} ({pipeline.url}) is reachable")
