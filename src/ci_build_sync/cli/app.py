"""Main CLI application for CI Build Sync."""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from ci_build_sync import __version__
from ci_build_sync.cli import builds as builds_cmd
from ci_build_sync.cli import pipelines as pipelines_cmd
from ci_build_sync.cli import sync as sync_cmd
from ci_build_sync.cli.common import run_async_command
from ci_build_sync.config import get_settings
from ci_build_sync.db import create_tables
from ci_build_sync.logging import setup_logging

app = typer.Typer(
    name="cisync",
    help="Incremental CI build history with commit attribution.",
    add_completion=False,
)
db_app = typer.Typer(help="Database commands")
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"cisync version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-error output (WARNING level).",
        ),
    ] = False,
) -> None:
    """CI Build Sync - keep build records consistent with CI providers."""
    settings = get_settings()
    log_config = settings.logging

    setup_logging(
        level=settings.log_level,
        verbose=verbose,
        quiet=quiet,
        log_file=Path(log_config.log_file) if log_config.log_file else None,
        rotation=log_config.rotation,
        retention=log_config.retention,
        serialize=log_config.serialize,
    )


@db_app.command("init")
def init_db() -> None:
    """Create database tables for local use."""
    run_async_command(create_tables())
    console.print(f"[green]Database initialized:[/green] {get_settings().database_url}")


# Register subcommands
app.add_typer(pipelines_cmd.app, name="pipelines")
app.add_typer(sync_cmd.app, name="sync")
app.add_typer(builds_cmd.app, name="builds")
app.add_typer(db_app, name="db")


if __name__ == "__main__":
    app()
