"""Common CLI option factories and helpers.

This module centralizes reusable CLI options and provides:
- `run_async_command`: Unified async execution with error handling for CLI commands
- `resolve_pipeline`: Look up a configured pipeline or exit with an error
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from enum import Enum
from typing import TYPE_CHECKING, Annotated, TypeVar

import typer
from rich.console import Console

from ci_build_sync.config import get_settings

if TYPE_CHECKING:
    from ci_build_sync.schemas.pipeline import Pipeline

# Shared console instance for CLI output
console = Console()

T = TypeVar("T")


class OutputFormat(str, Enum):
    """Output format for CLI commands."""

    TEXT = "text"
    JSON = "json"


def run_async_command(
    coro: Coroutine[object, object, T],
    *,
    error_prefix: str = "Error",
) -> T:
    """Execute async code from a synchronous CLI command with unified error handling.

    Catches exceptions, prints a user-friendly error message, and exits with code 1.

    Args:
        coro: Async coroutine to execute
        error_prefix: Prefix for error messages (default: "Error")

    Returns:
        Result from the coroutine

    Raises:
        typer.Exit: Re-raised from deliberate exits, or raised with code 1 on error
    """
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]{error_prefix}:[/red] {e}")
        raise typer.Exit(1) from None


def resolve_pipeline(pipeline_id: str) -> Pipeline:
    """Get a configured pipeline by id.

    Raises:
        typer.Exit(1): If no pipeline with that id is configured
    """
    pipeline = get_settings().get_pipeline(pipeline_id)
    if pipeline is None:
        console.print(f"[red]Error:[/red] Unknown pipeline '{pipeline_id}'")
        raise typer.Exit(1)
    return pipeline


# Typer requires function calls as default arguments, which triggers B008.
# Using Annotated with a centralized type alias keeps the noqa in one place.

OutputFormatOption = Annotated[
    OutputFormat,
    typer.Option(
        "--format",
        "-f",
        help="Output format",
    ),
]
"""Output format option type for CLI commands.

Usage:
    def command(output_format: OutputFormatOption = OutputFormat.TEXT):
"""

PipelineArgument = Annotated[
    str,
    typer.Argument(
        help="Pipeline id as configured in PIPELINES",
    ),
]
"""Required positional pipeline id argument."""
