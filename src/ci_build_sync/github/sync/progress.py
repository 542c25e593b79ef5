"""Progress reporting for sync operations.

A sync emits one SyncProgress per saved build, synchronously and in
processing order. Sinks must not buffer or coalesce ticks.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from ci_build_sync.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SyncProgress:
    """A single progress tick of a sync call."""

    pipeline_id: str
    pipeline_name: str
    progress: int
    total: int

    @property
    def progress_percent(self) -> float:
        """Completion percentage (0-100)."""
        if self.total == 0:
            return 100.0
        return (self.progress / self.total) * 100


class ProgressSink(Protocol):
    """Receives progress ticks during a sync call."""

    def emit(self, progress: SyncProgress) -> None: ...


ProgressCallback = Callable[[SyncProgress], None]


class CallbackProgressSink:
    """Forward every tick to a callable.

    Usage:
        sink = CallbackProgressSink(lambda p: print(p.progress, p.total))
    """

    def __init__(self, callback: ProgressCallback) -> None:
        self._callback = callback

    def emit(self, progress: SyncProgress) -> None:
        self._callback(progress)


class LoggingProgressSink:
    """Log every tick at INFO level."""

    def emit(self, progress: SyncProgress) -> None:
        logger.info(
            "{} ({}): {}/{} ({:.0f}%)",
            progress.pipeline_name,
            progress.pipeline_id,
            progress.progress,
            progress.total,
            progress.progress_percent,
        )


class NullProgressSink:
    """Discard all ticks."""

    def emit(self, progress: SyncProgress) -> None:
        pass
