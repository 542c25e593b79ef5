"""Result objects for sync operations.

Structured results provide consistent interfaces for monitoring,
error handling, and CLI output.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SyncResult:
    """Result of one sync call for one pipeline."""

    pipeline_id: str
    """Pipeline that was synced."""

    updated: int = 0
    """In-progress builds re-fetched and saved."""

    skipped_not_found: int = 0
    """In-progress builds the provider no longer reports."""

    created: int = 0
    """New builds discovered and saved."""

    attributed_commits: int = 0
    """Commits attributed to the new builds."""

    pages_fetched: int = 0
    """Run-listing pages requested during discovery."""

    stopped_early: bool = False
    """True if discovery was cancelled cooperatively."""

    created_numbers: list[int] = field(default_factory=list)
    """Build numbers created, in save order."""

    duration_seconds: float = 0.0
    """Wall time of the sync call."""

    @property
    def total_saved(self) -> int:
        """Builds written to the store by this sync."""
        return self.updated + self.created

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "pipeline_id": self.pipeline_id,
            "updated": self.updated,
            "skipped_not_found": self.skipped_not_found,
            "created": self.created,
            "attributed_commits": self.attributed_commits,
            "pages_fetched": self.pages_fetched,
            "stopped_early": self.stopped_early,
            "created_numbers": list(self.created_numbers),
            "duration_seconds": round(self.duration_seconds, 2),
        }
