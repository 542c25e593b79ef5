"""Multi-Pipeline Sync Orchestrator - sync every configured pipeline.

Runs BuildSyncService for each pipeline in turn. A fatal error in one
pipeline is recorded in its result and the remaining pipelines still sync.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ci_build_sync.github.exceptions import AttributionGapError, ProviderError
from ci_build_sync.github.provider import get_provider_client
from ci_build_sync.logging import get_logger

from .progress import NullProgressSink
from .results import SyncResult
from .service import BuildSyncService

if TYPE_CHECKING:
    from ci_build_sync.db.repositories import BuildRepository
    from ci_build_sync.github.provider import ProviderClient
    from ci_build_sync.schemas.pipeline import Pipeline

    from .commit_manager import CommitManager
    from .progress import ProgressSink

logger = get_logger(__name__)

ClientFactory = Callable[["Pipeline"], "ProviderClient"]


@dataclass
class PipelineSyncResult:
    """Result of syncing a single pipeline.

    Wraps SyncResult with pipeline context and timing.
    """

    pipeline_id: str
    """Pipeline identifier."""

    pipeline_name: str
    """Pipeline display name."""

    started_at: datetime
    """When sync started for this pipeline."""

    completed_at: datetime
    """When sync completed for this pipeline."""

    result: SyncResult | None = None
    """Sync result (None if the sync aborted)."""

    error: str | None = None
    """Fatal error message if the sync aborted."""

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def duration_seconds(self) -> float:
        """Time taken to sync this pipeline."""
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        # Spread sync result first, then override with pipeline-specific values
        return {
            **(self.result.to_dict() if self.result else {}),
            "pipeline_id": self.pipeline_id,
            "pipeline_name": self.pipeline_name,
            "success": self.success,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 2),
        }


@dataclass
class MultiPipelineSyncResult:
    """Result of syncing multiple pipelines."""

    pipeline_results: list[PipelineSyncResult] = field(default_factory=list)
    """Results for each pipeline, in sync order."""

    total_created: int = 0
    """New builds saved across all pipelines."""

    total_updated: int = 0
    """In-progress builds re-fetched and saved across all pipelines."""

    total_skipped_not_found: int = 0
    """In-progress builds no longer reported by their provider."""

    duration_seconds: float = 0.0
    """Total time taken for all syncs."""

    @property
    def pipelines_succeeded(self) -> int:
        return sum(1 for r in self.pipeline_results if r.success)

    @property
    def pipelines_failed(self) -> int:
        return sum(1 for r in self.pipeline_results if not r.success)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "summary": {
                "total_pipelines": len(self.pipeline_results),
                "pipelines_succeeded": self.pipelines_succeeded,
                "pipelines_failed": self.pipelines_failed,
                "total_created": self.total_created,
                "total_updated": self.total_updated,
                "total_skipped_not_found": self.total_skipped_not_found,
                "duration_seconds": round(self.duration_seconds, 2),
            },
            "pipelines": [r.to_dict() for r in self.pipeline_results],
        }


class MultiPipelineOrchestrator:
    """Orchestrates syncing of several pipelines, one after another.

    Usage:
        async with get_session() as session:
            orchestrator = MultiPipelineOrchestrator(
                build_repository=BuildRepository(session),
                commit_manager=CommitManager(session),
            )
            result = await orchestrator.sync_all(settings.get_pipelines())
    """

    def __init__(
        self,
        build_repository: BuildRepository,
        client_factory: ClientFactory = get_provider_client,
        commit_manager: CommitManager | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            build_repository: Build store shared by all pipelines
            client_factory: Creates the provider client for a pipeline
            commit_manager: Optional CommitManager passed to each sync
        """
        self._build_repository = build_repository
        self._client_factory = client_factory
        self._commit_manager = commit_manager

    async def sync_all(
        self,
        pipelines: list[Pipeline],
        sink: ProgressSink | None = None,
    ) -> MultiPipelineSyncResult:
        """Sync all given pipelines sequentially.

        Args:
            pipelines: Pipelines to sync
            sink: Progress sink shared by every sync (defaults to a null sink)

        Returns:
            MultiPipelineSyncResult with aggregated statistics
        """
        start_time = time.monotonic()
        result = MultiPipelineSyncResult()
        progress_sink = sink or NullProgressSink()

        for pipeline in pipelines:
            started_at = datetime.now()
            logger.info("Starting sync for {}", pipeline.id)

            try:
                service = BuildSyncService(
                    client=self._client_factory(pipeline),
                    build_repository=self._build_repository,
                    commit_manager=self._commit_manager,
                )
                sync_result = await service.sync(pipeline, progress_sink)
            except (ProviderError, AttributionGapError) as e:
                # Log error but continue with other pipelines
                logger.error("Failed to sync {}: {}", pipeline.id, e)
                result.pipeline_results.append(
                    PipelineSyncResult(
                        pipeline_id=pipeline.id,
                        pipeline_name=pipeline.name,
                        started_at=started_at,
                        completed_at=datetime.now(),
                        error=str(e),
                    )
                )
                continue

            result.pipeline_results.append(
                PipelineSyncResult(
                    pipeline_id=pipeline.id,
                    pipeline_name=pipeline.name,
                    started_at=started_at,
                    completed_at=datetime.now(),
                    result=sync_result,
                )
            )
            result.total_created += sync_result.created
            result.total_updated += sync_result.updated
            result.total_skipped_not_found += sync_result.skipped_not_found

        result.duration_seconds = time.monotonic() - start_time
        logger.info(
            "Multi-pipeline sync complete: pipelines={}, failed={}, created={}, updated={} ({:.1f}s)",
            len(result.pipeline_results),
            result.pipelines_failed,
            result.total_created,
            result.total_updated,
            result.duration_seconds,
        )
        return result
