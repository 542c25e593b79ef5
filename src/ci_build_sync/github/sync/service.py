"""Build Sync Service - incremental build synchronization for one pipeline.

A sync call runs four stages strictly in order:
1. Re-fetch builds stored as IN_PROGRESS and save their new state
2. Page through the provider's run listing down to the high-water mark
3. Map new runs to builds and attribute branch commits to them
4. Save the new builds in ascending build-number order

Every stage awaits one provider request at a time. A provider 404 is
absorbed inside the client; any other provider failure aborts the sync.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from ci_build_sync.config import get_settings
from ci_build_sync.github.exceptions import AttributionGapError, ProviderError
from ci_build_sync.logging import bind_build, bind_pipeline
from ci_build_sync.schemas.build import BuildRecord

from .attribution import CommitAttributor
from .progress import SyncProgress
from .results import SyncResult

if TYPE_CHECKING:
    from ci_build_sync.db.repositories import BuildRepository
    from ci_build_sync.github.provider import ProviderClient, ProviderRun
    from ci_build_sync.schemas.build import Commit
    from ci_build_sync.schemas.pipeline import Pipeline

    from .commit_manager import CommitManager
    from .progress import ProgressSink

StopCheck = Callable[[], bool]


class BuildSyncService:
    """Keep a pipeline's stored builds consistent with its CI provider.

    Usage:
        async with get_session() as session:
            repository = BuildRepository(session)
            commit_manager = CommitManager(session)
            service = BuildSyncService(client, repository, commit_manager=commit_manager)
            result = await service.sync(pipeline, LoggingProgressSink())
            await commit_manager.finalize()
    """

    def __init__(
        self,
        client: ProviderClient,
        build_repository: BuildRepository,
        attributor: CommitAttributor | None = None,
        commit_manager: CommitManager | None = None,
        page_size: int | None = None,
    ) -> None:
        """Initialize the sync service.

        Args:
            client: Provider client for the pipeline's CI backend
            build_repository: Build store
            attributor: Commit attributor (defaults to one on the same client/store)
            commit_manager: Optional CommitManager; when given, pending saves
                            are committed before a fatal error propagates
            page_size: Runs per discovery page (defaults to settings)
        """
        self._client = client
        self._build_repository = build_repository
        self._attributor = attributor or CommitAttributor(client, build_repository)
        self._commit_manager = commit_manager
        self._page_size = page_size or get_settings().sync.runs_page_size

    async def verify_pipeline(self, pipeline: Pipeline) -> None:
        """Check the provider answers for this pipeline.

        Raises:
            ProviderUnavailableError: On any non-2xx status, 404 included
        """
        await self._client.verify_reachable(pipeline)
        bind_pipeline(pipeline.id, pipeline.name).info("Pipeline {} is reachable", pipeline.id)

    async def sync(
        self,
        pipeline: Pipeline,
        sink: ProgressSink,
        should_stop: StopCheck | None = None,
    ) -> SyncResult:
        """Run one incremental sync for a pipeline.

        Args:
            pipeline: Pipeline to sync
            sink: Receives one tick per saved build
            should_stop: Optional cooperative cancellation check, consulted
                         before each discovery page

        Returns:
            SyncResult with per-stage counts

        Raises:
            ProviderError: Provider failure other than 404 (fatal)
            AttributionGapError: Invalid commit attribution window (fatal)
        """
        log = bind_pipeline(pipeline.id, pipeline.name)
        start_time = time.monotonic()
        result = SyncResult(pipeline_id=pipeline.id)

        log.info("Starting sync of {}", pipeline.id)
        try:
            await self._resolve_in_progress(pipeline, sink, result)
            new_runs = await self._discover_new_runs(pipeline, result, should_stop)
            await self._persist_new_builds(pipeline, new_runs, sink, result)
        except (ProviderError, AttributionGapError) as e:
            log.error("Sync of {} aborted: {}", pipeline.id, e)
            # Builds saved before the failure stay persisted
            if self._commit_manager:
                await self._commit_manager.finalize()
            raise

        if self._commit_manager:
            await self._commit_manager.finalize()

        result.duration_seconds = time.monotonic() - start_time
        log.info(
            "Finished sync of {}: updated={}, not_found={}, created={}, pages={} ({:.1f}s)",
            pipeline.id,
            result.updated,
            result.skipped_not_found,
            result.created,
            result.pages_fetched,
            result.duration_seconds,
        )
        return result

    # -------------------------------------------------------------------------
    # Stage 1: in-progress builds
    # -------------------------------------------------------------------------
    async def _resolve_in_progress(
        self,
        pipeline: Pipeline,
        sink: ProgressSink,
        result: SyncResult,
    ) -> None:
        in_progress = await self._build_repository.get_in_progress_builds(pipeline.id)
        total = len(in_progress)
        bind_pipeline(pipeline.id, pipeline.name).debug("Re-checking {} in-progress builds", total)

        for stored in in_progress:
            run = await self._client.fetch_single_run(pipeline, stored.number)
            if run is None:
                bind_build(pipeline.id, stored.number).warning(
                    "In-progress build #{} not found at provider, skipping", stored.number
                )
                result.skipped_not_found += 1
                continue

            previous = BuildRecord.from_orm(stored)
            record = run.to_build_record(pipeline.id).with_change_sets(previous.change_sets)
            await self._save(record)
            result.updated += 1

            bind_build(pipeline.id, stored.number).debug(
                "Build #{}: {} -> {}", stored.number, previous.result.value, record.result.value
            )
            # Ticks count saved builds; builds missing at the provider emit none
            sink.emit(SyncProgress(pipeline.id, pipeline.name, result.updated, total))

    # -------------------------------------------------------------------------
    # Stage 2: discovery
    # -------------------------------------------------------------------------
    async def _discover_new_runs(
        self,
        pipeline: Pipeline,
        result: SyncResult,
        should_stop: StopCheck | None,
    ) -> list[ProviderRun]:
        log = bind_pipeline(pipeline.id, pipeline.name)
        latest = await self._build_repository.get_latest_build(pipeline.id)
        high_water_mark = latest.number if latest is not None else None

        new_runs: dict[int, ProviderRun] = {}
        page_index = 1
        while True:
            if should_stop is not None and should_stop():
                log.info("Discovery cancelled before page {}, saving no new builds", page_index)
                result.stopped_early = True
                return []

            page = await self._client.fetch_runs_page(pipeline, self._page_size, page_index)
            result.pages_fetched += 1
            if not page:
                log.debug("Page {} is empty, discovery complete", page_index)
                break

            reached_known = False
            for run in page:
                if high_water_mark is not None and run.id <= high_water_mark:
                    reached_known = True
                    break
                new_runs.setdefault(run.id, run)

            if reached_known:
                log.debug(
                    "Page {} reached known build #{}, discovery complete",
                    page_index,
                    high_water_mark,
                )
                break
            page_index += 1

        log.info("Discovered {} new runs in {} pages", len(new_runs), result.pages_fetched)
        return [new_runs[number] for number in sorted(new_runs)]

    # -------------------------------------------------------------------------
    # Stages 3 and 4: attribution and persistence
    # -------------------------------------------------------------------------
    async def _persist_new_builds(
        self,
        pipeline: Pipeline,
        runs: list[ProviderRun],
        sink: ProgressSink,
        result: SyncResult,
    ) -> None:
        records: list[BuildRecord] = []
        for run in runs:
            if await self._build_repository.get_by_number(pipeline.id, run.id) is not None:
                bind_build(pipeline.id, run.id).debug("Build #{} already stored, skipping", run.id)
                continue
            records.append(run.to_build_record(pipeline.id))

        attribution = await self._attributor.attribute(pipeline, records)

        total = len(records)
        for index, record in enumerate(records, start=1):
            commits: list[Commit] = []
            if record.branch is not None:
                commits = attribution.get(record.branch, {}).get(record.number, [])
            record = record.with_change_sets(commits)

            await self._save(record)
            result.created += 1
            result.created_numbers.append(record.number)
            result.attributed_commits += len(commits)

            sink.emit(SyncProgress(pipeline.id, pipeline.name, index, total))

    async def _save(self, record: BuildRecord) -> None:
        await self._build_repository.save(record)
        if self._commit_manager:
            await self._commit_manager.record_save()
