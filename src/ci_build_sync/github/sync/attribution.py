"""Commit attribution - assign each branch commit to the build that consumed it.

For one branch, a build "produced" every commit pushed after the previous
build's head commit and up to (and including) its own head commit. The
previous build is the later of the preceding build in the batch and the
nearest build already in the store, so commits that fall inside a stored
build's window stay with that build. Commits are fetched once per branch
and split by these windows.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from ci_build_sync.github.exceptions import AttributionGapError
from ci_build_sync.logging import bind_pipeline

if TYPE_CHECKING:
    from ci_build_sync.db.repositories import BuildRepository
    from ci_build_sync.github.provider import ProviderClient
    from ci_build_sync.schemas.build import BuildRecord, Commit
    from ci_build_sync.schemas.pipeline import Pipeline

Attribution = dict[str, dict[int, list["Commit"]]]


class CommitAttributor:
    """Partition branch commits among a batch of new builds.

    Usage:
        attributor = CommitAttributor(client, BuildRepository(session))
        attribution = await attributor.attribute(pipeline, new_builds)
        commits = attribution["main"][build.number]
    """

    def __init__(self, client: ProviderClient, build_repository: BuildRepository) -> None:
        self._client = client
        self._build_repository = build_repository

    async def attribute(self, pipeline: Pipeline, builds: list[BuildRecord]) -> Attribution:
        """Attribute commits to builds, grouped by branch.

        Args:
            pipeline: Pipeline the builds belong to
            builds: Newly discovered builds (not yet persisted)

        Returns:
            Mapping branch -> (build number -> commits ascending by timestamp).
            Every attributable build has an entry, possibly empty.

        Raises:
            AttributionGapError: If a window starts after its build's head commit,
                or the provider returns commits outside the requested window
            ProviderUnavailableError: If a commit fetch fails
        """
        by_branch: dict[str, list[BuildRecord]] = defaultdict(list)
        for build in builds:
            if build.branch is None or build.head_commit_timestamp is None:
                continue
            if not pipeline.tracks_branch(build.branch):
                continue
            by_branch[build.branch].append(build)

        attribution: Attribution = {}
        for branch in sorted(by_branch):
            attribution[branch] = await self._attribute_branch(
                pipeline, branch, by_branch[branch]
            )
        return attribution

    async def _attribute_branch(
        self,
        pipeline: Pipeline,
        branch: str,
        builds: list[BuildRecord],
    ) -> dict[int, list[Commit]]:
        log = bind_pipeline(pipeline.id, pipeline.name)
        ordered = sorted(builds, key=lambda b: (b.head_commit_timestamp or 0, b.number))

        windows: list[tuple[BuildRecord, int | None]] = []
        preceding_ts: int | None = None
        for build in ordered:
            lower = await self._window_start(pipeline, branch, build, preceding_ts)
            windows.append((build, lower))
            preceding_ts = build.head_commit_timestamp or 0

        since = windows[0][1]
        until = ordered[-1].head_commit_timestamp or 0
        commits = await self._client.fetch_commits(pipeline, branch, since, until)
        log.debug(
            "Fetched {} commits on {} for {} builds in ({}, {}]",
            len(commits),
            branch,
            len(ordered),
            since,
            until,
        )

        outside = [
            c
            for c in commits
            if (since is not None and c.timestamp <= since) or c.timestamp > until
        ]
        if outside:
            raise AttributionGapError(
                f"Provider returned {len(outside)} commits on {branch} outside the "
                f"requested window ({since}, {until}]",
                since=since,
                until=until,
            )

        result: dict[int, list[Commit]] = {build.number: [] for build in ordered}
        pending = sorted(commits, key=lambda c: (c.timestamp, c.id))
        position = 0
        owned_elsewhere = 0
        for build, lower in windows:
            head_ts = build.head_commit_timestamp or 0
            if lower is not None and head_ts == lower:
                log.warning(
                    "Build #{} on {} shares head commit time {} with an earlier build, "
                    "attributing no commits to it",
                    build.number,
                    branch,
                    head_ts,
                )
                continue
            while position < len(pending) and pending[position].timestamp <= head_ts:
                commit = pending[position]
                position += 1
                if lower is None or commit.timestamp > lower:
                    result[build.number].append(commit)
                else:
                    owned_elsewhere += 1

        if owned_elsewhere:
            log.debug("{} commits on {} belong to already stored builds", owned_elsewhere, branch)
        return result

    async def _window_start(
        self,
        pipeline: Pipeline,
        branch: str,
        build: BuildRecord,
        preceding_ts: int | None,
    ) -> int | None:
        """Exclusive lower bound of a build's window.

        The later of the preceding batch build's head commit time and the
        nearest stored build at or before this build's head commit time.

        Raises:
            AttributionGapError: If the bound lies after the build's head commit
        """
        head_ts = build.head_commit_timestamp or 0
        # At or before: a stored build with the same head commit already owns the window
        stored = await self._build_repository.get_previous_build(pipeline.id, branch, head_ts + 1)
        candidates = [preceding_ts]
        if stored is not None:
            candidates.append(stored.head_commit_timestamp)
        bounds = [ts for ts in candidates if ts is not None]
        lower = max(bounds) if bounds else None

        if lower is not None and lower > head_ts:
            raise AttributionGapError(
                f"Window of build #{build.number} on {branch} starts at {lower}, "
                f"after its head commit time {head_ts}",
                since=lower,
                until=head_ts,
            )
        return lower
