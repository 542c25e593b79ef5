"""Provider capability interface shared by every CI backend.

The sync engine depends only on ProviderClient; each CI backend supplies
one concrete implementation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from ci_build_sync.schemas.enums import PipelineType

from .exceptions import UnsupportedProviderError

if TYPE_CHECKING:
    from ci_build_sync.schemas.build import BuildRecord, Commit
    from ci_build_sync.schemas.pipeline import Pipeline


class ProviderRun(Protocol):
    """A provider-native run as returned by a ProviderClient."""

    @property
    def id(self) -> int: ...

    def to_build_record(self, pipeline_id: str) -> BuildRecord: ...


class ProviderClient(Protocol):
    """Fetch operations the sync engine needs from a CI provider.

    Every fetch treats a 404 as "no data" and raises ProviderUnavailableError
    for any other failure.
    """

    async def fetch_runs_page(
        self,
        pipeline: Pipeline,
        page_size: int,
        page_index: int,
    ) -> list[ProviderRun]:
        """One page of runs, most recent first. Empty list means no more data."""
        ...

    async def fetch_single_run(self, pipeline: Pipeline, build_number: int) -> ProviderRun | None:
        """A single run, or None when the provider reports it not found."""
        ...

    async def fetch_commits(
        self,
        pipeline: Pipeline,
        branch: str,
        since: int | None,
        until: int,
    ) -> list[Commit]:
        """Commits on a branch with since < timestamp <= until, ascending by timestamp."""
        ...

    async def verify_reachable(self, pipeline: Pipeline) -> None:
        """Fetch a single-item page; any non-2xx raises ProviderUnavailableError."""
        ...


def get_provider_client(pipeline: Pipeline) -> ProviderClient:
    """Create the provider client for a pipeline's CI backend.

    Raises:
        UnsupportedProviderError: If the pipeline type has no adapter
    """
    if pipeline.type == PipelineType.GITHUB_ACTIONS:
        from .client import GitHubActionsClient

        return GitHubActionsClient()
    raise UnsupportedProviderError(f"Pipeline type not supported: {pipeline.type.value}")
