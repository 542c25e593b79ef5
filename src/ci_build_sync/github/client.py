"""Async GitHub Actions API client using githubkit.

This module provides the GitHub Actions implementation of ProviderClient:
workflow run pages, single runs and branch commits, with the 404-versus-
everything-else error classification applied identically to every call.
"""

from __future__ import annotations

from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import Any

from githubkit import GitHub
from githubkit.exception import RequestError, RequestFailed, RequestTimeout

from ci_build_sync.config import get_settings
from ci_build_sync.logging import get_logger
from ci_build_sync.schemas.build import Commit
from ci_build_sync.schemas.github_api import GitHubCommit, GitHubWorkflowRun
from ci_build_sync.schemas.pipeline import Pipeline

from .exceptions import ProviderAuthenticationError, ProviderUnavailableError

logger = get_logger(__name__)


def _from_epoch_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=UTC)


class GitHubActionsClient:
    """Async GitHub Actions client for build and commit retrieval.

    One instance can serve many pipelines: a githubkit client is created
    lazily per (API base URL, credential) pair.

    Usage:
        async with GitHubActionsClient() as client:
            runs = await client.fetch_runs_page(pipeline, page_size=100, page_index=1)
            for run in runs:
                print(run.id, run.status)
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        commits_page_size: int | None = None,
        verify_page_size: int | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            timeout: HTTP transport timeout in seconds (defaults to settings)
            commits_page_size: Commits per page when listing branch commits
            verify_page_size: Runs requested by verify_reachable
        """
        sync_config = get_settings().sync
        self._timeout = timeout or sync_config.request_timeout_seconds
        self._commits_page_size = commits_page_size or sync_config.commits_page_size
        self._verify_page_size = verify_page_size or sync_config.verify_page_size
        self._clients: dict[tuple[str, str], GitHub[Any]] = {}

    def _github(self, pipeline: Pipeline) -> GitHub[Any]:
        """Get or create the githubkit client for a pipeline.

        Raises:
            ProviderAuthenticationError: If neither the pipeline nor settings
                provide a token.
        """
        token = pipeline.credential or get_settings().github_token
        if not token:
            raise ProviderAuthenticationError(
                f"No credential for pipeline '{pipeline.id}'. "
                "Set a pipeline credential or the GITHUB_TOKEN environment variable."
            )
        key = (pipeline.api_base_url, token)
        if key not in self._clients:
            # Retries belong to the caller's next scheduled sync
            self._clients[key] = GitHub(
                token,
                base_url=pipeline.api_base_url,
                timeout=self._timeout,
                auto_retry=False,
            )
        return self._clients[key]

    async def close(self) -> None:
        """Drop cached githubkit clients."""
        self._clients.clear()

    async def __aenter__(self) -> GitHubActionsClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Workflow Runs
    # -------------------------------------------------------------------------
    async def fetch_runs_page(
        self,
        pipeline: Pipeline,
        page_size: int,
        page_index: int,
    ) -> list[GitHubWorkflowRun]:
        """Fetch one page of workflow runs, most recent first.

        Args:
            pipeline: Pipeline to query
            page_size: Runs per page (max 100)
            page_index: 1-based page number

        Returns:
            Runs on the page; empty when there are no more pages or on 404
        """
        owner, repo = pipeline.owner_and_repo
        endpoint = (
            f"GET /repos/{owner}/{repo}/actions/runs?per_page={page_size}&page={page_index}"
        )
        resp = await self._request(
            endpoint,
            self._github(pipeline).rest.actions.async_list_workflow_runs_for_repo(
                owner,
                repo,
                per_page=page_size,
                page=page_index,
            ),
        )
        if resp is None:
            return []

        run_data: Any
        return [
            GitHubWorkflowRun.model_validate(run_data.model_dump())
            for run_data in resp.parsed_data.workflow_runs
        ]

    async def fetch_single_run(
        self,
        pipeline: Pipeline,
        build_number: int,
    ) -> GitHubWorkflowRun | None:
        """Fetch a single workflow run.

        Args:
            pipeline: Pipeline to query
            build_number: Run id

        Returns:
            The run, or None if the provider reports it not found
        """
        owner, repo = pipeline.owner_and_repo
        endpoint = f"GET /repos/{owner}/{repo}/actions/runs/{build_number}"
        resp = await self._request(
            endpoint,
            self._github(pipeline).rest.actions.async_get_workflow_run(
                owner,
                repo,
                build_number,
            ),
        )
        if resp is None:
            return None
        return GitHubWorkflowRun.model_validate(resp.parsed_data.model_dump())

    async def verify_reachable(self, pipeline: Pipeline) -> None:
        """Check the pipeline's run listing responds with a 2xx.

        Unlike the fetch operations, a 404 here is a failure: it means the
        repository or its Actions API is not reachable with this credential.

        Raises:
            ProviderUnavailableError: On any non-2xx status or transport failure
        """
        owner, repo = pipeline.owner_and_repo
        endpoint = f"GET /repos/{owner}/{repo}/actions/runs?per_page={self._verify_page_size}"
        try:
            await self._github(pipeline).rest.actions.async_list_workflow_runs_for_repo(
                owner,
                repo,
                per_page=self._verify_page_size,
            )
        except RequestFailed as e:
            raise self._handle_error(e, endpoint) from e
        except (RequestError, RequestTimeout) as e:
            raise self._transport_error(e, endpoint) from e
        logger.debug("Verified {} for pipeline {}", endpoint, pipeline.id)

    # -------------------------------------------------------------------------
    # Commits
    # -------------------------------------------------------------------------
    async def fetch_commits(
        self,
        pipeline: Pipeline,
        branch: str,
        since: int | None,
        until: int,
    ) -> list[Commit]:
        """Fetch commits pushed to a branch inside (since, until].

        Pages are requested one at a time until an empty page (or a 404).
        The API's since filter is inclusive, so the exclusive lower bound is
        re-applied client-side.

        Args:
            pipeline: Pipeline to query
            branch: Branch name (sent as the sha parameter)
            since: Exclusive lower bound (epoch millis), None for unbounded
            until: Inclusive upper bound (epoch millis)

        Returns:
            Commits sorted ascending by timestamp, de-duplicated by id
        """
        owner, repo = pipeline.owner_and_repo
        params: dict[str, Any] = {
            "sha": branch,
            "until": _from_epoch_millis(until),
            "per_page": self._commits_page_size,
        }
        if since is not None:
            params["since"] = _from_epoch_millis(since)

        commits: dict[str, Commit] = {}
        page_index = 1
        while True:
            endpoint = (
                f"GET /repos/{owner}/{repo}/commits?sha={branch}"
                f"&per_page={self._commits_page_size}&page={page_index}"
            )
            resp = await self._request(
                endpoint,
                self._github(pipeline).rest.repos.async_list_commits(
                    owner,
                    repo,
                    page=page_index,
                    **params,
                ),
            )
            if resp is None or not resp.parsed_data:
                break

            commit_data: Any
            for commit_data in resp.parsed_data:
                commit = GitHubCommit.model_validate(commit_data.model_dump()).to_commit()
                if commit is None:
                    logger.warning("Commit {} on {} has no date, ignoring", commit_data.sha, branch)
                    continue
                if since is not None and commit.timestamp <= since:
                    continue
                if commit.timestamp > until:
                    continue
                commits[commit.id] = commit
            page_index += 1

        return sorted(commits.values(), key=lambda c: (c.timestamp, c.id))

    # -------------------------------------------------------------------------
    # Error Handling
    # -------------------------------------------------------------------------
    async def _request(self, endpoint: str, call: Awaitable[Any]) -> Any | None:
        """Await a githubkit call, mapping 404 to None and all else to fatal errors."""
        try:
            return await call
        except RequestFailed as e:
            if e.response.status_code == 404:
                logger.debug("{} returned 404, treating as no data", endpoint)
                return None
            raise self._handle_error(e, endpoint) from e
        except (RequestError, RequestTimeout) as e:
            raise self._transport_error(e, endpoint) from e

    def _handle_error(self, error: RequestFailed, endpoint: str) -> ProviderUnavailableError:
        """Convert a githubkit failure into a fatal provider error."""
        status = error.response.status_code

        if status == 401:
            message = "Invalid GitHub credential"
        elif status == 403 and error.response.headers.get("x-ratelimit-remaining") == "0":
            reset_ts = int(error.response.headers.get("x-ratelimit-reset", "0"))
            reset_at = datetime.fromtimestamp(reset_ts, tz=UTC) if reset_ts else None
            message = f"GitHub rate limit exceeded (resets at {reset_at})"
        elif status == 404:
            message = "Resource not found"
        else:
            message = f"GitHub API error ({status})"

        logger.error("{} failed with status {}", endpoint, status)
        return ProviderUnavailableError(
            f"{message}: {endpoint}",
            status_code=status,
            endpoint=endpoint,
        )

    def _transport_error(self, error: Exception, endpoint: str) -> ProviderUnavailableError:
        logger.error("{} failed before a response arrived: {}", endpoint, error)
        return ProviderUnavailableError(
            f"Transport failure: {endpoint}: {error}",
            status_code=None,
            endpoint=endpoint,
        )
