"""In-memory ProviderClient for sync tests.

Pages, single runs and branch commits are served from plain data. Every
request is recorded so tests can assert exactly what was fetched.
"""

from typing import Any

from ci_build_sync.schemas import Commit, GitHubWorkflowRun, Pipeline
from tests.factories import make_github_run


def run(run_id: int, **overrides: Any) -> GitHubWorkflowRun:
    """A parsed workflow run built from make_github_run."""
    return GitHubWorkflowRun.model_validate(make_github_run(run_id, **overrides))


class FakeProviderClient:
    """ProviderClient serving canned pages, runs and commits.

    Attributes:
        pages: Run pages in provider order; page_index N serves pages[N-1],
               pages past the end are empty
        runs: Single runs by build number; missing numbers are "not found"
        commits: Commits per branch, in any order
        page_errors: Exceptions raised for specific page indexes
        run_errors: Exceptions raised for specific build numbers
        commit_error: Exception raised by every commit fetch
        verify_error: Exception raised by verify_reachable
    """

    def __init__(
        self,
        pages: list[list[GitHubWorkflowRun]] | None = None,
        runs: dict[int, GitHubWorkflowRun] | None = None,
        commits: dict[str, list[Commit]] | None = None,
    ) -> None:
        self.pages = pages or []
        self.runs = runs or {}
        self.commits = commits or {}
        self.page_errors: dict[int, Exception] = {}
        self.run_errors: dict[int, Exception] = {}
        self.commit_error: Exception | None = None
        self.verify_error: Exception | None = None

        self.page_requests: list[tuple[int, int]] = []
        self.run_requests: list[int] = []
        self.commit_requests: list[tuple[str, int | None, int]] = []
        self.verify_requests: list[str] = []

    async def fetch_runs_page(
        self,
        pipeline: Pipeline,
        page_size: int,
        page_index: int,
    ) -> list[GitHubWorkflowRun]:
        self.page_requests.append((page_size, page_index))
        if page_index in self.page_errors:
            raise self.page_errors[page_index]
        if page_index > len(self.pages):
            return []
        return list(self.pages[page_index - 1])

    async def fetch_single_run(
        self,
        pipeline: Pipeline,
        build_number: int,
    ) -> GitHubWorkflowRun | None:
        self.run_requests.append(build_number)
        if build_number in self.run_errors:
            raise self.run_errors[build_number]
        return self.runs.get(build_number)

    async def fetch_commits(
        self,
        pipeline: Pipeline,
        branch: str,
        since: int | None,
        until: int,
    ) -> list[Commit]:
        self.commit_requests.append((branch, since, until))
        if self.commit_error is not None:
            raise self.commit_error
        selected = [
            c
            for c in self.commits.get(branch, [])
            if (since is None or c.timestamp > since) and c.timestamp <= until
        ]
        return sorted(selected, key=lambda c: (c.timestamp, c.id))

    async def verify_reachable(self, pipeline: Pipeline) -> None:
        self.verify_requests.append(pipeline.id)
        if self.verify_error is not None:
            raise self.verify_error
