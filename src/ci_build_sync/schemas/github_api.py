"""Pydantic schemas for parsing GitHub Actions API responses.

These schemas map directly to the GitHub REST API response structure.
See: https://docs.github.com/en/rest/actions/workflow-runs
"""

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field

from .build import BuildRecord, Commit, Stage
from .enums import BuildStatus

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Run status values GitHub reports before a run reaches "completed"
RUNNING_STATUSES = frozenset({"queued", "in_progress", "waiting", "requested", "pending"})
SUCCESS_CONCLUSIONS = frozenset({"success"})
FAILURE_CONCLUSIONS = frozenset({"failure", "timed_out"})
CANCELLED_CONCLUSIONS = frozenset({"cancelled"})


def to_epoch_millis(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - EPOCH) // timedelta(milliseconds=1)


def map_run_status(status: str | None, conclusion: str | None) -> BuildStatus:
    """Map a provider status/conclusion pair to a BuildStatus.

    Unknown conclusions map to OTHER and never raise.
    """
    normalized_status = (status or "").lower()
    normalized_conclusion = (conclusion or "").lower()

    if normalized_status in RUNNING_STATUSES:
        return BuildStatus.IN_PROGRESS
    if normalized_conclusion in SUCCESS_CONCLUSIONS:
        return BuildStatus.SUCCESS
    if normalized_conclusion in FAILURE_CONCLUSIONS:
        return BuildStatus.FAILED
    if normalized_conclusion in CANCELLED_CONCLUSIONS:
        return BuildStatus.ABORTED
    return BuildStatus.OTHER


class GitHubHeadCommit(BaseModel):
    """Head commit embedded in a workflow run."""

    id: str = Field(description="Commit SHA")
    timestamp: datetime = Field(description="Commit timestamp")


class GitHubWorkflowRun(BaseModel):
    """GitHub Actions workflow run.

    Maps to: GET /repos/{owner}/{repo}/actions/runs/{run_id}
    """

    id: int = Field(description="Run id (used as the build number)")
    name: str | None = Field(default=None, description="Workflow name")
    head_branch: str | None = Field(default=None, description="Branch the run was triggered on")
    run_number: int | None = Field(default=None, description="Sequential run number")
    status: str | None = Field(default=None, description="queued, in_progress, completed, ...")
    conclusion: str | None = Field(default=None, description="success, failure, cancelled, ...")
    url: str = Field(description="API URL of the run")
    html_url: str | None = Field(default=None, description="Web URL of the run")
    head_commit: GitHubHeadCommit | None = Field(default=None, description="Triggering commit")
    created_at: datetime = Field(description="When the run was created")
    updated_at: datetime = Field(description="Last update of the run")

    @property
    def build_status(self) -> BuildStatus:
        """Mapped build status."""
        return map_run_status(self.status, self.conclusion)

    def to_build_record(self, pipeline_id: str) -> BuildRecord:
        """
        Factory method to convert a run to a BuildRecord.

        Stages and duration stay empty while the run is in progress; a
        terminal run has a single stage named after the workflow.

        Args:
            pipeline_id: Pipeline the run belongs to

        Returns:
            BuildRecord with empty change_sets (attribution happens later)
        """
        status = self.build_status
        start = to_epoch_millis(self.created_at)
        end = to_epoch_millis(self.updated_at)
        name = self.name or str(self.id)

        stages: list[Stage] = []
        duration = 0
        if status.is_terminal:
            stages.append(
                Stage(
                    name=name,
                    status=status,
                    start_time_millis=start,
                    completed_time_millis=end,
                )
            )
            duration = max(0, end - start)

        return BuildRecord(
            pipeline_id=pipeline_id,
            number=self.id,
            name=name,
            branch=self.head_branch,
            url=self.url,
            result=status,
            timestamp=start,
            duration=duration,
            head_commit_id=self.head_commit.id if self.head_commit else None,
            head_commit_timestamp=(
                to_epoch_millis(self.head_commit.timestamp) if self.head_commit else None
            ),
            stages=stages,
        )


class GitHubGitActor(BaseModel):
    """Git author/committer info (from git, not a GitHub user)."""

    name: str | None = Field(default=None, description="Actor name")
    email: str | None = Field(default=None, description="Actor email")
    date: datetime | None = Field(default=None, description="Commit date")


class GitHubCommitDetail(BaseModel):
    """Nested git commit object."""

    author: GitHubGitActor | None = Field(default=None, description="Author info")
    committer: GitHubGitActor | None = Field(default=None, description="Committer info")
    message: str = Field(default="", description="Commit message")


class GitHubCommit(BaseModel):
    """GitHub commit object from the commits endpoint."""

    sha: str = Field(description="Commit SHA")
    commit: GitHubCommitDetail = Field(description="Commit details")

    @property
    def committed_at(self) -> datetime | None:
        """Committer date, falling back to the author date."""
        if self.commit.committer and self.commit.committer.date:
            return self.commit.committer.date
        if self.commit.author and self.commit.author.date:
            return self.commit.author.date
        return None

    def to_commit(self) -> Commit | None:
        """Convert to a Commit (None when the provider reported no date)."""
        committed_at = self.committed_at
        if committed_at is None:
            return None
        return Commit(id=self.sha, timestamp=to_epoch_millis(committed_at))
