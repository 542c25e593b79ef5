"""Pydantic schemas for CI Build Sync.

This module provides the build/commit domain records, the pipeline value
object and the provider API response models.
"""

from .build import BuildRecord, Commit, Stage
from .enums import BuildStatus, PipelineType
from .github_api import (
    GitHubCommit,
    GitHubCommitDetail,
    GitHubGitActor,
    GitHubHeadCommit,
    GitHubWorkflowRun,
    map_run_status,
    to_epoch_millis,
)
from .pipeline import Pipeline, api_base_url, parse_repo_url

__all__ = [
    # Build records
    "BuildRecord",
    "Commit",
    "Stage",
    # Enums
    "BuildStatus",
    "PipelineType",
    # GitHub API
    "GitHubCommit",
    "GitHubCommitDetail",
    "GitHubGitActor",
    "GitHubHeadCommit",
    "GitHubWorkflowRun",
    "map_run_status",
    "to_epoch_millis",
    # Pipeline
    "Pipeline",
    "api_base_url",
    "parse_repo_url",
]
