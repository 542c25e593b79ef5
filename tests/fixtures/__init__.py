"""Test fixtures for CI Build Sync."""

from .github_responses import (
    GITHUB_COMMITS_RESPONSE,
    GITHUB_RUN_COMPLETED_RESPONSE,
    GITHUB_RUN_IN_PROGRESS_RESPONSE,
)
from .provider import FakeProviderClient, run

__all__ = [
    # Mock GitHub API responses
    "GITHUB_COMMITS_RESPONSE",
    "GITHUB_RUN_COMPLETED_RESPONSE",
    "GITHUB_RUN_IN_PROGRESS_RESPONSE",
    # In-memory provider
    "FakeProviderClient",
    "run",
]
