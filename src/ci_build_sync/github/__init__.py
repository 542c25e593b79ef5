"""CI provider client module.

This module provides:
- ProviderClient: Capability interface every CI backend implements
- GitHubActionsClient: GitHub Actions implementation using githubkit
- Provider exceptions: ProviderError and its fatal subclasses
- Build sync: BuildSyncService, CommitAttributor, MultiPipelineOrchestrator
"""

from .client import GitHubActionsClient
from .exceptions import (
    AttributionGapError,
    ProviderAuthenticationError,
    ProviderError,
    ProviderUnavailableError,
    UnsupportedProviderError,
)
from .provider import ProviderClient, ProviderRun, get_provider_client
from .sync import (
    BuildSyncService,
    CommitAttributor,
    MultiPipelineOrchestrator,
    MultiPipelineSyncResult,
    SyncProgress,
    SyncResult,
)

__all__ = [
    # Clients
    "GitHubActionsClient",
    "ProviderClient",
    "ProviderRun",
    "get_provider_client",
    # Exceptions
    "AttributionGapError",
    "ProviderAuthenticationError",
    "ProviderError",
    "ProviderUnavailableError",
    "UnsupportedProviderError",
    # Sync
    "BuildSyncService",
    "CommitAttributor",
    "MultiPipelineOrchestrator",
    "MultiPipelineSyncResult",
    "SyncProgress",
    "SyncResult",
]
