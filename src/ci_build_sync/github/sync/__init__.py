"""Build sync module - CI provider to build store synchronization.

Services:
- BuildSyncService: Incremental sync of one pipeline
- CommitAttributor: Partition branch commits among builds
- MultiPipelineOrchestrator: Sequential sync of several pipelines
- CommitManager: Batch commit boundaries for database resilience
"""

from .attribution import Attribution, CommitAttributor
from .commit_manager import CommitManager
from .multi_pipeline_orchestrator import (
    MultiPipelineOrchestrator,
    MultiPipelineSyncResult,
    PipelineSyncResult,
)
from .progress import (
    CallbackProgressSink,
    LoggingProgressSink,
    NullProgressSink,
    ProgressSink,
    SyncProgress,
)
from .results import SyncResult
from .service import BuildSyncService

__all__ = [
    # Single pipeline sync
    "BuildSyncService",
    "SyncResult",
    # Attribution
    "Attribution",
    "CommitAttributor",
    # Multi-pipeline orchestration
    "MultiPipelineOrchestrator",
    "MultiPipelineSyncResult",
    "PipelineSyncResult",
    # Progress reporting
    "CallbackProgressSink",
    "LoggingProgressSink",
    "NullProgressSink",
    "ProgressSink",
    "SyncProgress",
    # Commit management
    "CommitManager",
]
