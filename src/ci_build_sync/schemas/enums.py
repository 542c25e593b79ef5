"""Enums shared by schemas and ORM models."""

from enum import Enum


class BuildStatus(str, Enum):
    """Result status of a build."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    ABORTED = "ABORTED"
    IN_PROGRESS = "IN_PROGRESS"
    OTHER = "OTHER"

    @property
    def is_terminal(self) -> bool:
        """Terminal builds are never re-fetched from the provider."""
        return self is not BuildStatus.IN_PROGRESS


class PipelineType(str, Enum):
    """CI provider backing a pipeline."""

    GITHUB_ACTIONS = "GITHUB_ACTIONS"
    JENKINS = "JENKINS"
