"""Build, Stage and Commit schemas."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field

from .enums import BuildStatus


class Stage(BaseModel):
    """A named sub-phase of a build with its own status and timing."""

    name: str = Field(description="Stage name")
    status: BuildStatus = Field(description="Stage result status")
    start_time_millis: int = Field(description="Stage start (epoch millis)")
    completed_time_millis: int = Field(description="Stage end (epoch millis)")

    @property
    def duration_millis(self) -> int:
        """Elapsed stage time in milliseconds."""
        return self.completed_time_millis - self.start_time_millis


class Commit(BaseModel):
    """A commit attributed to exactly one build."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Commit SHA or provider-native id")
    timestamp: int = Field(description="Commit time reported by the provider (epoch millis)")


class BuildRecord(BaseModel):
    """Full state of one provider run, as saved to the build store.

    Saves are full-record upserts keyed by (pipeline_id, number).
    """

    model_config = ConfigDict(from_attributes=True)

    pipeline_id: str
    number: int = Field(description="Provider-native build number (unique per pipeline)")
    name: str
    branch: str | None = None
    url: str
    result: BuildStatus
    timestamp: int = Field(description="Build start (epoch millis)")
    duration: int = Field(default=0, description="Build duration (millis)")
    head_commit_id: str | None = None
    head_commit_timestamp: int | None = Field(
        default=None,
        description="Timestamp of the commit the run was triggered against (epoch millis)",
    )
    stages: list[Stage] = Field(default_factory=list)
    change_sets: list[Commit] = Field(default_factory=list)

    @classmethod
    def from_orm(cls, obj: Any) -> Self:
        """Create a record from a Build ORM row."""
        return cls.model_validate(obj)

    def with_change_sets(self, commits: list[Commit]) -> "BuildRecord":
        """Return a copy carrying the given attributed commits."""
        return self.model_copy(update={"change_sets": list(commits)})

    def to_orm_fields(self) -> dict[str, Any]:
        """Column values for the Build ORM model (JSON columns as plain dicts)."""
        data = self.model_dump(mode="json", exclude={"result"})
        data["result"] = self.result
        return data
