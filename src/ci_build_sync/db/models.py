"""SQLAlchemy ORM models for CI Build Sync."""

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Index, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON

from ci_build_sync.schemas.enums import BuildStatus


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# ------------------------------------------------------------------------------
# Build model
# ------------------------------------------------------------------------------
class Build(Base):
    """One provider run with its stages and attributed commits."""

    __tablename__ = "builds"

    id: Mapped[int] = mapped_column(primary_key=True)

    # --------------------------------------------------------------------------
    # Identity: (pipeline_id, number) is the save key
    # --------------------------------------------------------------------------
    pipeline_id: Mapped[str] = mapped_column(String(100))
    number: Mapped[int] = mapped_column(BigInteger)

    # --------------------------------------------------------------------------
    # Run fields (mutable only while IN_PROGRESS)
    # --------------------------------------------------------------------------
    name: Mapped[str] = mapped_column(String(500))
    branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    url: Mapped[str] = mapped_column(String(1000))
    result: Mapped[BuildStatus] = mapped_column(default=BuildStatus.IN_PROGRESS)
    timestamp: Mapped[int] = mapped_column(BigInteger)  # epoch millis
    duration: Mapped[int] = mapped_column(BigInteger, default=0)  # millis

    # --------------------------------------------------------------------------
    # Head commit (attribution window boundary)
    # --------------------------------------------------------------------------
    head_commit_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    head_commit_timestamp: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # JSON columns: [{name, status, start_time_millis, completed_time_millis}]
    stages: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    # [{id, timestamp}], set once at attribution time
    change_sets: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    # --------------------------------------------------------------------------
    # Metadata
    # --------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("pipeline_id", "number", name="uq_pipeline_build_number"),
        Index("ix_builds_pipeline_result", "pipeline_id", "result"),
        Index("ix_builds_pipeline_branch_head", "pipeline_id", "branch", "head_commit_timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<Build(id={self.id}, pipeline='{self.pipeline_id}', "
            f"number={self.number}, result={self.result.value})>"
        )

    @property
    def is_in_progress(self) -> bool:
        """Check if the build still needs re-fetching."""
        return self.result == BuildStatus.IN_PROGRESS
