"""Repository for Build model: the build store consumed by the sync engine."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_sync.db.models import Build
from ci_build_sync.schemas.enums import BuildStatus

from .base import BaseRepository

if TYPE_CHECKING:
    from ci_build_sync.schemas.build import BuildRecord


class BuildRepository(BaseRepository[Build]):
    """Repository for Build entities.

    All state is scoped per pipeline via pipeline_id. Saves are full-record
    upserts keyed by (pipeline_id, number).
    """

    def __init__(
        self,
        session: AsyncSession,
        write_lock: asyncio.Lock | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session
            write_lock: Optional lock to serialize write operations
        """
        super().__init__(session, Build, write_lock)

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    async def get_by_number(self, pipeline_id: str, number: int) -> Build | None:
        """Get a build by pipeline and build number."""
        stmt = select(Build).where(
            Build.pipeline_id == pipeline_id,
            Build.number == number,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_latest_build(self, pipeline_id: str) -> Build | None:
        """Get the build with the highest build number (the high-water mark).

        Args:
            pipeline_id: Pipeline identifier

        Returns:
            Latest build or None on the first sync
        """
        stmt = (
            select(Build)
            .where(Build.pipeline_id == pipeline_id)
            .order_by(Build.number.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_in_progress_builds(self, pipeline_id: str) -> list[Build]:
        """Get builds still IN_PROGRESS, ordered by build number."""
        stmt = (
            select(Build)
            .where(
                Build.pipeline_id == pipeline_id,
                Build.result == BuildStatus.IN_PROGRESS,
            )
            .order_by(Build.number.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_previous_build(
        self,
        pipeline_id: str,
        branch: str,
        before_timestamp: int,
    ) -> Build | None:
        """Get the build on a branch with the nearest earlier head-commit timestamp.

        Args:
            pipeline_id: Pipeline identifier
            branch: Branch name
            before_timestamp: Exclusive upper bound (epoch millis)

        Returns:
            Previous build or None if the branch has no earlier build
        """
        stmt = (
            select(Build)
            .where(
                Build.pipeline_id == pipeline_id,
                Build.branch == branch,
                Build.head_commit_timestamp.is_not(None),
                Build.head_commit_timestamp < before_timestamp,
            )
            .order_by(Build.head_commit_timestamp.desc(), Build.number.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_all_builds(
        self,
        pipeline_id: str,
        limit: int | None = None,
    ) -> list[Build]:
        """Get builds of a pipeline, newest build number first."""
        stmt = (
            select(Build)
            .where(Build.pipeline_id == pipeline_id)
            .order_by(Build.number.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_pipeline(self, pipeline_id: str) -> int:
        """Count stored builds of a pipeline."""
        stmt = select(func.count()).select_from(Build).where(Build.pipeline_id == pipeline_id)
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    # -------------------------------------------------------------------------
    # Write Methods
    # -------------------------------------------------------------------------

    async def save(self, record: BuildRecord) -> tuple[Build, bool]:
        """Upsert a full build record keyed by (pipeline_id, number).

        Args:
            record: Complete build state to persist

        Returns:
            Tuple of (build, created) where created is True for an insert
        """
        fields = record.to_orm_fields()
        existing = await self.get_by_number(record.pipeline_id, record.number)

        if existing is None:
            build = Build(**fields)
            self.add(build)
            await self.flush()
            return build, True

        for key, value in fields.items():
            setattr(existing, key, value)
        await self.flush()
        return existing, False

    async def clear(self, pipeline_id: str) -> int:
        """Delete every build of a pipeline.

        Args:
            pipeline_id: Pipeline identifier

        Returns:
            Number of builds deleted
        """
        stmt = delete(Build).where(Build.pipeline_id == pipeline_id)
        if self._write_lock:
            async with self._write_lock:
                result = await self._session.execute(stmt)
        else:
            result = await self._session.execute(stmt)
        return result.rowcount or 0
