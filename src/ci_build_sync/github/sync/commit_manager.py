"""Commit boundaries for build saves.

A sync saves builds one at a time. Pending saves are committed in batches
so that a fatal provider error part-way through a sync still leaves every
build saved before the failure persisted.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from ci_build_sync.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class CommitManager:
    """Track pending build saves and commit them in batches.

    Usage:
        async with get_session() as session:
            commit_manager = CommitManager(session, batch_size=25)
            service = BuildSyncService(client, BuildRepository(session),
                                       commit_manager=commit_manager)
            await service.sync(pipeline, sink)
            await commit_manager.finalize()
    """

    def __init__(
        self,
        session: AsyncSession,
        write_lock: asyncio.Lock | None = None,
        batch_size: int = 25,
    ) -> None:
        """Initialize the commit manager.

        Args:
            session: Async SQLAlchemy session to commit on
            write_lock: Optional lock shared with the repositories
            batch_size: Saves recorded before an automatic commit
        """
        self._session = session
        self._write_lock = write_lock
        self._batch_size = batch_size
        self._uncommitted_count = 0
        self._total_committed = 0

    @property
    def uncommitted_count(self) -> int:
        """Saves pending commit."""
        return self._uncommitted_count

    @property
    def total_committed(self) -> int:
        """Saves committed across all batches."""
        return self._total_committed

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def record_save(self) -> int:
        """Record one build save, committing when the batch is full.

        Returns:
            Number of saves committed (0 if the batch is not full yet)
        """
        self._uncommitted_count += 1
        if self._uncommitted_count >= self._batch_size:
            return await self.commit()
        return 0

    async def commit(self) -> int:
        """Commit pending saves.

        Returns:
            Number of saves committed (0 if nothing was pending)
        """
        if self._uncommitted_count == 0:
            return 0

        if self._write_lock:
            async with self._write_lock:
                await self._session.commit()
        else:
            await self._session.commit()

        committed = self._uncommitted_count
        self._total_committed += committed
        self._uncommitted_count = 0

        logger.debug("Committed {} build saves (total: {})", committed, self._total_committed)
        return committed

    async def finalize(self) -> int:
        """Commit whatever is still pending."""
        return await self.commit()
