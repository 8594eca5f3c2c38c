"""
Processing Queue Repository

Queue state transitions. Claims are atomic conditional updates
(UPDATE ... WHERE status = 'pending'), so two concurrent runs can never
both move the same entry to 'processing'.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, update, and_, func

from constants import QueueStatus
from database.models import ProcessingQueueEntry
from .base import BaseRepository


class QueueRepository(BaseRepository[ProcessingQueueEntry]):
    """Repository for processing queue operations."""

    model = ProcessingQueueEntry

    # ============================================
    # ENQUEUE
    # ============================================

    async def get_by_announcement(self, announcement_id: str) -> Optional[ProcessingQueueEntry]:
        stmt = select(ProcessingQueueEntry).where(
            ProcessingQueueEntry.announcement_id == announcement_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def enqueue(self, announcement_id: str) -> str:
        """
        Make sure the announcement has a queue entry awaiting processing.

        - no entry: create one as pending
        - failed entry: reset to pending, retry_count kept
        - pending / processing / completed: untouched

        Returns:
            "created", "requeued" or "skipped"
        """
        entry = await self.get_by_announcement(announcement_id)
        now = self.now()

        if entry is None:
            await self.add(ProcessingQueueEntry(
                id=self.generate_id(),
                announcement_id=announcement_id,
                status=QueueStatus.PENDING.value,
                scheduled_at=now,
                retry_count=0,
            ))
            return "created"

        if entry.status == QueueStatus.FAILED.value:
            entry.status = QueueStatus.PENDING.value
            entry.scheduled_at = now
            entry.claimed_at = None
            await self.session.flush()
            return "requeued"

        return "skipped"

    # ============================================
    # CLAIM / LEASE
    # ============================================

    async def select_pending(self, limit: int) -> Sequence[ProcessingQueueEntry]:
        """Pending entries, oldest scheduled first."""
        stmt = (
            select(ProcessingQueueEntry)
            .where(ProcessingQueueEntry.status == QueueStatus.PENDING.value)
            .order_by(ProcessingQueueEntry.scheduled_at.asc(), ProcessingQueueEntry.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def claim(self, entry_id: str) -> bool:
        """
        Atomically move one entry pending -> processing.

        Returns:
            True if this call claimed it, False if another run got there first
        """
        stmt = (
            update(ProcessingQueueEntry)
            .where(
                and_(
                    ProcessingQueueEntry.id == entry_id,
                    ProcessingQueueEntry.status == QueueStatus.PENDING.value,
                )
            )
            .values(
                status=QueueStatus.PROCESSING.value,
                claimed_at=self.now(),
                error_message=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def claim_pending(self, limit: int) -> List[ProcessingQueueEntry]:
        """Select up to `limit` pending entries and claim each; returns the ones won."""
        candidates = await self.select_pending(limit)
        claimed_ids = [entry.id for entry in candidates if await self.claim(entry.id)]
        if not claimed_ids:
            return []

        # Reload claimed rows so callers see the post-update state
        stmt = (
            select(ProcessingQueueEntry)
            .where(ProcessingQueueEntry.id.in_(claimed_ids))
            .order_by(ProcessingQueueEntry.scheduled_at.asc(), ProcessingQueueEntry.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def release_stale(self, older_than: timedelta) -> int:
        """Return 'processing' entries whose claim is older than the lease to pending."""
        cutoff = self.now() - older_than
        stmt = (
            update(ProcessingQueueEntry)
            .where(
                and_(
                    ProcessingQueueEntry.status == QueueStatus.PROCESSING.value,
                    ProcessingQueueEntry.claimed_at < cutoff,
                )
            )
            .values(status=QueueStatus.PENDING.value, claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    # ============================================
    # TERMINAL STATES
    # ============================================

    async def mark_completed(self, entry_id: str, processed_at: Optional[datetime] = None) -> None:
        stmt = (
            update(ProcessingQueueEntry)
            .where(ProcessingQueueEntry.id == entry_id)
            .values(
                status=QueueStatus.COMPLETED.value,
                processed_at=processed_at or self.now(),
                error_message=None,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def mark_failed(self, entry_id: str, error: str) -> None:
        """Mark failed, record the error and bump retry_count."""
        stmt = (
            update(ProcessingQueueEntry)
            .where(ProcessingQueueEntry.id == entry_id)
            .values(
                status=QueueStatus.FAILED.value,
                processed_at=self.now(),
                error_message=error[:1000],
                retry_count=ProcessingQueueEntry.retry_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def requeue_failed(self, max_retries: int) -> int:
        """Reset failed entries with retry_count below `max_retries` to pending."""
        stmt = (
            update(ProcessingQueueEntry)
            .where(
                and_(
                    ProcessingQueueEntry.status == QueueStatus.FAILED.value,
                    ProcessingQueueEntry.retry_count < max_retries,
                )
            )
            .values(status=QueueStatus.PENDING.value, scheduled_at=self.now(), claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    # ============================================
    # STATS
    # ============================================

    async def count_by_status(self) -> Dict[str, int]:
        stmt = select(
            ProcessingQueueEntry.status,
            func.count(ProcessingQueueEntry.id),
        ).group_by(ProcessingQueueEntry.status)
        result = await self.session.execute(stmt)
        counts = {status.value: 0 for status in QueueStatus}
        counts.update({row[0]: row[1] for row in result.all()})
        return counts
