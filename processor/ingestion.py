"""
Ingestion Writer - Upsert normalized drafts and enqueue them.

Each draft is written inside its own savepoint, so one bad item rolls back
alone and its siblings still land.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from data_transformers.models import AnnouncementDraft
from repositories import AnnouncementRepository, QueueRepository


@dataclass
class IngestSummary:
    """Counts for one ingestion, plus feed-level failures when run end to end."""
    inserted: int = 0
    updated: int = 0
    enqueued: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[dict] = field(default_factory=list)

    # Set by IngestionPipeline
    family: Optional[str] = None
    feeds_fetched: int = 0
    entries_normalized: int = 0
    entries_in_window: int = 0
    feed_errors: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "family": self.family,
            "feeds_fetched": self.feeds_fetched,
            "entries_normalized": self.entries_normalized,
            "entries_in_window": self.entries_in_window,
            "inserted": self.inserted,
            "updated": self.updated,
            "enqueued": self.enqueued,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": list(self.errors),
            "feed_errors": list(self.feed_errors),
        }


class IngestionWriter:
    """Idempotent announcement writer."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.announcements = AnnouncementRepository(session)
        self.queue = QueueRepository(session)

    async def ingest(self, drafts: Sequence[AnnouncementDraft]) -> IngestSummary:
        """
        Upsert each draft by (source, source_native_id), then enqueue it.

        - no queue entry: created as pending
        - failed entry: reset to pending, retry_count kept
        - pending / processing / completed: untouched
        """
        summary = IngestSummary()

        for draft in drafts:
            try:
                async with self.session.begin_nested():
                    announcement, created = await self.announcements.upsert(draft)
                    outcome = await self.queue.enqueue(announcement.id)
            except Exception as e:
                summary.failed += 1
                summary.errors.append({
                    "source": draft.source.value,
                    "source_native_id": draft.source_native_id,
                    "error": str(e),
                })
                logger.error(f"[{draft.source.value}] Failed to store {draft.source_native_id}: {e}")
                continue

            if created:
                summary.inserted += 1
            else:
                summary.updated += 1

            if outcome == "skipped":
                summary.skipped += 1
            else:
                summary.enqueued += 1

        logger.info(
            f"Ingested {len(drafts)} drafts: {summary.inserted} new, {summary.updated} updated, "
            f"{summary.enqueued} enqueued, {summary.failed} failed"
        )
        return summary
