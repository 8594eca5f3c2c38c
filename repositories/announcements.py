"""
Announcement Repository

Upserts keyed by (source, source_native_id) and screening annotations.
"""
from typing import Optional, Tuple

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError

from database.models import Announcement
from data_transformers.models import AnnouncementDraft
from .base import BaseRepository


class AnnouncementRepository(BaseRepository[Announcement]):
    """Repository for announcement operations."""

    model = Announcement

    async def get_by_native_id(self, source: str, source_native_id: str) -> Optional[Announcement]:
        """Get announcement by its feed identity."""
        stmt = select(Announcement).where(
            and_(
                Announcement.source == source,
                Announcement.source_native_id == source_native_id,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, draft: AnnouncementDraft) -> Tuple[Announcement, bool]:
        """
        Insert or update an announcement by its feed identity.

        Screening annotations (is_public, detected_*) survive updates.

        Returns:
            (announcement, created)
        """
        row = draft.to_row()
        existing = await self.get_by_native_id(row["source"], row["source_native_id"])
        if existing is not None:
            return await self._apply(existing, row), False

        announcement = Announcement(id=self.generate_id(), **row)
        try:
            async with self.session.begin_nested():
                self.session.add(announcement)
                await self.session.flush()
            return announcement, True
        except IntegrityError:
            # Inserted concurrently by another ingestion run
            existing = await self.get_by_native_id(row["source"], row["source_native_id"])
            if existing is None:
                raise
            return await self._apply(existing, row), False

    async def _apply(self, announcement: Announcement, row: dict) -> Announcement:
        for key, value in row.items():
            setattr(announcement, key, value)
        await self.session.flush()
        return announcement

    async def apply_screening(
        self,
        announcement_id: str,
        is_public: bool,
        ticker: Optional[str] = None,
        exchange: Optional[str] = None,
        company_name: Optional[str] = None,
    ) -> None:
        """Store the public-company screening verdict on the announcement."""
        announcement = await self.get(announcement_id)
        if announcement is None:
            return
        announcement.is_public = is_public
        announcement.detected_ticker = ticker
        announcement.detected_exchange = exchange
        if company_name:
            announcement.verified_company_name = company_name
        await self.session.flush()
