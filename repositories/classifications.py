"""
Classification Result Repository

Writes classifier output and serves the published projection read by
the dashboard API.
"""
from datetime import datetime
from typing import Optional, List, Tuple, Dict, Any

from sqlalchemy import select, and_, func, desc

from constants import PriorityLevel
from database.models import Announcement, ClassificationResult
from .base import BaseRepository


class ClassificationRepository(BaseRepository[ClassificationResult]):
    """Repository for classification results."""

    model = ClassificationResult

    async def get_by_announcement(self, announcement_id: str) -> Optional[ClassificationResult]:
        stmt = select(ClassificationResult).where(
            ClassificationResult.announcement_id == announcement_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, announcement_id: str, values: Dict[str, Any]) -> ClassificationResult:
        """Create or replace the result for an announcement."""
        existing = await self.get_by_announcement(announcement_id)
        if existing is None:
            return await self.add(ClassificationResult(
                id=self.generate_id(),
                announcement_id=announcement_id,
                **values,
            ))

        for key, value in values.items():
            setattr(existing, key, value)
        await self.session.flush()
        return existing

    # ============================================
    # PUBLISHED PROJECTION
    # ============================================

    async def list_published(
        self,
        priority: Optional[str] = None,
        category: Optional[str] = None,
        sentiment: Optional[str] = None,
        source: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Tuple[ClassificationResult, Announcement]]:
        """Published results joined with their announcement, newest first."""
        conditions = [ClassificationResult.is_published.is_(True)]
        if priority:
            conditions.append(ClassificationResult.priority_level == priority)
        if sentiment:
            conditions.append(ClassificationResult.sentiment == sentiment)
        if category:
            conditions.append(Announcement.announcement_type == category)
        if source:
            conditions.append(Announcement.source == source)
        if since is not None:
            conditions.append(Announcement.published_at > since)

        stmt = (
            select(ClassificationResult, Announcement)
            .join(Announcement, Announcement.id == ClassificationResult.announcement_id)
            .where(and_(*conditions))
            .order_by(desc(ClassificationResult.published_at), desc(Announcement.published_at))
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def count_published(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        priority: Optional[PriorityLevel] = None,
    ) -> int:
        """Count published results, optionally within [since, until) by publish time."""
        conditions = [ClassificationResult.is_published.is_(True)]
        if since is not None:
            conditions.append(ClassificationResult.published_at >= since)
        if until is not None:
            conditions.append(ClassificationResult.published_at < until)
        if priority is not None:
            conditions.append(ClassificationResult.priority_level == priority.value)

        stmt = select(func.count(ClassificationResult.id)).where(and_(*conditions))
        result = await self.session.execute(stmt)
        return result.scalar_one()
