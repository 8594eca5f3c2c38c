"""
Base Repository Pattern with SQLAlchemy

Provides common async CRUD operations for all repositories.
"""
from datetime import datetime
from typing import TypeVar, Generic, Optional, List, Sequence, Type
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.base import Base
from utils.utcnow import utcnow


# Generic type for model classes
ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    Base repository with common async database operations.

    Subclasses set the `model` class attribute to their SQLAlchemy model.

    Example:
        class AnnouncementRepository(BaseRepository[Announcement]):
            model = Announcement
    """

    model: Type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get(self, entity_id: str) -> Optional[ModelT]:
        """Get entity by primary key, or None."""
        return await self.session.get(self.model, entity_id)

    async def get_by_ids(self, entity_ids: List[str]) -> Sequence[ModelT]:
        """
        Get multiple entities by their IDs.

        Args:
            entity_ids: List of primary key values

        Returns:
            List of found entities (order not guaranteed)
        """
        if not entity_ids:
            return []

        stmt = select(self.model).where(self.model.id.in_(entity_ids))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count(self) -> int:
        """Count all entities."""
        stmt = select(func.count()).select_from(self.model)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    # ============================================
    # WRITE OPERATIONS
    # ============================================

    async def add(self, entity: ModelT) -> ModelT:
        """
        Add a new entity and flush so generated values are populated.
        """
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def update(self, entity: ModelT) -> ModelT:
        """Merge an existing entity and flush."""
        merged = await self.session.merge(entity)
        await self.session.flush()
        return merged

    # ============================================
    # UTILITY METHODS
    # ============================================

    @staticmethod
    def generate_id() -> str:
        """Generate a UUID4 string primary key."""
        return str(uuid.uuid4())

    @staticmethod
    def now() -> datetime:
        """Current naive UTC datetime."""
        return utcnow()
