"""
Data Source Repository

Singleton configuration rows, created through find-or-create by name.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from database.models import DataSource
from .base import BaseRepository


class DataSourceRepository(BaseRepository[DataSource]):
    """Repository for data source records."""

    model = DataSource

    async def get_by_name(self, name: str) -> Optional[DataSource]:
        stmt = select(DataSource).where(DataSource.name == name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def ensure(
        self,
        name: str,
        source_type: str,
        url: Optional[str] = None,
        processing_config: Optional[dict] = None,
    ) -> DataSource:
        """
        Return the data source named `name`, creating it if missing.

        Safe to call from every invocation and from concurrent processes.
        """
        existing = await self.get_by_name(name)
        if existing is not None:
            return existing

        source = DataSource(
            id=self.generate_id(),
            name=name,
            source_type=source_type,
            url=url,
            processing_config=processing_config or {},
        )
        try:
            async with self.session.begin_nested():
                self.session.add(source)
                await self.session.flush()
            return source
        except IntegrityError:
            existing = await self.get_by_name(name)
            if existing is None:
                raise
            return existing
