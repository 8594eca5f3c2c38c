"""
Database Initialization Utilities

Creates the schema and reports row counts for health checks.
"""
from typing import Dict

from loguru import logger
from sqlalchemy import select, func

from config import ensure_directories
from .models import Announcement, ClassificationResult, ProcessingQueueEntry, DataSource, LLMCallHistory
from .session import create_tables, get_session


async def init_database_async() -> None:
    """Ensure the data directory exists and create any missing tables."""
    ensure_directories()
    await create_tables()
    logger.info("Database ready")


async def get_table_counts_async() -> Dict[str, int]:
    """
    Get row counts for all tables.

    Returns:
        Dict with table names and row counts
    """
    counts = {}
    async with get_session() as session:
        for model in (Announcement, ClassificationResult, ProcessingQueueEntry, DataSource, LLMCallHistory):
            result = await session.execute(select(func.count()).select_from(model))
            counts[model.__tablename__] = result.scalar_one()
    return counts
