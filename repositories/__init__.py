"""
SQLAlchemy-based Repositories

Usage:
    from repositories import AnnouncementRepository
    from database import get_session

    async with get_session() as session:
        repo = AnnouncementRepository(session)
        announcement, created = await repo.upsert(draft)
"""

from .base import BaseRepository
from .announcements import AnnouncementRepository
from .queue import QueueRepository
from .classifications import ClassificationRepository
from .data_sources import DataSourceRepository
from .llm_history import LLMHistoryRepository

__all__ = [
    "BaseRepository",
    "AnnouncementRepository",
    "QueueRepository",
    "ClassificationRepository",
    "DataSourceRepository",
    "LLMHistoryRepository",
]
