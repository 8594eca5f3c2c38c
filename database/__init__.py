"""
Database Module - Regulatory Catalyst Dashboard

Structure:
    database/
    ├── __init__.py      # This file - public API
    ├── session.py       # SQLAlchemy async session management
    ├── init.py          # Schema creation and table counts
    └── models/          # SQLAlchemy ORM models

Usage:
    from database import get_session
    from database.models import Announcement

    async with get_session() as session:
        result = await session.execute(select(Announcement))
        announcements = result.scalars().all()
"""

# SQLAlchemy Models
from .models import (
    Base,
    TimestampMixin,
    Announcement,
    ClassificationResult,
    ProcessingQueueEntry,
    DataSource,
    LLMCallHistory,
)

# Session Management
from .session import (
    init_engine,
    close_engine,
    create_tables,
    drop_tables,
    check_connection,
    get_session,
    get_session_dependency,
)

# Initialization utilities
from .init import init_database_async, get_table_counts_async

__all__ = [
    # SQLAlchemy Models
    "Base",
    "TimestampMixin",
    "Announcement",
    "ClassificationResult",
    "ProcessingQueueEntry",
    "DataSource",
    "LLMCallHistory",
    # Session Management
    "init_engine",
    "close_engine",
    "create_tables",
    "drop_tables",
    "check_connection",
    "get_session",
    "get_session_dependency",
    # Init utilities
    "init_database_async",
    "get_table_counts_async",
]
