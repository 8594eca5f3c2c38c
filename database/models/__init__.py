"""
SQLAlchemy ORM Models

Models are organized by domain:
- Announcements: normalized feed entries and their classification results
- System: processing queue, data sources
- LLM: call history for audit and fine-tuning export
"""

from .base import Base, TimestampMixin
from .announcements import Announcement, ClassificationResult
from .system import ProcessingQueueEntry, DataSource
from .llm_history import LLMCallHistory

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Announcements
    "Announcement",
    "ClassificationResult",
    # System
    "ProcessingQueueEntry",
    "DataSource",
    # LLM
    "LLMCallHistory",
]
