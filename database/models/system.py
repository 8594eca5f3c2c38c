"""
System Models

Processing queue and data source configuration records.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, Text, Index, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from utils.utcnow import utcnow
from .base import Base, TimestampMixin


class ProcessingQueueEntry(Base, TimestampMixin):
    """
    Processing state tracker for one announcement.

    State machine: pending -> processing -> {completed | failed}.
    `claimed_at` is the lease start of a processing claim; stale claims are
    swept back to pending. Failed entries keep their retry_count.
    """
    __tablename__ = "processing_queue"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    announcement_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("announcements.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index('idx_queue_status_scheduled', 'status', 'scheduled_at'),
    )


class DataSource(Base, TimestampMixin):
    """
    Singleton configuration record per feed family (FDA, SEC EDGAR).

    Created through an idempotent find-or-create keyed by name.
    """
    __tablename__ = "data_sources"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    source_type: Mapped[str] = mapped_column(String(30), nullable=False)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processing_config: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
