"""
Announcement Models

Normalized feed entries and their classification results.
"""
from datetime import datetime
from typing import Optional, List, Any

from sqlalchemy import String, Integer, Boolean, DateTime, Text, Index, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from constants import FeedSource
from .base import Base, TimestampMixin


class Announcement(Base, TimestampMixin):
    """
    One normalized FDA / SEC feed entry.

    Identity for upserts is (source, source_native_id). `id` is an internal
    UUID that doubles as the correlation id echoed back by the classifier.
    Rows are updated on re-fetch, never deleted.
    """
    __tablename__ = "announcements"

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Identity
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    source_native_id: Mapped[str] = mapped_column(String(500), nullable=False)

    # Content
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Heuristic categorization (pre-filter only)
    announcement_type: Mapped[str] = mapped_column(String(50), nullable=False)
    heuristic_priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")

    # Feed timestamp (not ingestion time)
    published_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    # Extracted entities
    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    product_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    classification_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    form_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    ticker: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    cik: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    accession_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    # Public-company screening
    is_public: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    detected_ticker: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    detected_exchange: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    verified_company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Original feed fields
    raw_payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Relationships
    classification: Mapped[Optional["ClassificationResult"]] = relationship(
        "ClassificationResult",
        back_populates="announcement",
        uselist=False,
    )

    __table_args__ = (
        UniqueConstraint('source', 'source_native_id', name='uq_announcement_source_native_id'),
        Index('idx_announcements_type', 'announcement_type'),
    )

    @property
    def family(self) -> str:
        return FeedSource(self.source).family


class ClassificationResult(Base, TimestampMixin):
    """
    LLM-derived relevance classification for one announcement.

    Every field has been clamped into its range / enum before it is written.
    Only rows with relevance_score >= 50 are published.
    """
    __tablename__ = "classification_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    announcement_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("announcements.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    data_source_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("data_sources.id"),
        nullable=True,
    )

    # Issuer
    ticker: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    exchange: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # Scores
    relevance_score: Mapped[int] = mapped_column(Integer, nullable=False)
    priority_level: Mapped[str] = mapped_column(String(10), nullable=False)
    sentiment: Mapped[str] = mapped_column(String(10), nullable=False)
    sentiment_strength: Mapped[int] = mapped_column(Integer, nullable=False, default=50)

    # Text
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    market_impact: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[List[Any]] = mapped_column(JSON, nullable=False, default=list)

    # Publication
    is_fallback: Mapped[bool] = mapped_column(Boolean, default=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)

    announcement: Mapped["Announcement"] = relationship(
        "Announcement",
        back_populates="classification",
    )

    __table_args__ = (
        Index('idx_classification_priority', 'priority_level'),
        Index('idx_classification_published', 'is_published', 'published_at'),
    )
