"""
Unified Data Models for Normalized Feed Output

Every transformer (FDA RSS, SEC Atom) produces AnnouncementDraft records,
so the rest of the pipeline never looks at feed-specific XML.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, List, Any

from constants import FeedSource, AnnouncementType, PriorityLevel


@dataclass
class AnnouncementDraft:
    """
    One feed entry, normalized but not yet persisted.

    `published_at` is naive UTC, taken from the feed (pubDate / updated),
    never from ingestion time unless the feed omitted it.
    """
    # Identity
    source: FeedSource
    source_native_id: str

    # Content
    title: str
    published_at: datetime
    description: str = ""
    link: Optional[str] = None

    # Heuristic categorization
    announcement_type: AnnouncementType = AnnouncementType.OTHER
    heuristic_priority: PriorityLevel = PriorityLevel.MEDIUM

    # Extracted entities (best-effort)
    company_name: Optional[str] = None
    product_name: Optional[str] = None
    classification_code: Optional[str] = None
    form_type: Optional[str] = None
    ticker: Optional[str] = None
    cik: Optional[str] = None
    accession_number: Optional[str] = None

    # Original feed fields
    raw_payload: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.source, str):
            self.source = FeedSource(self.source)
        if isinstance(self.announcement_type, str):
            self.announcement_type = AnnouncementType(self.announcement_type)
        if isinstance(self.heuristic_priority, str):
            self.heuristic_priority = PriorityLevel(self.heuristic_priority)

    @property
    def family(self) -> str:
        return self.source.family

    def to_row(self) -> Dict[str, Any]:
        """Column values for the announcements table."""
        return {
            "source": self.source.value,
            "source_native_id": self.source_native_id,
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "announcement_type": self.announcement_type.value,
            "heuristic_priority": self.heuristic_priority.value,
            "published_at": self.published_at,
            "company_name": self.company_name,
            "product_name": self.product_name,
            "classification_code": self.classification_code,
            "form_type": self.form_type,
            "ticker": self.ticker,
            "cik": self.cik,
            "accession_number": self.accession_number,
            "raw_payload": self.raw_payload,
        }

    def to_dict(self) -> Dict[str, Any]:
        row = self.to_row()
        row["published_at"] = self.published_at.isoformat()
        return row


@dataclass
class NormalizedFeed:
    """Drafts parsed from one feed document."""
    source: FeedSource
    url: str
    drafts: List[AnnouncementDraft] = field(default_factory=list)
    skipped_entries: int = 0

    @property
    def count(self) -> int:
        return len(self.drafts)

    def summary(self) -> str:
        return f"{self.source.value}: {self.count} entries ({self.skipped_entries} skipped)"
