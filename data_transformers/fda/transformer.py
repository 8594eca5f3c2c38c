"""
FDA Transformer - RSS 2.0 press releases and MedWatch alerts.

Each <item> becomes one AnnouncementDraft, timestamped from <pubDate>.
"""
from typing import Any

from constants import FeedSource
from data_transformers.base import BaseTransformer
from data_transformers.heuristics import (
    categorize_fda,
    fda_priority,
    extract_company_name,
    extract_product_name,
    extract_classification,
)
from data_transformers.models import AnnouncementDraft


class FDATransformer(BaseTransformer):
    """
    Transform FDA RSS items to AnnouncementDraft.

    Missing title -> "FDA Announcement"; missing pubDate -> current time.
    """

    expected_format = "rss"
    DEFAULT_TITLE = "FDA Announcement"

    @property
    def source_name(self) -> str:
        return "fda"

    def normalize_entry(self, entry: Any, source: FeedSource) -> AnnouncementDraft:
        title = (entry.get("title") or "").strip() or self.DEFAULT_TITLE
        description = self.clean_text(entry.get("summary") or entry.get("description"))
        link = entry.get("link") or None
        published_raw = entry.get("published")

        published_at, date_missing = self.resolve_published_at(published_raw, entry.get("published_parsed"))

        native_id = entry.get("id") or link or self.fallback_native_id(title, published_raw)

        announcement_type = categorize_fda(title, description, source)
        raw_payload = self.entry_dict(entry, "title", "link", "id", "published", "summary")
        if date_missing:
            raw_payload["published_missing"] = True

        return AnnouncementDraft(
            source=source,
            source_native_id=native_id,
            title=title,
            description=description,
            link=link,
            published_at=published_at,
            announcement_type=announcement_type,
            heuristic_priority=fda_priority(title, description, announcement_type, source),
            company_name=extract_company_name(title, description),
            product_name=extract_product_name(title, description),
            classification_code=extract_classification(title, description),
            raw_payload=raw_payload,
        )
