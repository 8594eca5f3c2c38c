"""
SEC Transformer - EDGAR "current filings" Atom feed.

Each <entry> becomes one AnnouncementDraft, timestamped from <updated>.
Company, form type and ticker come from the entry title; the accession
number (from the link or entry id) is the stable native id.
"""
from typing import Any, Optional

from constants import FeedSource
from data_transformers.base import BaseTransformer
from data_transformers.heuristics import (
    parse_sec_title,
    categorize_sec_filing,
    sec_priority,
    extract_accession_number,
)
from data_transformers.models import AnnouncementDraft


class SECTransformer(BaseTransformer):
    """
    Transform EDGAR Atom entries to AnnouncementDraft.

    Missing title -> "SEC Filing"; missing <updated> -> current time.
    """

    expected_format = "atom"
    DEFAULT_TITLE = "SEC Filing"

    @property
    def source_name(self) -> str:
        return "sec"

    def _category_form(self, entry: Any) -> Optional[str]:
        """EDGAR puts the form type in <category term="8-K" label="form type"/>."""
        for tag in entry.get("tags") or []:
            term = tag.get("term")
            if term:
                return term.strip()
        return None

    def normalize_entry(self, entry: Any, source: FeedSource = FeedSource.SEC_EDGAR) -> AnnouncementDraft:
        title = (entry.get("title") or "").strip() or self.DEFAULT_TITLE
        summary = self.clean_text(entry.get("summary"))
        link = entry.get("link") or None
        entry_id = entry.get("id")
        updated_raw = entry.get("updated") or entry.get("published")

        published_at, date_missing = self.resolve_published_at(
            updated_raw,
            entry.get("updated_parsed") or entry.get("published_parsed"),
        )

        parsed_title = parse_sec_title(title, link or "")
        form_type = parsed_title.form_type
        if form_type == "UNKNOWN":
            form_type = self._category_form(entry) or form_type

        accession_number = extract_accession_number(link or "", entry_id or "", summary)
        native_id = accession_number or entry_id or link or self.fallback_native_id(title, updated_raw)

        announcement_type = categorize_sec_filing(form_type, title, summary)
        raw_payload = self.entry_dict(entry, "title", "link", "id", "updated", "summary")
        if date_missing:
            raw_payload["updated_missing"] = True

        return AnnouncementDraft(
            source=FeedSource.SEC_EDGAR,
            source_native_id=native_id,
            title=title,
            description=summary,
            link=link,
            published_at=published_at,
            announcement_type=announcement_type,
            heuristic_priority=sec_priority(form_type, announcement_type),
            company_name=parsed_title.company_name if parsed_title.company_name != self.DEFAULT_TITLE else None,
            form_type=form_type,
            ticker=parsed_title.ticker,
            cik=parsed_title.cik,
            accession_number=accession_number,
            raw_payload=raw_payload,
        )
