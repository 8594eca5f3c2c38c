"""
Base Transformer Interface

Feed-specific transformers inherit from BaseTransformer and turn one raw
feed document into AnnouncementDraft records.
"""

import hashlib
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

import feedparser
from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from dateutil import tz
from loguru import logger

from constants import FeedSource, DESCRIPTION_MAX_LENGTH
from utils.utcnow import utcnow, to_naive_utc
from .models import AnnouncementDraft, NormalizedFeed


class FeedParseError(Exception):
    """The document is not a well-formed feed of the expected format."""
    pass


# US timezone abbreviations used by FDA / SEC feeds
_TZINFOS = {
    "EST": tz.gettz("America/New_York"),
    "EDT": tz.gettz("America/New_York"),
    "CST": tz.gettz("America/Chicago"),
    "CDT": tz.gettz("America/Chicago"),
    "PST": tz.gettz("America/Los_Angeles"),
    "PDT": tz.gettz("America/Los_Angeles"),
    "GMT": tz.UTC,
    "UTC": tz.UTC,
}


class BaseTransformer(ABC):
    """
    Abstract base class for feed transformers.

    Usage:
        transformer = FDATransformer()
        feed = transformer.transform(document_text, FeedSource.FDA_MEDWATCH, url)
    """

    # feedparser version prefix accepted by this transformer ("rss" / "atom")
    expected_format: str = ""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the transformer name (e.g., 'fda', 'sec')."""
        pass

    @abstractmethod
    def normalize_entry(self, entry: Any, source: FeedSource) -> AnnouncementDraft:
        """Map one parsed feed entry to a draft. Must not raise on missing fields."""
        pass

    def parse(self, document: str) -> Any:
        """
        Parse the document with feedparser.

        Raises:
            FeedParseError: malformed XML with nothing recoverable, or wrong feed format
        """
        parsed = feedparser.parse(document)
        version = parsed.get("version") or ""

        if parsed.get("bozo") and not parsed.entries:
            raise FeedParseError(f"Malformed feed: {parsed.get('bozo_exception')}")
        if not version:
            raise FeedParseError("Document is not an RSS or Atom feed")
        if self.expected_format and not version.startswith(self.expected_format):
            raise FeedParseError(f"Expected {self.expected_format} feed, got {version}")
        if parsed.get("bozo"):
            logger.warning(f"[{self.source_name}] Feed parsed with recoverable errors: {parsed.get('bozo_exception')}")
        return parsed

    def entries(self, parsed: Any) -> Iterable[Any]:
        """Raw entries of a parsed document."""
        return parsed.entries

    def iter_drafts(
        self,
        document: str,
        source: FeedSource,
        on_skip: Optional[Callable[[Exception], None]] = None,
    ) -> Iterator[AnnouncementDraft]:
        """
        Lazily yield one draft per feed entry.

        Entries that fail to normalize are logged, reported to `on_skip`
        and left out.

        Raises:
            FeedParseError: before the first draft, if the document is not a feed
        """
        parsed = self.parse(document)
        for entry in self.entries(parsed):
            try:
                draft = self.normalize_entry(entry, source)
            except Exception as e:
                logger.warning(f"[{source.value}] Skipping entry that failed to normalize: {e}")
                if on_skip is not None:
                    on_skip(e)
                continue
            yield draft

    def transform(self, document: str, source: FeedSource, url: str = "") -> NormalizedFeed:
        """Normalize a whole document."""
        feed = NormalizedFeed(source=source, url=url)

        def skipped(_error: Exception) -> None:
            feed.skipped_entries += 1

        feed.drafts.extend(self.iter_drafts(document, source, on_skip=skipped))

        logger.info(f"[{source.value}] Normalized {feed.summary()}")
        return feed

    # ============================================================
    # SHARED FIELD HELPERS
    # ============================================================

    @staticmethod
    def clean_text(html: Optional[str], max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
        """Strip HTML, collapse whitespace and truncate."""
        if not html:
            return ""
        text = BeautifulSoup(html, "html.parser").get_text(" ", strip=True)
        text = re.sub(r"\s+", " ", text).strip()
        return text[:max_length]

    @staticmethod
    def parse_date(value: Optional[str], parsed_struct: Any = None) -> Optional[datetime]:
        """Parse a feed date string into naive UTC, or None."""
        if value:
            try:
                return to_naive_utc(date_parser.parse(value, tzinfos=_TZINFOS))
            except (ValueError, OverflowError, TypeError):
                pass
        if parsed_struct:
            try:
                return datetime(*parsed_struct[:6])
            except (TypeError, ValueError):
                pass
        return None

    @staticmethod
    def resolve_published_at(value: Optional[str], parsed_struct: Any = None) -> tuple[datetime, bool]:
        """Feed timestamp, or (now, True) when missing / unparseable."""
        published = BaseTransformer.parse_date(value, parsed_struct)
        if published is None:
            return utcnow(), True
        return published, False

    @staticmethod
    def fallback_native_id(title: str, published_raw: Optional[str]) -> str:
        """Stable id for entries with neither guid nor link."""
        digest = hashlib.sha1(f"{title}|{published_raw or ''}".encode("utf-8")).hexdigest()
        return f"sha1:{digest}"

    @staticmethod
    def entry_dict(entry: Any, *keys: str) -> Dict[str, Any]:
        """Raw entry fields kept for audit."""
        return {key: entry.get(key) for key in keys if entry.get(key) is not None}
