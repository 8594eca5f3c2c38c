"""
Deterministic fallback classification.

Used whenever the model's answer for an announcement is missing or
unusable. Values depend only on the announcement subtype and its
heuristic priority.
"""
import re
from typing import Any, Dict, List, Optional

from constants import (
    AnnouncementType,
    PriorityLevel,
    Sentiment,
    MAX_TAGS,
    SUMMARY_MAX_LENGTH,
)
from .models import ClassificationOutcome


# subtype -> (score, fixed priority or None to use the heuristic, default priority, sentiment, strength)
FALLBACK_TABLE: Dict[AnnouncementType, tuple] = {
    AnnouncementType.DRUG_APPROVAL: (75, PriorityLevel.HIGH, PriorityLevel.HIGH, Sentiment.BULLISH, 70),
    AnnouncementType.SAFETY_ALERT: (80, PriorityLevel.HIGH, PriorityLevel.HIGH, Sentiment.BEARISH, 75),
    AnnouncementType.DEVICE_APPROVAL: (60, PriorityLevel.MEDIUM, PriorityLevel.MEDIUM, Sentiment.BULLISH, 60),
    AnnouncementType.MERGER_ACQUISITION: (90, None, PriorityLevel.HIGH, Sentiment.BULLISH, 80),
    AnnouncementType.MAJOR_EVENT: (80, None, PriorityLevel.MEDIUM, Sentiment.NEUTRAL, 50),
    AnnouncementType.INSIDER_TRADING: (75, None, PriorityLevel.MEDIUM, Sentiment.NEUTRAL, 60),
    AnnouncementType.STOCK_OFFERING: (85, None, PriorityLevel.HIGH, Sentiment.BEARISH, 75),
    AnnouncementType.QUARTERLY_REPORT: (60, None, PriorityLevel.MEDIUM, Sentiment.NEUTRAL, 50),
    AnnouncementType.ANNUAL_REPORT: (65, None, PriorityLevel.MEDIUM, Sentiment.NEUTRAL, 50),
}

DEFAULT_FALLBACK = (50, PriorityLevel.MEDIUM, PriorityLevel.MEDIUM, Sentiment.NEUTRAL, 50)

DEFAULT_MARKET_IMPACT = {
    Sentiment.BULLISH.value: "Potential positive catalyst for the issuer",
    Sentiment.BEARISH.value: "Potential downward pressure on the issuer",
    Sentiment.NEUTRAL.value: "Limited direct price impact expected",
}


def _subtype(announcement: Any) -> Optional[AnnouncementType]:
    try:
        return AnnouncementType(announcement.announcement_type)
    except ValueError:
        return None


def _heuristic_priority(announcement: Any) -> Optional[PriorityLevel]:
    try:
        return PriorityLevel(announcement.heuristic_priority)
    except ValueError:
        return None


def normalize_tag(tag: str) -> str:
    return re.sub(r"\s+", "_", tag.strip().lower())


def default_tags(announcement: Any) -> List[str]:
    """[subtype, family, "regulatory" or the SEC form]."""
    family = announcement.family
    third = "regulatory" if family == "fda" else (announcement.form_type or "filing")
    tags = [announcement.announcement_type, family, third]
    return [normalize_tag(t) for t in tags if t][:MAX_TAGS]


def default_summary(announcement: Any) -> str:
    company = announcement.verified_company_name or announcement.company_name
    text = announcement.title or ""
    if company and company.lower() not in text.lower():
        text = f"{company}: {text}"
    text = text.strip()
    if len(text) < 10:
        text = f"{announcement.source} announcement: {text or 'untitled'}"
    return text[:SUMMARY_MAX_LENGTH]


def default_ticker(announcement: Any) -> Optional[str]:
    return announcement.detected_ticker or announcement.ticker


def fallback_outcome(announcement: Any) -> ClassificationOutcome:
    """Deterministic classification for an announcement the model did not answer."""
    subtype = _subtype(announcement)
    score, fixed_priority, default_priority, sentiment, strength = FALLBACK_TABLE.get(subtype, DEFAULT_FALLBACK)
    priority = fixed_priority or _heuristic_priority(announcement) or default_priority

    return ClassificationOutcome(
        announcement_id=announcement.id,
        relevance_score=score,
        priority_level=priority.value,
        sentiment=sentiment.value,
        sentiment_strength=strength,
        summary=default_summary(announcement),
        market_impact=DEFAULT_MARKET_IMPACT[sentiment.value],
        tags=default_tags(announcement),
        ticker=default_ticker(announcement),
        exchange=announcement.detected_exchange,
        is_fallback=True,
    )
