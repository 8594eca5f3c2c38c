"""
Feed Registry - Regulatory feeds polled by the pipeline.

The FDA family is the two RSS feeds plus, when OPENFDA_ENABLED, the
openFDA JSON search endpoints. Their URLs depend on settings, so they are
built per call.
"""
from dataclasses import dataclass
from typing import Dict, List
from urllib.parse import urlencode

from config import settings
from constants import FeedSource


@dataclass(frozen=True)
class FeedSpec:
    """One pollable feed document."""
    source: FeedSource
    url: str
    format: str  # "rss", "atom" or "json"

    @property
    def name(self) -> str:
        return self.source.value


FDA_PRESS_RELEASES = FeedSpec(
    source=FeedSource.FDA_PRESS_RELEASE,
    url="https://www.fda.gov/about-fda/contact-fda/stay-informed/rss-feeds/press-releases/rss.xml",
    format="rss",
)

FDA_MEDWATCH = FeedSpec(
    source=FeedSource.FDA_MEDWATCH,
    url="https://www.fda.gov/about-fda/contact-fda/stay-informed/rss-feeds/medwatch/rss.xml",
    format="rss",
)

SEC_EDGAR_CURRENT = FeedSpec(
    source=FeedSource.SEC_EDGAR,
    url=(
        "https://www.sec.gov/cgi-bin/browse-edgar?action=getcurrent"
        "&CIK=&type=&company=&dateb=&owner=include&start=0&count=40&output=atom"
    ),
    format="atom",
)

FEEDS_BY_FAMILY: Dict[str, List[FeedSpec]] = {
    "fda": [FDA_PRESS_RELEASES, FDA_MEDWATCH],
    "sec": [SEC_EDGAR_CURRENT],
}

OPENFDA_BASE_URL = "https://api.fda.gov"

# endpoint path, search query, sort key
_OPENFDA_ENDPOINTS = {
    FeedSource.OPENFDA_DRUG_APPROVAL: (
        "/drug/drugsfda.json",
        'submissions.submission_status:"AP"',
        "submissions.submission_status_date:desc",
    ),
    FeedSource.OPENFDA_RECALL: ("/drug/enforcement.json", None, "report_date:desc"),
    FeedSource.OPENFDA_DEVICE_CLEARANCE: ("/device/510k.json", None, "decision_date:desc"),
}

# Singleton data source rows, one per family
DATA_SOURCES: Dict[str, dict] = {
    "fda": {
        "name": "FDA",
        "source_type": "regulatory",
        "url": "https://www.fda.gov/about-fda/contact-fda/stay-informed/rss-feeds",
        "processing_config": {"min_relevance_score": 30},
    },
    "sec": {
        "name": "SEC EDGAR RSS",
        "source_type": "rss",
        "url": SEC_EDGAR_CURRENT.url,
        "processing_config": {"min_relevance_score": 40},
    },
}


def openfda_feeds(limit: int, api_key: str = "") -> List[FeedSpec]:
    """openFDA search endpoints, newest records first."""
    feeds = []
    for source, (path, search, sort) in _OPENFDA_ENDPOINTS.items():
        params = {}
        if search:
            params["search"] = search
        params["sort"] = sort
        params["limit"] = max(1, limit)
        if api_key:
            params["api_key"] = api_key
        feeds.append(FeedSpec(
            source=source,
            url=f"{OPENFDA_BASE_URL}{path}?{urlencode(params)}",
            format="json",
        ))
    return feeds


def feeds_for(family: str) -> List[FeedSpec]:
    """Feeds for 'fda' or 'sec'."""
    try:
        feeds = list(FEEDS_BY_FAMILY[family])
    except KeyError:
        raise ValueError(f"Unknown feed family: {family}. Available: {list(FEEDS_BY_FAMILY.keys())}")

    if family == "fda" and settings.OPENFDA_ENABLED:
        feeds.extend(openfda_feeds(settings.OPENFDA_LIMIT, settings.OPENFDA_API_KEY))
    return feeds
