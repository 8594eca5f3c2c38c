"""Crawlers package - HTTP retrieval of regulatory feeds."""

from .feeds import FeedSpec, FEEDS_BY_FAMILY, DATA_SOURCES, feeds_for, openfda_feeds
from .feed_fetcher import FeedFetcher, FetchError, FetchBatch, FetchedDocument, FeedFailure

__all__ = [
    "FeedSpec",
    "FEEDS_BY_FAMILY",
    "DATA_SOURCES",
    "feeds_for",
    "openfda_feeds",
    "FeedFetcher",
    "FetchError",
    "FetchBatch",
    "FetchedDocument",
    "FeedFailure",
]
