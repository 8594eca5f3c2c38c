"""
Constants package for the Regulatory Catalyst Dashboard.

Contains shared enums and publication thresholds.
"""

from .enums import (
    FeedSource,
    AnnouncementType,
    PriorityLevel,
    Sentiment,
    Exchange,
    QueueStatus,
    FetchErrorKind,
    FEED_SOURCES,
    ANNOUNCEMENT_TYPES,
    PRIORITY_LEVELS,
    SENTIMENTS,
    EXCHANGES,
    QUEUE_STATUSES,
)

# Relevance thresholds
DISCARD_BELOW_SCORE = 30
PUBLISH_AT_SCORE = 50

# Bounded text fields
DESCRIPTION_MAX_LENGTH = 500
SUMMARY_MAX_LENGTH = 500
MARKET_IMPACT_MAX_LENGTH = 300
MAX_TAGS = 5

# Classifier sub-batch size
CLASSIFIER_SUB_BATCH_SIZE = 2

__all__ = [
    # Enums
    "FeedSource",
    "AnnouncementType",
    "PriorityLevel",
    "Sentiment",
    "Exchange",
    "QueueStatus",
    "FetchErrorKind",
    # Dict versions
    "FEED_SOURCES",
    "ANNOUNCEMENT_TYPES",
    "PRIORITY_LEVELS",
    "SENTIMENTS",
    "EXCHANGES",
    "QUEUE_STATUSES",
    # Thresholds
    "DISCARD_BELOW_SCORE",
    "PUBLISH_AT_SCORE",
    "DESCRIPTION_MAX_LENGTH",
    "SUMMARY_MAX_LENGTH",
    "MARKET_IMPACT_MAX_LENGTH",
    "MAX_TAGS",
    "CLASSIFIER_SUB_BATCH_SIZE",
]
