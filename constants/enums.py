"""
Shared Enums

Closed value sets used across feeds, queue processing and the API.
"""
from enum import Enum


class FeedSource(str, Enum):
    """Originating feed of an announcement."""
    FDA_PRESS_RELEASE = "FDA Press Release"
    FDA_MEDWATCH = "FDA MedWatch"
    SEC_EDGAR = "SEC EDGAR"
    OPENFDA_DRUG_APPROVAL = "openFDA Drug Approvals"
    OPENFDA_RECALL = "openFDA Enforcement"
    OPENFDA_DEVICE_CLEARANCE = "openFDA 510(k)"

    @property
    def family(self) -> str:
        """Feed family: 'fda' or 'sec'."""
        return "sec" if self is FeedSource.SEC_EDGAR else "fda"


class AnnouncementType(str, Enum):
    """Structured announcement / filing subtype."""
    DRUG_APPROVAL = "drug_approval"
    SAFETY_ALERT = "safety_alert"
    DEVICE_APPROVAL = "device_approval"
    REGULATORY = "regulatory"
    MAJOR_EVENT = "major_event"
    MERGER_ACQUISITION = "merger_acquisition"
    LEADERSHIP_CHANGE = "leadership_change"
    INSIDER_TRADING = "insider_trading"
    STOCK_OFFERING = "stock_offering"
    QUARTERLY_REPORT = "quarterly_report"
    ANNUAL_REPORT = "annual_report"
    PROXY_STATEMENT = "proxy_statement"
    OTHER = "other"


class PriorityLevel(str, Enum):
    """Priority levels for announcements and classifications."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Sentiment(str, Enum):
    """Directional market-impact lean."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Exchange(str, Enum):
    """Listing exchanges accepted from the model."""
    NYSE = "NYSE"
    NASDAQ = "NASDAQ"
    OTC = "OTC"
    AMEX = "AMEX"


class QueueStatus(str, Enum):
    """Processing queue entry states."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FetchErrorKind(str, Enum):
    """Classification of feed fetch failures."""
    TIMEOUT = "timeout"
    DNS = "dns"
    CONNECTION = "connection"
    HTTP_STATUS = "http_status"
    EMPTY = "empty"


# Dict versions for query validation
FEED_SOURCES = {s.value: s.value for s in FeedSource}
ANNOUNCEMENT_TYPES = {t.value: t.value for t in AnnouncementType}
PRIORITY_LEVELS = {p.value: p.value for p in PriorityLevel}
SENTIMENTS = {s.value: s.value for s in Sentiment}
EXCHANGES = {e.value: e.value for e in Exchange}
QUEUE_STATUSES = {s.value: s.value for s in QueueStatus}
