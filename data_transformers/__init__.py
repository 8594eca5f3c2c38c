"""
Data Transformers

Turn raw FDA RSS / openFDA JSON / SEC Atom documents into
AnnouncementDraft records, and filter them to a time window.
"""

from .models import AnnouncementDraft, NormalizedFeed
from .base import BaseTransformer, FeedParseError
from .fda import FDATransformer
from .openfda import OpenFDATransformer
from .sec import SECTransformer
from .timeframe import TIMEFRAMES, DEFAULT_TIMEFRAME, resolve_cutoff, filter_window

from constants import FeedSource

_TRANSFORMERS = {
    FeedSource.FDA_PRESS_RELEASE: FDATransformer,
    FeedSource.FDA_MEDWATCH: FDATransformer,
    FeedSource.OPENFDA_DRUG_APPROVAL: OpenFDATransformer,
    FeedSource.OPENFDA_RECALL: OpenFDATransformer,
    FeedSource.OPENFDA_DEVICE_CLEARANCE: OpenFDATransformer,
    FeedSource.SEC_EDGAR: SECTransformer,
}


def get_transformer(source: FeedSource) -> BaseTransformer:
    """Transformer for a feed source."""
    return _TRANSFORMERS[source]()


__all__ = [
    "AnnouncementDraft",
    "NormalizedFeed",
    "BaseTransformer",
    "FeedParseError",
    "FDATransformer",
    "OpenFDATransformer",
    "SECTransformer",
    "TIMEFRAMES",
    "DEFAULT_TIMEFRAME",
    "resolve_cutoff",
    "filter_window",
    "get_transformer",
]
