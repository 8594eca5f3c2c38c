"""
Time-Window Filter

Symbolic timeframe tokens resolved to a cutoff instant. Minute tokens
serve the near-real-time SEC feed; week / month tokens serve FDA feeds.
"""
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Union

from dateutil.relativedelta import relativedelta
from loguru import logger

from utils.utcnow import utcnow
from .models import AnnouncementDraft


DEFAULT_TIMEFRAME = "24h"

TIMEFRAMES: dict[str, Union[timedelta, relativedelta]] = {
    "1min": timedelta(minutes=1),
    "10min": timedelta(minutes=10),
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
    "1w": timedelta(weeks=1),
    "1m": relativedelta(months=1),
    "3m": relativedelta(months=3),
}


def resolve_cutoff(token: Optional[str], now: Optional[datetime] = None) -> datetime:
    """
    Cutoff instant for a timeframe token.

    Unknown or empty tokens resolve exactly like "24h".
    """
    now = now or utcnow()
    delta = TIMEFRAMES.get((token or "").strip().lower())
    if delta is None:
        logger.debug(f"Unknown timeframe {token!r}, using {DEFAULT_TIMEFRAME}")
        delta = TIMEFRAMES[DEFAULT_TIMEFRAME]
    return now - delta


def filter_window(
    drafts: Iterable[AnnouncementDraft],
    token: Optional[str],
    now: Optional[datetime] = None,
) -> List[AnnouncementDraft]:
    """Keep drafts published strictly after the cutoff."""
    cutoff = resolve_cutoff(token, now)
    return [draft for draft in drafts if draft.published_at > cutoff]
