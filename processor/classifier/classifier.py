"""
Relevance Classifier - LLM trading-relevance scoring.

Scores a small sub-batch of announcements in one call. Model output is
never trusted: every field is validated and clamped on its own, and any
announcement the model failed to answer gets the deterministic fallback.
"""
import asyncio
import json
import re
import uuid
from typing import Any, List, Optional, Sequence

from loguru import logger

from config import settings
from constants import (
    PRIORITY_LEVELS,
    SENTIMENTS,
    MAX_TAGS,
    SUMMARY_MAX_LENGTH,
    MARKET_IMPACT_MAX_LENGTH,
)
from llm import LLMClient, LLMError, LLMTimeoutError, set_llm_context
from prompts import PromptLoader
from ..company_filter import normalize_exchange, normalize_ticker
from ..output_parser import OutputParseError, extract_json_array
from .fallback import (
    DEFAULT_MARKET_IMPACT,
    default_summary,
    default_tags,
    fallback_outcome,
    normalize_tag,
)
from .models import ClassificationOutcome


PROMPT_DESCRIPTION_LENGTH = 400

# Percentages and price targets are not allowed in market_impact
_NUMERIC_PREDICTION = re.compile(
    r"\d+(?:\.\d+)?\s*%|\bpercent\b|price\s+target|\$\s?\d",
    re.IGNORECASE,
)


def clamp_int(value: Any, default: int, low: int = 0, high: int = 100) -> int:
    """Coerce to int within [low, high]; default when not numeric."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(low, min(high, number))


class RelevanceClassifier:
    """
    Sub-batch relevance classifier.

    classify_batch() is pure with respect to persistence; the caller
    decides what to store.
    """

    def __init__(self, client: LLMClient):
        self.client = client
        self.prompt_loader = PromptLoader()

    async def classify_batch(self, announcements: Sequence[Any]) -> List[ClassificationOutcome]:
        """
        Classify announcements in one LLM call.

        Returns:
            One outcome per announcement, in input order

        Raises:
            LLMTimeoutError: the provider did not answer in time
        """
        if not announcements:
            return []

        set_llm_context(task_type="classification")
        prompt = self.prompt_loader.format(
            "classification",
            count=len(announcements),
            announcements=self._format_announcements(announcements),
        )

        try:
            response = await asyncio.to_thread(
                self.client.generate,
                prompt,
                system=self.prompt_loader.get("classification_system"),
                max_tokens=settings.LLM_MAX_TOKENS,
                temperature=settings.LLM_TEMPERATURE,
            )
        except LLMTimeoutError:
            raise
        except LLMError as e:
            logger.warning(f"[classifier] Provider error, using fallback for {len(announcements)} items: {e}")
            return [fallback_outcome(a) for a in announcements]

        return self._parse_response(response.content, announcements)

    def _format_announcements(self, announcements: Sequence[Any]) -> str:
        items = []
        for a in announcements:
            items.append({
                "id": a.id,
                "source": a.source,
                "type": a.announcement_type,
                "title": a.title,
                "description": (a.description or "")[:PROMPT_DESCRIPTION_LENGTH],
                "company": a.verified_company_name or a.company_name,
                "product": a.product_name,
                "form_type": a.form_type,
                "ticker_hint": a.detected_ticker or a.ticker,
                "exchange_hint": a.detected_exchange,
                "published_at": a.published_at.isoformat() if a.published_at else None,
            })
        return json.dumps(items, indent=2)

    def _parse_response(self, raw_output: str, announcements: Sequence[Any]) -> List[ClassificationOutcome]:
        """Map model output to outcomes, padding or truncating to the input length."""
        try:
            items = extract_json_array(raw_output)
        except OutputParseError as e:
            logger.warning(f"[classifier] Unparseable response, using fallback: {e}")
            logger.debug(f"Raw output: {raw_output}")
            return [fallback_outcome(a) for a in announcements]

        if len(items) != len(announcements):
            logger.warning(f"[classifier] Expected {len(announcements)} results, got {len(items)}")

        outcomes = []
        for index, announcement in enumerate(announcements):
            item = items[index] if index < len(items) else None
            if not isinstance(item, dict):
                outcomes.append(fallback_outcome(announcement))
                continue
            outcomes.append(self._validate_item(item, announcement))
        return outcomes

    def _validate_item(self, item: dict, announcement: Any) -> ClassificationOutcome:
        """Validate and clamp each field independently."""
        echoed_id = item.get("id")
        if not self._matches_id(echoed_id, announcement.id):
            logger.debug(f"[classifier] Replacing echoed id {echoed_id!r} with {announcement.id}")

        sentiment = SENTIMENTS.get(str(item.get("sentiment") or "").strip().lower(), "neutral")

        return ClassificationOutcome(
            announcement_id=announcement.id,
            relevance_score=clamp_int(item.get("relevance_score"), default=0),
            priority_level=PRIORITY_LEVELS.get(str(item.get("priority_level") or "").strip().lower(), "medium"),
            sentiment=sentiment,
            sentiment_strength=clamp_int(item.get("sentiment_strength"), default=50),
            summary=self._summary(item.get("summary"), announcement),
            market_impact=self._market_impact(item.get("market_impact"), sentiment),
            tags=self._tags(item.get("tags"), announcement),
            ticker=normalize_ticker(item.get("ticker")),
            exchange=normalize_exchange(item.get("exchange")),
        )

    @staticmethod
    def _matches_id(echoed: Any, expected: str) -> bool:
        try:
            return str(uuid.UUID(str(echoed))) == str(uuid.UUID(expected))
        except ValueError:
            return False

    @staticmethod
    def _summary(value: Any, announcement: Any) -> str:
        if isinstance(value, str) and len(value.strip()) >= 10:
            return value.strip()[:SUMMARY_MAX_LENGTH]
        return default_summary(announcement)

    @staticmethod
    def _market_impact(value: Any, sentiment: str) -> str:
        default = DEFAULT_MARKET_IMPACT[sentiment]
        if not isinstance(value, str) or len(value.strip()) < 6:
            return default
        if _NUMERIC_PREDICTION.search(value):
            return default
        return value.strip()[:MARKET_IMPACT_MAX_LENGTH]

    @staticmethod
    def _tags(value: Any, announcement: Any) -> List[str]:
        if not isinstance(value, list):
            return default_tags(announcement)
        tags: List[str] = []
        for tag in value:
            if not isinstance(tag, str) or not tag.strip():
                continue
            normalized = normalize_tag(tag)
            if normalized not in tags:
                tags.append(normalized)
            if len(tags) == MAX_TAGS:
                break
        return tags or default_tags(announcement)
