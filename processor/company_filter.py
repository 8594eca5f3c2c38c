"""
Company Filter - Public-company screening before classification.

Announcements about private companies, agencies or universities have no
tradable issuer; they are screened out here so the classifier only spends
tokens on listed names.
"""
import asyncio
import json
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from config import settings
from constants import EXCHANGES
from llm import LLMClient, LLMError, set_llm_context
from prompts import PromptLoader
from .output_parser import OutputParseError, extract_json_array


@dataclass
class CompanyCandidate:
    """One announcement to screen."""
    id: str
    company_name: Optional[str]
    context: str = ""
    ticker_hint: Optional[str] = None


@dataclass
class CompanyScreening:
    """Screening verdict for one candidate."""
    id: str
    is_public: bool
    ticker: Optional[str] = None
    exchange: Optional[str] = None
    company_name: Optional[str] = None
    is_fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "is_public": self.is_public,
            "ticker": self.ticker,
            "exchange": self.exchange,
            "company_name": self.company_name,
            "is_fallback": self.is_fallback,
        }


# Placeholder answers the model gives when it has no symbol
_NON_TICKERS = {"N/A", "NA", "NONE", "NULL", "NIL", "UNKNOWN", "PRIVATE", "TBD", "-", "--"}
_TICKER = re.compile(r"^[A-Z][A-Z0-9.\-]{0,9}$")


def normalize_ticker(value) -> Optional[str]:
    """Uppercase symbol, or None for anything that is not one."""
    if not isinstance(value, str):
        return None
    ticker = value.strip().lstrip("$").upper()
    if ticker in _NON_TICKERS or not _TICKER.match(ticker):
        return None
    return ticker


def normalize_exchange(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    exchange = value.strip().upper()
    return EXCHANGES.get(exchange)


def unresolved_screening(candidate: CompanyCandidate) -> CompanyScreening:
    """Public, with whatever the feed already told us."""
    return CompanyScreening(
        id=candidate.id,
        is_public=True,
        ticker=normalize_ticker(candidate.ticker_hint),
        company_name=candidate.company_name,
        is_fallback=True,
    )


class CompanyFilter:
    """
    Batched public/private screening through the LLM.

    Batches are sent sequentially with a fixed delay. Any failure falls
    back to "public, unresolved" so nothing is dropped on a provider outage.
    """

    def __init__(
        self,
        client: LLMClient,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ):
        self.client = client
        self.batch_size = max(1, batch_size or settings.COMPANY_FILTER_BATCH_SIZE)
        self.batch_delay = batch_delay if batch_delay is not None else settings.COMPANY_FILTER_BATCH_DELAY
        self.prompt_loader = PromptLoader()

    async def screen(self, candidates: Sequence[CompanyCandidate]) -> List[CompanyScreening]:
        """
        Screen candidates.

        Returns:
            One CompanyScreening per candidate, in input order
        """
        verdicts = {}

        # No name, nothing to look up: keep as public, unresolved
        named = []
        for candidate in candidates:
            if candidate.company_name and candidate.company_name.strip():
                named.append(candidate)
            else:
                verdicts[candidate.id] = unresolved_screening(candidate)

        set_llm_context(task_type="company_filter")
        for start in range(0, len(named), self.batch_size):
            if start > 0 and self.batch_delay:
                await asyncio.sleep(self.batch_delay)
            batch = named[start:start + self.batch_size]
            for screening in await self._screen_batch(batch):
                verdicts[screening.id] = screening

        results = [verdicts[candidate.id] for candidate in candidates]
        private_count = sum(1 for r in results if not r.is_public)
        logger.info(f"[company_filter] Screened {len(results)} candidates: {private_count} private")
        return results

    async def _screen_batch(self, batch: List[CompanyCandidate]) -> List[CompanyScreening]:
        prompt = self.prompt_loader.format(
            "company_filter",
            count=len(batch),
            companies=json.dumps(
                [
                    {"id": c.id, "company_name": c.company_name, "context": c.context[:200]}
                    for c in batch
                ],
                indent=2,
            ),
        )

        try:
            response = await asyncio.to_thread(
                self.client.generate,
                prompt,
                system=self.prompt_loader.get("company_filter_system"),
                max_tokens=settings.LLM_MAX_TOKENS,
                temperature=settings.LLM_TEMPERATURE,
            )
            items = extract_json_array(response.content)
        except (LLMError, OutputParseError) as e:
            logger.warning(f"[company_filter] Batch of {len(batch)} fell back to public: {e}")
            return [
                CompanyScreening(id=c.id, is_public=True, company_name=c.company_name, is_fallback=True)
                for c in batch
            ]

        if len(items) != len(batch):
            logger.warning(f"[company_filter] Expected {len(batch)} results, got {len(items)}")

        results = []
        for index, candidate in enumerate(batch):
            item = items[index] if index < len(items) else None
            results.append(self._to_screening(candidate, item))
        return results

    def _to_screening(self, candidate: CompanyCandidate, item) -> CompanyScreening:
        if not isinstance(item, dict):
            return unresolved_screening(candidate)

        is_public = item.get("is_public")
        if not isinstance(is_public, bool):
            is_public = True

        name = item.get("company_name")
        if not isinstance(name, str) or not name.strip():
            name = candidate.company_name

        return CompanyScreening(
            id=candidate.id,
            is_public=is_public,
            ticker=normalize_ticker(item.get("ticker")) if is_public else None,
            exchange=normalize_exchange(item.get("exchange")) if is_public else None,
            company_name=name.strip() if name else None,
        )
