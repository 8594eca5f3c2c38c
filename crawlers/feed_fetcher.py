"""
Feed Fetcher - Retrieve raw RSS, Atom and openFDA JSON documents over HTTP.

Government feed servers reject default HTTP clients, so every request
carries a browser-like User-Agent. Several feeds are fetched concurrently;
one feed failing never aborts its siblings.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

import httpx
from loguru import logger

from config import settings
from constants import FetchErrorKind
from utils.utcnow import utcnow
from .feeds import FeedSpec


# ============================================================
# RESULT TYPES
# ============================================================

class FetchError(Exception):
    """A feed could not be retrieved."""

    def __init__(
        self,
        url: str,
        kind: FetchErrorKind,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.url = url
        self.kind = kind
        self.status_code = status_code
        self.message = message
        super().__init__(f"{kind.value}: {message} ({url})")

    @property
    def retryable(self) -> bool:
        if self.kind == FetchErrorKind.HTTP_STATUS:
            return self.status_code is not None and (self.status_code >= 500 or self.status_code == 429)
        return self.kind in (FetchErrorKind.TIMEOUT, FetchErrorKind.DNS, FetchErrorKind.CONNECTION)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "kind": self.kind.value,
            "status_code": self.status_code,
            "message": self.message,
        }


@dataclass
class FetchedDocument:
    """Raw body of one feed."""
    feed: FeedSpec
    body: str
    fetched_at: datetime
    status_code: int = 200


@dataclass
class FeedFailure:
    """A feed that could not be fetched or parsed."""
    source: str
    url: str
    stage: str  # "fetch" or "parse"
    error: str
    kind: Optional[str] = None
    status_code: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "url": self.url,
            "stage": self.stage,
            "error": self.error,
            "kind": self.kind,
            "status_code": self.status_code,
        }


@dataclass
class FetchBatch:
    """Partial-success result of fetching several feeds."""
    documents: List[FetchedDocument] = field(default_factory=list)
    errors: List[FeedFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.documents) > 0

    def to_dict(self) -> dict:
        return {
            "fetched": [d.feed.name for d in self.documents],
            "errors": [e.to_dict() for e in self.errors],
        }


# ============================================================
# FETCHER
# ============================================================

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "getaddrinfo",
    "no address associated",
)


class FeedFetcher:
    """
    HTTP fetcher for regulatory feeds.

    Retries timeouts, connection errors, 5xx and 429 responses up to
    `max_retries` attempts with a fixed delay.
    """

    HEADERS = {
        "Accept": "application/rss+xml, application/atom+xml, application/json, application/xml;q=0.9, text/xml;q=0.8, */*;q=0.5",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
    }

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            timeout: Per-request timeout in seconds (default 30)
            max_retries: Total attempts per feed
            retry_delay: Seconds between attempts
            user_agent: Browser-like User-Agent header
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.timeout = timeout if timeout is not None else settings.FEED_TIMEOUT_SECONDS
        self.max_retries = max(1, max_retries if max_retries is not None else settings.FEED_MAX_RETRIES)
        self.retry_delay = retry_delay if retry_delay is not None else settings.FEED_RETRY_DELAY
        self.headers = {**self.HEADERS, "User-Agent": user_agent or settings.FEED_USER_AGENT}
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers=self.headers,
            follow_redirects=True,
            transport=self._transport,
        )

    async def fetch(self, url: str, client: Optional[httpx.AsyncClient] = None) -> str:
        """
        Fetch one feed document.

        Returns:
            Response body text

        Raises:
            FetchError: after the last attempt, or immediately for non-retryable errors
        """
        if client is None:
            async with self._client() as own_client:
                return await self.fetch(url, client=own_client)

        last_error: Optional[FetchError] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await client.get(url)
                response.raise_for_status()
                body = response.text
                if not body or not body.strip():
                    raise FetchError(url, FetchErrorKind.EMPTY, "Empty response body", response.status_code)
                return body

            except FetchError:
                raise

            except httpx.HTTPStatusError as e:
                last_error = FetchError(
                    url,
                    FetchErrorKind.HTTP_STATUS,
                    f"HTTP {e.response.status_code}",
                    status_code=e.response.status_code,
                )

            except httpx.TimeoutException as e:
                last_error = FetchError(url, FetchErrorKind.TIMEOUT, f"Timed out after {self.timeout}s: {e}")

            except httpx.ConnectError as e:
                message = str(e)
                kind = FetchErrorKind.DNS if any(m in message.lower() for m in _DNS_MARKERS) else FetchErrorKind.CONNECTION
                last_error = FetchError(url, kind, message or "Connection failed")

            except httpx.RequestError as e:
                last_error = FetchError(url, FetchErrorKind.CONNECTION, str(e) or e.__class__.__name__)

            if not last_error.retryable:
                logger.warning(f"Feed fetch failed (not retrying): {last_error}")
                raise last_error

            logger.warning(f"Feed fetch error (attempt {attempt}/{self.max_retries}): {last_error}")
            if attempt < self.max_retries:
                logger.info(f"Retrying in {self.retry_delay}s...")
                await asyncio.sleep(self.retry_delay)

        raise last_error

    async def _fetch_feed(self, feed: FeedSpec, client: httpx.AsyncClient) -> FetchedDocument:
        logger.info(f"[{feed.name}] Fetching {feed.url}")
        body = await self.fetch(feed.url, client=client)
        logger.info(f"[{feed.name}] Received {len(body)} bytes")
        return FetchedDocument(feed=feed, body=body, fetched_at=utcnow())

    async def fetch_all(self, feeds: Sequence[FeedSpec]) -> FetchBatch:
        """
        Fetch several feeds concurrently.

        Returns:
            FetchBatch with the documents that succeeded and one FeedFailure
            per feed that did not
        """
        batch = FetchBatch()
        if not feeds:
            return batch

        async with self._client() as client:
            results = await asyncio.gather(
                *(self._fetch_feed(feed, client) for feed in feeds),
                return_exceptions=True,
            )

        for feed, result in zip(feeds, results):
            if isinstance(result, FetchedDocument):
                batch.documents.append(result)
            elif isinstance(result, FetchError):
                logger.error(f"[{feed.name}] Fetch failed: {result}")
                batch.errors.append(FeedFailure(
                    source=feed.name,
                    url=feed.url,
                    stage="fetch",
                    error=result.message,
                    kind=result.kind.value,
                    status_code=result.status_code,
                ))
            elif isinstance(result, BaseException):
                logger.opt(exception=result).error(f"[{feed.name}] Unexpected fetch error")
                batch.errors.append(FeedFailure(
                    source=feed.name,
                    url=feed.url,
                    stage="fetch",
                    error=str(result) or result.__class__.__name__,
                ))

        return batch
