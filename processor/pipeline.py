"""
Pipeline - Orchestrates ingestion and classification runs.

Pipeline Flow:
1. Fetch the family's feeds concurrently
2. Normalize, apply the time window and the item limit
3. Upsert announcements and enqueue them
4. Claim pending queue entries
5. Screen out private companies
6. Classify in sub-batches and publish by relevance score
"""
import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from config import settings
from constants import (
    DISCARD_BELOW_SCORE,
    PUBLISH_AT_SCORE,
    CLASSIFIER_SUB_BATCH_SIZE,
)
from crawlers import FeedFailure, FeedFetcher, feeds_for, DATA_SOURCES
from data_transformers import FeedParseError, filter_window, get_transformer
from database.models import Announcement, ProcessingQueueEntry
from database.session import check_connection, get_session
from llm import LLMClient, get_client, set_llm_context
from repositories import (
    AnnouncementRepository,
    ClassificationRepository,
    DataSourceRepository,
    QueueRepository,
)
from utils.utcnow import utcnow
from .classifier import ClassificationOutcome, RelevanceClassifier
from .company_filter import CompanyCandidate, CompanyFilter, unresolved_screening
from .ingestion import IngestionWriter, IngestSummary


FAMILIES = ("fda", "sec")


class ConfigurationError(Exception):
    """Processing cannot start: missing API key or unreachable database."""
    pass


@dataclass
class ProcessSummary:
    """Counts for one classification run."""
    run_id: str
    released_stale: int = 0
    claimed: int = 0
    private: int = 0
    classified: int = 0
    fallbacks: int = 0
    published: int = 0
    stored: int = 0
    discarded: int = 0
    failed: int = 0
    errors: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "released_stale": self.released_stale,
            "claimed": self.claimed,
            "private": self.private,
            "classified": self.classified,
            "fallbacks": self.fallbacks,
            "published": self.published,
            "stored": self.stored,
            "discarded": self.discarded,
            "failed": self.failed,
            "errors": list(self.errors),
        }


def _new_run_id() -> str:
    return utcnow().strftime("%Y%m%d_%H%M%S_%f")


async def ensure_database() -> None:
    """
    Fail fast when the store is unreachable.

    Raises:
        ConfigurationError: the connection check failed
    """
    try:
        await check_connection()
    except Exception as e:
        raise ConfigurationError(f"Database unreachable: {e}") from e


# ============================================================
# INGESTION
# ============================================================

class IngestionPipeline:
    """Fetch, normalize, window and store one feed family."""

    def __init__(self, fetcher: Optional[FeedFetcher] = None):
        self.fetcher = fetcher or FeedFetcher()

    async def ingest(
        self,
        family: str,
        timeframe: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> IngestSummary:
        """
        Ingest the latest entries of 'fda' or 'sec'.

        Fetch and parse failures are isolated per feed and reported in
        `feed_errors`; the other feeds still land.

        Raises:
            ValueError: unknown family
        """
        feeds = feeds_for(family)
        timeframe = timeframe or settings.PIPELINE_TIMEFRAME
        limit = limit if limit is not None else settings.PIPELINE_FETCH_LIMIT

        logger.info(f"[{family}] Ingesting {len(feeds)} feeds (timeframe={timeframe}, limit={limit})")
        batch = await self.fetcher.fetch_all(feeds)
        failures: List[FeedFailure] = list(batch.errors)

        drafts = []
        for document in batch.documents:
            source = document.feed.source
            try:
                normalized = get_transformer(source).transform(document.body, source, document.feed.url)
            except FeedParseError as e:
                logger.error(f"[{source.value}] Parse failed: {e}")
                failures.append(FeedFailure(
                    source=source.value,
                    url=document.feed.url,
                    stage="parse",
                    error=str(e),
                ))
                continue
            drafts.extend(normalized.drafts)

        in_window = filter_window(drafts, timeframe)
        in_window.sort(key=lambda d: d.published_at, reverse=True)
        selected = in_window[:limit] if limit > 0 else in_window

        async with get_session() as session:
            await DataSourceRepository(session).ensure(**DATA_SOURCES[family])
            summary = await IngestionWriter(session).ingest(selected)

        summary.family = family
        summary.feeds_fetched = len(batch.documents)
        summary.entries_normalized = len(drafts)
        summary.entries_in_window = len(in_window)
        summary.feed_errors = [f.to_dict() for f in failures]

        logger.info(
            f"[{family}] {len(drafts)} entries, {len(in_window)} in window, "
            f"{summary.enqueued} enqueued, {len(failures)} feed errors"
        )
        return summary


# ============================================================
# CLASSIFICATION
# ============================================================

class ClassificationPipeline:
    """
    Claims pending queue entries and classifies them.

    Each queue entry moves pending -> processing -> completed | failed.
    Failures are contained: a sub-batch error fails that sub-batch, a
    persistence error fails that item, and the run carries on.
    """

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        sub_batch_size: int = CLASSIFIER_SUB_BATCH_SIZE,
        batch_delay: Optional[float] = None,
        lease_minutes: Optional[int] = None,
    ):
        self.client = client
        self.sub_batch_size = max(1, sub_batch_size)
        self.batch_delay = batch_delay if batch_delay is not None else settings.CLASSIFIER_BATCH_DELAY
        self.lease = timedelta(minutes=lease_minutes or settings.PROCESSING_LEASE_MINUTES)
        self._data_source_ids: Dict[str, str] = {}

    async def preflight(self) -> LLMClient:
        """
        Check the LLM key and the database before touching the queue.

        Raises:
            ConfigurationError: missing API key or unreachable database
        """
        if self.client is None:
            try:
                self.client = get_client()
            except ValueError as e:
                raise ConfigurationError(str(e)) from e

        await ensure_database()
        return self.client

    async def sweep_stale(self) -> int:
        """Return expired 'processing' claims to pending."""
        async with get_session() as session:
            released = await QueueRepository(session).release_stale(self.lease)
        if released:
            logger.warning(f"Released {released} stale processing entries")
        return released

    async def requeue_failed(self, max_retries: int = 3) -> int:
        """Reset failed entries below the retry ceiling to pending."""
        async with get_session() as session:
            requeued = await QueueRepository(session).requeue_failed(max_retries)
        logger.info(f"Requeued {requeued} failed entries (max_retries={max_retries})")
        return requeued

    async def process_pending(self, limit: Optional[int] = None, run_id: Optional[str] = None) -> ProcessSummary:
        """
        Claim and classify up to `limit` pending entries.

        Raises:
            ConfigurationError: preflight failed; nothing was modified
        """
        client = await self.preflight()
        limit = limit if limit is not None else settings.PIPELINE_FETCH_LIMIT
        summary = ProcessSummary(run_id=run_id or _new_run_id())
        set_llm_context(run_id=summary.run_id)

        logger.info(f"=== Classification run {summary.run_id} (limit={limit}) ===")

        summary.released_stale = await self.sweep_stale()

        async with get_session() as session:
            data_source_repo = DataSourceRepository(session)
            for family in FAMILIES:
                source = await data_source_repo.ensure(**DATA_SOURCES[family])
                self._data_source_ids[family] = source.id

            entries = await QueueRepository(session).claim_pending(limit)
            announcements = await AnnouncementRepository(session).get_by_ids(
                [entry.announcement_id for entry in entries]
            )
        summary.claimed = len(entries)

        if not entries:
            logger.info("No pending entries to process")
            return summary

        by_id = {a.id: a for a in announcements}
        work = []
        for entry in entries:
            announcement = by_id.get(entry.announcement_id)
            if announcement is None:
                await self._fail([entry], "Announcement not found", summary)
            else:
                work.append((entry, announcement))

        try:
            work = await self._screen(client, work, summary)

            batches = [work[i:i + self.sub_batch_size] for i in range(0, len(work), self.sub_batch_size)]
            for index, batch in enumerate(batches):
                if index > 0 and self.batch_delay:
                    await asyncio.sleep(self.batch_delay)
                await self._process_batch(client, batch, summary)
        finally:
            await client.flush_logs_async()

        logger.info(
            f"Run {summary.run_id}: {summary.published} published, {summary.stored} stored, "
            f"{summary.discarded} discarded, {summary.private} private, {summary.failed} failed"
        )
        return summary

    async def _screen(self, client: LLMClient, work: List[tuple], summary: ProcessSummary) -> List[tuple]:
        """
        Annotate every claimed announcement; complete the private ones.

        A failed screening write fails that entry only.
        """
        if not work:
            return work

        candidates = [
            CompanyCandidate(
                id=announcement.id,
                company_name=announcement.company_name,
                context=announcement.title,
                ticker_hint=announcement.ticker,
            )
            for _, announcement in work
        ]
        try:
            screenings = await CompanyFilter(client).screen(candidates)
        except Exception as e:
            logger.opt(exception=e).error(f"[company_filter] Screening failed, treating {len(work)} as public")
            screenings = [unresolved_screening(candidate) for candidate in candidates]

        remaining = []
        for (entry, announcement), screening in zip(work, screenings):
            try:
                async with get_session() as session:
                    await AnnouncementRepository(session).apply_screening(
                        announcement.id,
                        is_public=screening.is_public,
                        ticker=screening.ticker,
                        exchange=screening.exchange,
                        company_name=screening.company_name,
                    )
                    if not screening.is_public:
                        await QueueRepository(session).mark_completed(entry.id)
            except Exception as e:
                logger.error(f"Failed to store screening for {announcement.id}: {e}")
                await self._fail([entry], f"Persistence error: {e}", summary)
                continue

            announcement.is_public = screening.is_public
            announcement.detected_ticker = screening.ticker
            announcement.detected_exchange = screening.exchange
            if screening.company_name:
                announcement.verified_company_name = screening.company_name

            if screening.is_public:
                remaining.append((entry, announcement))
            else:
                summary.private += 1

        return remaining

    async def _process_batch(self, client: LLMClient, batch: List[tuple], summary: ProcessSummary) -> None:
        announcements = [announcement for _, announcement in batch]
        try:
            outcomes = await RelevanceClassifier(client).classify_batch(announcements)
        except Exception as e:
            logger.error(f"Sub-batch of {len(batch)} failed: {e}")
            await self._fail([entry for entry, _ in batch], f"{e.__class__.__name__}: {e}", summary)
            return

        for (entry, announcement), outcome in zip(batch, outcomes):
            summary.classified += 1
            if outcome.is_fallback:
                summary.fallbacks += 1
            try:
                async with get_session() as session:
                    result = await self._persist(session, entry, announcement, outcome)
            except Exception as e:
                logger.error(f"Failed to persist classification for {announcement.id}: {e}")
                await self._fail([entry], f"Persistence error: {e}", summary)
                continue
            setattr(summary, result, getattr(summary, result) + 1)

    async def _persist(
        self,
        session,
        entry: ProcessingQueueEntry,
        announcement: Announcement,
        outcome: ClassificationOutcome,
    ) -> str:
        """
        Apply the publication rules.

        Returns:
            "discarded", "stored" or "published"
        """
        queue_repo = QueueRepository(session)
        score = outcome.relevance_score

        if score < DISCARD_BELOW_SCORE:
            await queue_repo.mark_completed(entry.id)
            return "discarded"

        publish = score >= PUBLISH_AT_SCORE
        values = outcome.to_result_values()
        values.update({
            "data_source_id": self._data_source_ids.get(announcement.family),
            "is_published": publish,
            "published_at": utcnow() if publish else None,
        })
        await ClassificationRepository(session).upsert(announcement.id, values)
        await queue_repo.mark_completed(entry.id)
        return "published" if publish else "stored"

    async def _fail(self, entries: Sequence[ProcessingQueueEntry], error: str, summary: ProcessSummary) -> None:
        async with get_session() as session:
            queue_repo = QueueRepository(session)
            for entry in entries:
                await queue_repo.mark_failed(entry.id, error)
                summary.errors.append({"queue_id": entry.id, "announcement_id": entry.announcement_id, "error": error})
        summary.failed += len(entries)


# ============================================================
# FULL RUN
# ============================================================

async def run_pipeline(
    source: str = "both",
    timeframe: Optional[str] = None,
    limit: Optional[int] = None,
    client: Optional[LLMClient] = None,
    fetcher: Optional[FeedFetcher] = None,
) -> Dict[str, Any]:
    """
    Ingest one or both feed families, then process the queue.

    Returns:
        Dict with run_id, status ("success" or "no_new"), steps and stats

    Raises:
        ValueError: unknown source
        ConfigurationError: preflight failed before any ingestion
    """
    families = FAMILIES if source == "both" else (source,)
    for family in families:
        if family not in FAMILIES:
            raise ValueError(f"Unknown source: {source}. Available: fda, sec, both")

    run_start = utcnow()
    run_id = _new_run_id()
    logger.info(f"=== Starting Pipeline Run {run_id} ({source}) ===")

    processor = ClassificationPipeline(client=client)
    await processor.preflight()

    results: Dict[str, Any] = {
        "run_id": run_id,
        "source": source,
        "status": "in_progress",
        "steps": {},
    }

    ingestion = IngestionPipeline(fetcher=fetcher)
    enqueued = 0
    for family in families:
        ingest_summary = await ingestion.ingest(family, timeframe=timeframe, limit=limit)
        results["steps"][f"ingest_{family}"] = ingest_summary.to_dict()
        enqueued += ingest_summary.enqueued

    process_summary = await processor.process_pending(limit=limit, run_id=run_id)
    results["steps"]["process"] = process_summary.to_dict()

    results["stats"] = {
        "enqueued": enqueued,
        "claimed": process_summary.claimed,
        "published": process_summary.published,
        "failed": process_summary.failed,
    }
    results["duration_seconds"] = (utcnow() - run_start).total_seconds()

    if enqueued == 0 and process_summary.claimed == 0:
        results["status"] = "no_new"
        results["message"] = "No new announcements found in the selected timeframe"
    else:
        results["status"] = "success"

    logger.info(f"=== Pipeline Run {run_id} {results['status']} in {results['duration_seconds']:.1f}s ===")
    return results


__all__ = [
    "FAMILIES",
    "ConfigurationError",
    "ensure_database",
    "ProcessSummary",
    "IngestionPipeline",
    "ClassificationPipeline",
    "run_pipeline",
]
