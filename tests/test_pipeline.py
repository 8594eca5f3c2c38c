import json
from datetime import timedelta

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from config import settings
from constants import QueueStatus
from crawlers import FeedFetcher
from database import DataSource, LLMCallHistory, get_session
from llm import LLMTimeoutError
from processor import (
    ClassificationPipeline,
    CompanyFilter,
    ConfigurationError,
    IngestionPipeline,
    IngestionWriter,
    run_pipeline,
)
from repositories import AnnouncementRepository, ClassificationRepository, QueueRepository


def _classification(announcement_id, score):
    return {
        "id": announcement_id,
        "ticker": "ACME",
        "exchange": "NASDAQ",
        "relevance_score": score,
        "priority_level": "high" if score >= 70 else "medium",
        "sentiment": "bullish",
        "sentiment_strength": 65,
        "summary": "Acme received approval for a first-in-class therapy.",
        "market_impact": "Positive catalyst for the issuer",
        "tags": ["drug_approval", "fda"],
    }


def scripted(fake_llm, scores=None, private=(), classify_error=None):
    """
    FakeLLMClient answering both stages.

    scores: announcement id -> relevance score (default 80)
    private: announcement ids screened as private
    """
    scores = scores or {}

    def handler(task_type, prompt):
        ids = fake_llm.ids_in(prompt)
        if task_type == "company_filter":
            return json.dumps([
                {"id": i, "company_name": "Acme Therapeutics Inc.", "is_public": i not in private,
                 "ticker": "ACME", "exchange": "NASDAQ"}
                for i in ids
            ])
        if classify_error is not None:
            raise classify_error
        return json.dumps([_classification(i, scores.get(i, 80)) for i in ids])

    return fake_llm(handler)


async def _seed(drafts):
    async with get_session() as session:
        await IngestionWriter(session).ingest(drafts)
    ids = []
    async with get_session() as session:
        repo = AnnouncementRepository(session)
        for draft in drafts:
            ids.append((await repo.get_by_native_id(draft.source.value, draft.source_native_id)).id)
    return ids


async def _queue_entry(announcement_id):
    async with get_session() as session:
        return await QueueRepository(session).get_by_announcement(announcement_id)


async def _result(announcement_id):
    async with get_session() as session:
        return await ClassificationRepository(session).get_by_announcement(announcement_id)


def _fetcher(fda_rss, sec_atom, medwatch=None):
    def handler(request):
        if request.url.host == "www.sec.gov":
            return httpx.Response(200, text=sec_atom)
        if "medwatch" in request.url.path:
            if medwatch is None:
                raise httpx.ConnectError("Connection refused", request=request)
            return httpx.Response(200, text=medwatch)
        return httpx.Response(200, text=fda_rss)

    return FeedFetcher(max_retries=1, retry_delay=0, transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_publication_thresholds(db, fake_llm, make_draft):
    low, mid, high = await _seed([make_draft(), make_draft(), make_draft()])
    client = scripted(fake_llm, scores={low: 20, mid: 40, high: 80})

    summary = await ClassificationPipeline(client=client).process_pending()

    assert summary.claimed == 3
    assert (summary.discarded, summary.stored, summary.published) == (1, 1, 1)
    assert summary.failed == 0

    assert await _result(low) is None
    stored = await _result(mid)
    assert stored.is_published is False
    assert stored.published_at is None
    published = await _result(high)
    assert published.is_published is True
    assert published.published_at is not None
    assert published.ticker == "ACME"

    async with get_session() as session:
        fda_source = (await session.execute(select(DataSource).where(DataSource.name == "FDA"))).scalar_one()
    assert published.data_source_id == fda_source.id

    for announcement_id in (low, mid, high):
        assert (await _queue_entry(announcement_id)).status == QueueStatus.COMPLETED.value


@pytest.mark.asyncio
async def test_classifier_runs_in_sub_batches_of_two(db, fake_llm, make_draft):
    await _seed([make_draft() for _ in range(3)])
    client = scripted(fake_llm)

    await ClassificationPipeline(client=client).process_pending()

    classification_calls = [c for c in client.calls if c["task_type"] == "classification"]
    assert [len(fake_llm.ids_in(c["prompt"])) for c in classification_calls] == [2, 1]


@pytest.mark.asyncio
async def test_private_company_is_never_classified(db, fake_llm, make_draft):
    public_id, private_id = await _seed([make_draft(), make_draft()])
    client = scripted(fake_llm, private={private_id})

    summary = await ClassificationPipeline(client=client).process_pending()

    assert summary.private == 1
    assert summary.published == 1
    assert await _result(private_id) is None
    assert (await _queue_entry(private_id)).status == QueueStatus.COMPLETED.value
    for call in client.calls:
        if call["task_type"] == "classification":
            assert private_id not in fake_llm.ids_in(call["prompt"])

    async with get_session() as session:
        screened = await AnnouncementRepository(session).get(private_id)
        assert screened.is_public is False
        assert screened.detected_ticker is None


@pytest.mark.asyncio
async def test_sub_batch_timeout_marks_entries_failed(db, fake_llm, make_draft):
    ids = await _seed([make_draft(), make_draft()])
    client = scripted(fake_llm, classify_error=LLMTimeoutError("timed out after 60s"))

    summary = await ClassificationPipeline(client=client).process_pending()

    assert summary.failed == 2
    assert summary.published == 0
    for announcement_id in ids:
        entry = await _queue_entry(announcement_id)
        assert entry.status == QueueStatus.FAILED.value
        assert entry.retry_count == 1
        assert entry.error_message.startswith("LLMTimeoutError")
        assert await _result(announcement_id) is None


@pytest.mark.asyncio
async def test_failed_sub_batch_does_not_stop_the_next(db, fake_llm, make_draft):
    ids = await _seed([make_draft() for _ in range(4)])
    classified = []

    def handler(task_type, prompt):
        batch = fake_llm.ids_in(prompt)
        if task_type == "company_filter":
            return json.dumps([{"id": i, "is_public": True, "ticker": "ACME"} for i in batch])
        classified.append(batch)
        if len(classified) == 1:
            raise LLMTimeoutError("timed out after 60s")
        return json.dumps([_classification(i, 80) for i in batch])

    summary = await ClassificationPipeline(client=fake_llm(handler)).process_pending()

    assert len(classified) == 2
    assert (summary.failed, summary.published) == (2, 2)
    timed_out = set(classified[0])
    for announcement_id in ids:
        entry = await _queue_entry(announcement_id)
        if announcement_id in timed_out:
            assert entry.status == QueueStatus.FAILED.value
        else:
            assert entry.status == QueueStatus.COMPLETED.value
            assert (await _result(announcement_id)).is_published is True


@pytest.mark.asyncio
async def test_result_write_failure_fails_only_that_item(db, fake_llm, make_draft, monkeypatch):
    broken, sibling = await _seed([make_draft(), make_draft()])
    original_upsert = ClassificationRepository.upsert

    async def upsert(self, announcement_id, values):
        if announcement_id == broken:
            raise OperationalError("INSERT INTO classification_results", {}, Exception("database is locked"))
        return await original_upsert(self, announcement_id, values)

    monkeypatch.setattr(ClassificationRepository, "upsert", upsert)

    summary = await ClassificationPipeline(client=scripted(fake_llm)).process_pending()

    assert (summary.failed, summary.published) == (1, 1)
    failed = await _queue_entry(broken)
    assert failed.status == QueueStatus.FAILED.value
    assert failed.error_message.startswith("Persistence error")
    assert await _result(broken) is None
    assert (await _queue_entry(sibling)).status == QueueStatus.COMPLETED.value
    assert (await _result(sibling)).is_published is True


@pytest.mark.asyncio
async def test_screening_write_failure_fails_only_that_item(db, fake_llm, make_draft, monkeypatch):
    broken, *healthy = await _seed([make_draft() for _ in range(3)])
    original_apply = AnnouncementRepository.apply_screening

    async def apply_screening(self, announcement_id, **values):
        if announcement_id == broken:
            raise OperationalError("UPDATE announcements", {}, Exception("database is locked"))
        return await original_apply(self, announcement_id, **values)

    monkeypatch.setattr(AnnouncementRepository, "apply_screening", apply_screening)
    client = scripted(fake_llm)

    summary = await ClassificationPipeline(client=client).process_pending()

    assert (summary.failed, summary.published) == (1, 2)
    failed = await _queue_entry(broken)
    assert failed.status == QueueStatus.FAILED.value
    assert failed.error_message.startswith("Persistence error")
    for announcement_id in healthy:
        assert (await _queue_entry(announcement_id)).status == QueueStatus.COMPLETED.value
    for call in client.calls:
        if call["task_type"] == "classification":
            assert broken not in fake_llm.ids_in(call["prompt"])


@pytest.mark.asyncio
async def test_screening_crash_keeps_everyone_public(db, fake_llm, make_draft, monkeypatch):
    ids = await _seed([make_draft(), make_draft()])

    async def screen(self, candidates):
        raise RuntimeError("unexpected screening bug")

    monkeypatch.setattr(CompanyFilter, "screen", screen)

    summary = await ClassificationPipeline(client=scripted(fake_llm)).process_pending()

    assert (summary.private, summary.failed, summary.published) == (0, 0, 2)
    for announcement_id in ids:
        assert (await _queue_entry(announcement_id)).status == QueueStatus.COMPLETED.value


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_touching_queue(db, monkeypatch, make_draft):
    [announcement_id] = await _seed([make_draft()])
    monkeypatch.setattr(settings, "LLM_API_KEY", "")

    with pytest.raises(ConfigurationError):
        await ClassificationPipeline().process_pending()

    assert (await _queue_entry(announcement_id)).status == QueueStatus.PENDING.value


@pytest.mark.asyncio
async def test_stale_claim_is_recovered_on_next_run(db, fake_llm, make_draft):
    [announcement_id] = await _seed([make_draft()])
    async with get_session() as session:
        assert len(await QueueRepository(session).claim_pending(1)) == 1

    # Zero-minute lease: any processing claim is already stale
    pipeline = ClassificationPipeline(client=scripted(fake_llm))
    pipeline.lease = timedelta(0)
    summary = await pipeline.process_pending()

    assert summary.released_stale == 1
    assert summary.published == 1
    assert (await _queue_entry(announcement_id)).status == QueueStatus.COMPLETED.value


@pytest.mark.asyncio
async def test_llm_calls_are_recorded(db, fake_llm, make_draft):
    await _seed([make_draft()])
    client = scripted(fake_llm)

    summary = await ClassificationPipeline(client=client).process_pending(run_id="run-123")

    async with get_session() as session:
        rows = (await session.execute(select(LLMCallHistory))).scalars().all()
    assert sorted(r.task_type for r in rows) == ["classification", "company_filter"]
    assert {r.run_id for r in rows} == {"run-123"}
    assert summary.run_id == "run-123"
    assert client.get_pending_logs() == []


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_ingest_isolates_failing_feed_and_applies_window(db, fda_rss, sec_atom):
    pipeline = IngestionPipeline(fetcher=_fetcher(fda_rss, sec_atom))

    summary = await pipeline.ingest("fda", timeframe="24h")

    assert summary.feeds_fetched == 1
    assert summary.entries_normalized == 2
    assert summary.entries_in_window == 1
    assert (summary.inserted, summary.enqueued) == (1, 1)
    [failure] = summary.feed_errors
    assert failure["source"] == "FDA MedWatch"
    assert failure["stage"] == "fetch"

    again = await pipeline.ingest("fda", timeframe="24h")
    assert (again.inserted, again.updated, again.enqueued, again.skipped) == (0, 1, 0, 1)


@pytest.mark.asyncio
async def test_ingest_reports_unparseable_feed(db, fda_rss, sec_atom):
    pipeline = IngestionPipeline(fetcher=_fetcher(fda_rss, sec_atom, medwatch="<html><body>Maintenance"))

    summary = await pipeline.ingest("fda", timeframe="1w")

    assert summary.entries_in_window == 2
    [failure] = summary.feed_errors
    assert failure["stage"] == "parse"


@pytest.mark.asyncio
async def test_ingest_openfda_records(db, monkeypatch, fda_rss, openfda_drugs, openfda_recalls, openfda_510k):
    monkeypatch.setattr(settings, "OPENFDA_ENABLED", True)
    documents = {
        "/drug/drugsfda.json": openfda_drugs,
        "/drug/enforcement.json": openfda_recalls,
        "/device/510k.json": openfda_510k,
    }

    def handler(request):
        if request.url.host == "api.fda.gov":
            return httpx.Response(200, text=documents[request.url.path])
        return httpx.Response(200, text=fda_rss)

    fetcher = FeedFetcher(max_retries=1, retry_delay=0, transport=httpx.MockTransport(handler))

    summary = await IngestionPipeline(fetcher=fetcher).ingest("fda", timeframe="24h", limit=50)

    assert summary.feeds_fetched == 5
    assert summary.feed_errors == []
    assert summary.entries_normalized == 8
    assert (summary.entries_in_window, summary.inserted, summary.enqueued) == (5, 5, 5)

    async with get_session() as session:
        recall = await AnnouncementRepository(session).get_by_native_id("openFDA Enforcement", "fda-safety-D-0101-2025")
    assert recall.company_name == "Acme Pharmaceuticals Inc."
    assert recall.classification_code == "Class I"
    assert recall.family == "fda"


@pytest.mark.asyncio
async def test_ingest_limit_keeps_newest(db, fda_rss, sec_atom):
    summary = await IngestionPipeline(fetcher=_fetcher(fda_rss, sec_atom)).ingest("sec", limit=1)

    assert summary.entries_in_window == 2
    assert summary.inserted == 1
    async with get_session() as session:
        [announcement] = await AnnouncementRepository(session).get_by_ids(
            [e.announcement_id for e in await QueueRepository(session).select_pending(10)]
        )
    assert announcement.form_type == "8-K"


# ---------------------------------------------------------------------------
# Full run
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_run_pipeline_then_no_new(db, fake_llm, fda_rss, sec_atom):
    fetcher = _fetcher(fda_rss, sec_atom)
    client = scripted(fake_llm)

    first = await run_pipeline(source="both", client=client, fetcher=fetcher)

    assert first["status"] == "success"
    assert first["stats"]["enqueued"] == 3
    assert first["stats"]["published"] == 3
    assert set(first["steps"]) == {"ingest_fda", "ingest_sec", "process"}

    second = await run_pipeline(source="both", client=client, fetcher=fetcher)
    assert second["status"] == "no_new"
    assert second["message"]

    async with get_session() as session:
        assert await ClassificationRepository(session).count_published() == 3


@pytest.mark.asyncio
async def test_run_pipeline_rejects_unknown_source(db, fake_llm):
    with pytest.raises(ValueError):
        await run_pipeline(source="ftc", client=scripted(fake_llm))


@pytest.mark.asyncio
async def test_run_pipeline_preflight_precedes_ingestion(db, monkeypatch, fda_rss, sec_atom):
    monkeypatch.setattr(settings, "LLM_API_KEY", "")

    with pytest.raises(ConfigurationError):
        await run_pipeline(source="fda", fetcher=_fetcher(fda_rss, sec_atom))

    async with get_session() as session:
        assert await AnnouncementRepository(session).count() == 0
