import json

import httpx
import pytest
import pytest_asyncio

from api.main import app
from config import settings
from database import get_session
from processor import ClassificationPipeline, IngestionPipeline, IngestionWriter
from repositories import AnnouncementRepository, ClassificationRepository
from utils.utcnow import utcnow


@pytest_asyncio.fixture
async def client(db):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http


async def _publish(draft, sentiment="bullish", priority="high"):
    async with get_session() as session:
        await IngestionWriter(session).ingest([draft])
    async with get_session() as session:
        announcement = await AnnouncementRepository(session).get_by_native_id(draft.source.value, draft.source_native_id)
        await ClassificationRepository(session).upsert(announcement.id, {
            "ticker": "ACME",
            "exchange": "NASDAQ",
            "relevance_score": 85,
            "priority_level": priority,
            "sentiment": sentiment,
            "sentiment_strength": 70,
            "summary": "Acme received FDA approval for its lead therapy.",
            "market_impact": "Positive catalyst for the issuer",
            "tags": ["drug_approval", "fda", "regulatory"],
            "is_published": True,
            "published_at": utcnow(),
        })
    return announcement


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["queue"]["pending"] == 0


@pytest.mark.asyncio
async def test_news_empty_before_anything_is_published(client):
    response = await client.get("/api/news")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "empty"
    assert body["items"] == []


@pytest.mark.asyncio
async def test_news_lists_published_items(client, make_draft):
    announcement = await _publish(make_draft())

    body = (await client.get("/api/news", params={"timeframe": "24h"})).json()

    assert body["status"] == "ok"
    assert body["count"] == 1
    [item] = body["items"]
    assert item["id"] == announcement.id
    assert item["ticker"] == "ACME"
    assert item["category"] == "drug_approval"
    assert body["stats"]["sentiment"] == {"bullish": 1}


@pytest.mark.asyncio
async def test_news_filters_matching_nothing(client, make_draft):
    await _publish(make_draft())

    body = (await client.get("/api/news", params={"sentiment": "bearish"})).json()

    assert body["status"] == "ok"
    assert body["count"] == 0
    assert body["message"]


@pytest.mark.asyncio
async def test_stats(client, make_draft):
    await _publish(make_draft())
    await _publish(make_draft(), priority="medium")

    body = (await client.get("/api/stats")).json()

    assert body["published_today"] == 2
    assert body["high_priority_24h"] == 1
    assert body["trend"] == {"last_6h": 2, "previous_6h": 0, "direction": "up"}


@pytest.mark.asyncio
async def test_process_without_api_key_is_503(client, monkeypatch):
    monkeypatch.setattr(settings, "LLM_API_KEY", "")

    response = await client.post("/api/process")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "error"
    assert body["retryable"] is True
    assert "API key" in body["error"]


@pytest.mark.asyncio
async def test_unknown_family_is_400(client):
    response = await client.post("/api/ingest/ftc")

    assert response.status_code == 400
    assert response.json()["retryable"] is False


@pytest.mark.asyncio
async def test_unknown_pipeline_source_is_400(client):
    response = await client.post("/api/pipeline/run", params={"source": "nasdaq"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_queue_sweep(client):
    response = await client.post("/api/queue/sweep")
    assert response.json() == {"status": "success", "released": 0}


@pytest.mark.asyncio
async def test_llm_call_history_endpoints(client, fake_llm, make_draft):
    async with get_session() as session:
        await IngestionWriter(session).ingest([make_draft()])

    def handler(task_type, prompt):
        ids = fake_llm.ids_in(prompt)
        if task_type == "company_filter":
            return json.dumps([{"id": i, "is_public": True, "ticker": "ACME"} for i in ids])
        return json.dumps([{"id": i, "relevance_score": 75, "sentiment": "bullish"} for i in ids])

    await ClassificationPipeline(client=fake_llm(handler)).process_pending(run_id="run-api")

    run = (await client.get("/api/llm/runs/run-api")).json()
    assert run["count"] == 2
    assert {c["task_type"] for c in run["calls"]} == {"company_filter", "classification"}

    export = (await client.get("/api/llm/export", params={"task_type": "classification"})).json()
    assert export["count"] == 1
    [record] = export["records"]
    assert [m["role"] for m in record["messages"]] == ["system", "user", "assistant"]

    stats = (await client.get("/api/llm/stats")).json()
    assert stats["total_calls"] == 2
    assert stats["by_task_type"]["classification"]["calls"] == 1


@pytest.mark.asyncio
async def test_ingest_with_unreachable_database_is_503(client, monkeypatch):
    async def unreachable():
        raise OSError("unable to open database file")

    async def ingest(self, *args, **kwargs):
        raise AssertionError("feeds fetched before the database check")

    monkeypatch.setattr("processor.pipeline.check_connection", unreachable)
    monkeypatch.setattr(IngestionPipeline, "ingest", ingest)

    response = await client.post("/api/ingest/fda")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "error"
    assert body["retryable"] is True
    assert "Database unreachable" in body["error"]
