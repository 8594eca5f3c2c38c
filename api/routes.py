"""
API Routes - All endpoint definitions for the Regulatory Catalyst Dashboard

Endpoints organized by:
- Health Check
- News (published classifications)
- Stats (dashboard counters and activity trend)
- Pipeline (ingest, process, full run)
- Queue (requeue failed, sweep stale claims)
- LLM call history (audit, fine-tune export)
"""
from collections import Counter
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from constants import PriorityLevel
from data_transformers import resolve_cutoff
from database import check_connection, get_session, get_session_dependency
from processor import FAMILIES, ClassificationPipeline, IngestionPipeline, ensure_database, run_pipeline
from repositories import ClassificationRepository, LLMHistoryRepository, QueueRepository
from utils.utcnow import utcnow

router = APIRouter()


def error_response(status_code: int, error: str, retryable: bool = True) -> JSONResponse:
    """Uniform error body for failed requests."""
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "retryable": retryable, "error": error},
    )


def _news_item(result, announcement) -> dict:
    return {
        "id": announcement.id,
        "source": announcement.source,
        "title": announcement.title,
        "description": announcement.description,
        "link": announcement.link,
        "category": announcement.announcement_type,
        "company_name": announcement.verified_company_name or announcement.company_name,
        "product_name": announcement.product_name,
        "form_type": announcement.form_type,
        "announced_at": announcement.published_at.isoformat() if announcement.published_at else None,
        "ticker": result.ticker,
        "exchange": result.exchange,
        "relevance_score": result.relevance_score,
        "priority_level": result.priority_level,
        "sentiment": result.sentiment,
        "sentiment_strength": result.sentiment_strength,
        "summary": result.summary,
        "market_impact": result.market_impact,
        "tags": result.tags or [],
        "is_fallback": result.is_fallback,
        "published_at": result.published_at.isoformat() if result.published_at else None,
    }


def _news_stats(items: list) -> dict:
    if not items:
        return {
            "sentiment": {},
            "priority": {},
            "category": {},
            "source": {},
            "avg_relevance": 0,
            "avg_sentiment_strength": 0,
            "with_ticker": 0,
        }
    return {
        "sentiment": dict(Counter(i["sentiment"] for i in items)),
        "priority": dict(Counter(i["priority_level"] for i in items)),
        "category": dict(Counter(i["category"] for i in items)),
        "source": dict(Counter(i["source"] for i in items)),
        "avg_relevance": round(sum(i["relevance_score"] for i in items) / len(items), 1),
        "avg_sentiment_strength": round(sum(i["sentiment_strength"] for i in items) / len(items), 1),
        "with_ticker": sum(1 for i in items if i["ticker"]),
    }


# ============================================================
# Health Check
# ============================================================
@router.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        await check_connection()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return error_response(503, f"Database unreachable: {e}")

    async with get_session() as session:
        queue = await QueueRepository(session).count_by_status()

    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "database": str(settings.DATABASE_PATH),
        "queue": queue,
    }


# ============================================================
# News
# ============================================================
@router.get("/news")
async def list_news(
    priority: Optional[str] = None,
    category: Optional[str] = None,
    sentiment: Optional[str] = None,
    source: Optional[str] = None,
    timeframe: Optional[str] = Query(default=None, description="1min, 10min, 1h, 6h, 24h, 1w, 1m, 3m"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session_dependency),
):
    """
    Published announcements with their classification, newest first.

    status "empty" means nothing has ever been published; "ok" with
    count 0 means the filters matched nothing.
    """
    repo = ClassificationRepository(session)
    try:
        if await repo.count_published() == 0:
            return {
                "status": "empty",
                "count": 0,
                "items": [],
                "stats": _news_stats([]),
                "message": "No announcements have been published yet",
            }

        since = resolve_cutoff(timeframe) if timeframe else None
        rows = await repo.list_published(
            priority=priority,
            category=category,
            sentiment=sentiment,
            source=source,
            since=since,
            limit=limit,
            offset=offset,
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to load news: {e}")
        return error_response(503, "Database error while loading news")

    items = [_news_item(result, announcement) for result, announcement in rows]
    response = {
        "status": "ok",
        "count": len(items),
        "items": items,
        "stats": _news_stats(items),
    }
    if not items:
        response["message"] = "No announcements match the selected filters"
    return response


# ============================================================
# Stats
# ============================================================
@router.get("/stats")
async def get_stats(session: AsyncSession = Depends(get_session_dependency)):
    """Dashboard counters and the 6h activity trend."""
    now = utcnow()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    classifications = ClassificationRepository(session)

    try:
        today = await classifications.count_published(since=today_start)
        high_priority = await classifications.count_published(
            since=now - timedelta(hours=24),
            priority=PriorityLevel.HIGH,
        )
        last_6h = await classifications.count_published(since=now - timedelta(hours=6))
        previous_6h = await classifications.count_published(
            since=now - timedelta(hours=12),
            until=now - timedelta(hours=6),
        )
        queue = await QueueRepository(session).count_by_status()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load stats: {e}")
        return error_response(503, "Database error while loading stats")

    if last_6h > previous_6h:
        direction = "up"
    elif last_6h < previous_6h:
        direction = "down"
    else:
        direction = "flat"

    return {
        "status": "ok",
        "timestamp": now.isoformat(),
        "published_today": today,
        "high_priority_24h": high_priority,
        "queue": queue,
        "trend": {
            "last_6h": last_6h,
            "previous_6h": previous_6h,
            "direction": direction,
        },
    }


# ============================================================
# Pipeline (manual triggers)
# ============================================================
@router.post("/ingest/{family}")
async def ingest_family(
    family: str,
    timeframe: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
):
    """Fetch, normalize and store one feed family ('fda' or 'sec')."""
    if family not in FAMILIES:
        return error_response(400, f"Unknown family: {family}. Available: {', '.join(FAMILIES)}", retryable=False)

    await ensure_database()
    summary = await IngestionPipeline().ingest(family, timeframe=timeframe, limit=limit)
    if summary.feeds_fetched == 0 and summary.feed_errors:
        return JSONResponse(
            status_code=502,
            content={
                "status": "error",
                "retryable": True,
                "error": "All feeds failed",
                "summary": summary.to_dict(),
            },
        )
    return {"status": "success", "summary": summary.to_dict()}


@router.post("/process")
async def process_queue(limit: Optional[int] = Query(default=None, ge=1, le=500)):
    """Classify pending queue entries."""
    summary = await ClassificationPipeline().process_pending(limit=limit)
    return {"status": "success", "summary": summary.to_dict()}


@router.post("/pipeline/run")
async def run_full_pipeline(
    source: str = Query(default="both", description="fda, sec or both"),
    timeframe: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
):
    """Ingest and process in one call."""
    if source not in FAMILIES + ("both",):
        return error_response(400, f"Unknown source: {source}. Available: fda, sec, both", retryable=False)
    return await run_pipeline(source=source, timeframe=timeframe, limit=limit)


# ============================================================
# Queue maintenance
# ============================================================
@router.post("/queue/requeue-failed")
async def requeue_failed(max_retries: int = Query(default=3, ge=1, le=20)):
    """Reset failed entries below the retry ceiling to pending."""
    requeued = await ClassificationPipeline().requeue_failed(max_retries)
    return {"status": "success", "requeued": requeued}


@router.post("/queue/sweep")
async def sweep_stale_claims():
    """Return expired processing claims to pending."""
    released = await ClassificationPipeline().sweep_stale()
    return {"status": "success", "released": released}


# ============================================================
# LLM call history
# ============================================================
@router.get("/llm/stats")
async def llm_stats(
    days: int = Query(default=7, ge=1, le=90),
    session: AsyncSession = Depends(get_session_dependency),
):
    """Call counts, tokens and latency per task type."""
    return await LLMHistoryRepository(session).get_statistics(days=days)


@router.get("/llm/runs/{run_id}")
async def llm_calls_for_run(run_id: str, session: AsyncSession = Depends(get_session_dependency)):
    """Every model call made during one pipeline run."""
    calls = await LLMHistoryRepository(session).get_by_run_id(run_id)
    return {
        "run_id": run_id,
        "count": len(calls),
        "calls": [
            {
                "id": call.id,
                "timestamp": call.timestamp.isoformat(),
                "task_type": call.task_type,
                "model": call.model,
                "total_tokens": call.total_tokens,
                "latency_ms": call.latency_ms,
                "is_valid_json": call.is_valid_json,
                "response": call.response,
            }
            for call in calls
        ],
    }


@router.get("/llm/export")
async def llm_export(
    task_type: Optional[str] = Query(default=None, description="company_filter or classification"),
    limit: Optional[int] = Query(default=None, ge=1, le=10000),
    session: AsyncSession = Depends(get_session_dependency),
):
    """Chat fine-tune records ({"messages": [...]}) for calls with valid JSON output."""
    records = await LLMHistoryRepository(session).get_for_finetuning(
        task_types=[task_type] if task_type else None,
        limit=limit,
    )
    return {"count": len(records), "records": records}
