"""
LLM Call History Repository

Repository for storing and querying LLM call history.
"""
from datetime import timedelta
from typing import Optional, List, Dict, Any

from sqlalchemy import select, func, and_

from database.models import LLMCallHistory
from .base import BaseRepository


class LLMHistoryRepository(BaseRepository[LLMCallHistory]):
    """Repository for LLM call history operations."""

    model = LLMCallHistory

    async def get_by_run_id(self, run_id: str) -> List[LLMCallHistory]:
        """Get all calls from a specific pipeline run."""
        query = (
            select(LLMCallHistory)
            .where(LLMCallHistory.run_id == run_id)
            .order_by(LLMCallHistory.timestamp.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_for_finetuning(
        self,
        task_types: Optional[List[str]] = None,
        valid_json_only: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Get calls formatted for fine-tuning export.

        Args:
            task_types: Filter by specific task types
            valid_json_only: Only include calls whose response parsed as JSON
            limit: Maximum number of records

        Returns:
            List of {"messages": [...]} dicts
        """
        conditions = []
        if task_types:
            conditions.append(LLMCallHistory.task_type.in_(task_types))
        if valid_json_only:
            conditions.append(LLMCallHistory.is_valid_json.is_(True))

        query = select(LLMCallHistory).order_by(LLMCallHistory.timestamp.asc())
        if conditions:
            query = query.where(and_(*conditions))
        if limit:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return [call.to_openai_format() for call in result.scalars().all()]

    async def get_statistics(self, days: int = 7) -> Dict[str, Any]:
        """Get usage statistics for the last N days."""
        since = self.now() - timedelta(days=days)

        totals_query = select(
            func.count(LLMCallHistory.id),
            func.sum(LLMCallHistory.total_tokens),
            func.avg(LLMCallHistory.latency_ms),
        ).where(LLMCallHistory.timestamp >= since)
        totals = (await self.session.execute(totals_query)).one()

        by_task_query = select(
            LLMCallHistory.task_type,
            func.count(LLMCallHistory.id),
            func.sum(LLMCallHistory.total_tokens),
        ).where(
            LLMCallHistory.timestamp >= since
        ).group_by(LLMCallHistory.task_type)
        by_task_result = await self.session.execute(by_task_query)
        by_task = {
            row[0] or "unknown": {"calls": row[1], "tokens": row[2] or 0}
            for row in by_task_result.all()
        }

        return {
            "period_days": days,
            "total_calls": totals[0] or 0,
            "total_tokens": totals[1] or 0,
            "avg_latency_ms": round(totals[2], 2) if totals[2] else None,
            "by_task_type": by_task,
        }
