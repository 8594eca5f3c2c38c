"""
LLM Call History Model

Every classification / company screening call is stored with its full
prompt and raw response, so suppressed or fallback results can be audited.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import String, Integer, Float, DateTime, Text, Boolean, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from utils.utcnow import utcnow
from .base import Base


class LLMCallHistory(Base):
    """
    One LLM API call.

    Exportable to chat fine-tune JSONL:
    {"messages": [{"role": "system", ...}, {"role": "user", ...}, {"role": "assistant", ...}]}
    """
    __tablename__ = "llm_call_history"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)

    # Request
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    system_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    messages: Mapped[List[Dict[str, str]]] = mapped_column(JSON, nullable=False)

    # Response
    response: Mapped[str] = mapped_column(Text, nullable=False)
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Parameters
    temperature: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    max_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=3000)

    # Performance
    latency_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    stop_reason: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Context
    task_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)  # 'company_filter', 'classification'
    run_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)

    # Quality
    is_valid_json: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    __table_args__ = (
        Index('idx_llm_history_task_date', 'task_type', 'timestamp'),
    )

    def to_openai_format(self) -> Dict[str, Any]:
        """Export as {"messages": [...]} with the assistant reply appended."""
        messages = list(self.messages)
        messages.append({"role": "assistant", "content": self.response})
        return {"messages": messages}

    def __repr__(self) -> str:
        return f"<LLMCallHistory(id={self.id}, task={self.task_type}, tokens={self.total_tokens})>"
