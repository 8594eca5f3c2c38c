"""
Classifier Data Models
"""
from dataclasses import dataclass, field
from typing import Optional, List


@dataclass
class ClassificationOutcome:
    """Validated classification of one announcement."""
    announcement_id: str
    relevance_score: int
    priority_level: str
    sentiment: str
    sentiment_strength: int
    summary: str
    market_impact: str
    tags: List[str] = field(default_factory=list)
    ticker: Optional[str] = None
    exchange: Optional[str] = None
    is_fallback: bool = False

    def to_result_values(self) -> dict:
        """Column values for ClassificationResult."""
        return {
            "ticker": self.ticker,
            "exchange": self.exchange,
            "relevance_score": self.relevance_score,
            "priority_level": self.priority_level,
            "sentiment": self.sentiment,
            "sentiment_strength": self.sentiment_strength,
            "summary": self.summary,
            "market_impact": self.market_impact,
            "tags": list(self.tags),
            "is_fallback": self.is_fallback,
        }

    def to_dict(self) -> dict:
        return {"announcement_id": self.announcement_id, **self.to_result_values()}
