"""Cost ledger report models."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


class MethodCost(BaseModel):
    """Aggregate spend for one transcript method."""

    count: int = 0
    total_minutes: float = 0.0
    total_cost: float = 0.0

    @property
    def avg_minutes(self) -> float:
        return self.total_minutes / self.count if self.count else 0.0


class CostBreakdown(BaseModel):
    """Per-creator spend broken down by transcript method."""

    creator_id: str
    by_method: dict[str, MethodCost] = Field(default_factory=dict)
    count: int = 0
    total_minutes: float = 0.0
    total_cost: float = 0.0
    free_count: int = 0
    paid_count: int = 0
    cost_savings: float = 0.0


class EfficiencyReport(BaseModel):
    """How much of a creator's transcription was obtained for free."""

    creator_id: str
    total_videos: int = 0
    free_videos: int = 0
    paid_videos: int = 0
    free_percentage: float = 0.0
    paid_percentage: float = 0.0
    total_cost: float = 0.0
    cost_savings: float = 0.0
    monthly_savings: float = 0.0
    avg_cost_per_video: float = 0.0


class DailyCost(BaseModel):
    day: date
    transcriptions: int = 0
    free_transcriptions: int = 0
    paid_transcriptions: int = 0
    total_cost: float = 0.0
    total_minutes: float = 0.0
    by_method: dict[str, int] = Field(default_factory=dict)


class VideoCost(BaseModel):
    video_id: str
    method: str
    cost: float
    duration_minutes: float
    occurred_at: datetime
