"""
Analytics snapshot shapes. Derived on every request, never persisted.
"""

from typing import Dict, List

from pydantic import BaseModel, Field


class SectionStat(BaseModel):
    sectionId: str
    responseCount: int
    averageSentiment: float


class TrendPoint(BaseModel):
    date: str = Field(..., examples=["2026-10-19"], description="UTC calendar day")
    count: int
    averageSentiment: float


class AnalyticsSnapshot(BaseModel):
    totalResponses: int = 0
    averageSentiment: float = 0.0
    responsesByType: Dict[str, int] = Field(default_factory=dict)
    sentimentDistribution: Dict[str, int] = Field(default_factory=dict)
    topSections: List[SectionStat] = Field(default_factory=list)
    recentTrends: List[TrendPoint] = Field(default_factory=list)
