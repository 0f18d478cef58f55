"""Contracts for quality and interest scores."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .content import RawContentItem


class QualityScore(BaseModel):
    """Rubric-based 1-10 assessment of intrinsic content merit."""

    value: float = Field(ge=1.0, le=10.0)
    reasoning: str = ""
    factor_breakdown: Dict[str, float] = Field(default_factory=dict)
    flags: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class InterestScore(BaseModel):
    """1-10 assessment of fit to one reader's declared interests."""

    value: float = Field(ge=1.0, le=10.0)
    reasoning: str = ""
    factor_breakdown: Dict[str, float] = Field(default_factory=dict)
    matched_keywords: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ScoredItem(BaseModel):
    """A raw item with its interest score and 1-based rank within a batch."""

    item: RawContentItem
    score: InterestScore
    ranking: int = Field(default=0, ge=0)

    @property
    def value(self) -> float:
        return self.score.value


class QualityTrend(BaseModel):
    trend: str
    trend_score: float
    period_scores: Dict[str, float] = Field(default_factory=dict)
    window: str

    @model_validator(mode="after")
    def _check_trend(self) -> "QualityTrend":
        if self.trend not in {"improving", "declining", "stable"}:
            raise ValueError(f"unknown trend label: {self.trend}")
        return self


class SourceQualityReport(BaseModel):
    source: str
    average_score: float
    score_distribution: List[int] = Field(default_factory=lambda: [0] * 10)
    common_flags: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    sample_size: int = 0


class InterestTrendReport(BaseModel):
    trending_topics: List[str] = Field(default_factory=list)
    declining_topics: List[str] = Field(default_factory=list)
    topic_changes: Dict[str, float] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)


class PersonalizationScore(BaseModel):
    value: float = Field(ge=1.0, le=10.0)
    factors: Dict[str, float] = Field(default_factory=dict)
    explanations: List[str] = Field(default_factory=list)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


__all__ = [
    "InterestScore",
    "InterestTrendReport",
    "PersonalizationScore",
    "QualityScore",
    "QualityTrend",
    "ScoredItem",
    "SourceQualityReport",
]
