"""Contracts for orchestrator runs, batches and diagnosis reports."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .articles import ArticleStyle, GeneratedArticle, GenerationOptions, TargetLength
from .content import RawContentItem

HealthStatus = Literal["healthy", "degraded", "unhealthy"]

PIPELINE_STAGES = (
    "quality_filtering",
    "interest_filtering",
    "source_selection",
    "article_generation",
    "category_classification",
    "tag_generation",
    "final_evaluation",
    "pipeline_completed",
)


class PipelineOptions(BaseModel):
    """Per-run knobs; unset values come from the pipeline configuration."""

    quality_threshold: Optional[float] = Field(default=None, ge=1.0, le=10.0)
    interest_threshold: Optional[float] = Field(default=None, ge=1.0, le=10.0)
    max_sources_per_article: Optional[int] = Field(default=None, ge=1)
    target_length: TargetLength = "medium"
    style: ArticleStyle = "curation"
    language: str = "en"

    def generation_options(self) -> GenerationOptions:
        return GenerationOptions(
            target_length=self.target_length, style=self.style, language=self.language
        )


class PipelineMetadata(BaseModel):
    sources_processed: int = Field(default=0, ge=0)
    sources_used: int = Field(default=0, ge=0)
    stages_executed: List[str] = Field(default_factory=list)
    execution_time_ms: float = Field(default=0.0, ge=0.0)


class PipelineResult(BaseModel):
    """Outcome of one sources-to-article run."""

    success: bool
    article: Optional[GeneratedArticle] = None
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    metadata: PipelineMetadata = Field(default_factory=PipelineMetadata)

    @model_validator(mode="after")
    def _failed_runs_carry_no_article(self) -> "PipelineResult":
        if not self.success and self.article is not None:
            raise ValueError("an unsuccessful pipeline result cannot carry an article")
        return self


class BatchFailure(BaseModel):
    sources: List[RawContentItem] = Field(default_factory=list)
    error: str


class BatchSummary(BaseModel):
    total_attempted: int = 0
    total_successful: int = 0
    average_quality: float = 0.0
    average_interest: float = 0.0
    total_processing_time_ms: float = 0.0


class BatchResult(BaseModel):
    successful: List[PipelineResult] = Field(default_factory=list)
    failed: List[BatchFailure] = Field(default_factory=list)
    summary: BatchSummary = Field(default_factory=BatchSummary)


class PipelineHistoryEntry(BaseModel):
    """A past run plus the reader's reaction, used to tune thresholds."""

    result: PipelineResult
    user_feedback: Optional[float] = Field(default=None, ge=1.0, le=10.0)


class PipelineSettingsRecommendation(BaseModel):
    quality_threshold: float
    interest_threshold: float
    max_sources_per_article: int
    target_length: TargetLength
    style: ArticleStyle
    expected_improvement: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: List[str] = Field(default_factory=list)


class StageDiagnosis(BaseModel):
    available: bool
    latency_ms: float = Field(default=0.0, ge=0.0)
    error: Optional[str] = None


class DiagnosisReport(BaseModel):
    status: HealthStatus
    stages: Dict[str, StageDiagnosis] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)


__all__ = [
    "BatchFailure",
    "BatchResult",
    "BatchSummary",
    "DiagnosisReport",
    "HealthStatus",
    "PIPELINE_STAGES",
    "PipelineHistoryEntry",
    "PipelineMetadata",
    "PipelineOptions",
    "PipelineResult",
    "PipelineSettingsRecommendation",
    "StageDiagnosis",
]
