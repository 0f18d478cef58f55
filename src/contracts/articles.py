"""Contracts for queries, classifications, tags and generated articles."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.ai.results import Branch

from .content import RawContentItem

TagType = Literal["technology", "topic", "difficulty", "content-type"]
Difficulty = Literal["beginner", "intermediate", "advanced"]
TargetLength = Literal["short", "medium", "long"]
ArticleStyle = Literal["tutorial", "news", "analysis", "opinion", "curation"]
ImprovementArea = Literal["clarity", "depth", "examples", "structure"]


class SearchQuery(BaseModel):
    query: str = Field(min_length=1)
    category: str = "general"
    priority: float = Field(default=5.0, ge=1.0, le=10.0)
    reasoning: str = ""
    recommended_sources: List[str] = Field(default_factory=list)


class QueryGenerationResult(BaseModel):
    queries: List[SearchQuery] = Field(default_factory=list)
    reasoning: str = ""
    branch: Branch = "primary"


class QueryPerformance(BaseModel):
    query: str
    result_count: int = Field(ge=0)
    effectiveness: float = Field(ge=0.0, le=10.0)
    suggestions: List[str] = Field(default_factory=list)


class CategoryAlternative(BaseModel):
    name: str
    confidence: float = Field(ge=0.0, le=1.0)


class CategoryClassification(BaseModel):
    category: str
    confidence: float = Field(ge=0.0, le=1.0)
    alternatives: List[CategoryAlternative] = Field(default_factory=list)
    reasoning: str = ""

    model_config = ConfigDict(frozen=True)


class CategoryDistribution(BaseModel):
    counts: Dict[str, int] = Field(default_factory=dict)
    percentages: Dict[str, float] = Field(default_factory=dict)
    trending: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class LabeledSample(BaseModel):
    """An item paired with the category a human assigned to it."""

    item: RawContentItem
    expected: str


class CategoryAccuracyReport(BaseModel):
    overall_accuracy: float = Field(ge=0.0, le=1.0)
    category_accuracy: Dict[str, float] = Field(default_factory=dict)
    confusion_matrix: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    suggestions: List[str] = Field(default_factory=list)


class TagSuggestion(BaseModel):
    name: str = Field(min_length=1)
    relevance: float = Field(ge=0.0, le=1.0)
    type: TagType = "topic"

    model_config = ConfigDict(frozen=True)


class TagGenerationOptions(BaseModel):
    max_tags: int = Field(default=8, ge=1)
    include_rare_keywords: bool = False
    filter_common_tags: bool = True


class TagGenerationResult(BaseModel):
    tags: List[TagSuggestion] = Field(default_factory=list)
    reasoning: str = ""
    branch: Branch = "primary"

    @property
    def names(self) -> List[str]:
        return [tag.name for tag in self.tags]


class TagCluster(BaseModel):
    representative: str
    members: List[str] = Field(default_factory=list)
    suggested_merge: bool = False


class TagTrendReport(BaseModel):
    rising: List[str] = Field(default_factory=list)
    falling: List[str] = Field(default_factory=list)
    share_changes: Dict[str, float] = Field(default_factory=dict)


class SourceRef(BaseModel):
    url: str
    title: str = ""
    relevance: float = Field(default=0.5, ge=0.0, le=1.0)
    source_type: str = "web"


class GenerationOptions(BaseModel):
    target_length: TargetLength = "medium"
    style: ArticleStyle = "curation"
    language: str = "en"


class GeneratedArticle(BaseModel):
    title: str = Field(min_length=1)
    summary: str = ""
    content: str = ""
    category: str = "Other"
    tags: List[str] = Field(default_factory=list)
    source_refs: List[SourceRef] = Field(default_factory=list)
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    word_count: int = Field(default=0, ge=0)
    reading_time: int = Field(default=0, ge=0)
    difficulty: Difficulty = "intermediate"
    content_type: str = "curation"
    quality_score: Optional[float] = Field(default=None, ge=1.0, le=10.0)
    interest_score: Optional[float] = Field(default=None, ge=1.0, le=10.0)
    processing_time_ms: Optional[float] = Field(default=None, ge=0.0)

    @field_validator("tags")
    @classmethod
    def _strip_tags(cls, value: List[str]) -> List[str]:
        return [tag.strip() for tag in value if tag and tag.strip()]


class ArticleGenerationAttempt(BaseModel):
    """Outcome of one source group in a generation batch."""

    success: bool
    article: Optional[GeneratedArticle] = None
    error: Optional[str] = None


class ImprovementFeedback(BaseModel):
    improve_areas: List[ImprovementArea] = Field(default_factory=list)
    user_comments: str = ""


class ArticleQualityMetrics(BaseModel):
    content_length: float
    title_quality: float
    structure: float
    source_coverage: float
    tag_count: float
    overall: float
    suggestions: List[str] = Field(default_factory=list)


__all__ = [
    "ArticleGenerationAttempt",
    "ArticleQualityMetrics",
    "ArticleStyle",
    "CategoryAccuracyReport",
    "CategoryAlternative",
    "CategoryClassification",
    "CategoryDistribution",
    "Difficulty",
    "GeneratedArticle",
    "GenerationOptions",
    "ImprovementArea",
    "ImprovementFeedback",
    "LabeledSample",
    "QueryGenerationResult",
    "QueryPerformance",
    "SearchQuery",
    "SourceRef",
    "TagCluster",
    "TagGenerationOptions",
    "TagGenerationResult",
    "TagSuggestion",
    "TagTrendReport",
    "TagType",
    "TargetLength",
]
