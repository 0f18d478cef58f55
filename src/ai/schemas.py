"""Response models the language model is asked to fill.

Numeric fields are unbounded here. Stages clamp them into their declared
ranges, so an out-of-range number is repaired rather than rejected.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class ResponseModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class QualityEvaluationResponse(ResponseModel):
    quality_score: float
    reasoning: str = ""
    factors: Dict[str, float] = Field(default_factory=dict)
    flags: List[str] = Field(default_factory=list)


class InterestScoreResponse(ResponseModel):
    score: float
    reasoning: str = ""
    factors: Dict[str, float] = Field(default_factory=dict)
    matched_keywords: List[str] = Field(default_factory=list)


class GeneratedQuery(ResponseModel):
    query: str
    source: Optional[str] = None
    sources: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    priority: float = 5.0
    reasoning: str = ""
    keywords: List[str] = Field(default_factory=list)

    def target_sources(self) -> List[str]:
        declared = [*self.sources, *([self.source] if self.source else [])]
        return [name.strip().lower() for name in declared if name and name.strip()]


class QueryGenerationResponse(ResponseModel):
    queries: List[GeneratedQuery] = Field(default_factory=list)
    reasoning: str = ""


class AlternativeCategory(ResponseModel):
    name: str
    confidence: float = 0.0


class CategoryResponse(ResponseModel):
    category: str
    confidence: float = 0.5
    alternative_categories: List[AlternativeCategory] = Field(default_factory=list)
    reasoning: str = ""


class TagEntry(ResponseModel):
    name: str
    relevance: float = 0.5
    type: str = "topic"

    @field_validator("type", mode="before")
    @classmethod
    def _known_type(cls, value: object) -> str:
        text = str(value or "").strip().lower().replace("_", "-")
        return text if text in {"technology", "topic", "difficulty", "content-type"} else "topic"


class TagResponse(ResponseModel):
    tags: List[TagEntry] = Field(default_factory=list)
    reasoning: str = ""


class ArticleSourceEntry(ResponseModel):
    url: str
    title: str = ""
    relevance: float = 0.5


class ArticleMetadataEntry(ResponseModel):
    word_count: Optional[int] = None
    reading_time: Optional[int] = None
    difficulty: Optional[str] = None
    content_type: Optional[str] = None


class ArticleResponse(ResponseModel):
    title: str = Field(min_length=1)
    summary: str = ""
    content: str = Field(min_length=1)
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    sources: List[ArticleSourceEntry] = Field(default_factory=list)
    confidence: Optional[float] = None
    metadata: ArticleMetadataEntry = Field(default_factory=ArticleMetadataEntry)

    @field_validator("title", "content")
    @classmethod
    def _not_blank(cls, value: str, info: ValidationInfo) -> str:
        if not value.strip():
            raise ValueError(f"{info.field_name} must not be blank")
        return value.strip() if info.field_name == "title" else value


__all__ = [
    "AlternativeCategory",
    "ArticleMetadataEntry",
    "ArticleResponse",
    "ArticleSourceEntry",
    "CategoryResponse",
    "GeneratedQuery",
    "InterestScoreResponse",
    "QualityEvaluationResponse",
    "QueryGenerationResponse",
    "ResponseModel",
    "TagEntry",
    "TagResponse",
]
