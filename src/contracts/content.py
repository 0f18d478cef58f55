"""Contracts for collected content and reader profiles."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, TypedDict

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from src.utils.datetime_utils import parse_to_utc, utcnow

TechLevel = Literal["beginner", "intermediate", "advanced", "expert"]
KNOWN_SOURCE_TYPES = ("github", "rss", "news", "reddit")


class RawContentPayload(TypedDict, total=False):
    """Shape collectors hand to the pipeline."""

    title: str
    url: str
    summary: str
    published_at: datetime | str
    source_name: str
    source_type: str
    metadata: Dict[str, Any]


class RawContentItem(BaseModel):
    """One collected candidate; identity is the URL and it is never mutated."""

    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    summary: str = ""
    published_at: datetime = Field(
        default_factory=utcnow,
        validation_alias=AliasChoices("published_at", "publishedAt"),
    )
    source_name: str = Field(
        default="", validation_alias=AliasChoices("source_name", "sourceName", "source")
    )
    source_type: str = Field(
        default="web", validation_alias=AliasChoices("source_type", "sourceType", "type")
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    @field_validator("published_at", mode="before")
    @classmethod
    def _normalize_published_at(cls, value: Any) -> datetime:
        return parse_to_utc(value)

    @field_validator("source_type", mode="before")
    @classmethod
    def _normalize_source_type(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        return text or "web"

    @property
    def text(self) -> str:
        """Title and summary, the text keyword heuristics look at."""

        return f"{self.title} {self.summary}".strip()


class WeightedKeyword(BaseModel):
    keyword: str = Field(min_length=1)
    weight: float = Field(default=1.0, ge=0.0)


class UserInterests(BaseModel):
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


class UserProfile(BaseModel):
    """Reader profile supplied per pipeline invocation."""

    id: str = Field(min_length=1)
    tech_level: TechLevel = Field(
        default="intermediate", validation_alias=AliasChoices("tech_level", "techLevel")
    )
    preferred_style: str = Field(
        default="balanced",
        validation_alias=AliasChoices("preferred_style", "preferredStyle"),
    )
    interests: UserInterests = Field(default_factory=UserInterests)
    weighted_keywords: List[WeightedKeyword] = Field(
        default_factory=list,
        validation_alias=AliasChoices("weighted_keywords", "weightedKeywords"),
    )
    recent_activity: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("recent_activity", "recentActivity"),
    )
    content_types: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("content_types", "contentTypes"),
    )
    language: str = "en"

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    @field_validator("tech_level", mode="before")
    @classmethod
    def _normalize_tech_level(cls, value: Any) -> str:
        text = str(value or "intermediate").strip().lower()
        return text if text in {"beginner", "intermediate", "advanced", "expert"} else "intermediate"

    def interest_keywords(self) -> List[str]:
        """All declared interests, heaviest weighted keywords first, deduplicated."""

        weighted = [
            entry.keyword
            for entry in sorted(self.weighted_keywords, key=lambda e: e.weight, reverse=True)
        ]
        ordered = [
            *weighted,
            *self.interests.keywords,
            *self.interests.tags,
            *self.interests.categories,
        ]
        seen: set[str] = set()
        result: List[str] = []
        for keyword in ordered:
            normalized = keyword.strip()
            if not normalized or normalized.lower() in seen:
                continue
            seen.add(normalized.lower())
            result.append(normalized)
        return result

    def top_interests(self, limit: int = 5) -> List[str]:
        return self.interest_keywords()[:limit]


class ContentHistoryEntry(BaseModel):
    """An item the reader interacted with, used by trend and personalization analysis."""

    item: RawContentItem
    timestamp: datetime = Field(default_factory=utcnow)
    user_action: Literal["view", "like", "share", "save"] = Field(
        default="view", validation_alias=AliasChoices("user_action", "userAction")
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _normalize_timestamp(cls, value: Any) -> datetime:
        return parse_to_utc(value)


__all__ = [
    "ContentHistoryEntry",
    "KNOWN_SOURCE_TYPES",
    "RawContentItem",
    "RawContentPayload",
    "TechLevel",
    "UserInterests",
    "UserProfile",
    "WeightedKeyword",
]
