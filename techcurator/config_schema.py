"""Declarative configuration schema for the techcurator pipeline."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    PositiveFloat,
    PositiveInt,
    PrivateAttr,
    field_validator,
    model_validator,
)


class SchemaError(ValueError):
    """Raised when the configuration schema definition is invalid."""


class StrictModel(BaseModel):
    """Base model enforcing strict validation rules."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
    )


class AppSettings(StrictModel):
    """Top-level runtime metadata."""

    environment: str = Field(
        default="development",
        description="Normalized deployment environment name.",
        examples=["production"],
    )
    debug: bool = Field(
        default=False,
        description="When true, enables verbose logging and relaxed guards.",
    )

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"development", "production", "staging", "test"}:
            raise ValueError(
                "environment must be one of: development, staging, production, test"
            )
        return normalized


class PathsConfig(StrictModel):
    """Filesystem layout settings."""

    data_dir: Path = Field(
        default=Path("data"),
        description="Root directory for runtime artefacts.",
        examples=["/var/lib/techcurator"],
    )
    logs_dir: Path = Field(
        default=Path("logs"),
        description="Directory where operational logs are written.",
        examples=["/var/log/techcurator"],
    )

    @model_validator(mode="after")
    def _ensure_child_paths(self) -> "PathsConfig":
        base = self.data_dir if self.data_dir.is_absolute() else self.data_dir.resolve()
        object.__setattr__(self, "data_dir", base)
        if not self.logs_dir.is_absolute():
            object.__setattr__(self, "logs_dir", (base / self.logs_dir).resolve())
        return self


class ModelClientConfig(StrictModel):
    """Language model provider settings."""

    api_key: Optional[str] = Field(
        default=None,
        description="Provider API key; falls back to OPENAI_API_KEY when unset.",
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Alternative OpenAI-compatible endpoint.",
        examples=["http://localhost:11434/v1"],
    )
    default_model: str = Field(
        default="gpt-4o-mini",
        description="Model used when a call does not specify one.",
    )
    default_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature used when a call does not specify one.",
    )
    default_max_tokens: PositiveInt = Field(
        default=2_000,
        description="Maximum completion tokens when a call does not specify one.",
    )
    timeout_seconds: PositiveFloat = Field(
        default=30.0,
        description="Whole-request timeout enforced by the HTTP transport.",
    )
    connect_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Connection establishment timeout.",
    )
    sdk_max_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Transport-level retries performed by the OpenAI SDK.",
    )


class SourceWeightsConfig(StrictModel):
    """Per-source-type numeric table with a default for unknown tags."""

    github: float = Field(default=1.0, ge=0.0)
    news: float = Field(default=1.0, ge=0.0)
    rss: float = Field(default=1.0, ge=0.0)
    reddit: float = Field(default=1.0, ge=0.0)
    default: float = Field(default=1.0, ge=0.0)

    def lookup(self, source_type: str | None) -> float:
        key = (source_type or "").strip().lower()
        if key in {"github", "news", "rss", "reddit"}:
            return float(getattr(self, key))
        return float(self.default)


class EvaluationConfig(StrictModel):
    """Content quality evaluator parameters."""

    model: str = Field(default="gpt-4o-mini")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: PositiveInt = Field(default=800)
    cache_ttl_hours: PositiveFloat = Field(
        default=24.0, description="Lifetime of cached quality scores."
    )
    cache_title_prefix: PositiveInt = Field(
        default=50, description="Title characters included in the cache key."
    )
    fallback_score: float = Field(
        default=5.0,
        ge=1.0,
        le=10.0,
        description="Midpoint score returned when an evaluation fails.",
    )
    max_concurrent: PositiveInt = Field(default=5)
    batch_pause_seconds: NonNegativeFloat = Field(
        default=1.0, description="Pause between concurrent evaluation slices."
    )
    freshness_ceiling: PositiveFloat = Field(
        default=10.0, description="Priority of an item published right now."
    )
    freshness_hours_per_point: PositiveFloat = Field(
        default=24.0, description="Hours of age that cost one priority point."
    )
    source_multipliers: SourceWeightsConfig = Field(
        default_factory=lambda: SourceWeightsConfig(
            github=1.2, news=1.1, rss=1.0, reddit=0.9, default=1.0
        ),
        description="Priority multiplier per source type.",
    )
    trend_items_per_period: PositiveInt = Field(default=5)
    trend_sensitivity: PositiveFloat = Field(
        default=0.1, description="Normalized delta above which a trend is reported."
    )
    source_analysis_sample: PositiveInt = Field(default=10)
    low_quality_average: float = Field(default=5.0, ge=0.0, le=10.0)
    high_quality_average: float = Field(default=8.0, ge=0.0, le=10.0)


class InterestConfig(StrictModel):
    """Interest scorer parameters."""

    model: str = Field(default="gpt-4o-mini")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: PositiveInt = Field(default=800)
    cache_ttl_hours: PositiveFloat = Field(default=12.0)
    cache_title_prefix: PositiveInt = Field(default=30)
    max_concurrent: PositiveInt = Field(default=5)
    batch_pause_seconds: NonNegativeFloat = Field(default=1.0)
    fallback_base_score: float = Field(default=5.0, ge=1.0, le=10.0)
    keyword_bonus: PositiveFloat = Field(
        default=0.5, description="Bonus per interest keyword found in the item."
    )
    keyword_bonus_cap: PositiveFloat = Field(default=3.0)
    source_bonus: SourceWeightsConfig = Field(
        default_factory=lambda: SourceWeightsConfig(
            github=0.5, news=0.3, rss=0.2, reddit=0.1, default=0.0
        ),
        description="Additive fallback bonus per source type.",
    )
    fresh_hours: PositiveFloat = Field(default=24.0)
    fresh_bonus: float = Field(default=0.5)
    stale_hours: PositiveFloat = Field(default=168.0)
    stale_penalty: float = Field(default=0.5)
    trend_recent_days: PositiveInt = Field(default=30)
    trend_delta: PositiveFloat = Field(default=0.5)
    trend_topics: List[str] = Field(
        default_factory=lambda: [
            "react",
            "vue",
            "angular",
            "javascript",
            "typescript",
            "python",
            "java",
            "ai",
            "machine learning",
            "ml",
            "api",
            "database",
            "cloud",
            "aws",
            "docker",
            "kubernetes",
            "microservices",
            "security",
            "performance",
        ],
        description="Topics tracked by interest trend analysis.",
    )


class QueryGenerationConfig(StrictModel):
    """Search query generator parameters."""

    model: str = Field(default="gpt-4o-mini")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: PositiveInt = Field(default=1_500)
    default_target_sources: List[str] = Field(
        default_factory=lambda: ["google", "news", "reddit", "github", "rss"]
    )
    max_queries_per_source: PositiveInt = Field(default=3)
    reddit_suffix: str = Field(default="site:reddit.com")
    github_language_filter: str = Field(
        default="language:python OR language:typescript",
        description="Filter appended to GitHub queries lacking a language: clause.",
    )
    fallback_priorities: List[PositiveInt] = Field(default_factory=lambda: [5, 4])
    trending_keywords: Dict[str, List[str]] = Field(
        default_factory=lambda: {
            "day": ["breaking", "release", "announced"],
            "week": ["this week", "new features", "update"],
            "month": ["roadmap", "state of", "survey"],
        }
    )
    trending_base_topics: List[str] = Field(
        default_factory=lambda: [
            "AI",
            "LLM",
            "React",
            "TypeScript",
            "Python",
            "Rust",
            "Kubernetes",
            "WebAssembly",
        ]
    )


class ClassificationConfig(StrictModel):
    """Category classifier parameters."""

    model: str = Field(default="gpt-4o-mini")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: PositiveInt = Field(default=500)
    cache_ttl_hours: PositiveFloat = Field(default=24.0)
    max_alternatives: PositiveInt = Field(default=3)
    max_concurrent: PositiveInt = Field(default=5)
    batch_pause_seconds: NonNegativeFloat = Field(default=1.0)
    other_category: str = Field(default="Other")
    categories: List[str] = Field(
        default_factory=lambda: [
            "Frontend Development",
            "Backend Development",
            "Mobile Development",
            "DevOps & Infrastructure",
            "Data Science & AI",
            "Security",
            "Databases",
            "Tools & Libraries",
            "Programming Languages",
            "Web Technologies",
            "Architecture & Design",
            "Testing & QA",
            "Project Management",
            "Career & Learning",
            "Other",
        ],
        description="Taxonomy the classifier may assign.",
    )
    fallback_keywords: Dict[str, List[str]] = Field(
        default_factory=lambda: {
            "Frontend Development": [
                "react",
                "vue",
                "angular",
                "javascript",
                "css",
                "html",
                "frontend",
            ],
            "Backend Development": [
                "node.js",
                "python",
                "java",
                "api",
                "server",
                "backend",
            ],
            "Mobile Development": ["ios", "android", "mobile", "react native", "flutter"],
            "Data Science & AI": ["ai", "machine learning", "data", "analytics"],
            "DevOps & Infrastructure": ["docker", "kubernetes", "aws", "cloud", "devops"],
        },
        description="Ordered keyword table used when the model is unavailable.",
    )
    fallback_hit_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    fallback_miss_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    dominant_share_percent: float = Field(default=50.0, ge=0.0, le=100.0)
    minor_share_percent: float = Field(default=5.0, ge=0.0, le=100.0)
    minor_category_limit: PositiveInt = Field(default=3)
    target_accuracy: float = Field(default=0.8, ge=0.0, le=1.0)
    weak_category_accuracy: float = Field(default=0.7, ge=0.0, le=1.0)
    confusion_ratio: float = Field(default=0.3, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _ensure_other(self) -> "ClassificationConfig":
        if self.other_category not in self.categories:
            self.categories = [*self.categories, self.other_category]
        return self


class TaggingConfig(StrictModel):
    """Tag generator parameters."""

    model: str = Field(default="gpt-4o-mini")
    temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    max_tokens: PositiveInt = Field(default=800)
    cache_ttl_hours: PositiveFloat = Field(default=12.0)
    max_tags: PositiveInt = Field(default=8)
    max_concurrent: PositiveInt = Field(default=3)
    batch_pause_seconds: NonNegativeFloat = Field(default=1.0)
    include_rare_keywords: bool = Field(default=False)
    filter_common_tags: bool = Field(default=True)
    common_tag_keep_relevance: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Generic tags survive filtering only above this relevance.",
    )
    keyword_weight_per_hit: PositiveFloat = Field(default=0.3)
    extracted_relevance_factor: float = Field(default=0.8, ge=0.0, le=1.0)
    aliases: Dict[str, str] = Field(
        default_factory=lambda: {
            "js": "javascript",
            "ts": "typescript",
            "py": "python",
            "ml": "machine learning",
            "ai": "artificial intelligence",
            "api": "API",
            "ui": "UI",
            "ux": "UX",
            "css": "CSS",
            "html": "HTML",
            "sql": "SQL",
            "db": "database",
            "devops": "DevOps",
        }
    )
    tech_keywords: List[str] = Field(
        default_factory=lambda: [
            "react",
            "vue",
            "angular",
            "svelte",
            "typescript",
            "javascript",
            "python",
            "java",
            "go",
            "rust",
            "kotlin",
            "swift",
            "docker",
            "kubernetes",
            "aws",
            "azure",
            "gcp",
            "graphql",
            "rest",
            "api",
            "microservices",
            "serverless",
            "mongodb",
            "postgresql",
            "mysql",
            "redis",
            "elasticsearch",
        ]
    )
    common_tags: List[str] = Field(
        default_factory=lambda: [
            "javascript",
            "typescript",
            "react",
            "vue",
            "angular",
            "node.js",
            "python",
            "java",
            "css",
            "html",
            "api",
            "database",
            "web",
            "frontend",
            "backend",
            "tutorial",
            "guide",
            "tips",
            "beginner",
            "intermediate",
            "advanced",
            "best practices",
            "programming",
        ]
    )
    cluster_max: PositiveInt = Field(default=10)
    cluster_min_similarity: float = Field(default=0.7, ge=0.0, le=1.0)
    cluster_merge_size: PositiveInt = Field(default=3)


class GenerationConfig(StrictModel):
    """Article generator parameters."""

    model: str = Field(default="gpt-4o")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: PositiveInt = Field(default=3_000)
    cache_ttl_hours: PositiveFloat = Field(default=1.0)
    max_sources: PositiveInt = Field(default=5)
    max_tags: PositiveInt = Field(default=8)
    words_per_minute: PositiveInt = Field(default=200)
    default_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    min_confidence: float = Field(default=0.1, ge=0.0, le=1.0)
    batch_pause_seconds: NonNegativeFloat = Field(default=2.0)
    base_priority: float = Field(default=5.0)
    fresh_hours: PositiveFloat = Field(default=24.0)
    fresh_bonus: float = Field(default=2.0)
    recent_hours: PositiveFloat = Field(default=168.0)
    recent_bonus: float = Field(default=1.0)
    stale_hours: PositiveFloat = Field(default=2_160.0)
    stale_penalty: float = Field(default=1.0)
    interest_match_bonus: float = Field(default=0.5)
    source_multipliers: SourceWeightsConfig = Field(
        default_factory=lambda: SourceWeightsConfig(
            github=1.5, news=1.2, rss=1.0, reddit=0.8, default=1.0
        )
    )
    target_words: Dict[str, str] = Field(
        default_factory=lambda: {
            "short": "800-1200",
            "medium": "1500-2500",
            "long": "3000-4000",
        }
    )
    beginner_keywords: List[str] = Field(
        default_factory=lambda: [
            "tutorial",
            "beginner",
            "intro",
            "basic",
            "getting started",
            "入門",
            "初心者",
            "基礎",
        ]
    )
    advanced_keywords: List[str] = Field(
        default_factory=lambda: [
            "advanced",
            "expert",
            "optimization",
            "architecture",
            "deep",
            "internals",
        ]
    )


class PipelineConfig(StrictModel):
    """Orchestrator defaults."""

    quality_threshold: float = Field(default=6.0, ge=1.0, le=10.0)
    interest_threshold: float = Field(default=5.0, ge=1.0, le=10.0)
    max_sources_per_article: PositiveInt = Field(default=5)
    batch_max_concurrent: PositiveInt = Field(default=3)
    batch_pause_seconds: NonNegativeFloat = Field(default=2.0)
    continue_on_error: bool = Field(default=False)
    generated_url: str = Field(default="generated")
    generated_source_name: str = Field(default="AI Generated")
    slow_stage_ms: PositiveFloat = Field(
        default=30_000.0, description="Diagnosis flags stages slower than this."
    )
    degraded_ratio: float = Field(default=0.6, ge=0.0, le=1.0)


class CollectorConfig(StrictModel):
    """Sliding-window request budget shared by collectors."""

    max_requests: PositiveInt = Field(
        default=10, description="Requests allowed per window before a collector is rate limited."
    )
    window_seconds: PositiveFloat = Field(default=60.0)
    default_limit: PositiveInt = Field(default=20)


class LoggingConfig(StrictModel):
    """Logging subsystem configuration."""

    level: str = Field(
        default="INFO",
        description="Minimum log level captured by the pipeline logger.",
        examples=["DEBUG"],
    )
    file_path: Path = Field(
        default=Path("data/logs/techcurator.log"),
        description="Absolute path of the rotating log file.",
    )
    max_file_size_mb: PositiveInt = Field(
        default=10,
        description="Maximum size per log file before rotation (MiB).",
    )
    retention_days: PositiveInt = Field(
        default=30,
        description="Number of days to keep rotated log files.",
    )
    format: str = Field(
        default="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {name}:{line} | {message}",
        description="Log formatting template compatible with loguru.",
    )

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return normalized

    @model_validator(mode="after")
    def _resolve_path(self) -> "LoggingConfig":
        if not self.file_path.is_absolute():
            self.file_path = self.file_path.resolve()
        return self


class Config(StrictModel):
    """Complete techcurator configuration model."""

    app: AppSettings = Field(default_factory=AppSettings)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    model: ModelClientConfig = Field(default_factory=ModelClientConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    interest: InterestConfig = Field(default_factory=InterestConfig)
    queries: QueryGenerationConfig = Field(default_factory=QueryGenerationConfig)
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    tagging: TaggingConfig = Field(default_factory=TaggingConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    collectors: CollectorConfig = Field(default_factory=CollectorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    _metadata: object = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _check_fallback_categories(self) -> "Config":
        for category in self.classification.fallback_keywords:
            if category not in self.classification.categories:
                raise ValueError(
                    f"classification.fallback_keywords references unknown category {category!r}"
                )
        return self


DEFAULT_CONFIG = Config()


def iter_field_docs(
    model: BaseModel | type[BaseModel],
    prefix: str = "",
    *,
    include_defaults: bool = True,
) -> Iterable[dict[str, object]]:
    """Yield flattened schema documentation entries."""

    instance = DEFAULT_CONFIG if isinstance(model, type) else model
    target_model = type(instance) if not isinstance(model, type) else model

    for name, field in target_model.model_fields.items():
        value = getattr(instance, name, field.default)
        key = f"{prefix}{name}" if not prefix else f"{prefix}.{name}"
        is_nested = isinstance(value, BaseModel)
        entry: dict[str, object] = {
            "name": key,
            "type": getattr(field.annotation, "__name__", str(field.annotation)),
            "description": field.description or "",
            "default": None if (is_nested or not include_defaults) else value,
            "examples": field.examples or [],
            "constraints": _describe_constraints(field),
            "is_nested": is_nested,
        }
        yield entry
        if is_nested:
            yield from iter_field_docs(value, key)


def _describe_constraints(field: Any) -> str:
    """Return a human readable description of field constraints."""

    parts: list[str] = []
    for meta in getattr(field, "metadata", []) or []:
        for attr, comparator in (("ge", ">="), ("gt", ">"), ("le", "<="), ("lt", "<")):
            bound = getattr(meta, attr, None)
            if bound is not None:
                parts.append(f"{comparator} {bound}")
    return ", ".join(parts)


__all__ = [
    "Config",
    "DEFAULT_CONFIG",
    "SchemaError",
    "SourceWeightsConfig",
    "iter_field_docs",
]
