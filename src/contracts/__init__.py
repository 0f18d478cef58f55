"""Shared contracts for validated pipeline payloads."""

from .articles import (
    ArticleGenerationAttempt,
    ArticleQualityMetrics,
    CategoryAccuracyReport,
    CategoryAlternative,
    CategoryClassification,
    CategoryDistribution,
    GeneratedArticle,
    GenerationOptions,
    ImprovementFeedback,
    LabeledSample,
    QueryGenerationResult,
    QueryPerformance,
    SearchQuery,
    SourceRef,
    TagCluster,
    TagGenerationOptions,
    TagGenerationResult,
    TagSuggestion,
    TagTrendReport,
)
from .collaborators import ArticleRepository, Collector, UserProfileProvider
from .content import (
    ContentHistoryEntry,
    RawContentItem,
    RawContentPayload,
    UserInterests,
    UserProfile,
    WeightedKeyword,
)
from .pipeline import (
    PIPELINE_STAGES,
    BatchFailure,
    BatchResult,
    BatchSummary,
    DiagnosisReport,
    PipelineHistoryEntry,
    PipelineMetadata,
    PipelineOptions,
    PipelineResult,
    PipelineSettingsRecommendation,
    StageDiagnosis,
)
from .scores import (
    InterestScore,
    InterestTrendReport,
    PersonalizationScore,
    QualityScore,
    QualityTrend,
    ScoredItem,
    SourceQualityReport,
)

__all__ = [
    "ArticleGenerationAttempt",
    "ArticleQualityMetrics",
    "ArticleRepository",
    "BatchFailure",
    "BatchResult",
    "BatchSummary",
    "CategoryAccuracyReport",
    "CategoryAlternative",
    "CategoryClassification",
    "CategoryDistribution",
    "Collector",
    "ContentHistoryEntry",
    "DiagnosisReport",
    "GeneratedArticle",
    "GenerationOptions",
    "ImprovementFeedback",
    "InterestScore",
    "InterestTrendReport",
    "LabeledSample",
    "PIPELINE_STAGES",
    "PersonalizationScore",
    "PipelineHistoryEntry",
    "PipelineMetadata",
    "PipelineOptions",
    "PipelineResult",
    "PipelineSettingsRecommendation",
    "QualityScore",
    "QualityTrend",
    "QueryGenerationResult",
    "QueryPerformance",
    "RawContentItem",
    "RawContentPayload",
    "ScoredItem",
    "SearchQuery",
    "SourceQualityReport",
    "SourceRef",
    "StageDiagnosis",
    "TagCluster",
    "TagGenerationOptions",
    "TagGenerationResult",
    "TagSuggestion",
    "TagTrendReport",
    "UserInterests",
    "UserProfile",
    "WeightedKeyword",
]
