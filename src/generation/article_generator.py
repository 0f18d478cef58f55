# src/generation/article_generator.py
# Article synthesis
# =================

"""
Synthesizes one curation article from a prioritized handful of sources.

Sources are ranked by freshness, source type and overlap with the reader's
interests; only the best few reach the prompt. The model's answer is then
post-processed: word count and reading time are recomputed locally, a
missing difficulty is inferred from keywords, tags are capped and source
references are resolved against the inputs. There is no fallback article: a
failed generation raises ``ArticleGenerationError``.
"""

from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from config.settings import GENERATION_CONFIG
from src.ai.client import ModelClient, ModelClientError
from src.ai.schemas import ArticleResponse
from src.ai.stage import PipelineStage, source_weight
from src.contracts.articles import (
    ArticleGenerationAttempt,
    ArticleQualityMetrics,
    GeneratedArticle,
    GenerationOptions,
    ImprovementFeedback,
    SourceRef,
)
from src.contracts.content import RawContentItem, UserProfile
from src.utils.batching import run_in_slices
from src.utils.datetime_utils import hours_since, utcnow
from src.utils.numeric import clamp, mean, round_to
from src.utils.text_cleaner import clean_html, count_words, truncate

DIFFICULTIES = ("beginner", "intermediate", "advanced")

IMPROVEMENT_INSTRUCTIONS = {
    "clarity": "Rewrite unclear passages in plainer language.",
    "depth": "Explain the material in more depth and detail.",
    "examples": "Add concrete examples and code samples.",
    "structure": "Reorganize the article so it is easier to scan.",
}

TITLE_SPECIFIC_WORDS = ("how to", "guide", "introduction", "complete", "hands-on", "best practices")
TITLE_TECH_WORDS = ("React", "TypeScript", "JavaScript", "Python", "AI", "API")

_HEADING = re.compile(r"^#+\s", re.MULTILINE)
_LIST_ITEM = re.compile(r"^[-*]\s", re.MULTILINE)
_CODE_BLOCK = re.compile(r"```[\s\S]*?```")


class ArticleGenerationError(RuntimeError):
    """The model could not produce an article for the given sources."""


class ArticleGenerator(PipelineStage):
    stage_name = "generation"

    def __init__(self, client: ModelClient, config: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        super().__init__(client, config or GENERATION_CONFIG, **kwargs)
        self.max_sources = int(self.config.get("max_sources", 5))
        self.max_tags = int(self.config.get("max_tags", 8))
        self.words_per_minute = int(self.config.get("words_per_minute", 200))
        self.cache = self._build_cache()

    # ------------------------------------------------------------------
    # Source selection
    # ------------------------------------------------------------------
    def calculate_source_priority(
        self,
        source: RawContentItem,
        profile: UserProfile,
        now: Optional[datetime] = None,
    ) -> float:
        priority = float(self.config.get("base_priority", 5.0))
        age_hours = hours_since(source.published_at, now)
        if age_hours < float(self.config.get("fresh_hours", 24.0)):
            priority += float(self.config.get("fresh_bonus", 2.0))
        elif age_hours < float(self.config.get("recent_hours", 168.0)):
            priority += float(self.config.get("recent_bonus", 1.0))
        elif age_hours > float(self.config.get("stale_hours", 2_160.0)):
            priority -= float(self.config.get("stale_penalty", 1.0))

        priority *= source_weight(self.config.get("source_multipliers"), source.source_type)

        text = source.text.lower()
        matched = [keyword for keyword in profile.interest_keywords() if keyword.lower() in text]
        priority += len(matched) * float(self.config.get("interest_match_bonus", 0.5))
        return clamp(priority, 1.0, 10.0)

    def select_sources(
        self,
        sources: Sequence[RawContentItem],
        profile: UserProfile,
        now: Optional[datetime] = None,
    ) -> List[Tuple[RawContentItem, float]]:
        """Best ``max_sources`` sources with their priority; ties keep input order."""

        reference = now or utcnow()
        ranked = sorted(
            ((source, self.calculate_source_priority(source, profile, reference)) for source in sources),
            key=lambda entry: entry[1],
            reverse=True,
        )
        return ranked[: self.max_sources]

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    async def generate(
        self,
        sources: Sequence[RawContentItem],
        profile: UserProfile,
        options: Optional[GenerationOptions] = None,
    ) -> GeneratedArticle:
        """
        Generate an article from ``sources`` for ``profile``.

        Raises:
            ArticleGenerationError: no sources were given, or the model failed
                or answered with something that is not an article.
        """
        if not sources:
            raise ArticleGenerationError("No sources to generate an article from")
        opts = options or GenerationOptions()
        key = self.cache_key(sources, profile, opts)
        cached = self.cache.get(key)
        if cached is not None:
            self._emit_log("info", "generation.cache.hit", details={"title": cached.title[:50]})
            return cached

        selected = self.select_sources(sources, profile)
        self._emit_log(
            "info",
            "generation.article.start",
            details={
                "user_id": profile.id,
                "sources": len(sources),
                "selected": len(selected),
                "target_length": opts.target_length,
                "style": opts.style,
            },
        )
        try:
            response = await self._ask(
                "article-generation",
                {
                    "sources": self.format_sources(selected),
                    "user_profile": self.format_profile(profile),
                    "target_length": self.target_word_count(opts.target_length),
                    "style": opts.style,
                    "language": opts.language,
                },
                ArticleResponse,
            )
        except ModelClientError as exc:
            self._emit_log(
                "error",
                "generation.article.failed",
                details={"user_id": profile.id, "error": f"{type(exc).__name__}: {exc}"},
            )
            raise ArticleGenerationError(f"Article generation failed: {exc}") from exc

        article = self.post_process(
            response,
            {source.url: source.source_type for source, _ in selected},
            titles={source.url: source.title for source, _ in selected},
            default_content_type=opts.style,
        )
        self.cache.set(key, article)
        self._emit_log(
            "info",
            "generation.article.completed",
            details={
                "title": article.title[:50],
                "word_count": article.word_count,
                "confidence": article.confidence,
                "source_refs": len(article.source_refs),
            },
        )
        return article

    def cache_key(
        self,
        sources: Sequence[RawContentItem],
        profile: UserProfile,
        options: GenerationOptions,
    ) -> str:
        urls = "|".join(sorted(source.url for source in sources))
        return f"{profile.id}:{urls}:{options.model_dump_json()}"

    def format_sources(self, selected: Sequence[Tuple[RawContentItem, float]]) -> str:
        blocks = []
        for index, (source, priority) in enumerate(selected, start=1):
            blocks.append(
                f"{index}. **{source.title}** (priority: {priority:.1f})\n"
                f"   URL: {source.url}\n"
                f"   Summary: {truncate(clean_html(source.summary), 500) or '(none)'}\n"
                f"   Source: {source.source_name or source.source_type}\n"
                f"   Published: {source.published_at.isoformat()}"
            )
        return "\n\n".join(blocks)

    @staticmethod
    def format_profile(profile: UserProfile) -> str:
        return (
            f"Tech level: {profile.tech_level}\n"
            f"Interests: {', '.join(profile.interest_keywords()) or '(none)'}\n"
            f"Preferred content types: {', '.join(profile.content_types) or '(any)'}\n"
            f"Language: {profile.language}"
        )

    def target_word_count(self, target_length: str) -> str:
        targets = self.config.get("target_words") or {}
        return str(targets.get(target_length) or targets.get("medium", "1500-2500"))

    def post_process(
        self,
        response: ArticleResponse,
        source_types: Mapping[str, str],
        *,
        titles: Optional[Mapping[str, str]] = None,
        default_content_type: str = "curation",
    ) -> GeneratedArticle:
        """Turn the model's answer into a ``GeneratedArticle`` with locally computed metadata."""

        titles = titles or {}
        word_count = count_words(response.content)
        difficulty = (response.metadata.difficulty or "").strip().lower()
        if difficulty not in DIFFICULTIES:
            difficulty = self.infer_difficulty(response.content)

        source_refs = [
            SourceRef(
                url=entry.url,
                title=entry.title or titles.get(entry.url, ""),
                relevance=clamp(entry.relevance, 0.0, 1.0),
                source_type=source_types.get(entry.url, "web"),
            )
            for entry in response.sources
            if entry.url
        ]
        confidence = (
            float(self.config.get("default_confidence", 0.7))
            if response.confidence is None
            else response.confidence
        )
        return GeneratedArticle(
            title=response.title.strip(),
            summary=response.summary.strip(),
            content=response.content,
            category=response.category.strip() or "Other",
            tags=response.tags[: self.max_tags],
            source_refs=source_refs,
            confidence=clamp(confidence, float(self.config.get("min_confidence", 0.1)), 1.0),
            word_count=word_count,
            reading_time=math.ceil(word_count / self.words_per_minute),
            difficulty=difficulty,
            content_type=response.metadata.content_type or default_content_type,
        )

    def infer_difficulty(self, content: str) -> str:
        text = content.lower()
        beginner = sum(1 for keyword in self.config.get("beginner_keywords", []) if keyword in text)
        advanced = sum(1 for keyword in self.config.get("advanced_keywords", []) if keyword in text)
        if advanced > beginner:
            return "advanced"
        if beginner > 0:
            return "beginner"
        return "intermediate"

    # ------------------------------------------------------------------
    # Batches and revisions
    # ------------------------------------------------------------------
    async def generate_batch(
        self,
        source_groups: Sequence[Sequence[RawContentItem]],
        profile: UserProfile,
        options: Optional[GenerationOptions] = None,
    ) -> List[ArticleGenerationAttempt]:
        """One attempt per group, generated one at a time with a pause between groups."""

        async def worker(group: Sequence[RawContentItem]) -> GeneratedArticle:
            return await self.generate(group, profile, options)

        outcomes = await run_in_slices(
            source_groups,
            worker,
            max_concurrent=1,
            pause_seconds=float(self.config.get("batch_pause_seconds", 2.0)),
        )
        attempts: List[ArticleGenerationAttempt] = []
        for index, outcome in enumerate(outcomes, start=1):
            if isinstance(outcome, BaseException):
                self._emit_log(
                    "error",
                    "generation.batch.group_failed",
                    details={"group": index, "error": str(outcome)},
                )
                attempts.append(ArticleGenerationAttempt(success=False, error=str(outcome)))
            else:
                attempts.append(ArticleGenerationAttempt(success=True, article=outcome))
        return attempts

    async def improve_article(
        self,
        article: GeneratedArticle,
        feedback: ImprovementFeedback,
        profile: Optional[UserProfile] = None,
    ) -> GeneratedArticle:
        """
        Ask the model for a full replacement of ``article``.

        Raises:
            ArticleGenerationError: the model failed to return a revision.
        """
        improvements = "\n".join(
            f"- {IMPROVEMENT_INSTRUCTIONS[area]}" for area in feedback.improve_areas
        ) or "- General polish."
        try:
            response = await self._ask(
                "article-improvement",
                {
                    "title": article.title,
                    "summary": article.summary,
                    "content": article.content,
                    "improvements": improvements,
                    "user_comments": feedback.user_comments or "(none)",
                },
                ArticleResponse,
                temperature=0.6,
                max_tokens=3_500,
            )
        except ModelClientError as exc:
            self._emit_log(
                "error",
                "generation.improve.failed",
                details={"title": article.title[:50], "error": f"{type(exc).__name__}: {exc}"},
            )
            raise ArticleGenerationError(f"Article improvement failed: {exc}") from exc

        improved = self.post_process(
            response,
            {ref.url: ref.source_type for ref in article.source_refs},
            titles={ref.url: ref.title for ref in article.source_refs},
            default_content_type=article.content_type,
        )
        if not improved.source_refs:
            improved = improved.model_copy(update={"source_refs": list(article.source_refs)})
        self._emit_log(
            "info",
            "generation.improve.completed",
            details={
                "original_title": article.title[:50],
                "improved_title": improved.title[:50],
                "areas": list(feedback.improve_areas),
                "user_id": profile.id if profile else None,
            },
        )
        return improved

    # ------------------------------------------------------------------
    # Self-assessment
    # ------------------------------------------------------------------
    def calculate_quality_metrics(self, article: GeneratedArticle) -> ArticleQualityMetrics:
        """Rubric over length, title, structure, sources and tags, each 0-10."""

        scores = {
            "content_length": self._score_content_length(article.word_count),
            "title_quality": self._score_title(article.title),
            "structure": self._score_structure(article.content),
            "source_coverage": self._score_source_coverage(len(article.source_refs)),
            "tag_count": self._score_tag_count(len(article.tags)),
        }
        hints = {
            "content_length": "Expand the article with more detail.",
            "title_quality": "Make the title more specific and engaging.",
            "structure": "Use headings and lists to improve the structure.",
            "source_coverage": "Draw on more sources.",
            "tag_count": "Pick tags that match the content more closely.",
        }
        return ArticleQualityMetrics(
            **scores,
            overall=round_to(mean(scores.values()), 1),
            suggestions=[hints[name] for name, score in scores.items() if score < 7],
        )

    @staticmethod
    def _score_content_length(word_count: int) -> float:
        if word_count < 500:
            return 3.0
        if word_count < 1_000:
            return 6.0
        if word_count < 2_000:
            return 9.0
        if word_count < 3_000:
            return 10.0
        return 8.0

    @staticmethod
    def _score_title(title: str) -> float:
        score = 5.0
        if 20 < len(title) < 60:
            score += 2
        lowered = title.lower()
        if any(word in lowered for word in TITLE_SPECIFIC_WORDS):
            score += 2
        if any(word in title for word in TITLE_TECH_WORDS):
            score += 1
        return min(10.0, score)

    @staticmethod
    def _score_structure(content: str) -> float:
        score = 5.0
        if len(_HEADING.findall(content)) >= 3:
            score += 2
        if len(_LIST_ITEM.findall(content)) >= 3:
            score += 1
        if _CODE_BLOCK.search(content):
            score += 2
        return min(10.0, score)

    @staticmethod
    def _score_source_coverage(count: int) -> float:
        if count == 0:
            return 0.0
        if count == 1:
            return 4.0
        if count <= 3:
            return 8.0
        return 10.0

    @staticmethod
    def _score_tag_count(count: int) -> float:
        if count < 3:
            return 5.0
        if count <= 6:
            return 10.0
        return 8.0


__all__ = ["ArticleGenerationError", "ArticleGenerator", "DIFFICULTIES"]
