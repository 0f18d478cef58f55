# src/tagging/tag_generator.py
# Tag generation
# ==============

"""
Typed, relevance-scored tags for raw items and generated articles.

Model suggestions go through one normalization pass (aliases, separator
unification, relevance clamping, deduplication), can be augmented with tags
extracted from a fixed list of technical terms, and are filtered against a
set of tags too generic to be useful unless the model is confident about
them. Keyword extraction alone is the fallback.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from config.settings import TAGGING_CONFIG
from src.ai.client import ModelClient
from src.ai.results import StageOutcome
from src.ai.schemas import TagEntry, TagResponse
from src.ai.stage import PipelineStage
from src.contracts.articles import (
    GeneratedArticle,
    TagCluster,
    TagGenerationOptions,
    TagGenerationResult,
    TagSuggestion,
    TagTrendReport,
)
from src.contracts.content import RawContentItem
from src.utils.batching import run_in_slices
from src.utils.numeric import clamp, round_to
from src.utils.text_cleaner import clean_html, string_similarity, truncate

Taggable = Union[RawContentItem, GeneratedArticle]


class TagGenerator(PipelineStage):
    stage_name = "tagging"

    def __init__(self, client: ModelClient, config: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        super().__init__(client, config or TAGGING_CONFIG, **kwargs)
        self.aliases: Dict[str, str] = {
            key.lower(): value for key, value in (self.config.get("aliases") or {}).items()
        }
        self.tech_keywords: List[str] = [
            keyword.lower() for keyword in self.config.get("tech_keywords") or []
        ]
        self.common_tags = frozenset(tag.lower() for tag in self.config.get("common_tags") or [])
        self.tag_frequency: Counter = Counter()
        self.cache = self._build_cache()

    def default_options(self) -> TagGenerationOptions:
        return TagGenerationOptions(
            max_tags=int(self.config.get("max_tags", 8)),
            include_rare_keywords=bool(self.config.get("include_rare_keywords", False)),
            filter_common_tags=bool(self.config.get("filter_common_tags", True)),
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    async def generate_tags(
        self, item: Taggable, options: Optional[TagGenerationOptions] = None
    ) -> List[str]:
        result = await self.generate_tags_detailed(item, options)
        return result.names

    async def generate_tags_detailed(
        self, item: Taggable, options: Optional[TagGenerationOptions] = None
    ) -> TagGenerationResult:
        outcome = await self.generate_tags_outcome(item, options)
        return outcome.value

    async def generate_tags_outcome(
        self, item: Taggable, options: Optional[TagGenerationOptions] = None
    ) -> StageOutcome[TagGenerationResult]:
        opts = options or self.default_options()
        key = self.cache_key(item, opts)
        cached = self.cache.get(key)
        if cached is not None:
            self._emit_log("debug", "tagging.cache.hit", details={"title": item.title[:50]})
            return StageOutcome.primary(cached)

        async def primary() -> TagGenerationResult:
            response = await self._ask(
                "tag-generation",
                {
                    "title": item.title,
                    "summary": item.summary or "(none)",
                    "content": truncate(clean_html(self._body(item)), 2_000) or "(none)",
                    "max_tags": opts.max_tags,
                },
                TagResponse,
            )
            tags = self.process_generated_tags(response.tags)
            if opts.include_rare_keywords:
                tags = self.merge_tags(tags, self.extract_keyword_tags(item))
            if opts.filter_common_tags:
                tags = self.filter_common_tags(tags)
            tags = sorted(tags, key=lambda tag: tag.relevance, reverse=True)[: opts.max_tags]
            return TagGenerationResult(tags=tags, reasoning=response.reasoning)

        outcome = await self._with_fallback(
            "generate_tags", primary, lambda error: self.fallback_tags(item, opts.max_tags)
        )
        if not outcome.used_fallback:
            result = outcome.value
            self.tag_frequency.update(result.names)
            self.cache.set(key, result)
            self._emit_log(
                "info",
                "tagging.item.tagged",
                details={
                    "title": item.title[:50],
                    "count": len(result.tags),
                    "top": result.names[:3],
                },
            )
        return outcome

    def cache_key(self, item: Taggable, options: TagGenerationOptions) -> str:
        return f"{item.title}:{(item.summary or '')[:100]}:{options.model_dump_json()}"

    @staticmethod
    def _body(item: Taggable) -> str:
        return getattr(item, "content", None) or item.summary or ""

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------
    def normalize_tag(self, tag: str) -> str:
        """Lowercase, resolve known aliases and unify separators."""

        normalized = tag.strip().lower()
        if normalized in self.aliases:
            return self.aliases[normalized]
        return normalized.replace("_", "-").strip()

    def process_generated_tags(self, entries: Iterable[TagEntry]) -> List[TagSuggestion]:
        processed: List[TagSuggestion] = []
        seen: set[str] = set()
        for entry in entries:
            name = self.normalize_tag(entry.name)
            if len(name) <= 1 or name in seen:
                continue
            seen.add(name)
            processed.append(
                TagSuggestion(name=name, relevance=clamp(entry.relevance, 0.0, 1.0), type=entry.type)
            )
        return processed

    def extract_keyword_tags(self, item: Taggable) -> List[TagSuggestion]:
        """Technology tags for listed terms found in the title and summary."""

        text = f"{item.title} {item.summary or ''}".lower()
        per_hit = float(self.config.get("keyword_weight_per_hit", 0.3))
        extracted: List[TagSuggestion] = []
        for keyword in self.tech_keywords:
            hits = text.count(keyword)
            if hits:
                extracted.append(
                    TagSuggestion(name=keyword, relevance=min(1.0, hits * per_hit), type="technology")
                )
        return extracted

    def merge_tags(
        self, model_tags: Sequence[TagSuggestion], extracted: Sequence[TagSuggestion]
    ) -> List[TagSuggestion]:
        factor = float(self.config.get("extracted_relevance_factor", 0.8))
        merged: Dict[str, TagSuggestion] = {tag.name: tag for tag in model_tags}
        for tag in extracted:
            if tag.name not in merged:
                merged[tag.name] = tag.model_copy(update={"relevance": tag.relevance * factor})
        return list(merged.values())

    def filter_common_tags(self, tags: Sequence[TagSuggestion]) -> List[TagSuggestion]:
        keep_above = float(self.config.get("common_tag_keep_relevance", 0.7))
        return [
            tag for tag in tags if tag.name.lower() not in self.common_tags or tag.relevance > keep_above
        ]

    def fallback_tags(self, item: Taggable, max_tags: int) -> TagGenerationResult:
        return TagGenerationResult(
            tags=self.extract_keyword_tags(item)[:max_tags],
            reasoning="Keyword extraction fallback",
            branch="fallback",
        )

    # ------------------------------------------------------------------
    # Batches and analysis
    # ------------------------------------------------------------------
    async def generate_tags_batch(
        self,
        items: Sequence[Taggable],
        options: Optional[TagGenerationOptions] = None,
        *,
        max_concurrent: Optional[int] = None,
    ) -> Dict[str, List[str]]:
        """Tag names keyed by ``title:summary-prefix``."""

        opts = options or self.default_options()

        async def worker(item: Taggable) -> List[str]:
            return await self.generate_tags(item, opts)

        outcomes = await run_in_slices(
            items,
            worker,
            max_concurrent=max_concurrent or int(self.config.get("max_concurrent", 3)),
            pause_seconds=float(self.config.get("batch_pause_seconds", 1.0)),
        )
        results: Dict[str, List[str]] = {}
        for item, outcome in zip(items, outcomes):
            if isinstance(outcome, BaseException):
                self._emit_log(
                    "warning",
                    "tagging.batch.item_failed",
                    details={"title": item.title[:50], "error": str(outcome)},
                )
                outcome = self.fallback_tags(item, opts.max_tags).names
            results[self.content_key(item)] = outcome
        self._emit_log(
            "info",
            "tagging.batch.completed",
            details={"total": len(items), "tagged": len(results)},
        )
        return results

    @staticmethod
    def content_key(item: Taggable) -> str:
        return f"{item.title}:{(item.summary or '')[:50]}"

    def most_frequent_tags(self, limit: int = 10) -> List[str]:
        return [tag for tag, _ in self.tag_frequency.most_common(limit)]

    def cluster_tags(
        self,
        tags: Sequence[str],
        *,
        max_clusters: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ) -> List[TagCluster]:
        """
        Greedy grouping by edit-distance similarity.

        Each unassigned tag, in input order, opens a cluster and absorbs every
        later unassigned tag at least ``min_similarity`` similar to it.
        """
        limit = max_clusters or int(self.config.get("cluster_max", 10))
        threshold = (
            float(self.config.get("cluster_min_similarity", 0.7))
            if min_similarity is None
            else min_similarity
        )
        merge_size = int(self.config.get("cluster_merge_size", 3))

        clusters: List[TagCluster] = []
        used: set[int] = set()
        for index, tag in enumerate(tags):
            if len(clusters) >= limit:
                break
            if index in used:
                continue
            used.add(index)
            members = [tag]
            for other_index in range(index + 1, len(tags)):
                if other_index in used:
                    continue
                if string_similarity(tag, tags[other_index]) >= threshold:
                    members.append(tags[other_index])
                    used.add(other_index)
            clusters.append(
                TagCluster(
                    representative=tag,
                    members=members,
                    suggested_merge=len(members) > merge_size,
                )
            )
        return clusters

    @staticmethod
    def analyze_tag_trends(
        recent_tags: Iterable[str], older_tags: Iterable[str], *, limit: int = 10
    ) -> TagTrendReport:
        """Compare each tag's share (percent) of two windows."""

        recent = Counter(recent_tags)
        older = Counter(older_tags)
        recent_total = sum(recent.values())
        older_total = sum(older.values())

        def share(counts: Counter, total: int, tag: str) -> float:
            return counts[tag] / total * 100 if total else 0.0

        changes = {
            tag: round_to(share(recent, recent_total, tag) - share(older, older_total, tag), 1)
            for tag in sorted(set(recent) | set(older))
        }
        rising = sorted((tag for tag, delta in changes.items() if delta > 0), key=lambda tag: -changes[tag])
        falling = sorted((tag for tag, delta in changes.items() if delta < 0), key=lambda tag: changes[tag])
        return TagTrendReport(rising=rising[:limit], falling=falling[:limit], share_changes=changes)


__all__ = ["TagGenerator", "Taggable"]
