# src/queries/search_query_generator.py
# Search query generation
# =======================

"""
Turns a reader profile into source-specific search queries for collectors.

Model suggestions are filtered to the requested sources, ranked per source
and rewritten with each source's search syntax. Without the model the
profile's top interests become plain queries, two per source.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence

from config.settings import QUERY_CONFIG
from src.ai.client import ModelClient
from src.ai.results import StageOutcome
from src.ai.schemas import GeneratedQuery, QueryGenerationResponse
from src.ai.stage import PipelineStage
from src.contracts.articles import QueryGenerationResult, QueryPerformance, SearchQuery
from src.contracts.content import UserProfile
from src.utils.datetime_utils import utcnow
from src.utils.dedupe import unique_by
from src.utils.numeric import clamp_score

TRENDING_TIMEFRAMES = ("day", "week", "month")


class SearchQueryGenerator(PipelineStage):
    stage_name = "queries"

    def __init__(self, client: ModelClient, config: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        super().__init__(client, config or QUERY_CONFIG, **kwargs)
        self.default_targets = list(
            self.config.get("default_target_sources") or ["google", "news", "reddit", "github", "rss"]
        )
        self.max_queries_per_source = int(self.config.get("max_queries_per_source", 3))

    async def generate_queries(
        self,
        profile: UserProfile,
        target_sources: Optional[Sequence[str]] = None,
        *,
        max_queries_per_source: Optional[int] = None,
    ) -> QueryGenerationResult:
        """Generate ranked queries for every target source."""

        outcome = await self.generate_queries_outcome(
            profile, target_sources, max_queries_per_source=max_queries_per_source
        )
        return outcome.value

    async def generate_queries_outcome(
        self,
        profile: UserProfile,
        target_sources: Optional[Sequence[str]] = None,
        *,
        max_queries_per_source: Optional[int] = None,
    ) -> StageOutcome[QueryGenerationResult]:
        targets = [source.lower() for source in (target_sources or self.default_targets)]
        limit = max_queries_per_source or self.max_queries_per_source
        self._emit_log(
            "info",
            "queries.generate.start",
            details={"user_id": profile.id, "targets": targets},
        )

        async def primary() -> QueryGenerationResult:
            response = await self._ask(
                "search-query-generation",
                {
                    "user_interests": ", ".join(profile.interest_keywords()) or "(none)",
                    "tech_level": profile.tech_level,
                    "recent_topics": ", ".join(profile.recent_activity) or "(none)",
                    "content_types": ", ".join(profile.content_types) or "(any)",
                    "language": profile.language,
                    "target_sources": ", ".join(targets),
                    "current_date": utcnow().date().isoformat(),
                },
                QueryGenerationResponse,
            )
            return QueryGenerationResult(
                queries=self.optimize_queries(response.queries, targets, limit),
                reasoning=response.reasoning,
            )

        outcome: StageOutcome[QueryGenerationResult] = await self._with_fallback(
            "generate_queries",
            primary,
            lambda error: self.fallback_queries(profile, targets, reasoning=error),
        )
        result = outcome.value.model_copy(update={"branch": outcome.branch})
        self._emit_log(
            "info",
            "queries.generate.completed",
            details={
                "user_id": profile.id,
                "total": len(result.queries),
                "branch": result.branch,
                "distribution": self.source_distribution(result.queries),
            },
        )
        return StageOutcome(value=result, branch=outcome.branch, error=outcome.error)

    def optimize_queries(
        self,
        queries: Sequence[GeneratedQuery],
        targets: Sequence[str],
        limit: int,
    ) -> List[SearchQuery]:
        """Keep queries for ``targets``, best ``limit`` per source, rewritten per source."""

        grouped: Dict[str, List[SearchQuery]] = {}
        for generated in queries:
            if not generated.query.strip():
                continue
            for source in generated.target_sources():
                if source not in targets:
                    continue
                grouped.setdefault(source, []).append(
                    SearchQuery(
                        query=generated.query.strip(),
                        category=generated.category or "general",
                        priority=clamp_score(generated.priority),
                        reasoning=generated.reasoning,
                        recommended_sources=[source],
                    )
                )

        optimized: List[SearchQuery] = []
        for source, source_queries in grouped.items():
            ranked = sorted(source_queries, key=lambda query: query.priority, reverse=True)[:limit]
            optimized.extend(self.adapt_for_source(query, source) for query in ranked)
        return optimized

    def adapt_for_source(self, query: SearchQuery, source: str) -> SearchQuery:
        """Append the source's search syntax to ``query``."""

        text = query.query
        if source == "reddit":
            suffix = self.config.get("reddit_suffix", "site:reddit.com")
            if suffix and suffix not in text:
                text = f"{text} {suffix}"
        elif source == "github":
            if "language:" not in text:
                text = f"{text} {self.config.get('github_language_filter', '')}".strip()
        elif source == "news":
            year = str(utcnow().year)
            if year not in text:
                text = f"{text} {year}"
        return query.model_copy(update={"query": text})

    def fallback_queries(
        self,
        profile: UserProfile,
        targets: Sequence[str],
        *,
        reasoning: str = "",
    ) -> QueryGenerationResult:
        """Two plain queries per source from the reader's top interests."""

        priorities = list(self.config.get("fallback_priorities") or [5, 4])
        seeds = unique_by(
            [*profile.top_interests(len(priorities)), *self.config.get("trending_base_topics", [])],
            key=str.lower,
        )[: len(priorities)]

        queries: List[SearchQuery] = []
        for source in targets:
            for seed, priority in zip(seeds, priorities):
                queries.append(
                    self.adapt_for_source(
                        SearchQuery(
                            query=seed,
                            category="general",
                            priority=clamp_score(priority),
                            reasoning="Built from profile interests",
                            recommended_sources=[source],
                        ),
                        source,
                    )
                )
        return QueryGenerationResult(
            queries=queries,
            reasoning=f"Fallback queries from profile interests ({reasoning})"
            if reasoning
            else "Fallback queries from profile interests",
            branch="fallback",
        )

    async def generate_topic_queries(
        self,
        topic: str,
        profile: UserProfile,
        sources: Sequence[str] = ("google", "news"),
    ) -> List[SearchQuery]:
        targets = [source.lower() for source in sources]

        async def primary() -> List[SearchQuery]:
            response = await self._ask(
                "topic-query-generation",
                {
                    "topic": topic,
                    "tech_level": profile.tech_level,
                    "user_interests": ", ".join(profile.top_interests()) or "(none)",
                },
                QueryGenerationResponse,
                temperature=0.6,
                max_tokens=800,
            )
            return self.optimize_queries(response.queries, targets, self.max_queries_per_source)

        def fallback(_: str) -> List[SearchQuery]:
            return [
                SearchQuery(
                    query=f"{topic} {suffix}",
                    category="general",
                    priority=priority,
                    reasoning="Generic topic query",
                    recommended_sources=[source],
                )
                for source in targets
                for suffix, priority in (("tutorial", 8.0), ("best practices", 7.0))
            ]

        outcome = await self._with_fallback("generate_topic_queries", primary, fallback)
        return outcome.value

    async def generate_trending_queries(
        self, profile: UserProfile, timeframe: str = "week"
    ) -> List[SearchQuery]:
        """Queries about what is trending; an empty list when the model fails."""

        if timeframe not in TRENDING_TIMEFRAMES:
            raise ValueError(f"Unsupported timeframe: {timeframe}")
        keywords = list(self.config.get("trending_keywords", {}).get(timeframe, []))
        base_topics = unique_by(
            [*profile.top_interests(), *self.config.get("trending_base_topics", [])], key=str.lower
        )

        async def primary() -> List[SearchQuery]:
            response = await self._ask(
                "trending-query-generation",
                {
                    "timeframe": timeframe,
                    "base_topics": ", ".join(base_topics),
                    "keywords": ", ".join([*keywords, str(utcnow().year)]),
                },
                QueryGenerationResponse,
                temperature=0.8,
                max_tokens=1_000,
            )
            return [
                SearchQuery(
                    query=generated.query.strip(),
                    category=generated.category or "trending",
                    priority=clamp_score(generated.priority),
                    reasoning=generated.reasoning,
                    recommended_sources=generated.target_sources(),
                )
                for generated in response.queries
                if generated.query.strip()
            ]

        outcome = await self._with_fallback("generate_trending_queries", primary, lambda _: [])
        return outcome.value

    @staticmethod
    def analyze_query_performance(query: SearchQuery, result_count: int) -> QueryPerformance:
        count = max(0, int(result_count))
        suggestions: List[str] = []
        if count < 5:
            suggestions.append("Use broader, more common keywords")
        if count > 50:
            suggestions.append("Add more specific keywords")
        return QueryPerformance(
            query=query.query,
            result_count=count,
            effectiveness=min(10.0, count * 0.5),
            suggestions=suggestions,
        )

    @staticmethod
    def source_distribution(queries: Sequence[SearchQuery]) -> Dict[str, int]:
        return dict(
            Counter(
                query.recommended_sources[0] if query.recommended_sources else "unknown"
                for query in queries
            )
        )


__all__ = ["SearchQueryGenerator", "TRENDING_TIMEFRAMES"]
