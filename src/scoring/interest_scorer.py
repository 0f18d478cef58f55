# src/scoring/interest_scorer.py
# Reader interest scoring
# =======================

"""
How well a raw item fits one reader's declared interests, on a 1-10 scale.

The model weighs topic relevance, difficulty match, novelty and
actionability. Without a usable model answer a deterministic heuristic takes
over: a base score plus bounded bonuses for keyword hits, trusted source
types and freshness.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from config.settings import INTEREST_CONFIG
from src.ai.client import ModelClient
from src.ai.results import StageOutcome
from src.ai.schemas import InterestScoreResponse
from src.ai.stage import PipelineStage, source_weight
from src.contracts.content import ContentHistoryEntry, RawContentItem, UserProfile
from src.contracts.scores import InterestScore, InterestTrendReport, PersonalizationScore, ScoredItem
from src.utils.batching import run_in_slices
from src.utils.datetime_utils import hours_since, parse_to_utc, utcnow
from src.utils.numeric import clamp, clamp_score, mean, round_to
from src.utils.text_cleaner import clean_html, contains_keyword, truncate

INTEREST_FACTORS = ("topic_relevance", "difficulty_match", "novelty", "actionability")
FILTER_STRATEGIES = ("top_n", "threshold", "percentile")

PERSONALIZATION_WEIGHTS = {
    "historical_preference": 0.3,
    "topic_novelty": 0.25,
    "source_preference": 0.2,
    "difficulty_alignment": 0.25,
}
BEGINNER_MARKERS = ("tutorial", "beginner", "intro", "basics", "getting started")
ADVANCED_MARKERS = ("advanced", "expert", "deep dive", "optimization", "architecture")
# (has beginner marker, has advanced marker, neither)
DIFFICULTY_ALIGNMENT = {
    "beginner": (9.0, 3.0, 6.0),
    "intermediate": (7.0, 7.0, 8.0),
    "advanced": (5.0, 9.0, 7.0),
    "expert": (5.0, 9.0, 7.0),
}
_WORD_SPLIT = re.compile(r"\W+")


def _keywords(text: str, limit: int = 10) -> List[str]:
    return [word for word in _WORD_SPLIT.split(text.lower()) if len(word) > 3][:limit]


class InterestScorer(PipelineStage):
    """Scores reader fit with a per-instance 12h cache keyed by user and item."""

    stage_name = "interest"

    def __init__(self, client: ModelClient, config: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        super().__init__(client, config or INTEREST_CONFIG, **kwargs)
        self.title_prefix = int(self.config.get("cache_title_prefix", 30))
        self.max_concurrent = int(self.config.get("max_concurrent", 5))
        self.batch_pause_seconds = float(self.config.get("batch_pause_seconds", 1.0))
        self.cache = self._build_cache()

    # ------------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------------
    async def calculate(self, item: RawContentItem, profile: UserProfile) -> float:
        outcome = await self.calculate_outcome(item, profile)
        return outcome.value.value

    async def calculate_detailed(self, item: RawContentItem, profile: UserProfile) -> InterestScore:
        outcome = await self.calculate_outcome(item, profile)
        return outcome.value

    async def calculate_outcome(
        self, item: RawContentItem, profile: UserProfile
    ) -> StageOutcome[InterestScore]:
        key = self.cache_key(item, profile)
        cached = self.cache.get(key)
        if cached is not None:
            self._emit_log(
                "debug",
                "interest.cache.hit",
                details={"url": item.url, "user_id": profile.id, "score": cached.value},
            )
            return StageOutcome.primary(cached)

        outcome = await self._with_fallback(
            "calculate",
            lambda: self._score_with_model(item, profile),
            lambda error: self.fallback_score(item, profile, reasoning=error),
        )
        if not outcome.used_fallback:
            self.cache.set(key, outcome.value)
            self._emit_log(
                "info",
                "interest.item.scored",
                details={
                    "url": item.url,
                    "user_id": profile.id,
                    "score": outcome.value.value,
                    "matched_keywords": outcome.value.matched_keywords,
                },
            )
        return outcome

    def cache_key(self, item: RawContentItem, profile: UserProfile) -> str:
        return f"{profile.id}:{item.url}:{item.title[: self.title_prefix]}"

    async def _score_with_model(self, item: RawContentItem, profile: UserProfile) -> InterestScore:
        response = await self._ask(
            "interest-score-calculation",
            {
                "content": self._format_item(item),
                "user_profile": self._format_profile(profile),
                "recent_activity": ", ".join(profile.recent_activity) or "(none)",
            },
            InterestScoreResponse,
        )
        return InterestScore(
            value=clamp_score(response.score),
            reasoning=response.reasoning,
            factor_breakdown={
                name: clamp_score(value)
                for name, value in response.factors.items()
                if name in INTEREST_FACTORS
            },
            matched_keywords=[keyword for keyword in response.matched_keywords if keyword],
        )

    @staticmethod
    def _format_item(item: RawContentItem) -> str:
        return (
            f"Title: {item.title}\n"
            f"Summary: {truncate(clean_html(item.summary), 800)}\n"
            f"Source: {item.source_name or item.source_type}\n"
            f"Published: {item.published_at.isoformat()}"
        )

    @staticmethod
    def _format_profile(profile: UserProfile) -> str:
        return (
            f"Interests: {', '.join(profile.interest_keywords()) or '(none)'}\n"
            f"Technical level: {profile.tech_level}\n"
            f"Preferred style: {profile.preferred_style}\n"
            f"Preferred content types: {', '.join(profile.content_types) or '(any)'}"
        )

    def fallback_score(
        self,
        item: RawContentItem,
        profile: UserProfile,
        *,
        now: Optional[datetime] = None,
        reasoning: str = "",
    ) -> InterestScore:
        """Keyword, source and freshness heuristic used when the model is unavailable."""

        text = item.text
        matched = [keyword for keyword in profile.interest_keywords() if contains_keyword(text, keyword)]
        keyword_bonus = min(
            float(self.config.get("keyword_bonus_cap", 3.0)),
            len(matched) * float(self.config.get("keyword_bonus", 0.5)),
        )
        source_bonus = source_weight(self.config.get("source_bonus"), item.source_type)

        age_hours = hours_since(item.published_at, now)
        recency = 0.0
        if age_hours < float(self.config.get("fresh_hours", 24.0)):
            recency = float(self.config.get("fresh_bonus", 0.5))
        elif age_hours > float(self.config.get("stale_hours", 168.0)):
            recency = -float(self.config.get("stale_penalty", 0.5))

        base = float(self.config.get("fallback_base_score", 5.0))
        return InterestScore(
            value=round_to(clamp(base + keyword_bonus + source_bonus + recency, 1.0, 10.0), 1),
            reasoning=f"Heuristic score ({reasoning})" if reasoning else "Heuristic score",
            factor_breakdown={
                "base": base,
                "keywords": keyword_bonus,
                "source": source_bonus,
                "recency": recency,
            },
            matched_keywords=matched,
        )

    # ------------------------------------------------------------------
    # Batches and selection
    # ------------------------------------------------------------------
    async def calculate_batch(
        self,
        items: Sequence[RawContentItem],
        profile: UserProfile,
        *,
        max_concurrent: Optional[int] = None,
        sort_by_score: bool = True,
        min_score: float = 0.0,
    ) -> List[ScoredItem]:
        """Score ``items`` and return them ranked from 1; failures use the heuristic."""

        async def score(item: RawContentItem) -> InterestScore:
            return await self.calculate_detailed(item, profile)

        outcomes = await run_in_slices(
            items,
            score,
            max_concurrent=max_concurrent or self.max_concurrent,
            pause_seconds=self.batch_pause_seconds,
        )

        scored: List[ScoredItem] = []
        for item, outcome in zip(items, outcomes):
            if isinstance(outcome, BaseException):
                self._emit_log(
                    "warning",
                    "interest.batch.item_failed",
                    details={"url": item.url, "error": str(outcome)},
                )
                outcome = self.fallback_score(item, profile, reasoning=str(outcome))
            if outcome.value >= min_score:
                scored.append(ScoredItem(item=item, score=outcome))

        if sort_by_score:
            scored.sort(key=lambda entry: entry.value, reverse=True)
        ranked = [entry.model_copy(update={"ranking": index}) for index, entry in enumerate(scored, start=1)]

        self._emit_log(
            "info",
            "interest.batch.completed",
            details={
                "user_id": profile.id,
                "total": len(items),
                "kept": len(ranked),
                "average": round_to(mean(entry.value for entry in ranked), 1),
                "top_score": ranked[0].value if ranked else 0.0,
            },
        )
        return ranked

    @staticmethod
    def filter_by_interest(
        scored: Sequence[ScoredItem],
        strategy: str = "threshold",
        parameter: float = 6.0,
    ) -> List[ScoredItem]:
        """
        Select items by ``top_n`` (count), ``threshold`` (minimum score) or
        ``percentile`` (keep scores at or above the score found ``parameter``
        percent of the way down the ranking). Results are best first.
        """
        ordered = sorted(scored, key=lambda entry: entry.value, reverse=True)
        if strategy == "top_n":
            return ordered[: max(0, int(parameter))]
        if strategy == "threshold":
            return [entry for entry in ordered if entry.value >= parameter]
        if strategy == "percentile":
            index = int(len(ordered) * (parameter / 100.0))
            cutoff = ordered[index].value if 0 <= index < len(ordered) else 0.0
            return [entry for entry in ordered if entry.value >= cutoff]
        raise ValueError(f"Unknown filter strategy: {strategy}")

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    async def analyze_interest_trend(
        self,
        profile: UserProfile,
        history: Sequence[ContentHistoryEntry],
        *,
        now: Optional[datetime] = None,
    ) -> InterestTrendReport:
        """
        Compare per-topic interest between the last ``trend_recent_days`` and
        the same span before it. Topics absent from the older span count as 5.
        """
        reference = parse_to_utc(now) if now else utcnow()
        span = timedelta(days=int(self.config.get("trend_recent_days", 30)))
        recent = [entry.item for entry in history if entry.timestamp > reference - span]
        older = [
            entry.item
            for entry in history
            if reference - 2 * span < entry.timestamp <= reference - span
        ]

        recent_scores = await self._topic_scores(recent, profile)
        older_scores = await self._topic_scores(older, profile)
        neutral = float(self.config.get("fallback_base_score", 5.0))
        delta = float(self.config.get("trend_delta", 0.5))

        changes = {
            topic: round_to(score - older_scores.get(topic, neutral), 2)
            for topic, score in recent_scores.items()
        }
        trending = sorted(
            (topic for topic, change in changes.items() if change > delta),
            key=lambda topic: changes[topic],
            reverse=True,
        )[:5]
        declining = sorted(
            (topic for topic, change in changes.items() if change < -delta),
            key=lambda topic: changes[topic],
        )[:5]

        recommendations: List[str] = []
        if trending:
            recommendations.append(
                f"Interest in '{trending[0]}' is rising; collect more related content."
            )
        if declining:
            recommendations.append(
                f"Interest in '{declining[0]}' is falling; consider exploring other topics."
            )
        if not trending and not declining:
            recommendations.append("Interests are stable; try exploring a new technical area.")

        return InterestTrendReport(
            trending_topics=trending,
            declining_topics=declining,
            topic_changes=changes,
            recommendations=recommendations,
        )

    async def _topic_scores(
        self, items: Sequence[RawContentItem], profile: UserProfile
    ) -> Dict[str, float]:
        corpus = " ".join(item.text for item in items).lower()
        topics = [topic for topic in self.config.get("trend_topics", []) if topic.lower() in corpus]

        scores: Dict[str, float] = {}
        for topic in topics:
            sample = [item for item in items if contains_keyword(item.text, topic)][:3]
            if not sample:
                continue
            values = [await self.calculate(item, profile) for item in sample]
            scores[topic] = round_to(mean(values), 1)
        return scores

    def calculate_personalization_score(
        self,
        item: RawContentItem,
        profile: UserProfile,
        history: Sequence[RawContentItem] = (),
    ) -> PersonalizationScore:
        """Blend history overlap, novelty, source preference and difficulty fit."""

        item_keywords = _keywords(item.text)
        history_keywords = [keyword for past in history for keyword in _keywords(past.text)]
        known = set(history_keywords)

        matches = sum(1 for keyword in item_keywords if keyword in known)
        novel = sum(1 for keyword in item_keywords if keyword not in known)
        factors = {
            "historical_preference": min(10.0, 5.0 + matches * 0.5),
            "topic_novelty": min(10.0, 5.0 + (novel / max(1, len(item_keywords))) * 5.0),
            "source_preference": self._source_preference(item.source_type, profile),
            "difficulty_alignment": self._difficulty_alignment(item, profile),
        }
        value = sum(factors[name] * weight for name, weight in PERSONALIZATION_WEIGHTS.items())

        messages = {
            "historical_preference": "Closely related to what you have read before",
            "topic_novelty": "A new topic and a learning opportunity",
            "source_preference": "From a kind of source you prefer",
            "difficulty_alignment": "Matches your technical level",
        }
        return PersonalizationScore(
            value=round_to(clamp(value, 1.0, 10.0), 1),
            factors=factors,
            explanations=[messages[name] for name, score in factors.items() if score > 7],
        )

    @staticmethod
    def _source_preference(source_type: str, profile: UserProfile) -> float:
        preferred = {content_type.lower() for content_type in profile.content_types}
        if source_type == "github":
            return 8.0 if "tools" in preferred else 6.0
        if source_type == "news":
            return 8.0 if "news" in preferred else 6.0
        if source_type == "rss":
            return 7.0
        if source_type == "reddit":
            return 8.0 if "discussion" in preferred else 5.0
        return 5.0

    @staticmethod
    def _difficulty_alignment(item: RawContentItem, profile: UserProfile) -> float:
        text = item.text.lower()
        beginner, advanced, neutral = DIFFICULTY_ALIGNMENT.get(profile.tech_level, (6.0, 6.0, 6.0))
        if any(marker in text for marker in BEGINNER_MARKERS):
            return beginner
        if any(marker in text for marker in ADVANCED_MARKERS):
            return advanced
        return neutral


__all__ = ["FILTER_STRATEGIES", "INTEREST_FACTORS", "InterestScorer"]
