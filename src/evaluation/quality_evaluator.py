# src/evaluation/quality_evaluator.py
# Content quality evaluation
# ==========================

"""
Rubric-based quality scoring of raw content items.

The model rates accuracy, relevance, freshness, depth and readability and
returns one 1-10 score. When the model cannot be reached or answers with
something unusable, the item gets the midpoint score and an
``evaluation_failed`` flag so callers can still rank it.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from config.settings import EVALUATION_CONFIG
from src.ai.client import ModelClient
from src.ai.results import StageOutcome
from src.ai.schemas import QualityEvaluationResponse
from src.ai.stage import PipelineStage, source_weight
from src.contracts.content import RawContentItem
from src.contracts.scores import QualityScore, QualityTrend, SourceQualityReport
from src.utils.batching import run_in_slices
from src.utils.datetime_utils import TREND_WINDOWS, hours_since, period_key, utcnow
from src.utils.numeric import clamp_score, mean, round_to
from src.utils.text_cleaner import clean_html, truncate

QUALITY_FACTORS = ("accuracy", "relevance", "freshness", "depth", "readability")


class ContentQualityEvaluator(PipelineStage):
    """Scores items 1-10 on intrinsic merit, with a per-instance 24h cache."""

    stage_name = "evaluation"

    def __init__(self, client: ModelClient, config: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        super().__init__(client, config or EVALUATION_CONFIG, **kwargs)
        self.fallback_score = float(self.config.get("fallback_score", 5.0))
        self.title_prefix = int(self.config.get("cache_title_prefix", 50))
        self.max_concurrent = int(self.config.get("max_concurrent", 5))
        self.batch_pause_seconds = float(self.config.get("batch_pause_seconds", 1.0))
        self.freshness_ceiling = float(self.config.get("freshness_ceiling", 10.0))
        self.freshness_hours_per_point = float(self.config.get("freshness_hours_per_point", 24.0))
        self.source_multipliers = dict(self.config.get("source_multipliers") or {})
        self.trend_items_per_period = int(self.config.get("trend_items_per_period", 5))
        self.trend_sensitivity = float(self.config.get("trend_sensitivity", 0.1))
        self.cache = self._build_cache()

    # ------------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------------
    async def evaluate(self, item: RawContentItem) -> float:
        """Return the quality score, or the midpoint when evaluation fails."""

        outcome = await self.evaluate_outcome(item)
        return outcome.value.value

    async def evaluate_detailed(self, item: RawContentItem) -> QualityScore:
        outcome = await self.evaluate_outcome(item)
        return outcome.value

    async def evaluate_outcome(self, item: RawContentItem) -> StageOutcome[QualityScore]:
        key = self.cache_key(item)
        cached = self.cache.get(key)
        if cached is not None:
            self._emit_log("debug", "evaluation.cache.hit", details={"url": item.url})
            return StageOutcome.primary(cached)

        outcome = await self._with_fallback(
            "evaluate",
            lambda: self._evaluate_with_model(item),
            lambda error: self._fallback_score(error),
        )
        if not outcome.used_fallback:
            self.cache.set(key, outcome.value)
            self._emit_log(
                "info",
                "evaluation.item.scored",
                details={
                    "url": item.url,
                    "score": outcome.value.value,
                    "source": item.source_name,
                },
            )
        return outcome

    def cache_key(self, item: RawContentItem) -> str:
        return f"{item.url}:{item.title[: self.title_prefix]}"

    async def _evaluate_with_model(self, item: RawContentItem) -> QualityScore:
        response = await self._ask(
            "content-quality-evaluation",
            {
                "title": item.title,
                "summary": truncate(clean_html(item.summary), 1_000) or "(none)",
                "source": item.source_name or item.source_type,
                "published_at": item.published_at.isoformat(),
                "content_type": item.source_type,
            },
            QualityEvaluationResponse,
        )
        factors = {
            name: clamp_score(value)
            for name, value in response.factors.items()
            if name in QUALITY_FACTORS
        }
        return QualityScore(
            value=clamp_score(response.quality_score),
            reasoning=response.reasoning,
            factor_breakdown=factors,
            flags=[flag for flag in response.flags if flag],
        )

    def _fallback_score(self, error: str) -> QualityScore:
        return QualityScore(
            value=self.fallback_score,
            reasoning=f"Evaluation unavailable ({error}); using midpoint score.",
            flags=["evaluation_failed"],
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------
    def calculate_priority(self, item: RawContentItem, now: Optional[datetime] = None) -> float:
        """Freshness decay times the source-type multiplier."""

        age_hours = hours_since(item.published_at, now)
        freshness = max(0.0, self.freshness_ceiling - age_hours / self.freshness_hours_per_point)
        return freshness * source_weight(self.source_multipliers, item.source_type)

    async def evaluate_batch(
        self,
        items: Sequence[RawContentItem],
        *,
        max_concurrent: Optional[int] = None,
        priority_threshold: float = 0.0,
    ) -> Dict[str, float]:
        """
        Score many items, freshest and most trusted sources first.

        Items whose priority is below ``priority_threshold`` are skipped and
        absent from the result. A failing item scores the midpoint.
        """
        now = utcnow()
        prioritized = [
            (self.calculate_priority(item, now), index, item) for index, item in enumerate(items)
        ]
        ordered = [
            item
            for priority, _, item in sorted(
                (entry for entry in prioritized if entry[0] >= priority_threshold),
                key=lambda entry: (-entry[0], entry[1]),
            )
        ]

        outcomes = await run_in_slices(
            ordered,
            self.evaluate,
            max_concurrent=max_concurrent or self.max_concurrent,
            pause_seconds=self.batch_pause_seconds,
        )

        results: Dict[str, float] = {}
        for item, outcome in zip(ordered, outcomes):
            if isinstance(outcome, BaseException):
                self._emit_log(
                    "warning",
                    "evaluation.batch.item_failed",
                    details={"url": item.url, "error": str(outcome)},
                )
                results[item.url] = self.fallback_score
            else:
                results[item.url] = outcome

        self._emit_log(
            "info",
            "evaluation.batch.completed",
            details={
                "total": len(items),
                "evaluated": len(results),
                "average": round_to(mean(results.values()), 1),
            },
        )
        return results

    @staticmethod
    def filter_by_quality(evaluations: Mapping[str, float], threshold: float = 6.0) -> List[str]:
        """URLs scoring at least ``threshold``, best first."""

        passing = [(url, score) for url, score in evaluations.items() if score >= threshold]
        passing.sort(key=lambda entry: entry[1], reverse=True)
        return [url for url, _ in passing]

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    async def analyze_source_quality(
        self, source: str, items: Sequence[RawContentItem]
    ) -> SourceQualityReport:
        source_items = [item for item in items if item.source_name == source]
        if not source_items:
            return SourceQualityReport(
                source=source,
                average_score=0.0,
                score_distribution=[0] * 10,
                recommendations=["No content available for analysis"],
            )

        sample = source_items[: int(self.config.get("source_analysis_sample", 10))]
        evaluations: List[QualityScore] = []
        for outcome in await run_in_slices(
            sample, self.evaluate_detailed, max_concurrent=len(sample)
        ):
            evaluations.append(
                self._fallback_score(str(outcome)) if isinstance(outcome, BaseException) else outcome
            )

        scores = [evaluation.value for evaluation in evaluations]
        average = round_to(mean(scores), 1)
        flag_counts = Counter(flag for evaluation in evaluations for flag in evaluation.flags)
        common_flags = [flag for flag, count in flag_counts.most_common() if count >= 2][:5]
        return SourceQualityReport(
            source=source,
            average_score=average,
            score_distribution=self._score_distribution(scores),
            common_flags=common_flags,
            recommendations=self._source_recommendations(average, common_flags),
            sample_size=len(evaluations),
        )

    @staticmethod
    def _score_distribution(scores: Sequence[float]) -> List[int]:
        distribution = [0] * 10
        for score in scores:
            bucket = min(9, math.floor(score) - 1)
            if bucket >= 0:
                distribution[bucket] += 1
        return distribution

    def _source_recommendations(self, average: float, common_flags: Sequence[str]) -> List[str]:
        recommendations: List[str] = []
        if average < float(self.config.get("low_quality_average", 5.0)):
            recommendations.append("Low quality source: consider collecting from it less often")
        elif average > float(self.config.get("high_quality_average", 8.0)):
            recommendations.append("High quality source: consider collecting from it more often")
        if "outdated_info" in common_flags:
            recommendations.append("Frequently outdated: prioritize newer items from this source")
        if "potential_bias" in common_flags:
            recommendations.append("Possible bias: cross-check this source against others")
        return recommendations

    async def analyze_quality_trend(
        self,
        items: Sequence[RawContentItem],
        window: str = "1week",
        *,
        now: Optional[datetime] = None,
    ) -> QualityTrend:
        """
        Compare average quality of the older and newer halves of a window.

        Items younger than the window are bucketed per day, Sunday-started week
        or month; at most ``trend_items_per_period`` items are scored per bucket.
        """
        if window not in TREND_WINDOWS:
            raise ValueError(f"Unsupported trend window: {window}")
        reference = now or utcnow()
        window_hours = TREND_WINDOWS[window].total_seconds() / 3600.0

        buckets: Dict[str, List[RawContentItem]] = defaultdict(list)
        for item in items:
            if hours_since(item.published_at, reference) <= window_hours:
                buckets[period_key(item.published_at, window)].append(item)

        period_scores: Dict[str, float] = {}
        for period in sorted(buckets):
            sample = buckets[period][: self.trend_items_per_period]
            scores = [
                self.fallback_score if isinstance(outcome, BaseException) else outcome
                for outcome in await run_in_slices(
                    sample, self.evaluate, max_concurrent=len(sample)
                )
            ]
            period_scores[period] = round_to(mean(scores), 1)

        ordered = [period_scores[period] for period in sorted(period_scores)]
        if len(ordered) < 2:
            return QualityTrend(trend="stable", trend_score=0.0, period_scores=period_scores, window=window)

        first_half = ordered[: math.ceil(len(ordered) / 2)]
        second_half = ordered[math.floor(len(ordered) / 2) :]
        trend_score = (round_to(mean(second_half), 1) - round_to(mean(first_half), 1)) / 10
        if trend_score > self.trend_sensitivity:
            trend = "improving"
        elif trend_score < -self.trend_sensitivity:
            trend = "declining"
        else:
            trend = "stable"
        return QualityTrend(
            trend=trend,
            trend_score=round(trend_score, 2),
            period_scores=period_scores,
            window=window,
        )


__all__ = ["ContentQualityEvaluator", "QUALITY_FACTORS"]
