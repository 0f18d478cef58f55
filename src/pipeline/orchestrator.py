# src/pipeline/orchestrator.py
# Sources-to-article pipeline
# ===========================

"""
Coordinates every stage into one sources-to-article run.

A run filters candidates by quality, then by interest, keeps the most
interesting few, generates an article from them, classifies and tags it and
finally scores the article itself for reporting. Threshold misses and stage
errors never escape: each public entry point returns a result object that
says whether it worked and why not.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from config.settings import PIPELINE_CONFIG
from src.ai.client import ModelClient
from src.ai.prompts import PromptManager
from src.classification.category_classifier import CategoryClassifier
from src.contracts.articles import GeneratedArticle, TagGenerationOptions
from src.contracts.collaborators import ArticleRepository, Collector
from src.contracts.content import RawContentItem, UserProfile
from src.contracts.pipeline import (
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
from src.evaluation.quality_evaluator import ContentQualityEvaluator
from src.generation.article_generator import ArticleGenerator
from src.queries.search_query_generator import SearchQueryGenerator
from src.scoring.interest_scorer import InterestScorer
from src.tagging.tag_generator import TagGenerator
from src.utils.batching import run_in_slices
from src.utils.dedupe import unique_by
from src.utils.logger import PipelineRunLogger, create_module_logger
from src.utils.metrics import MetricsReporter, get_metrics_reporter
from src.utils.numeric import mean, round_to

DIAGNOSIS_ITEM = {
    "title": "Test Article",
    "url": "https://example.com",
    "summary": "A short test article about Python web development.",
    "source_name": "diagnostics",
    "source_type": "news",
}


class ArticlePipeline:
    """
    End-to-end article generation for one reader.

    Stages can be injected for tests; by default each one is built around the
    shared ``client`` with its own configuration section.
    """

    def __init__(
        self,
        client: ModelClient,
        config: Optional[Mapping[str, Any]] = None,
        *,
        evaluator: Optional[ContentQualityEvaluator] = None,
        scorer: Optional[InterestScorer] = None,
        query_generator: Optional[SearchQueryGenerator] = None,
        classifier: Optional[CategoryClassifier] = None,
        tagger: Optional[TagGenerator] = None,
        generator: Optional[ArticleGenerator] = None,
        prompts: Optional[PromptManager] = None,
        metrics: Optional[MetricsReporter] = None,
    ) -> None:
        self.client = client
        self.config: Dict[str, Any] = dict(config or PIPELINE_CONFIG)
        self.metrics = metrics or get_metrics_reporter()
        shared = {"prompts": prompts or PromptManager(), "metrics": self.metrics}
        self.evaluator = evaluator or ContentQualityEvaluator(client, **shared)
        self.scorer = scorer or InterestScorer(client, **shared)
        self.query_generator = query_generator or SearchQueryGenerator(client, **shared)
        self.classifier = classifier or CategoryClassifier(client, **shared)
        self.tagger = tagger or TagGenerator(client, **shared)
        self.generator = generator or ArticleGenerator(client, **shared)
        self.module_logger = create_module_logger("pipeline")

    # ------------------------------------------------------------------
    # Single run
    # ------------------------------------------------------------------
    async def generate_article(
        self,
        sources: Sequence[RawContentItem],
        profile: UserProfile,
        options: Optional[PipelineOptions] = None,
    ) -> PipelineResult:
        """Run every stage over ``sources``; never raises."""

        opts = options or PipelineOptions()
        quality_threshold = self._option(opts.quality_threshold, "quality_threshold", 6.0)
        interest_threshold = self._option(opts.interest_threshold, "interest_threshold", 5.0)
        max_sources = int(self._option(opts.max_sources_per_article, "max_sources_per_article", 5))

        run_logger = PipelineRunLogger(uuid.uuid4().hex[:8], profile.id)
        run_logger.log_run_start(len(sources))
        started = time.perf_counter()
        stages: List[str] = []
        warnings: List[str] = []
        sources_used = 0

        def finish(
            success: bool,
            article: Optional[GeneratedArticle] = None,
            error: Optional[str] = None,
        ) -> PipelineResult:
            elapsed_ms = (time.perf_counter() - started) * 1000
            result = PipelineResult(
                success=success,
                article=article if success else None,
                error=error,
                warnings=warnings,
                metadata=PipelineMetadata(
                    sources_processed=len(sources),
                    sources_used=sources_used,
                    stages_executed=stages,
                    execution_time_ms=elapsed_ms,
                ),
            )
            self.metrics.record_pipeline_run(
                user_id=profile.id,
                success=success,
                execution_time_ms=elapsed_ms,
                sources_used=sources_used,
            )
            run_logger.log_run_summary(
                {
                    "success": success,
                    "sources_processed": len(sources),
                    "sources_used": sources_used,
                    "warnings": len(warnings),
                    "execution_time_ms": elapsed_ms,
                }
            )
            return result

        try:
            stages.append("quality_filtering")
            quality_scores = await self.evaluator.evaluate_batch(sources)
            quality_passed = [
                item for item in sources if quality_scores.get(item.url, 0.0) >= quality_threshold
            ]
            rejected = len(sources) - len(quality_passed)
            if rejected:
                warnings.append(f"{rejected} sources rejected due to low quality")
            run_logger.log_stage(
                "quality_filtering", "ok", {"passed": len(quality_passed), "rejected": rejected}
            )
            if not quality_passed:
                run_logger.log_stage("quality_filtering", "failed")
                return finish(False, error="No sources passed quality threshold")

            stages.append("interest_filtering")
            scored = await self.scorer.calculate_batch(
                quality_passed,
                profile,
                max_concurrent=int(self.config.get("batch_max_concurrent", 3)),
                sort_by_score=False,
            )
            interesting = [entry for entry in scored if entry.value >= interest_threshold]
            rejected = len(quality_passed) - len(interesting)
            if rejected:
                warnings.append(f"{rejected} sources rejected due to low interest")
            run_logger.log_stage(
                "interest_filtering", "ok", {"passed": len(interesting), "rejected": rejected}
            )
            if not interesting:
                run_logger.log_stage("interest_filtering", "failed")
                return finish(False, error="No sources passed interest threshold")

            stages.append("source_selection")
            selected = [
                entry.item
                for entry in sorted(interesting, key=lambda entry: entry.value, reverse=True)[
                    :max_sources
                ]
            ]
            sources_used = len(selected)
            run_logger.log_stage("source_selection", "ok", {"selected": sources_used})

            stages.append("article_generation")
            article = await self.generator.generate(selected, profile, opts.generation_options())
            run_logger.log_stage("article_generation", "ok", {"title": article.title[:50]})

            stages.append("category_classification")
            category = await self.classifier.classify(article)
            run_logger.log_stage("category_classification", "ok", {"category": category})

            stages.append("tag_generation")
            tags = await self.tagger.generate_tags(
                article,
                TagGenerationOptions(
                    max_tags=self.generator.max_tags,
                    filter_common_tags=True,
                ),
            )
            run_logger.log_stage("tag_generation", "ok", {"tags": len(tags)})

            stages.append("final_evaluation")
            quality, interest = await self._score_generated(article, profile)
            if quality < quality_threshold:
                warnings.append(f"Generated article quality ({quality}) below threshold")
            if interest < interest_threshold:
                warnings.append(f"Generated article interest ({interest}) below threshold")
            run_logger.log_stage(
                "final_evaluation", "ok", {"quality": quality, "interest": interest}
            )

            final = article.model_copy(
                update={
                    "category": category,
                    "tags": tags,
                    "quality_score": quality,
                    "interest_score": interest,
                    "processing_time_ms": (time.perf_counter() - started) * 1000,
                }
            )
            stages.append("pipeline_completed")
            return finish(True, article=final)
        except Exception as exc:
            self.module_logger.error(
                {
                    "event": "pipeline.run.failed",
                    "user_id": profile.id,
                    "stages": list(stages),
                    "error": f"{type(exc).__name__}: {exc}",
                }
            )
            run_logger.log_stage(stages[-1] if stages else "startup", "failed", {"error": str(exc)})
            sources_used = 0
            return finish(False, error=str(exc) or type(exc).__name__)

    def _option(self, value: Optional[float], key: str, default: float) -> float:
        return float(value) if value is not None else float(self.config.get(key, default))

    def generated_item(self, article: GeneratedArticle) -> RawContentItem:
        """The generated article wrapped as a content item for re-scoring."""

        return RawContentItem(
            title=article.title,
            url=str(self.config.get("generated_url", "generated")),
            summary=article.summary,
            source_name=str(self.config.get("generated_source_name", "AI Generated")),
            source_type="generated",
        )

    async def _score_generated(
        self, article: GeneratedArticle, profile: UserProfile
    ) -> Tuple[float, float]:
        item = self.generated_item(article)
        quality, interest = await asyncio.gather(
            self.evaluator.evaluate(item),
            self.scorer.calculate(item, profile),
        )
        return quality, interest

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------
    async def generate_articles_batch(
        self,
        source_groups: Sequence[Sequence[RawContentItem]],
        profile: UserProfile,
        options: Optional[PipelineOptions] = None,
        *,
        max_concurrent: Optional[int] = None,
        continue_on_error: Optional[bool] = None,
    ) -> BatchResult:
        """
        One run per group, ``max_concurrent`` groups at a time.

        With ``continue_on_error`` false, no group is started after a slice in
        which any group failed. Groups never started are not reported.
        """
        keep_going = (
            bool(self.config.get("continue_on_error", False))
            if continue_on_error is None
            else continue_on_error
        )

        async def worker(group: Sequence[RawContentItem]) -> PipelineResult:
            return await self.generate_article(group, profile, options)

        def slice_ok(settled: List[Any]) -> bool:
            return keep_going or all(
                isinstance(outcome, PipelineResult) and outcome.success for outcome in settled
            )

        outcomes = await run_in_slices(
            source_groups,
            worker,
            max_concurrent=max_concurrent or int(self.config.get("batch_max_concurrent", 3)),
            pause_seconds=float(self.config.get("batch_pause_seconds", 2.0)),
            should_continue=slice_ok,
        )

        successful: List[PipelineResult] = []
        failed: List[BatchFailure] = []
        for group, outcome in zip(source_groups, outcomes):
            if isinstance(outcome, BaseException):
                failed.append(BatchFailure(sources=list(group), error=str(outcome) or type(outcome).__name__))
            elif not outcome.success:
                failed.append(BatchFailure(sources=list(group), error=outcome.error or "Unknown error"))
            else:
                successful.append(outcome)

        summary = self.summarize_batch(successful, attempted=len(outcomes))
        self.module_logger.info(
            {
                "event": "pipeline.batch.completed",
                "user_id": profile.id,
                "groups": len(source_groups),
                "attempted": summary.total_attempted,
                "successful": summary.total_successful,
                "failed": len(failed),
            }
        )
        return BatchResult(successful=successful, failed=failed, summary=summary)

    @staticmethod
    def summarize_batch(successful: Sequence[PipelineResult], *, attempted: int) -> BatchSummary:
        articles = [result.article for result in successful if result.article is not None]
        return BatchSummary(
            total_attempted=attempted,
            total_successful=len(successful),
            average_quality=round_to(mean(article.quality_score or 0.0 for article in articles), 1),
            average_interest=round_to(mean(article.interest_score or 0.0 for article in articles), 1),
            total_processing_time_ms=sum(
                result.metadata.execution_time_ms for result in successful
            ),
        )

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------
    async def collect_sources(
        self,
        profile: UserProfile,
        collectors: Mapping[str, Collector],
        *,
        limit: int = 20,
    ) -> List[RawContentItem]:
        """
        Generate queries for ``collectors`` and gather their results.

        Rate-limited or failing collectors are skipped; results are
        deduplicated by URL and truncated to ``limit``.
        """
        if not collectors:
            return []
        generated = await self.query_generator.generate_queries(profile, list(collectors))
        per_query = max(1, -(-limit // max(1, len(generated.queries))))

        collected: List[RawContentItem] = []
        for query in generated.queries:
            source = query.recommended_sources[0] if query.recommended_sources else ""
            collector = collectors.get(source)
            if collector is None:
                continue
            if collector.is_rate_limited():
                self.module_logger.warning(
                    {
                        "event": "pipeline.collect.rate_limited",
                        "source": source,
                        "next_available": collector.get_next_available_time(),
                    }
                )
                continue
            try:
                collected.extend(await collector.collect(query.query, per_query))
            except Exception as exc:
                self.module_logger.error(
                    {
                        "event": "pipeline.collect.failed",
                        "source": source,
                        "query": query.query,
                        "error": f"{type(exc).__name__}: {exc}",
                    }
                )

        unique = unique_by(collected, key=lambda item: item.url)[:limit]
        self.module_logger.info(
            {
                "event": "pipeline.collect.completed",
                "user_id": profile.id,
                "queries": len(generated.queries),
                "collected": len(unique),
            }
        )
        return unique

    async def publish(
        self, result: PipelineResult, repository: ArticleRepository
    ) -> Optional[str]:
        """Persist a successful run's article; ``None`` when nothing was stored."""

        if not result.success or result.article is None:
            return None
        article = result.article
        try:
            record_id = await repository.save_article(article, article.category, list(article.tags))
        except Exception as exc:
            self.module_logger.error(
                {
                    "event": "pipeline.publish.failed",
                    "title": article.title[:50],
                    "error": f"{type(exc).__name__}: {exc}",
                }
            )
            return None
        self.module_logger.info(
            {"event": "pipeline.publish.completed", "title": article.title[:50], "record_id": record_id}
        )
        return record_id

    # ------------------------------------------------------------------
    # Tuning and diagnosis
    # ------------------------------------------------------------------
    def optimize_pipeline_settings(
        self,
        profile: UserProfile,
        history: Sequence[PipelineHistoryEntry],
    ) -> PipelineSettingsRecommendation:
        """Suggest thresholds and a generation style from past runs."""

        articles = [
            entry.result.article
            for entry in history
            if entry.result.success and entry.result.article is not None
        ]
        reasoning: List[str] = []

        quality_threshold = float(self.config.get("quality_threshold", 6.0))
        interest_threshold = float(self.config.get("interest_threshold", 5.0))
        first_quality: Optional[float] = None
        if articles:
            qualities = [article.quality_score or 0.0 for article in articles]
            interests = [article.interest_score or 0.0 for article in articles]
            first_quality = articles[0].quality_score
            average_quality = mean(qualities)
            average_interest = mean(interests)

            if average_quality > 8:
                quality_threshold = 7.0
                reasoning.append("Past articles score high on quality; raising the quality bar")
            elif average_quality < 6:
                quality_threshold = 5.0
                reasoning.append("Past articles score low on quality; relaxing the quality bar")
            else:
                quality_threshold = 6.0

            if average_interest > 8:
                interest_threshold = 6.0
                reasoning.append("Past articles match the reader well; raising the interest bar")
            elif average_interest < 5:
                interest_threshold = 4.0
                reasoning.append("Past articles match the reader poorly; relaxing the interest bar")
            else:
                interest_threshold = 5.0
        else:
            reasoning.append("No successful runs yet; keeping the default thresholds")

        style = "curation"
        if profile.tech_level == "beginner":
            style = "tutorial"
            reasoning.append("Beginner reader; tutorials fit best")
        elif profile.tech_level == "expert":
            style = "analysis"
            reasoning.append("Expert reader; analysis fits best")

        baseline = first_quality if first_quality is not None else 6.0
        return PipelineSettingsRecommendation(
            quality_threshold=quality_threshold,
            interest_threshold=interest_threshold,
            max_sources_per_article=int(self.config.get("max_sources_per_article", 5)),
            target_length="medium",
            style=style,
            expected_improvement=min(0.3, max(0.0, (8 - baseline) * 0.1)),
            reasoning=reasoning,
        )

    async def diagnose(self) -> DiagnosisReport:
        """Probe every stage with canned input and grade overall health."""

        item = RawContentItem(**DIAGNOSIS_ITEM)
        profile = UserProfile(
            id="test",
            interests={"keywords": ["python", "web development"]},
        )
        probes = {
            "evaluator": lambda: self.evaluator.evaluate_outcome(item),
            "scorer": lambda: self.scorer.calculate_outcome(item, profile),
            "classifier": lambda: self.classifier.classify_outcome(item),
            "tagger": lambda: self.tagger.generate_tags_outcome(item),
            "query_generator": lambda: self.query_generator.generate_queries_outcome(
                profile, ["google"]
            ),
        }

        stages: Dict[str, StageDiagnosis] = {}
        for name, probe in probes.items():
            started = time.perf_counter()
            try:
                outcome = await probe()
            except Exception as exc:
                stages[name] = StageDiagnosis(
                    available=False,
                    latency_ms=(time.perf_counter() - started) * 1000,
                    error=f"{type(exc).__name__}: {exc}",
                )
                continue
            stages[name] = StageDiagnosis(
                available=not outcome.used_fallback,
                latency_ms=(time.perf_counter() - started) * 1000,
                error=outcome.error,
            )

        available = sum(1 for diagnosis in stages.values() if diagnosis.available)
        ratio = available / len(stages)
        if ratio == 1:
            status = "healthy"
        elif ratio >= float(self.config.get("degraded_ratio", 0.6)):
            status = "degraded"
        else:
            status = "unhealthy"

        slow_ms = float(self.config.get("slow_stage_ms", 30_000))
        recommendations: List[str] = []
        for name, diagnosis in stages.items():
            if not diagnosis.available:
                recommendations.append(f"{name} is not available - check AI service connectivity")
            elif diagnosis.latency_ms > slow_ms:
                recommendations.append(
                    f"{name} is responding slowly ({diagnosis.latency_ms:.0f}ms)"
                )
        if status == "healthy" and not recommendations:
            recommendations.append("All pipeline services are operating normally")

        self.module_logger.info(
            {"event": "pipeline.diagnose.completed", "status": status, "available": available}
        )
        return DiagnosisReport(status=status, stages=stages, recommendations=recommendations)


__all__ = ["ArticlePipeline", "DIAGNOSIS_ITEM"]
