# src/classification/category_classifier.py
# Taxonomy classification
# =======================

"""
Assigns one taxonomy category to a piece of content.

Whatever the model answers is mapped back onto the configured taxonomy: an
exact name passes, a case-insensitive containment match in either direction
is accepted, anything else lands in the reserved "Other" bucket. The keyword
table in the configuration drives the fallback.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from config.settings import CLASSIFICATION_CONFIG
from src.ai.client import ModelClient
from src.ai.results import StageOutcome
from src.ai.schemas import CategoryResponse
from src.ai.stage import PipelineStage
from src.contracts.articles import (
    CategoryAccuracyReport,
    CategoryAlternative,
    CategoryClassification,
    CategoryDistribution,
    GeneratedArticle,
    LabeledSample,
)
from src.contracts.content import RawContentItem
from src.utils.batching import run_in_slices
from src.utils.numeric import clamp, round_to
from src.utils.text_cleaner import contains_keyword

Classifiable = Union[RawContentItem, GeneratedArticle]


class CategoryClassifier(PipelineStage):
    stage_name = "classification"

    def __init__(self, client: ModelClient, config: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        super().__init__(client, config or CLASSIFICATION_CONFIG, **kwargs)
        self.other_category = str(self.config.get("other_category", "Other"))
        self.max_alternatives = int(self.config.get("max_alternatives", 3))
        self.fallback_keywords: Dict[str, List[str]] = {
            category: list(keywords)
            for category, keywords in (self.config.get("fallback_keywords") or {}).items()
        }
        self._categories: List[str] = []
        self.taxonomy_version = 0
        self.set_categories(self.config.get("categories") or [self.other_category])
        self.cache = self._build_cache()

    # ------------------------------------------------------------------
    # Taxonomy
    # ------------------------------------------------------------------
    @property
    def categories(self) -> List[str]:
        return list(self._categories)

    def set_categories(self, categories: Sequence[str]) -> None:
        cleaned = [category.strip() for category in categories if category and category.strip()]
        deduped = list(dict.fromkeys(cleaned))
        if self.other_category not in deduped:
            deduped.append(self.other_category)
        self._categories = deduped
        self.taxonomy_version += 1
        self._emit_log(
            "info",
            "classification.taxonomy.updated",
            details={"version": self.taxonomy_version, "count": len(deduped)},
        )

    def add_category(self, category: str) -> None:
        if category and category not in self._categories:
            self.set_categories([*self._categories, category])

    def remove_category(self, category: str) -> None:
        if category == self.other_category:
            raise ValueError(f"'{self.other_category}' cannot be removed from the taxonomy")
        if category in self._categories:
            self.set_categories([name for name in self._categories if name != category])

    def validate_category(self, category: str) -> str:
        """Map a model-chosen label onto the taxonomy."""

        candidate = (category or "").strip()
        if candidate in self._categories:
            return candidate
        lowered = candidate.lower()
        if lowered:
            for known in self._categories:
                known_lower = known.lower()
                if lowered in known_lower or known_lower in lowered:
                    self._emit_log(
                        "debug",
                        "classification.category.mapped",
                        details={"original": candidate, "mapped": known},
                    )
                    return known
        self._emit_log(
            "warning", "classification.category.unknown", details={"category": candidate}
        )
        return self.other_category

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------
    async def classify(self, item: Classifiable) -> str:
        classification = await self.classify_detailed(item)
        return classification.category

    async def classify_detailed(
        self, item: Classifiable, *, max_alternatives: Optional[int] = None
    ) -> CategoryClassification:
        outcome = await self.classify_outcome(item, max_alternatives=max_alternatives)
        return outcome.value

    async def classify_outcome(
        self, item: Classifiable, *, max_alternatives: Optional[int] = None
    ) -> StageOutcome[CategoryClassification]:
        limit = self.max_alternatives if max_alternatives is None else max_alternatives
        key = self.cache_key(item, limit)
        cached = self.cache.get(key)
        if cached is not None:
            return StageOutcome.primary(cached)

        async def primary() -> CategoryClassification:
            response = await self._ask(
                "category-classification",
                {
                    "title": item.title,
                    "summary": item.summary or "(none)",
                    "available_categories": "\n".join(f"- {name}" for name in self._categories),
                    "other_category": self.other_category,
                    "max_alternatives": limit,
                },
                CategoryResponse,
            )
            return self._build_classification(response, limit)

        outcome = await self._with_fallback(
            "classify", primary, lambda error: self.fallback_classification(item)
        )
        if not outcome.used_fallback:
            self.cache.set(key, outcome.value)
            self._emit_log(
                "info",
                "classification.item.classified",
                details={
                    "title": item.title[:50],
                    "category": outcome.value.category,
                    "confidence": outcome.value.confidence,
                },
            )
        return outcome

    def cache_key(self, item: Classifiable, limit: int) -> str:
        return f"{item.title}:{(item.summary or '')[:100]}:v{self.taxonomy_version}:{limit}"

    def _build_classification(self, response: CategoryResponse, limit: int) -> CategoryClassification:
        category = self.validate_category(response.category)
        alternatives: List[CategoryAlternative] = []
        seen = {category}
        for alternative in response.alternative_categories:
            name = self.validate_category(alternative.name)
            if name in seen:
                continue
            seen.add(name)
            alternatives.append(
                CategoryAlternative(name=name, confidence=clamp(alternative.confidence, 0.0, 1.0))
            )
        return CategoryClassification(
            category=category,
            confidence=clamp(response.confidence, 0.0, 1.0),
            alternatives=alternatives[: max(0, limit)],
            reasoning=response.reasoning,
        )

    def fallback_classification(self, item: Classifiable) -> CategoryClassification:
        """First category of the keyword table whose keywords appear in the text."""

        text = f"{item.title} {item.summary or ''}"
        for category, keywords in self.fallback_keywords.items():
            if category not in self._categories:
                continue
            if any(contains_keyword(text, keyword) for keyword in keywords):
                return CategoryClassification(
                    category=category,
                    confidence=float(self.config.get("fallback_hit_confidence", 0.6)),
                    reasoning="Keyword-based classification",
                )
        return CategoryClassification(
            category=self.other_category,
            confidence=float(self.config.get("fallback_miss_confidence", 0.3)),
            reasoning="No keyword matched",
        )

    async def classify_batch(
        self,
        items: Sequence[Classifiable],
        *,
        max_concurrent: Optional[int] = None,
    ) -> List[CategoryClassification]:
        """Classifications in input order; failures use the keyword fallback."""

        outcomes = await run_in_slices(
            items,
            self.classify_detailed,
            max_concurrent=max_concurrent or int(self.config.get("max_concurrent", 5)),
            pause_seconds=float(self.config.get("batch_pause_seconds", 1.0)),
        )
        results: List[CategoryClassification] = []
        for item, outcome in zip(items, outcomes):
            if isinstance(outcome, BaseException):
                self._emit_log(
                    "warning",
                    "classification.batch.item_failed",
                    details={"title": item.title[:50], "error": str(outcome)},
                )
                outcome = self.fallback_classification(item)
            results.append(outcome)
        self._emit_log(
            "info",
            "classification.batch.completed",
            details={"total": len(items), "classified": len(results)},
        )
        return results

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    def analyze_category_distribution(
        self, classifications: Sequence[Union[CategoryClassification, str]]
    ) -> CategoryDistribution:
        labels = [
            entry.category if isinstance(entry, CategoryClassification) else str(entry)
            for entry in classifications
        ]
        counts: Dict[str, int] = {category: 0 for category in self._categories}
        for label, count in Counter(labels).items():
            counts[label] = counts.get(label, 0) + count

        total = len(labels)
        percentages = {
            category: round_to(count / total * 100, 1) if total else 0.0
            for category, count in counts.items()
        }
        ranked = sorted(counts, key=lambda category: counts[category], reverse=True)

        recommendations: List[str] = []
        if ranked and total:
            top = ranked[0]
            if percentages[top] > float(self.config.get("dominant_share_percent", 50.0)):
                recommendations.append(
                    f"'{top}' holds {percentages[top]}% of the content; consider diversifying sources."
                )
        minor_share = float(self.config.get("minor_share_percent", 5.0))
        minor = [category for category, percent in percentages.items() if percent < minor_share]
        if len(minor) >= int(self.config.get("minor_category_limit", 3)):
            recommendations.append(
                f"{len(minor)} categories are barely used; consider merging them."
            )
        empty = [category for category, count in counts.items() if count == 0]
        if empty:
            recommendations.append(f"Unused categories: {', '.join(empty)}")

        return CategoryDistribution(
            counts=counts,
            percentages=percentages,
            trending=ranked[:3],
            recommendations=recommendations,
        )

    async def evaluate_accuracy(self, samples: Sequence[LabeledSample]) -> CategoryAccuracyReport:
        """Classify labelled samples and report accuracy and confusion."""

        confusion: Dict[str, Dict[str, int]] = defaultdict(dict)
        totals: Counter = Counter()
        correct: Counter = Counter()
        for sample in samples:
            predicted = await self.classify(sample.item)
            row = confusion[sample.expected]
            row[predicted] = row.get(predicted, 0) + 1
            totals[sample.expected] += 1
            if predicted == sample.expected:
                correct[sample.expected] += 1

        overall = sum(correct.values()) / len(samples) if samples else 0.0
        per_category = {category: correct[category] / count for category, count in totals.items()}

        suggestions: List[str] = []
        if overall < float(self.config.get("target_accuracy", 0.8)):
            suggestions.append(
                "Overall accuracy is low; review category definitions or the classification prompt."
            )
        weak_threshold = float(self.config.get("weak_category_accuracy", 0.7))
        weak = [category for category, accuracy in per_category.items() if accuracy < weak_threshold]
        if weak:
            suggestions.append(f"Low accuracy categories: {', '.join(weak)}. Clarify their definitions.")
        confusion_ratio = float(self.config.get("confusion_ratio", 0.3))
        for expected, predictions in confusion.items():
            row_total = sum(predictions.values())
            for predicted, count in predictions.items():
                if predicted != expected and count / row_total > confusion_ratio:
                    suggestions.append(
                        f"'{expected}' is often confused with '{predicted}'; sharpen the distinction."
                    )

        return CategoryAccuracyReport(
            overall_accuracy=round(overall, 2),
            category_accuracy=per_category,
            confusion_matrix=dict(confusion),
            suggestions=suggestions,
        )


__all__ = ["CategoryClassifier", "Classifiable"]
