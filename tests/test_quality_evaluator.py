from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from config.settings import EVALUATION_CONFIG
from src.ai.client import ModelResponseError
from src.contracts.content import RawContentItem
from src.evaluation import ContentQualityEvaluator


def quality_reply(score, **extra):
    return {"QualityEvaluationResponse": {"quality_score": score, "reasoning": "ok", **extra}}


@pytest.mark.anyio
async def test_evaluate_clamps_model_scores(fake_client, make_item, metrics) -> None:
    client = fake_client(
        quality_reply(12.3, factors={"accuracy": 11, "depth": 0.2, "hype": 9}, flags=["", "outdated_info"])
    )
    evaluator = ContentQualityEvaluator(client, metrics=metrics)

    detailed = await evaluator.evaluate_detailed(make_item())

    assert detailed.value == 10.0
    assert detailed.factor_breakdown == {"accuracy": 10.0, "depth": 1.0}
    assert detailed.flags == ["outdated_info"]


@pytest.mark.anyio
async def test_evaluate_caches_primary_results(fake_client, make_item, metrics) -> None:
    client = fake_client(quality_reply(7.2))
    evaluator = ContentQualityEvaluator(client, metrics=metrics)
    item = make_item()

    first = await evaluator.evaluate(item)
    second = await evaluator.evaluate(item)

    assert first == second == 7.2
    assert len(client.calls) == 1


@pytest.mark.anyio
async def test_evaluate_falls_back_to_midpoint(fake_client, make_item, metrics) -> None:
    client = fake_client({"QualityEvaluationResponse": ModelResponseError("not json")})
    evaluator = ContentQualityEvaluator(client, metrics=metrics)
    item = make_item()

    outcome = await evaluator.evaluate_outcome(item)

    assert outcome.used_fallback
    assert outcome.value.value == 5.0
    assert outcome.value.flags == ["evaluation_failed"]
    assert "ModelResponseError" in outcome.error
    # fallbacks are not cached, so the next call asks the model again
    await evaluator.evaluate(item)
    assert len(client.calls) == 2
    assert any(event.name == "stage.fallback.count" for event in metrics.snapshot())


@pytest.mark.anyio
async def test_prompt_uses_placeholder_for_empty_summary(fake_client, make_item, metrics) -> None:
    client = fake_client(quality_reply(6))
    evaluator = ContentQualityEvaluator(client, metrics=metrics)

    await evaluator.evaluate(make_item(summary=""))

    assert "- Summary: (none)" in client.calls[0].prompt


def test_calculate_priority_weighs_freshness_and_source(fake_client, metrics) -> None:
    evaluator = ContentQualityEvaluator(fake_client(), metrics=metrics)
    now = datetime(2025, 3, 10, tzinfo=timezone.utc)
    fresh_github = RawContentItem(
        title="a", url="https://a", source_type="github", published_at=now - timedelta(hours=24)
    )
    old_rss = RawContentItem(
        title="b", url="https://b", source_type="rss", published_at=now - timedelta(days=30)
    )

    assert evaluator.calculate_priority(fresh_github, now) == pytest.approx(9 * 1.2)
    assert evaluator.calculate_priority(old_rss, now) == 0.0


@pytest.mark.anyio
async def test_evaluate_batch_scores_every_item(fake_client, make_item, metrics, no_pause) -> None:
    def reply(prompt: str):
        if "broken" in prompt:
            return ModelResponseError("garbage")
        return {"quality_score": 8.0 if "great" in prompt else 4.0}

    client = fake_client({"QualityEvaluationResponse": reply})
    evaluator = ContentQualityEvaluator(client, metrics=metrics)
    items = [
        make_item("great post", "https://e.com/1"),
        make_item("weak post", "https://e.com/2"),
        make_item("broken post", "https://e.com/3"),
    ]

    scores = await evaluator.evaluate_batch(items, max_concurrent=2)

    assert scores == {"https://e.com/1": 8.0, "https://e.com/2": 4.0, "https://e.com/3": 5.0}
    assert no_pause == [EVALUATION_CONFIG["batch_pause_seconds"]]
    assert ContentQualityEvaluator.filter_by_quality(scores, 5.0) == [
        "https://e.com/1",
        "https://e.com/3",
    ]


@pytest.mark.anyio
async def test_evaluate_batch_skips_low_priority(fake_client, make_item, metrics, no_pause) -> None:
    client = fake_client(quality_reply(7))
    evaluator = ContentQualityEvaluator(client, metrics=metrics)
    items = [make_item(url="https://e.com/new", age_hours=1), make_item(url="https://e.com/old", age_hours=500)]

    scores = await evaluator.evaluate_batch(items, priority_threshold=1.0)

    assert list(scores) == ["https://e.com/new"]


@pytest.mark.anyio
async def test_analyze_source_quality(fake_client, make_item, metrics) -> None:
    client = fake_client(quality_reply(9.1, flags=["potential_bias"]))
    evaluator = ContentQualityEvaluator(client, metrics=metrics)
    items = [
        make_item(f"post {index}", f"https://e.com/{index}", source_name="Deep Dives")
        for index in range(3)
    ] + [make_item("other", "https://o.com", source_name="Elsewhere")]

    report = await evaluator.analyze_source_quality("Deep Dives", items)

    assert report.sample_size == 3
    assert report.average_score == 9.1
    assert report.score_distribution[8] == 3
    assert report.common_flags == ["potential_bias"]
    assert report.recommendations[0].startswith("High quality source")
    assert any("bias" in entry for entry in report.recommendations)

    empty = await evaluator.analyze_source_quality("Nobody", items)
    assert empty.average_score == 0.0
    assert empty.recommendations == ["No content available for analysis"]


@pytest.mark.anyio
async def test_analyze_quality_trend_detects_improvement(fake_client, metrics) -> None:
    now = datetime(2025, 3, 12, 12, tzinfo=timezone.utc)

    def reply(prompt: str):
        return {"quality_score": 8.0 if "new" in prompt else 5.0}

    evaluator = ContentQualityEvaluator(fake_client({"QualityEvaluationResponse": reply}), metrics=metrics)
    items = [
        RawContentItem(title="old one", url="https://e.com/a", published_at=now - timedelta(days=5)),
        RawContentItem(title="new one", url="https://e.com/b", published_at=now - timedelta(hours=3)),
    ]

    trend = await evaluator.analyze_quality_trend(items, "1day", now=now)
    assert trend.trend == "stable"
    assert len(trend.period_scores) == 1

    trend = await evaluator.analyze_quality_trend(items, "1week", now=now)
    assert trend.period_scores == {"2025-03-02-week": 5.0, "2025-03-09-week": 8.0}
    assert trend.trend == "improving"
    assert trend.trend_score == 0.3

    with pytest.raises(ValueError):
        await evaluator.analyze_quality_trend(items, "1year", now=now)
