from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from config.settings import GENERATION_CONFIG
from src.ai.client import ModelResponseError, ModelUnavailableError
from src.contracts.articles import GeneratedArticle, GenerationOptions, ImprovementFeedback, SourceRef
from src.contracts.content import RawContentItem
from src.generation import ArticleGenerationError, ArticleGenerator

NOW = datetime(2025, 3, 10, 12, tzinfo=timezone.utc)


def source(title: str, *, source_type: str = "rss", age_hours: float = 2.0, summary: str = "") -> RawContentItem:
    return RawContentItem(
        title=title,
        url=f"https://e.com/{title.replace(' ', '-')}",
        summary=summary,
        source_type=source_type,
        published_at=NOW - timedelta(hours=age_hours),
    )


def article_reply(**overrides):
    payload = {
        "title": " Event loop internals ",
        "summary": "How asyncio schedules work. ",
        "content": "Deep internals of the event loop. " * 60,
        "category": "",
        "tags": [f"tag{index}" for index in range(10)],
        "sources": [],
        "confidence": 0.01,
        "metadata": {"difficulty": "Expert"},
    }
    payload.update(overrides)
    return payload


def test_source_priority_weighs_age_type_and_interests(fake_client, profile, metrics) -> None:
    generator = ArticleGenerator(fake_client(), metrics=metrics)

    recent_rss = source("Python tips", age_hours=48, summary="asyncio patterns")
    month_old_news = source("Release notes", source_type="news", age_hours=24 * 30)
    stale_reddit = source("Old thread", source_type="reddit", age_hours=24 * 100)
    fresh_github = source("python asyncio", source_type="github", age_hours=1)

    assert generator.calculate_source_priority(recent_rss, profile, NOW) == 7.0
    assert generator.calculate_source_priority(month_old_news, profile, NOW) == pytest.approx(6.0)
    assert generator.calculate_source_priority(stale_reddit, profile, NOW) == pytest.approx(3.2)
    assert generator.calculate_source_priority(fresh_github, profile, NOW) == 10.0


def test_select_sources_keeps_input_order_on_ties(fake_client, profile, metrics) -> None:
    generator = ArticleGenerator(fake_client(), {**GENERATION_CONFIG, "max_sources": 2}, metrics=metrics)
    sources = [source(name, age_hours=48) for name in ("first", "second", "third")]
    sources.append(source("python news", age_hours=48))

    selected = generator.select_sources(sources, profile, NOW)

    assert [entry.title for entry, _ in selected] == ["python news", "first"]


@pytest.mark.anyio
async def test_generate_post_processes_model_output(fake_client, profile, metrics) -> None:
    inputs = [source("Asyncio deep dive"), source("Trio vs asyncio", source_type="github")]
    reply = article_reply(
        sources=[
            {"url": inputs[0].url, "relevance": 3},
            {"url": "https://unknown.example/post"},
        ]
    )
    client = fake_client({"ArticleResponse": reply})
    generator = ArticleGenerator(client, metrics=metrics)

    article = await generator.generate(inputs, profile, GenerationOptions(target_length="short"))

    assert article.title == "Event loop internals"
    assert article.summary == "How asyncio schedules work."
    assert article.word_count == 360
    assert article.reading_time == 2
    assert article.difficulty == "advanced"
    assert article.category == "Other"
    assert len(article.tags) == 8
    assert article.confidence == 0.1
    assert article.content_type == "curation"
    assert article.source_refs == [
        SourceRef(url=inputs[0].url, title="Asyncio deep dive", relevance=1.0, source_type="rss"),
        SourceRef(url="https://unknown.example/post", title="", relevance=0.5, source_type="web"),
    ]
    prompt = client.calls[0].prompt
    assert "800-1200 words" in prompt
    assert "**Trio vs asyncio**" in prompt
    assert "Interests: python, asyncio" in prompt

    again = await generator.generate(list(reversed(inputs)), profile, GenerationOptions(target_length="short"))
    assert again == article
    assert len(client.calls) == 1


@pytest.mark.anyio
async def test_generate_raises_without_fallback(fake_client, profile, metrics) -> None:
    generator = ArticleGenerator(fake_client(), metrics=metrics)

    with pytest.raises(ArticleGenerationError):
        await generator.generate([], profile)
    with pytest.raises(ArticleGenerationError) as excinfo:
        await generator.generate([source("Anything")], profile)
    assert isinstance(excinfo.value.__cause__, ModelUnavailableError)


@pytest.mark.anyio
async def test_blank_title_is_rejected_as_model_error(fake_client, profile, metrics) -> None:
    client = fake_client({"ArticleResponse": {"title": "   ", "content": "x"}})
    generator = ArticleGenerator(client, metrics=metrics)

    with pytest.raises(ArticleGenerationError) as excinfo:
        await generator.generate([source("Anything")], profile)

    assert isinstance(excinfo.value.__cause__, ModelResponseError)
    assert "title" in str(excinfo.value)


def test_infer_difficulty(fake_client, metrics) -> None:
    generator = ArticleGenerator(fake_client(), metrics=metrics)

    assert generator.infer_difficulty("A getting started tutorial") == "beginner"
    assert generator.infer_difficulty("Rust 入門") == "beginner"
    assert generator.infer_difficulty("Architecture and optimization tutorial") == "advanced"
    assert generator.infer_difficulty("Release notes") == "intermediate"


@pytest.mark.anyio
async def test_generate_batch_reports_each_group(fake_client, profile, metrics, no_pause) -> None:
    def reply(prompt: str):
        if "broken" in prompt:
            return ModelUnavailableError("timeout")
        return article_reply()

    generator = ArticleGenerator(fake_client({"ArticleResponse": reply}), metrics=metrics)
    groups = [[source("one")], [source("broken two")], [source("three")]]

    attempts = await generator.generate_batch(groups, profile)

    assert [attempt.success for attempt in attempts] == [True, False, True]
    assert attempts[1].article is None
    assert "Article generation failed" in attempts[1].error
    assert no_pause == [2.0, 2.0]


@pytest.mark.anyio
async def test_improve_article_keeps_sources_when_model_drops_them(fake_client, metrics) -> None:
    client = fake_client({"ArticleResponse": article_reply(title="Event loop internals, revised")})
    generator = ArticleGenerator(client, metrics=metrics)
    refs = [SourceRef(url="https://e.com/a", title="A", source_type="github")]
    original = GeneratedArticle(title="Event loop internals", content="Short draft", source_refs=refs)

    improved = await generator.improve_article(
        original, ImprovementFeedback(improve_areas=["examples"], user_comments="More code")
    )

    assert improved.title == "Event loop internals, revised"
    assert improved.source_refs == refs
    prompt = client.calls[0].prompt
    assert "Add concrete examples and code samples." in prompt
    assert "More code" in prompt
    assert client.calls[0].options.temperature == 0.6

    failing = ArticleGenerator(fake_client(), metrics=metrics)
    with pytest.raises(ArticleGenerationError):
        await failing.improve_article(original, ImprovementFeedback())


def test_calculate_quality_metrics(fake_client, metrics) -> None:
    generator = ArticleGenerator(fake_client(), metrics=metrics)
    content = "\n".join(
        [
            "# Intro",
            "## Setup",
            "## Profiling",
            "- one",
            "- two",
            "- three",
            "```python\nimport cProfile\n```",
        ]
    )
    article = GeneratedArticle(
        title="How to profile Python services",
        content=content,
        word_count=1_200,
        tags=["python", "profiling"],
        source_refs=[SourceRef(url="https://a"), SourceRef(url="https://b")],
    )

    report = generator.calculate_quality_metrics(article)

    assert (report.content_length, report.title_quality, report.structure) == (9.0, 10.0, 10.0)
    assert (report.source_coverage, report.tag_count) == (8.0, 5.0)
    assert report.overall == 8.4
    assert report.suggestions == ["Pick tags that match the content more closely."]
