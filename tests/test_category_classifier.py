from __future__ import annotations

import pytest

from src.contracts.articles import CategoryClassification, GeneratedArticle, LabeledSample
from src.contracts.content import RawContentItem
from src.classification import CategoryClassifier


def item(title: str) -> RawContentItem:
    return RawContentItem(title=title, url=f"https://e.com/{title.replace(' ', '-')}")


def test_validate_category_maps_onto_taxonomy(fake_client, metrics) -> None:
    classifier = CategoryClassifier(fake_client(), metrics=metrics)

    assert classifier.validate_category("Security") == "Security"
    assert classifier.validate_category("frontend") == "Frontend Development"
    assert classifier.validate_category("Quantum Basket Weaving") == "Other"
    assert classifier.validate_category("") == "Other"


def test_taxonomy_always_keeps_other(fake_client, metrics) -> None:
    classifier = CategoryClassifier(fake_client(), {"categories": ["Rust", "Go", "Rust"]}, metrics=metrics)

    assert classifier.categories == ["Rust", "Go", "Other"]
    version = classifier.taxonomy_version
    classifier.add_category("Zig")
    classifier.remove_category("Go")
    assert classifier.categories == ["Rust", "Other", "Zig"]
    assert classifier.taxonomy_version == version + 2
    with pytest.raises(ValueError):
        classifier.remove_category("Other")


@pytest.mark.anyio
async def test_classify_detailed_validates_and_clamps(fake_client, metrics) -> None:
    client = fake_client(
        {
            "CategoryResponse": {
                "category": "backend",
                "confidence": 1.4,
                "alternative_categories": [
                    {"name": "Backend Development", "confidence": 0.9},
                    {"name": "Databases", "confidence": -1},
                    {"name": "Nope zzz", "confidence": 0.2},
                ],
                "reasoning": "server code",
            }
        }
    )
    classifier = CategoryClassifier(client, metrics=metrics)

    result = await classifier.classify_detailed(item("Designing idempotent endpoints"))

    assert result.category == "Backend Development"
    assert result.confidence == 1.0
    assert [(alt.name, alt.confidence) for alt in result.alternatives] == [
        ("Databases", 0.0),
        ("Other", 0.2),
    ]
    assert "- Other" in client.calls[0].prompt


@pytest.mark.anyio
async def test_cache_is_invalidated_by_taxonomy_changes(fake_client, metrics) -> None:
    client = fake_client({"CategoryResponse": {"category": "Security", "confidence": 0.8}})
    classifier = CategoryClassifier(client, metrics=metrics)
    target = item("Hardening SSH")

    await classifier.classify(target)
    await classifier.classify(target)
    assert len(client.calls) == 1

    classifier.add_category("Networking")
    await classifier.classify(target)
    assert len(client.calls) == 2


@pytest.mark.anyio
async def test_fallback_uses_keyword_table(fake_client, metrics) -> None:
    classifier = CategoryClassifier(fake_client(), metrics=metrics)

    hit = await classifier.classify_outcome(item("Kubernetes cluster upgrades"))
    miss = await classifier.classify_detailed(item("Gardening for the weekend"))

    assert hit.used_fallback
    assert hit.value == CategoryClassification(
        category="DevOps & Infrastructure", confidence=0.6, reasoning="Keyword-based classification"
    )
    assert (miss.category, miss.confidence) == ("Other", 0.3)


@pytest.mark.anyio
async def test_generated_articles_can_be_classified(fake_client, metrics) -> None:
    classifier = CategoryClassifier(fake_client(), metrics=metrics)
    article = GeneratedArticle(title="Docker layer caching", summary="Faster builds")

    assert await classifier.classify(article) == "DevOps & Infrastructure"


@pytest.mark.anyio
async def test_classify_batch_keeps_order_and_recovers(fake_client, metrics, no_pause) -> None:
    def reply(prompt: str):
        if "broken" in prompt:
            return RuntimeError("provider exploded")
        return {"category": "Security", "confidence": 0.9}

    classifier = CategoryClassifier(fake_client({"CategoryResponse": reply}), metrics=metrics)

    results = await classifier.classify_batch(
        [item("TLS pinning"), item("broken docker thing"), item("CSP headers")]
    )

    assert [result.category for result in results] == [
        "Security",
        "DevOps & Infrastructure",
        "Security",
    ]
    assert no_pause == []


def test_analyze_category_distribution(fake_client, metrics) -> None:
    classifier = CategoryClassifier(fake_client(), {"categories": ["A", "B", "C", "D"]}, metrics=metrics)
    labels = ["A"] * 6 + ["B"] * 3 + [CategoryClassification(category="C", confidence=0.5)]

    report = classifier.analyze_category_distribution(labels)

    assert report.counts == {"A": 6, "B": 3, "C": 1, "D": 0, "Other": 0}
    assert report.percentages["A"] == 60.0
    assert report.trending == ["A", "B", "C"]
    assert report.recommendations == [
        "'A' holds 60.0% of the content; consider diversifying sources.",
        "Unused categories: D, Other",
    ]


@pytest.mark.anyio
async def test_evaluate_accuracy_builds_confusion_matrix(fake_client, metrics) -> None:
    def reply(prompt: str):
        if "Title: flask views" in prompt:
            return {"category": "Backend Development"}
        return {"category": "Frontend Development"}

    classifier = CategoryClassifier(fake_client({"CategoryResponse": reply}), metrics=metrics)
    samples = [
        LabeledSample(item=item("react hooks"), expected="Frontend Development"),
        LabeledSample(item=item("django orm"), expected="Backend Development"),
        LabeledSample(item=item("flask views"), expected="Backend Development"),
    ]

    report = await classifier.evaluate_accuracy(samples)

    assert report.overall_accuracy == 0.67
    assert report.category_accuracy == {"Frontend Development": 1.0, "Backend Development": 0.5}
    assert report.confusion_matrix["Backend Development"] == {
        "Frontend Development": 1,
        "Backend Development": 1,
    }
    assert len(report.suggestions) == 3
    assert report.suggestions[-1].startswith("'Backend Development' is often confused")
