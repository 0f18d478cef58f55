from __future__ import annotations

from datetime import datetime, timezone
from typing import List

import pytest

from src.collectors import BaseCollector, RateLimiter
from src.contracts.collaborators import Collector
from src.contracts.content import RawContentItem


class ManualClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class StaticCollector(BaseCollector):
    source_type = "rss"

    def __init__(self, batches, **kwargs) -> None:
        super().__init__("static", **kwargs)
        self.batches = list(batches)
        self.queries: List[tuple] = []

    async def fetch(self, query: str, limit: int) -> List[RawContentItem]:
        self.queries.append((query, limit))
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch


def entry(slug: str) -> RawContentItem:
    return RawContentItem(title=slug, url=f"https://feed.example/{slug}", source_type="rss")


def test_rate_limiter_window_slides() -> None:
    clock = ManualClock()
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)

    assert limiter.track("k") == 1
    clock.now += 10
    limiter.track("k")
    assert limiter.is_limited("k")
    assert limiter.remaining("k") == 0
    assert limiter.next_available_time("k") == datetime.fromtimestamp(1_060.0, tz=timezone.utc)

    clock.now = 1_060.0
    assert not limiter.is_limited("k")
    assert limiter.remaining("k") == 1
    assert limiter.next_available_time("k") is None
    assert limiter.remaining("other") == 2


def test_rate_limiter_reset_and_validation() -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=5, clock=ManualClock())
    limiter.track("a")
    limiter.track("b")
    limiter.reset("a")
    assert not limiter.is_limited("a")
    assert limiter.is_limited("b")
    limiter.reset()
    assert not limiter.is_limited("b")

    with pytest.raises(ValueError):
        RateLimiter(max_requests=0)
    with pytest.raises(ValueError):
        RateLimiter(window_seconds=0)


@pytest.mark.anyio
async def test_collect_dedupes_and_truncates() -> None:
    collector = StaticCollector([[entry("a"), entry("a"), entry("b"), entry("c")]])

    items = await collector.collect("python", limit=2)

    assert [item.title for item in items] == ["a", "b"]
    assert collector.queries == [("python", 2)]
    assert collector.get_stats()["total_items_found"] == 2
    assert isinstance(collector, Collector)
    assert collector.rate_limit_key == "collector:static"


@pytest.mark.anyio
async def test_collect_swallows_upstream_errors_and_tracks_health() -> None:
    collector = StaticCollector([RuntimeError("502"), [entry("a")], [entry("b")]])

    assert await collector.collect("q") == []
    assert collector.get_stats()["total_errors"] == 1
    assert not collector.is_healthy()

    await collector.collect("q")
    await collector.collect("q")
    assert collector.get_stats()["total_queries"] == 3
    assert not collector.is_healthy()
    assert collector.queries[0] == ("q", 20)


@pytest.mark.anyio
async def test_collect_respects_rate_limit() -> None:
    clock = ManualClock()
    limiter = RateLimiter(max_requests=1, window_seconds=30, clock=clock)
    collector = StaticCollector([[entry("a")], [entry("b")]], rate_limiter=limiter)

    assert len(await collector.collect("q")) == 1
    assert collector.is_rate_limited()
    assert await collector.collect("q") == []
    assert collector.get_stats()["rate_limited"] == 1
    assert collector.get_next_available_time() == datetime.fromtimestamp(1_030.0, tz=timezone.utc)

    clock.now += 30
    assert [item.title for item in await collector.collect("q")] == ["b"]
