from __future__ import annotations

from datetime import datetime, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from src.utils.batching import run_in_slices, slices
from src.utils.datetime_utils import hours_since, parse_to_utc, period_key
from src.utils.dedupe import cache_key, unique_by
from src.utils.numeric import clamp, clamp_score, round_to
from src.utils.text_cleaner import clean_html, count_words, string_similarity, truncate
from src.utils.ttl_cache import TTLCache


class ManualClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_ttl_cache_expires_entries_on_read() -> None:
    clock = ManualClock()
    cache: TTLCache[str] = TTLCache(10, clock=clock)
    cache.set("a", "value")

    clock.now = 9.9
    assert cache.get("a") == "value"
    clock.now = 10.0
    assert cache.get("a") is None
    assert "a" not in cache
    assert cache.hits == 1 and cache.misses == 1


def test_ttl_cache_evicts_least_recently_used() -> None:
    cache: TTLCache[int] = TTLCache(60, maxsize=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert len(cache) == 2


def test_ttl_cache_rejects_non_positive_ttl() -> None:
    with pytest.raises(ValueError):
        TTLCache(0)


def test_round_to_rounds_half_up() -> None:
    assert round_to(6.45, 1) == 6.5
    assert round_to(2.25, 1) == 2.3
    assert round_to(0.125, 2) == 0.13


def test_clamp_score_defaults_and_limits() -> None:
    assert clamp_score(None) == 5.0
    assert clamp_score(14) == 10.0
    assert clamp_score(-3) == 1.0
    assert clamp_score(float("nan")) == 1.0
    assert clamp_score(7.44) == 7.4


@given(st.floats(allow_nan=False, allow_infinity=True))
@settings(max_examples=200)
def test_clamp_score_always_in_range(value: float) -> None:
    score = clamp_score(value)
    assert 1.0 <= score <= 10.0


@given(st.floats(allow_nan=False, allow_infinity=False, min_value=-1e6, max_value=1e6))
def test_clamp_is_idempotent(value: float) -> None:
    once = clamp(value, 0.0, 1.0)
    assert clamp(once, 0.0, 1.0) == once


@given(
    st.lists(
        st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=12),
        min_size=0,
        max_size=40,
    )
)
def test_count_words_counts_latin_words(words: list[str]) -> None:
    assert count_words(" ".join(words)) == len(words)


def test_count_words_handles_markdown_and_cjk() -> None:
    assert count_words("## Heading\n\n- one item\n- `code` here") == 5
    assert count_words("入門ガイド") == 3
    assert count_words("") == 0


def test_clean_html_drops_scripts_and_boilerplate() -> None:
    html = "<div><script>alert(1)</script><p>Fast &amp; safe</p><p>Read More</p></div>"
    assert clean_html(html) == "Fast & safe"


def test_truncate_adds_ellipsis() -> None:
    assert truncate("abcdef", 10) == "abcdef"
    assert truncate("abcdefghij", 5) == "abcd…"


def test_string_similarity_bounds() -> None:
    assert string_similarity("react", "react") == 1.0
    assert string_similarity("", "") == 1.0
    assert string_similarity("react", "reactjs") == pytest.approx(5 / 7)
    assert string_similarity("abc", "xyz") == 0.0


def test_parse_to_utc_normalizes_offsets_and_naive_values() -> None:
    assert parse_to_utc("2025-01-02T12:00:00-03:00") == datetime(2025, 1, 2, 15, tzinfo=timezone.utc)
    assert parse_to_utc("2025-01-02 08:00:00").tzinfo == timezone.utc


def test_hours_since_uses_reference() -> None:
    now = datetime(2025, 1, 2, 12, tzinfo=timezone.utc)
    assert hours_since(datetime(2025, 1, 1, 12, tzinfo=timezone.utc), now) == 24.0


def test_period_key_weeks_start_on_sunday() -> None:
    wednesday = datetime(2025, 3, 12, tzinfo=timezone.utc)
    sunday = datetime(2025, 3, 9, tzinfo=timezone.utc)
    assert period_key(wednesday, "1week") == "2025-03-09-week"
    assert period_key(sunday, "1week") == "2025-03-09-week"
    assert period_key(wednesday, "1month") == "2025-03"
    with pytest.raises(ValueError):
        period_key(wednesday, "1year")


def test_unique_by_keeps_first_occurrence() -> None:
    assert unique_by(["a", "B", "b", "c"], key=str.lower) == ["a", "B", "c"]


def test_cache_key_is_stable() -> None:
    assert cache_key("a", None, 1) == cache_key("a", None, 1)
    assert cache_key("a", "b") != cache_key("ab")


def test_slices_split_evenly() -> None:
    assert slices([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]


@pytest.mark.anyio
async def test_run_in_slices_returns_exceptions_in_place(no_pause) -> None:
    async def worker(value: int) -> int:
        if value == 2:
            raise RuntimeError("boom")
        return value * 10

    outcomes = await run_in_slices([1, 2, 3], worker, max_concurrent=2, pause_seconds=1.5)

    assert outcomes[0] == 10
    assert isinstance(outcomes[1], RuntimeError)
    assert outcomes[2] == 30
    assert no_pause == [1.5]


@pytest.mark.anyio
async def test_run_in_slices_pauses_only_between_slices(no_pause) -> None:
    async def worker(value: int) -> int:
        return value

    await run_in_slices(list(range(7)), worker, max_concurrent=3, pause_seconds=2.0)
    assert no_pause == [2.0, 2.0]

    no_pause.clear()
    await run_in_slices([1, 2], worker, max_concurrent=3, pause_seconds=2.0)
    assert no_pause == []


@pytest.mark.anyio
async def test_run_in_slices_stops_when_told(no_pause) -> None:
    seen: list[int] = []

    async def worker(value: int) -> int:
        seen.append(value)
        return value

    outcomes = await run_in_slices(
        [1, 2, 3, 4, 5],
        worker,
        max_concurrent=2,
        should_continue=lambda settled: 2 not in settled,
    )

    assert outcomes == [1, 2]
    assert seen == [1, 2]
