"""Bounded-concurrency slicing shared by every batch entry point."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar, Union

T = TypeVar("T")
R = TypeVar("R")

SliceOutcome = Union[R, BaseException]


def slices(items: Sequence[T], size: int) -> List[Sequence[T]]:
    step = max(1, int(size))
    return [items[index : index + step] for index in range(0, len(items), step)]


async def run_in_slices(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    max_concurrent: int,
    pause_seconds: float = 0.0,
    should_continue: Callable[[List[SliceOutcome]], bool] | None = None,
) -> List[SliceOutcome]:
    """
    Run ``worker`` over ``items`` in slices of at most ``max_concurrent``.

    Each slice settles completely (exceptions are returned in place, never
    raised) before the next one starts. The pause only happens when another
    slice follows. ``should_continue`` sees the outcomes of the slice that just
    finished and can stop the run early.
    """
    outcomes: List[SliceOutcome] = []
    chunks = slices(items, max_concurrent)
    for index, chunk in enumerate(chunks):
        settled = await asyncio.gather(
            *(worker(item) for item in chunk), return_exceptions=True
        )
        outcomes.extend(settled)
        if should_continue is not None and not should_continue(list(settled)):
            break
        if pause_seconds > 0 and index + 1 < len(chunks):
            await asyncio.sleep(pause_seconds)
    return outcomes


__all__ = ["run_in_slices", "slices"]
