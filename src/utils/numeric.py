"""Range helpers shared by every scoring stage."""

from __future__ import annotations

import math
from typing import Iterable, Optional


def clamp(value: float, low: float, high: float) -> float:
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def round_to(value: float, digits: int = 1) -> float:
    """Round half up, so 6.45 becomes 6.5 rather than banker's 6.4."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def clamp_score(value: Optional[float], *, low: float = 1.0, high: float = 10.0, default: float = 5.0) -> float:
    """Clamp a model-supplied score into ``[low, high]`` rounded to one decimal."""
    if value is None:
        return default
    return round_to(clamp(float(value), low, high), 1)


def mean(values: Iterable[float]) -> float:
    collected = list(values)
    if not collected:
        return 0.0
    return sum(collected) / len(collected)


__all__ = ["clamp", "clamp_score", "mean", "round_to"]
