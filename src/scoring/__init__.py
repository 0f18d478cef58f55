"""Interest scoring package exports."""

from .interest_scorer import FILTER_STRATEGIES, INTEREST_FACTORS, InterestScorer

__all__ = ["FILTER_STRATEGIES", "INTEREST_FACTORS", "InterestScorer"]
