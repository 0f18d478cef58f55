"""Content quality evaluation."""

from .quality_evaluator import QUALITY_FACTORS, ContentQualityEvaluator

__all__ = ["ContentQualityEvaluator", "QUALITY_FACTORS"]
