"""Taxonomy classification."""

from .category_classifier import CategoryClassifier

__all__ = ["CategoryClassifier"]
