"""Tag generation and tag analytics."""

from .tag_generator import TagGenerator

__all__ = ["TagGenerator"]
