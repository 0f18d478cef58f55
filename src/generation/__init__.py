"""Article synthesis."""

from .article_generator import ArticleGenerationError, ArticleGenerator

__all__ = ["ArticleGenerationError", "ArticleGenerator"]
