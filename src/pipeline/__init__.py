"""Sources-to-article orchestration."""

from .orchestrator import ArticlePipeline

__all__ = ["ArticlePipeline"]
