"""
Main package of the techcurator pipeline.

Holds the model client, the scoring and generation stages, the orchestrator
that chains them and the shared utilities.
"""

from config.version import PROJECT_VERSION, PYTHON_REQUIRES_SPECIFIER

from .ai import ModelClient, PromptManager
from .classification import CategoryClassifier
from .collectors import BaseCollector
from .evaluation import ContentQualityEvaluator
from .generation import ArticleGenerationError, ArticleGenerator
from .pipeline import ArticlePipeline
from .queries import SearchQueryGenerator
from .scoring import InterestScorer
from .tagging import TagGenerator
from .utils import get_logger, get_metrics_reporter, setup_logging

__version__ = PROJECT_VERSION
__description__ = "Personalized technical article curation driven by a language model"

__package_info__ = {
    "name": "techcurator",
    "version": __version__,
    "description": __description__,
    "author": "techcurator team",
    "license": "MIT",
    "python_requires": PYTHON_REQUIRES_SPECIFIER,
}

__all__ = [
    "ArticleGenerationError",
    "ArticleGenerator",
    "ArticlePipeline",
    "BaseCollector",
    "CategoryClassifier",
    "ContentQualityEvaluator",
    "InterestScorer",
    "ModelClient",
    "PromptManager",
    "SearchQueryGenerator",
    "TagGenerator",
    "get_logger",
    "get_metrics_reporter",
    "setup_logging",
]
