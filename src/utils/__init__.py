"""
Shared utilities for the techcurator pipeline.
"""

from .logger import create_module_logger, get_logger, setup_logging
from .metrics import MetricEvent, MetricsReporter, get_metrics_reporter

__all__ = [
    "create_module_logger",
    "get_logger",
    "setup_logging",
    "get_metrics_reporter",
    "MetricsReporter",
    "MetricEvent",
]
