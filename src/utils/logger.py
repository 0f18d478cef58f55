# src/utils/logger.py
# Logging setup for the techcurator pipeline
# ==========================================

"""
Centralized loguru configuration for every pipeline stage.

Stages never configure sinks themselves: they ask for a module logger via
``create_module_logger`` and emit structured payloads through it. The first
request configures console and rotating file handlers from ``LOGGING_CONFIG``.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from config.settings import DEBUG, LOGGING_CONFIG


class PipelineLogger:
    """Owns the loguru sinks shared by the whole process."""

    def __init__(self) -> None:
        self.is_configured = False
        self.log_file_path: Optional[Path] = None

    def configure_logging(self, config: Optional[Dict[str, Any]] = None) -> None:
        """
        Install console and file handlers.

        Args:
            config: Logging section; defaults to ``LOGGING_CONFIG``. A second
                call is a no-op so libraries cannot clobber application sinks.
        """
        if self.is_configured:
            logger.debug("Logging already configured, skipping reconfiguration")
            return

        config = config or LOGGING_CONFIG

        logger.remove()
        self._configure_console_handler(config)
        if config.get("file_path"):
            self._configure_file_handler(config)

        self.is_configured = True
        logger.debug(f"Logging configured: {config}")

    def _configure_console_handler(self, config: Dict[str, Any]) -> None:
        if DEBUG:
            console_format = (
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{extra[module]}</cyan> | "
                "<level>{message}</level>"
            )
            console_level = "DEBUG"
        else:
            console_format = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
            console_level = config.get("level", "INFO")

        logger.configure(extra={"module": "techcurator"})
        logger.add(
            sys.stderr,
            format=console_format,
            level=console_level,
            colorize=True,
            backtrace=DEBUG,
            diagnose=DEBUG,
        )

    def _configure_file_handler(self, config: Dict[str, Any]) -> None:
        self.log_file_path = Path(config["file_path"])
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_format = (
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{process.id: <6} | "
            "{extra[module]} | "
            "{name}:{function}:{line} | "
            "{message}"
        )

        logger.add(
            str(self.log_file_path),
            format=file_format,
            level=config.get("level", "INFO"),
            rotation=config.get("max_file_size", "10 MB"),
            retention=config.get("retention", "30 days"),
            compression="gz",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )

    def create_module_logger(self, module_name: str) -> Any:
        """Return a logger bound to ``module_name``, configuring sinks on first use."""
        if not self.is_configured:
            self.configure_logging()
        return logger.bind(module=module_name)

    def log_system_startup(
        self, version: str = "0.1.0", config_summary: Optional[Dict[str, Any]] = None
    ) -> None:
        logger.info("=" * 60)
        logger.info("TECHCURATOR PIPELINE STARTED")
        logger.info("=" * 60)
        logger.info(f"Version: {version}")
        logger.info(f"Debug mode: {DEBUG}")

        if config_summary:
            logger.info("Main configuration:")
            for key, value in config_summary.items():
                logger.info(f"  {key}: {value}")

        if self.log_file_path:
            logger.info(f"Writing logs to: {self.log_file_path}")
        logger.info("=" * 60)

    def log_performance_metrics(self, metrics: Dict[str, Any], context: str = "") -> None:
        logger.info(f"PERFORMANCE METRICS {context}".rstrip())
        for metric, value in metrics.items():
            if isinstance(value, float):
                logger.info(f"  {metric}: {value:.3f}")
            else:
                logger.info(f"  {metric}: {value}")


class PipelineRunLogger:
    """
    Logger for one orchestrator run.

    Every line carries ``run_id`` and ``user_id`` so a run can be followed
    across stages in the file sink.
    """

    def __init__(self, run_id: str, user_id: str):
        self.run_id = run_id
        self.user_id = user_id
        self.logger = logger.bind(module="pipeline.run", run_id=run_id, user_id=user_id)

    def log_run_start(self, sources_count: int) -> None:
        self.logger.info(f"Run started: {sources_count} candidate sources")

    def log_stage(self, stage: str, status: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Record a stage transition; ``status`` is ``ok``, ``failed`` or free text."""
        summary = ", ".join(f"{key}={value}" for key, value in (details or {}).items())
        if status == "failed":
            self.logger.warning(f"{stage}: failed {summary}".rstrip())
        else:
            self.logger.info(f"{stage}: {status} {summary}".rstrip())

    def log_run_summary(self, summary: Dict[str, Any]) -> None:
        self.logger.info("RUN SUMMARY:")
        self.logger.info(f"  * Success: {summary.get('success', False)}")
        self.logger.info(f"  * Sources processed: {summary.get('sources_processed', 0)}")
        self.logger.info(f"  * Sources used: {summary.get('sources_used', 0)}")
        self.logger.info(f"  * Warnings: {summary.get('warnings', 0)}")
        self.logger.info(f"  * Total time: {summary.get('execution_time_ms', 0.0):.1f}ms")


_logger_instance: Optional[PipelineLogger] = None


def get_logger() -> PipelineLogger:
    """Return the process-wide logging configurator."""
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = PipelineLogger()
        _logger_instance.configure_logging()
    return _logger_instance


def setup_logging(config: Optional[Dict[str, Any]] = None) -> PipelineLogger:
    logger_instance = get_logger()
    if config:
        logger_instance.is_configured = False
        logger_instance.configure_logging(config)
    return logger_instance


def create_module_logger(module_name: str) -> Any:
    return get_logger().create_module_logger(module_name)


__all__ = [
    "PipelineLogger",
    "PipelineRunLogger",
    "create_module_logger",
    "get_logger",
    "setup_logging",
]
