"""Project configuration facade backed by techcurator.config_manager."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from techcurator.config_manager import Config, ConfigError, load_config

CONFIG: Config = load_config()

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = CONFIG.paths.data_dir
LOGS_DIR = CONFIG.paths.logs_dir

ENVIRONMENT = CONFIG.app.environment
DEBUG = CONFIG.app.debug
IS_PRODUCTION = ENVIRONMENT == "production"
IS_STAGING = ENVIRONMENT == "staging"

MODEL_CONFIG: Dict[str, Any] = CONFIG.model.model_dump(mode="python")
EVALUATION_CONFIG: Dict[str, Any] = CONFIG.evaluation.model_dump(mode="python")
INTEREST_CONFIG: Dict[str, Any] = CONFIG.interest.model_dump(mode="python")
QUERY_CONFIG: Dict[str, Any] = CONFIG.queries.model_dump(mode="python")
CLASSIFICATION_CONFIG: Dict[str, Any] = CONFIG.classification.model_dump(mode="python")
TAGGING_CONFIG: Dict[str, Any] = CONFIG.tagging.model_dump(mode="python")
GENERATION_CONFIG: Dict[str, Any] = CONFIG.generation.model_dump(mode="python")
PIPELINE_CONFIG: Dict[str, Any] = CONFIG.pipeline.model_dump(mode="python")
COLLECTOR_CONFIG: Dict[str, Any] = CONFIG.collectors.model_dump(mode="python")

LOGGING_CONFIG: Dict[str, Any] = {
    "level": CONFIG.logging.level,
    "file_path": str(CONFIG.logging.file_path),
    "max_file_size": f"{CONFIG.logging.max_file_size_mb} MB",
    "retention": f"{CONFIG.logging.retention_days} days",
    "format": CONFIG.logging.format,
}


def validate_config(config: Config | None = None) -> None:
    """Execute cross-section consistency checks the schema cannot express."""

    cfg = config or CONFIG
    pipeline = cfg.pipeline
    if pipeline.max_sources_per_article > cfg.generation.max_sources:
        raise ConfigError(
            "pipeline.max_sources_per_article cannot exceed generation.max_sources"
        )
    if cfg.evaluation.low_quality_average >= cfg.evaluation.high_quality_average:
        raise ConfigError(
            "evaluation.low_quality_average must be below evaluation.high_quality_average"
        )
    if cfg.generation.min_confidence > cfg.generation.default_confidence:
        raise ConfigError(
            "generation.min_confidence cannot exceed generation.default_confidence"
        )
    unknown = set(cfg.queries.default_target_sources) - {
        "google",
        "news",
        "reddit",
        "github",
        "rss",
    }
    if unknown:
        raise ConfigError(
            "queries.default_target_sources has unknown sources: "
            + ", ".join(sorted(unknown))
        )


__all__ = [
    "BASE_DIR",
    "CONFIG",
    "DATA_DIR",
    "LOGS_DIR",
    "ENVIRONMENT",
    "DEBUG",
    "IS_PRODUCTION",
    "IS_STAGING",
    "MODEL_CONFIG",
    "EVALUATION_CONFIG",
    "INTEREST_CONFIG",
    "QUERY_CONFIG",
    "CLASSIFICATION_CONFIG",
    "TAGGING_CONFIG",
    "GENERATION_CONFIG",
    "PIPELINE_CONFIG",
    "COLLECTOR_CONFIG",
    "LOGGING_CONFIG",
    "validate_config",
]
