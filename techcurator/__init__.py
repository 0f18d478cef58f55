"""Configuration tooling for the techcurator pipeline."""
from __future__ import annotations

from .config_manager import Config, ConfigError, load_config, save_config
from .config_schema import Config as ConfigModel, DEFAULT_CONFIG, iter_field_docs

__all__ = [
    "load_config",
    "save_config",
    "Config",
    "ConfigError",
    "ConfigModel",
    "DEFAULT_CONFIG",
    "iter_field_docs",
]
