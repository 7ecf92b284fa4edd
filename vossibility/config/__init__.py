"""Collector configuration: models, YAML loading and validation."""

from __future__ import annotations

from .loader import (
    CONFIG_ENV,
    DEFAULT_CONFIG_PATH,
    GITHUB_TOKEN_ENV,
    load_config,
    parse_config,
    resolve_config_path,
)
from .models import (
    AMQPSettings,
    CollectorConfig,
    MappingSettings,
    RepositorySettings,
)
from .validation import ConfigValidationError, validate_config

__all__ = [
    "CONFIG_ENV",
    "DEFAULT_CONFIG_PATH",
    "GITHUB_TOKEN_ENV",
    "AMQPSettings",
    "CollectorConfig",
    "ConfigValidationError",
    "MappingSettings",
    "RepositorySettings",
    "load_config",
    "parse_config",
    "resolve_config_path",
    "validate_config",
]
