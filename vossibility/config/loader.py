"""YAML loader for collector configuration files."""

from __future__ import annotations

import os
from pathlib import Path

import msgspec
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .models import CollectorConfig
from .validation import ConfigValidationError, validate_config

YAML_VERSION = (1, 2)
CONFIG_ENV = "VOSSIBILITY_CONFIG"
GITHUB_TOKEN_ENV = "VOSSIBILITY_GITHUB_TOKEN"
DEFAULT_CONFIG_PATH = "config.yaml"


def resolve_config_path(
    explicit: Path | str | None = None,
    *,
    env: dict[str, str] | None = None,
) -> Path:
    """Return the configuration path from the CLI, the environment, or default."""
    environ = os.environ if env is None else env
    return Path(explicit or environ.get(CONFIG_ENV) or DEFAULT_CONFIG_PATH)


def load_config(
    path: Path | str,
    *,
    env: dict[str, str] | None = None,
) -> CollectorConfig:
    """Parse and validate a YAML configuration file.

    Raises
    ------
    ConfigValidationError
        If the file cannot be read, does not match the schema, or fails
        cross-field validation.

    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigValidationError([f"failed to read {path}: {exc}"]) from exc
    return parse_config(text, env=env)


def parse_config(
    text: str,
    *,
    env: dict[str, str] | None = None,
) -> CollectorConfig:
    """Parse and validate configuration from YAML text."""
    try:
        loaded = _yaml().load(text)
    except YAMLError as exc:
        raise ConfigValidationError([f"failed to parse YAML: {exc}"]) from exc

    if loaded is None:
        raise ConfigValidationError(["configuration file is empty"])

    try:
        config = msgspec.convert(loaded, type=CollectorConfig)
    except msgspec.ValidationError as exc:
        raise ConfigValidationError([f"schema validation failed: {exc}"]) from exc

    environ = os.environ if env is None else env
    if not config.github_api_token:
        config.github_api_token = environ.get(GITHUB_TOKEN_ENV, "")

    return validate_config(config)


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    yaml.allow_duplicate_keys = False
    return yaml
