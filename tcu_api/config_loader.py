"""Config Loader - Loads and validates client configuration.

Handles loading YAML config files with environment variable substitution
and turning pydantic validation failures into ConfigurationError.

Example file:

    base_url: https://api.tcu.go.tz
    username: ${TCU_USERNAME}
    session_token: ${TCU_SESSION_TOKEN}
    timeout: 30
    retry_attempts: 3
    enable_database_logging: true
    database:
      driver: pgsql
      host: localhost
      database: tcu_logs
      username: tcu
      password: ${TCU_DB_PASSWORD}
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError as PydanticValidationError

from tcu_api.errors import ConfigurationError
from tcu_api.models import ClientConfig, format_validation_errors

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def load_config(config_path: Path) -> ClientConfig:
    """Load client configuration from YAML with ${ENV_VAR} substitution."""
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigurationError("Config file must be a YAML mapping")

    return config_from_mapping(_substitute_env_vars(raw_config))


def config_from_mapping(data: Mapping[str, Any]) -> ClientConfig:
    """Validate a plain mapping into a ClientConfig.

    Every problem is reported at once in ``ConfigurationError.errors``.
    """
    try:
        return ClientConfig.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ConfigurationError(
            "Configuration validation failed", errors=format_validation_errors(e)
        ) from e


def _substitute_env_vars(data: Any) -> Any:
    """Recursively substitute ${ENV_VAR} patterns in strings within data."""
    if isinstance(data, str):
        return _substitute_string(data)
    elif isinstance(data, dict):
        return {k: _substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars(item) for item in data]
    return data


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigurationError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigurationError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_PATTERN.sub(replacer, s)
