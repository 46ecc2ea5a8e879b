"""
Load and validate config.yaml.

The file lists the stops to monitor and the refresh cadence. The 511 API key
may live in the file or come from SF511_API_KEY (env wins).
"""
import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from src.config.models import AppConfig

logger = logging.getLogger(__name__)

API_KEY_ENV = "SF511_API_KEY"


class ConfigError(Exception):
    """Config file missing, unreadable or invalid."""


def load_config(path: str | Path) -> AppConfig:
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping at the top level")

    env_key = os.getenv(API_KEY_ENV, "").strip()
    if env_key:
        data["api_key"] = env_key

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid config file {path}: {e}") from e

    if not config.api_key.strip():
        raise ConfigError(f"api_key is required in config (or set {API_KEY_ENV})")
    if not config.stops:
        raise ConfigError("at least one stop must be configured")

    logger.info(
        "telemetry config_loaded path=%s stops=%s directions=%s",
        path,
        len(config.stops),
        config.direction_count(),
    )
    return config
