"""Configuration loading utilities."""

import json
from pathlib import Path

from loguru import logger

from nanothread.config.schema import PersonaConfig, Settings
from nanothread.errors import ConfigurationError


def load_settings(**overrides) -> Settings:
    """
    Load settings from the environment and verify required secrets.

    Raises:
        ConfigurationError: A required secret is missing. Callers at startup
            should let this terminate the process.
    """
    try:
        settings = Settings(**overrides)
    except ValueError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
    settings.require_secrets()
    logger.debug(f"Settings loaded (model={settings.active_model}, data_dir={settings.data_dir})")
    return settings


def load_persona(path: Path) -> PersonaConfig:
    """
    Load the persona file.

    A missing file gives empty defaults; a malformed one is a configuration
    error, since running with a half-read persona is worse than not starting.
    """
    if not path.exists():
        logger.warning(f"{path} not found; continuing with an empty persona")
        return PersonaConfig()
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        persona = PersonaConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as e:
        raise ConfigurationError(f"Failed to load persona from {path}: {e}") from e
    logger.debug(f"Loaded persona config (clone_user_id={persona.clone_user_id or '-'})")
    return persona
