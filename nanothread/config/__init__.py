"""Configuration module for nanothread."""

from nanothread.config.loader import load_persona, load_settings
from nanothread.config.schema import CooldownConfig, PersonaConfig, RateConfig, Settings
from nanothread.config.scopes import ScopeConfigStore

__all__ = [
    "Settings",
    "RateConfig",
    "CooldownConfig",
    "PersonaConfig",
    "ScopeConfigStore",
    "load_settings",
    "load_persona",
]
