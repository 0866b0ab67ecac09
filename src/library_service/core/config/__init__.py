"""Configuration module with YAML and environment variable support."""

from .settings import BudgetFailMode, Settings, get_settings, settings


__all__ = [
    "BudgetFailMode",
    "Settings",
    "get_settings",
    "settings",
]
