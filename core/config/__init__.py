"""Core configuration - integration settings loaded from the environment."""

from core.config.settings import (
    ConfigurationError,
    IntegrationSettings,
    json_logs_enabled,
)

__all__ = [
    "ConfigurationError",
    "IntegrationSettings",
    "json_logs_enabled",
]
