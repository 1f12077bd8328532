"""Configuration models and settings providers."""

from .config import (
    Config,
    GitHubInstanceConfig,
    LoggingConfig,
    MigrationSettings,
    SourceConfig,
    VisibilityHandling,
)
from .provider import FileSettingsProvider, SettingsProvider

__all__ = [
    'Config',
    'GitHubInstanceConfig',
    'LoggingConfig',
    'MigrationSettings',
    'SourceConfig',
    'VisibilityHandling',
    'FileSettingsProvider',
    'SettingsProvider',
]
