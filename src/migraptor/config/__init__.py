"""Configuration loading."""

from .config import (
    Config,
    GitLabInstanceConfig,
    LoggingConfig,
    MigrationConfig,
    RegistryConfig,
)

__all__ = [
    'Config',
    'GitLabInstanceConfig',
    'LoggingConfig',
    'MigrationConfig',
    'RegistryConfig',
]
