"""Configuration module exports."""

from metacheck.settings import Settings, get_settings

from metacheck.config.checker_config import (
    StorageConfig,
    ExtractorConfig,
    CheckerConfig,
)

__all__ = [
    "Settings",
    "get_settings",
    "StorageConfig",
    "ExtractorConfig",
    "CheckerConfig",
]
