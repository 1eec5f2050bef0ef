"""
Settings module for metacheck.
Uses pydantic-settings for environment variable management.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from metacheck.markers import WATCHED_MARKERS


class Settings(BaseSettings):
    """Checker settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="METACHECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Storage layout
    temp_dir: str = "./temp"
    cache_folder: str = "service-discovery"
    artifact_folder: str = "cache"
    meta_file: str = "discovery.meta.json"
    index_size_limit: int = 64 * 1024 * 1024  # 64MB

    # Source discovery
    source_extensions: List[str] = [".py"]
    watched_decorators: List[str] = list(WATCHED_MARKERS)
    controller_base: Optional[str] = None
    http_markers: List[str] = []

    # Check behaviour
    scan_workers: int = 4
    refresh_mtimes_on_clean: bool = True

    @property
    def cache_dir(self) -> Path:
        """Return the checker's private cache directory."""
        return Path(self.temp_dir) / self.cache_folder

    @property
    def artifact_dir(self) -> Path:
        """Return the compiled artifact directory."""
        return Path(self.temp_dir) / self.artifact_folder


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
