"""
Configuration dataclasses for checker components.
Provides immutable configuration objects for dependency injection.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Tuple

from metacheck.markers import WATCHED_MARKERS

if TYPE_CHECKING:
    from metacheck.settings import Settings


@dataclass(frozen=True)
class StorageConfig:
    """Where the checker keeps its state and where the artifact lives."""

    cache_dir: Path = field(default_factory=lambda: Path("./temp/service-discovery"))
    artifact_dir: Path = field(default_factory=lambda: Path("./temp/cache"))
    meta_file: str = "discovery.meta.json"
    index_size_limit: int = 64 * 1024 * 1024  # 64MB

    @property
    def meta_path(self) -> Path:
        return self.cache_dir / self.meta_file

    @property
    def index_dir(self) -> Path:
        return self.cache_dir / "index"


@dataclass(frozen=True)
class ExtractorConfig:
    """Which declarations make up an entity's shape."""

    source_extensions: Tuple[str, ...] = (".py",)
    watched_decorators: Tuple[str, ...] = WATCHED_MARKERS
    controller_base: Optional[str] = None
    http_markers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CheckerConfig:
    """Complete checker configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    scan_workers: int = 4
    refresh_mtimes_on_clean: bool = True

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CheckerConfig":
        """Create config from application settings."""
        return cls(
            storage=StorageConfig(
                cache_dir=settings.cache_dir,
                artifact_dir=settings.artifact_dir,
                meta_file=settings.meta_file,
                index_size_limit=settings.index_size_limit,
            ),
            extractor=ExtractorConfig(
                source_extensions=tuple(settings.source_extensions),
                watched_decorators=tuple(settings.watched_decorators),
                controller_base=settings.controller_base,
                http_markers=tuple(settings.http_markers),
            ),
            scan_workers=settings.scan_workers,
            refresh_mtimes_on_clean=settings.refresh_mtimes_on_clean,
        )
