"""
Component Factory for creating checker dependencies.
Provides abstract factory pattern for dependency injection and testing.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional

from metacheck.cache.artifact import DirectoryArtifactCache
from metacheck.cache.disk_cache import PersistentCache
from metacheck.cache.mtime_scanner import MtimeScanner
from metacheck.cache.snapshot_store import SnapshotStore
from metacheck.checker import ExtractorFactory, MetadataChecker
from metacheck.config.checker_config import CheckerConfig, ExtractorConfig, StorageConfig
from metacheck.fingerprint.extractor import AstShapeExtractor
from metacheck.fingerprint.verifier import PreciseChangeVerifier
from metacheck.indexer.class_indexer import ClassIndexer
from metacheck.interfaces.collaborators import IArtifactCache, IEntityExtractor, IEntityIndexer
from metacheck.interfaces.snapshot import ISnapshotStore


class ComponentFactory(ABC):
    """Abstract factory for creating checker components."""

    @abstractmethod
    def create_store(self, config: StorageConfig) -> ISnapshotStore:
        """
        Create snapshot store.

        Args:
            config: Storage configuration

        Returns:
            Store implementing ISnapshotStore
        """
        pass

    @abstractmethod
    def create_indexer(self, config: CheckerConfig, cache: PersistentCache) -> IEntityIndexer:
        """
        Create entity indexer.

        Args:
            config: Checker configuration
            cache: Persistent cache the index lives in

        Returns:
            Indexer implementing IEntityIndexer
        """
        pass

    @abstractmethod
    def create_extractor_factory(self, config: ExtractorConfig) -> ExtractorFactory:
        """
        Create the callable that builds one extractor per check.

        Args:
            config: Extractor configuration

        Returns:
            Callable taking the entity index and returning an IEntityExtractor
        """
        pass

    @abstractmethod
    def create_artifact(self, config: StorageConfig) -> IArtifactCache:
        """
        Create the downstream artifact handle.

        Args:
            config: Storage configuration

        Returns:
            Artifact implementing IArtifactCache
        """
        pass

    def create_index_cache(self, config: StorageConfig) -> PersistentCache:
        """Open the persistent cache backing the entity index."""
        return PersistentCache(
            cache_dir=str(config.index_dir),
            size_limit=config.index_size_limit,
        )

    def create_checker(
        self,
        config: CheckerConfig,
        cache: Optional[PersistentCache] = None,
    ) -> MetadataChecker:
        """
        Assemble a MetadataChecker from configuration.

        Args:
            config: Checker configuration
            cache: Index cache to use; opened from config if omitted

        Returns:
            Configured MetadataChecker
        """
        if cache is None:
            cache = self.create_index_cache(config.storage)

        scanner = MtimeScanner(
            extensions=config.extractor.source_extensions,
            max_workers=config.scan_workers,
        )
        return MetadataChecker(
            store=self.create_store(config.storage),
            indexer=self.create_indexer(config, cache),
            extractor_factory=self.create_extractor_factory(config.extractor),
            artifact=self.create_artifact(config.storage),
            scanner=scanner,
            verifier=PreciseChangeVerifier(config.extractor.source_extensions),
            refresh_mtimes_on_clean=config.refresh_mtimes_on_clean,
        )


class DefaultComponentFactory(ComponentFactory):
    """Default factory implementation for production use."""

    def create_store(self, config: StorageConfig) -> ISnapshotStore:
        """Create JSON file snapshot store."""
        return SnapshotStore(config.meta_path)

    def create_indexer(self, config: CheckerConfig, cache: PersistentCache) -> IEntityIndexer:
        """Create ast-based class indexer."""
        return ClassIndexer(cache, extensions=config.extractor.source_extensions)

    def create_extractor_factory(self, config: ExtractorConfig) -> ExtractorFactory:
        """Create ast-based shape extractors."""
        def build(index: Mapping[str, str]) -> IEntityExtractor:
            return AstShapeExtractor(index, config)
        return build

    def create_artifact(self, config: StorageConfig) -> IArtifactCache:
        """Create directory artifact handle."""
        return DirectoryArtifactCache(config.artifact_dir)
