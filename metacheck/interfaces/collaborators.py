"""
Interfaces for the collaborators the invalidation engine depends on.

This module defines:
- IEntityIndexer: Maps entity identifiers to their source files
- IEntityExtractor: Produces the compiler-relevant shape of one entity
- IArtifactCache: The downstream compiled artifact the engine may discard
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

Shape = Dict[str, Any]


class IEntityIndexer(ABC):
    """
    Abstract interface for entity discovery.

    Implementations own their own caching. indexed_entities() must be cheap:
    it reports what the index currently knows without scanning, so that a new
    file the index has not seen yet stays unknown until rebuild().

    Implementations:
        - ClassIndexer: Indexes top-level Python classes using ast

    Example:
        ```python
        indexed = indexer.indexed_entities(["/app/src"])
        # {"services.mailer.Mailer": "/app/src/services/mailer.py"}
        ```
    """

    @abstractmethod
    def indexed_entities(self, roots: Sequence[str]) -> Dict[str, str]:
        """
        Return the cached index for the given roots.

        Args:
            roots: Ordered root directories; the order is part of the key

        Returns:
            Mapping of entity identifier to source path, empty if the index
            has not been built. Paths keep the form the root was given in.
        """
        pass

    @abstractmethod
    def rebuild(self, roots: Sequence[str]) -> Dict[str, str]:
        """
        Rescan the roots, persist and return the fresh index.

        Args:
            roots: Ordered root directories

        Returns:
            Mapping of entity identifier to source path under its root
        """
        pass


class IEntityExtractor(ABC):
    """
    Abstract interface for shape extraction.

    A shape captures only declarations the downstream compiler consumes.
    Formatting, comments and method bodies must not affect it.

    Implementations:
        - AstShapeExtractor: Static analysis of decorators via ast
    """

    @abstractmethod
    def shape_of(self, entity_id: str) -> Optional[Shape]:
        """
        Compute the current shape of an entity.

        Args:
            entity_id: Stable entity identifier from the indexer

        Returns:
            The entity's shape, or None if the entity no longer resolves
        """
        pass

    @abstractmethod
    def declared_in(self, path: str) -> Optional[List[str]]:
        """
        List the entity names a source file declares right now.

        Names are the last segment of the entity identifier, so they can be
        matched against what the indexer recorded for the file.

        Args:
            path: Source path as reported by the scanner

        Returns:
            Declared names in source order, or None if the file cannot be read
        """
        pass


class IArtifactCache(ABC):
    """
    Abstract interface for the downstream compiled artifact.

    Implementations:
        - DirectoryArtifactCache: Deletes a directory of compiled output
    """

    @abstractmethod
    def invalidate(self) -> None:
        """
        Discard the compiled artifact.

        Must be idempotent and must not raise on deletion failure.
        """
        pass
