"""
Interface definitions for metacheck.

Available Interfaces:
    IEntityIndexer: Entity discovery interface
    IEntityExtractor: Entity shape extraction interface
    IArtifactCache: Downstream artifact invalidation interface
    ISnapshotStore: Snapshot persistence interface
"""

from metacheck.interfaces.collaborators import (
    Shape,
    IEntityIndexer,
    IEntityExtractor,
    IArtifactCache,
)
from metacheck.interfaces.snapshot import ISnapshotStore

__all__ = [
    "Shape",
    "IEntityIndexer",
    "IEntityExtractor",
    "IArtifactCache",
    "ISnapshotStore",
]
