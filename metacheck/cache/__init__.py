"""Cache package for metacheck.

Provides snapshot persistence, mtime scanning and artifact invalidation.
"""

from metacheck.cache.disk_cache import PersistentCache
from metacheck.cache.mtime_scanner import MtimeMap, MtimeScanner, walk_tree
from metacheck.cache.change_detector import changed_paths
from metacheck.cache.snapshot_store import SCHEMA_VERSION, Snapshot, SnapshotStore
from metacheck.cache.artifact import DirectoryArtifactCache

__all__ = [
    "PersistentCache",
    "MtimeMap",
    "MtimeScanner",
    "walk_tree",
    "changed_paths",
    "SCHEMA_VERSION",
    "Snapshot",
    "SnapshotStore",
    "DirectoryArtifactCache",
]
