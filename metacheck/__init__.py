"""
metacheck: incremental invalidation for artifacts compiled from annotated classes.
"""

from metacheck.cache import Snapshot, SnapshotStore
from metacheck.checker import CheckState, MetadataChecker, PrecheckResult
from metacheck.config import CheckerConfig, Settings, get_settings
from metacheck.factories import DefaultComponentFactory

__all__ = [
    "CheckState",
    "CheckerConfig",
    "DefaultComponentFactory",
    "MetadataChecker",
    "PrecheckResult",
    "Settings",
    "Snapshot",
    "SnapshotStore",
    "get_settings",
]
