"""
Snapshot storage interface.
"""

from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from metacheck.cache.snapshot_store import Snapshot


class ISnapshotStore(ABC):
    """
    Abstract interface for persisting the fingerprint snapshot.

    Implementations:
        - SnapshotStore: JSON file written via temp file and rename

    Example:
        ```python
        snapshot = store.load()
        if snapshot is None:
            # Never compiled, or the record was unreadable
            ...
        ```
    """

    @abstractmethod
    def load(self) -> Optional["Snapshot"]:
        """
        Load the last persisted snapshot.

        Returns:
            The snapshot, or None if absent or corrupt

        Raises:
            SnapshotStorageError: If the record exists but cannot be read
        """
        pass

    @abstractmethod
    def save(self, snapshot: "Snapshot") -> None:
        """
        Replace the persisted snapshot as a whole.

        Raises:
            SnapshotStorageError: If the record cannot be written
        """
        pass

    @abstractmethod
    def clear(self) -> bool:
        """
        Delete the persisted snapshot.

        Returns:
            True if a snapshot was deleted, False if none existed
        """
        pass
