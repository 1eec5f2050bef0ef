"""Persistent key-value cache backed by DiskCache.

This module provides a thread-safe wrapper around the DiskCache library. The
entity index keeps its per-file records here between checks.
"""

import threading
from pathlib import Path
from typing import Any, Optional

from diskcache import Cache


class PersistentCache:
    """Persistent cache using DiskCache.

    Operations are serialised through a threading.Lock so one cache can be
    shared by several threads of the same process.

    Attributes:
        _cache: The underlying DiskCache instance
        _lock: Lock guarding every cache operation

    Example:
        >>> cache = PersistentCache("temp/service-discovery/index")
        >>> cache.set("key", {"a": 1})
        >>> cache.get("key")
        {'a': 1}
    """

    def __init__(
        self,
        cache_dir: str = "temp/service-discovery/index",
        size_limit: int = 64 * 1024 * 1024,  # 64MB default
    ):
        """Initialize the persistent cache.

        Args:
            cache_dir: Directory path for storing cache data. Created if it
                      doesn't exist.
            size_limit: Maximum cache size in bytes. Least-recently-used
                       entries are evicted once exceeded.
        """
        Path(cache_dir).mkdir(parents=True, exist_ok=True)

        self._cache = Cache(
            directory=str(cache_dir),
            size_limit=size_limit,
            eviction_policy="least-recently-used",
        )
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Retrieve a value from the cache.

        Args:
            key: The cache key to retrieve

        Returns:
            The cached value if found, None otherwise
        """
        with self._lock:
            return self._cache.get(key)

    def set(self, key: str, value: Any, expire: Optional[float] = None) -> None:
        """Store a value in the cache.

        Args:
            key: The cache key to store the value under
            value: The value to cache (must be pickle-able)
            expire: Optional expiration time in seconds. None never expires.
        """
        with self._lock:
            self._cache.set(key, value, expire=expire)

    def delete(self, key: str) -> bool:
        """Delete a key from the cache.

        Returns:
            True if the key was found and deleted, False otherwise
        """
        with self._lock:
            return self._cache.delete(key)

    def clear(self) -> None:
        """Clear all entries from the cache."""
        with self._lock:
            self._cache.clear()

    def stats(self) -> dict:
        """Get cache statistics.

        Returns:
            A dictionary containing:
                - size: Number of entries in the cache
                - volume: Total size of cached data in bytes
                - directory: Path to the cache directory
        """
        return {
            "size": len(self._cache),
            "volume": self._cache.volume(),
            "directory": self._cache.directory,
        }

    def __enter__(self) -> "PersistentCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        """Close the cache and release file handles and locks."""
        self._cache.close()
