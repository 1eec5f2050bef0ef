"""
Custom exception hierarchy for metacheck.

Only genuine environmental failures are raised. Policy outcomes such as a
missing snapshot, a deleted file or an empty index are decided internally and
surface as a "must rebuild" verdict instead.
"""

from typing import Optional


class MetacheckException(Exception):
    """Base exception for all metacheck errors"""
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationException(MetacheckException):
    """Invalid checker configuration"""
    error_code = "CONFIGURATION_ERROR"


class DiscoveryDirectoryNotFound(ConfigurationException):
    """A watched root directory does not exist"""
    error_code = "DISCOVERY_DIRECTORY_NOT_FOUND"


class StorageException(MetacheckException):
    """Persistent storage errors"""
    error_code = "STORAGE_ERROR"


class SnapshotStorageError(StorageException):
    """Snapshot file exists but cannot be read or written"""
    error_code = "SNAPSHOT_STORAGE_ERROR"


class IndexStorageError(StorageException):
    """Entity index cache cannot be read or written"""
    error_code = "INDEX_STORAGE_ERROR"
