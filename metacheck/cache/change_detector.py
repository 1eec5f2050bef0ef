"""
Fast change detection by comparing two mtime maps.
"""

import logging
from typing import List, Mapping, Optional

logger = logging.getLogger(__name__)


def changed_paths(
    previous: Mapping[str, Optional[int]],
    current: Mapping[str, Optional[int]],
) -> List[str]:
    """
    Return every path whose modification time differs between two scans.

    A path counts as changed if it appears only in the current scan, only in
    the previous one (deleted), or in both with a different timestamp. The
    check never looks at file contents.

    Args:
        previous: Mtime map stored with the last snapshot
        current: Freshly scanned mtime map

    Returns:
        Sorted list of changed paths
    """
    changed = [
        path for path, mtime in current.items()
        if path not in previous or previous[path] != mtime
    ]
    # Deleted files or directories
    changed.extend(path for path in previous if path not in current)

    if changed:
        logger.debug(f"Fast check: {len(changed)} changed paths")
    return sorted(changed)
