"""
Downstream artifact invalidation.
"""

import logging
import shutil
from pathlib import Path

from metacheck.interfaces.collaborators import IArtifactCache

logger = logging.getLogger(__name__)


class DirectoryArtifactCache(IArtifactCache):
    """
    Compiled artifact stored as a directory tree.

    Implements the IArtifactCache interface. Invalidation deletes the whole
    directory; the compiler recreates it on the next build.

    Example:
        >>> artifact = DirectoryArtifactCache(Path("temp/cache"))
        >>> artifact.invalidate()
    """

    def __init__(self, location: Path):
        self._location = Path(location)

    @property
    def location(self) -> Path:
        return self._location

    def invalidate(self) -> None:
        """
        Delete the artifact directory if present.

        Deletion failures are logged and swallowed: a leftover artifact only
        costs another rebuild, since the compiler overwrites it as a whole.
        """
        if not self._location.exists():
            logger.debug(f"Artifact already absent: {self._location}")
            return

        try:
            if self._location.is_dir():
                shutil.rmtree(self._location)
            else:
                self._location.unlink()
            logger.info(f"Artifact INVALIDATED: {self._location}")
        except OSError as e:
            logger.warning(f"Failed to invalidate artifact {self._location}: {e}")
