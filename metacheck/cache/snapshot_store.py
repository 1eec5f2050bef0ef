"""
Persistent fingerprint snapshot.

The snapshot is a schema-versioned JSON record validated by pydantic. Any
record that does not validate (malformed JSON, unknown fields, another schema
version, a shapes hash that does not match the shapes) is treated as absent.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Literal, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, model_validator

from metacheck.exceptions import SnapshotStorageError
from metacheck.hashing import normalize_shapes, shapes_hash
from metacheck.interfaces.collaborators import Shape
from metacheck.interfaces.snapshot import ISnapshotStore

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class Snapshot(BaseModel):
    """
    Record of the last successful compilation.

    Attributes:
        schema_version: Format version; any other value invalidates the record
        roots: Watched root directories, order significant
        mtimes: Path to st_mtime_ns; None for a root that did not exist
        mtime_hash: Fingerprint handed to the compiler for this build
        entity_shapes: Entity identifier to shape, sorted by identifier
        shapes_hash: Hash over entity_shapes
    """

    model_config = ConfigDict(extra="forbid", frozen=True, strict=True)

    schema_version: Literal[1] = SCHEMA_VERSION
    roots: List[StrictStr]
    mtimes: Dict[StrictStr, Optional[StrictInt]]
    mtime_hash: StrictStr
    entity_shapes: Dict[StrictStr, Dict[StrictStr, object]]
    shapes_hash: StrictStr

    @model_validator(mode="after")
    def _check_shapes_hash(self) -> "Snapshot":
        if shapes_hash(self.entity_shapes) != self.shapes_hash:
            raise ValueError("shapes_hash does not match entity_shapes")
        return self

    @classmethod
    def create(
        cls,
        roots: Sequence[str],
        mtimes: Mapping[str, Optional[int]],
        mtime_hash: str,
        entity_shapes: Mapping[str, Optional[Shape]],
    ) -> "Snapshot":
        """Build a snapshot, deriving shapes_hash from the shapes."""
        shapes = normalize_shapes(entity_shapes)
        return cls(
            roots=list(roots),
            mtimes=dict(sorted(mtimes.items())),
            mtime_hash=mtime_hash,
            entity_shapes=shapes,
            shapes_hash=shapes_hash(shapes),
        )


class SnapshotStore(ISnapshotStore):
    """
    Snapshot persisted as a single JSON file.

    Implements the ISnapshotStore interface. Writes go to a temporary file in
    the same directory which is then renamed over the target, so a reader
    sees either the old or the new record, never a partial one.

    Example:
        >>> store = SnapshotStore(Path("temp/service-discovery/discovery.meta.json"))
        >>> store.save(snapshot)
        >>> store.load() == snapshot
        True
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[Snapshot]:
        """
        Load the snapshot.

        Returns:
            The stored Snapshot, or None if the file is absent or its content
            does not validate

        Raises:
            SnapshotStorageError: If the file exists but cannot be read
        """
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            logger.debug(f"No snapshot at {self._path}")
            return None
        except OSError as e:
            raise SnapshotStorageError(
                f"Cannot read snapshot {self._path}: {e}",
                details={"path": str(self._path)},
            ) from e

        try:
            return Snapshot.model_validate_json(raw)
        except ValueError as e:
            logger.warning(f"Discarding unreadable snapshot {self._path}: {e}")
            return None

    def save(self, snapshot: Snapshot) -> None:
        """
        Atomically replace the stored snapshot.

        Raises:
            SnapshotStorageError: If the directory or file cannot be written
        """
        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(snapshot.model_dump_json())
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as e:
            raise SnapshotStorageError(
                f"Cannot write snapshot {self._path}: {e}",
                details={"path": str(self._path)},
            ) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.info(
            f"Snapshot saved: {len(snapshot.mtimes)} paths, "
            f"{len(snapshot.entity_shapes)} entities"
        )

    def clear(self) -> bool:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise SnapshotStorageError(f"Cannot delete snapshot {self._path}: {e}") from e
        return True
