"""
Invalidation orchestrator.

MetadataChecker decides whether the compiled artifact built from the watched
roots is still valid. The host calls precheck() before building its
container; if the result says the artifact must be rebuilt, the host
compiles and then calls commit() with the same result to persist a fresh
snapshot.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

from metacheck.cache.change_detector import changed_paths
from metacheck.cache.mtime_scanner import MtimeMap, MtimeScanner
from metacheck.cache.snapshot_store import Snapshot
from metacheck.fingerprint.verifier import PreciseChangeVerifier, entities_by_path
from metacheck.hashing import mtime_hash, normalize_shapes, shapes_hash
from metacheck.interfaces.collaborators import (
    IArtifactCache,
    IEntityExtractor,
    IEntityIndexer,
    Shape,
)
from metacheck.interfaces.snapshot import ISnapshotStore

logger = logging.getLogger(__name__)

ExtractorFactory = Callable[[Mapping[str, str]], IEntityExtractor]


class CheckState(str, Enum):
    """Terminal state of one precheck."""

    UNVERSIONED = "unversioned"
    UNINDEXED = "unindexed"
    FAST_CLEAN = "fast_clean"
    STRUCTURALLY_DELETED = "structurally_deleted"
    PRECISE_CLEAN = "precise_clean"
    PRECISE_DIRTY = "precise_dirty"


_VALID_STATES = frozenset({CheckState.FAST_CLEAN, CheckState.PRECISE_CLEAN})


@dataclass(frozen=True)
class PrecheckResult:
    """
    Verdict of a precheck, threaded by the host into its compile step.

    Attributes:
        state: Which branch of the check decided the verdict
        roots: The watched roots the check ran against
        fingerprint: Fresh fingerprint to persist after rebuilding, None if valid
        changed_paths: Paths the fast check flagged
    """

    state: CheckState
    roots: Tuple[str, ...]
    fingerprint: Optional[str] = None
    changed_paths: Tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.state in _VALID_STATES

    @property
    def must_rebuild(self) -> bool:
        return not self.is_valid

    def to_dict(self) -> dict:
        return {
            "valid": self.is_valid,
            "state": self.state.value,
            "roots": list(self.roots),
            "fingerprint": self.fingerprint,
            "changed_paths": list(self.changed_paths),
        }


class MetadataChecker:
    """
    Two-tier change detection over a set of watched roots.

    The fast tier compares modification times. Only when it reports changes
    does the precise tier re-extract the shapes of the touched entities and
    compare the merged shapes hash with the stored one.

    Attributes:
        _store: Snapshot persistence
        _indexer: Entity index for the roots
        _extractor_factory: Builds a fresh extractor for one check
        _artifact: Downstream artifact to discard on invalidation
        _scanner: Mtime scanner
        _verifier: Precise change verifier

    Example:
        >>> checker = DefaultComponentFactory().create_checker(config)
        >>> result = checker.precheck(["/app/src"])
        >>> if result.must_rebuild:
        ...     compile_container()
        ...     checker.commit(result)
    """

    def __init__(
        self,
        store: ISnapshotStore,
        indexer: IEntityIndexer,
        extractor_factory: ExtractorFactory,
        artifact: IArtifactCache,
        scanner: Optional[MtimeScanner] = None,
        verifier: Optional[PreciseChangeVerifier] = None,
        refresh_mtimes_on_clean: bool = True,
    ):
        self._store = store
        self._indexer = indexer
        self._extractor_factory = extractor_factory
        self._artifact = artifact
        self._scanner = scanner or MtimeScanner()
        self._verifier = verifier or PreciseChangeVerifier(self._scanner.extensions)
        self._refresh_mtimes_on_clean = refresh_mtimes_on_clean

    def precheck(self, roots: Sequence[str]) -> PrecheckResult:
        """
        Decide whether the artifact built from roots is still valid.

        Every "must rebuild" outcome discards the artifact before returning.

        Args:
            roots: Watched root directories, identical in content and order to
                   the roots the index was built with

        Returns:
            PrecheckResult with fingerprint None when valid

        Raises:
            SnapshotStorageError: If the snapshot exists but cannot be read
        """
        roots = tuple(roots)

        snapshot = self._store.load()
        if snapshot is None or tuple(snapshot.roots) != roots:
            return self._invalidate(CheckState.UNVERSIONED, roots)

        indexed = self._indexer.indexed_entities(roots)
        if not indexed:
            # An empty index can't be told apart from one never built
            return self._invalidate(CheckState.UNINDEXED, roots)

        current = self._scanner.scan(roots)
        changed = changed_paths(snapshot.mtimes, current)
        if not changed:
            logger.info("Precheck: no modification time changes")
            return PrecheckResult(state=CheckState.FAST_CLEAN, roots=roots)

        for path in changed:
            if not os.path.isfile(path) and not os.path.isdir(path):
                logger.info(f"Precheck: {path} was deleted")
                return self._invalidate(CheckState.STRUCTURALLY_DELETED, roots, changed, current)

        verification = self._verifier.verify(
            changed,
            entities_by_path(indexed),
            self._extractor_factory(indexed),
            snapshot.entity_shapes,
            snapshot.shapes_hash,
        )
        if verification.changed:
            return self._invalidate(CheckState.PRECISE_DIRTY, roots, changed, current)

        if self._refresh_mtimes_on_clean:
            self._store.save(
                Snapshot.create(roots, current, snapshot.mtime_hash, verification.shapes)
            )
        logger.info(f"Precheck: {len(changed)} paths touched, shapes unchanged")
        return PrecheckResult(
            state=CheckState.PRECISE_CLEAN,
            roots=roots,
            changed_paths=tuple(changed),
        )

    def commit(self, result: PrecheckResult) -> Snapshot:
        """
        Persist a full snapshot after the downstream compilation succeeded.

        Modification times are scanned before the index and shapes are
        rebuilt, so an edit racing with the commit shows up as a change on
        the next precheck.

        Args:
            result: The precheck result the compilation was based on

        Returns:
            The snapshot that was saved

        Raises:
            DiscoveryDirectoryNotFound: If a root directory is missing
            SnapshotStorageError: If the snapshot cannot be written
        """
        mtimes = self._scanner.scan(result.roots)
        indexed = self._indexer.rebuild(result.roots)
        shapes, _ = self.compute_shape_snapshot(indexed)
        fingerprint = result.fingerprint or mtime_hash(mtimes)

        snapshot = Snapshot.create(result.roots, mtimes, fingerprint, shapes)
        self._store.save(snapshot)
        logger.info(f"Committed snapshot {fingerprint} for {len(indexed)} entities")
        return snapshot

    def compute_mtime_hash(self, roots: Sequence[str]) -> str:
        """Fingerprint the current state of the roots."""
        return mtime_hash(self._scanner.scan(roots))

    def compute_shape_snapshot(self, indexed: Mapping[str, str]) -> Tuple[Dict[str, Shape], str]:
        """
        Extract the shape of every indexed entity.

        Entities that no longer resolve are skipped.

        Returns:
            Tuple of (shapes sorted by entity identifier, shapes hash)
        """
        extractor = self._extractor_factory(indexed)
        shapes = normalize_shapes({entity_id: extractor.shape_of(entity_id) for entity_id in indexed})
        return shapes, shapes_hash(shapes)

    def _invalidate(
        self,
        state: CheckState,
        roots: Tuple[str, ...],
        changed: Sequence[str] = (),
        current: Optional[MtimeMap] = None,
    ) -> PrecheckResult:
        if current is None:
            current = self._scanner.scan(roots)
        self._artifact.invalidate()
        fingerprint = mtime_hash(current)
        logger.info(f"Precheck: {state.value}, rebuild required ({fingerprint})")
        return PrecheckResult(
            state=state,
            roots=roots,
            fingerprint=fingerprint,
            changed_paths=tuple(changed),
        )
