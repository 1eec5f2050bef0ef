"""
Precise change verification.

Only entities whose source files the fast check flagged are re-extracted.
Their shapes are merged over the saved shapes and the merged map is hashed,
so the cost follows the size of the change rather than the size of the tree.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from metacheck.cache.mtime_scanner import has_extension
from metacheck.hashing import normalize_shapes, shapes_hash
from metacheck.interfaces.collaborators import IEntityExtractor, Shape

logger = logging.getLogger(__name__)


def entities_by_path(indexed: Mapping[str, str]) -> Dict[str, List[str]]:
    """Invert an entity index; one file may declare several entities."""
    by_path: Dict[str, List[str]] = {}
    for entity_id in sorted(indexed):
        by_path.setdefault(indexed[entity_id], []).append(entity_id)
    return by_path


@dataclass(frozen=True)
class Verification:
    """
    Outcome of a precise check.

    Attributes:
        changed: True if the artifact must be rebuilt
        shapes: Saved shapes with every recomputed entity merged in
        shapes_hash: Hash over shapes
        recomputed: Entities whose shape was extracted again
        unindexed_path: Changed source file the index does not know, if any
    """

    changed: bool
    shapes: Dict[str, Shape]
    shapes_hash: str
    recomputed: List[str] = field(default_factory=list)
    unindexed_path: Optional[str] = None


class PreciseChangeVerifier:
    """
    Decide whether flagged paths changed any entity shape.

    Example:
        >>> verifier = PreciseChangeVerifier(extensions=(".py",))
        >>> result = verifier.verify(
        ...     ["/app/A.py"], {"/app/A.py": ["A"]}, extractor, saved_shapes, saved_hash
        ... )
        >>> result.changed
        False
    """

    def __init__(self, extensions: Sequence[str] = (".py",)):
        self._extensions = tuple(extensions)

    def verify(
        self,
        changed_paths: Sequence[str],
        by_path: Mapping[str, Sequence[str]],
        extractor: IEntityExtractor,
        saved_shapes: Mapping[str, Shape],
        saved_hash: str,
    ) -> Verification:
        """
        Recompute shapes for changed source files and compare the merged hash.

        A changed source file that declares a class the index does not know
        is a file the index has not caught up with; the compiler cannot see
        that class either, so the result is "changed" without extracting
        anything. The same holds for a file that can no longer be read. A
        file declaring no classes at all carries no entity and is skipped.

        Args:
            changed_paths: Paths reported by the fast check
            by_path: Source path to the entities it declares
            extractor: Shape extractor for the current source tree
            saved_shapes: Shapes stored with the snapshot
            saved_hash: shapes_hash stored with the snapshot

        Returns:
            Verification carrying the verdict and the merged shapes
        """
        updated: Dict[str, Optional[Shape]] = {}

        for path in changed_paths:
            if not has_extension(path, self._extensions):
                continue

            entity_ids = by_path.get(path, [])
            declared = extractor.declared_in(path)
            if declared is None:
                logger.info(f"Changed source cannot be read: {path}")
                return self._unindexed(path, saved_shapes, saved_hash)

            known = {entity_id.rsplit(".", 1)[-1] for entity_id in entity_ids}
            unknown = [name for name in declared if name not in known]
            if unknown:
                logger.info(f"Changed source not indexed yet: {path} ({', '.join(unknown)})")
                return self._unindexed(path, saved_shapes, saved_hash)

            for entity_id in entity_ids:
                # None marks an entity that no longer resolves
                updated[entity_id] = extractor.shape_of(entity_id)

        if not updated:
            return Verification(changed=False, shapes=dict(saved_shapes), shapes_hash=saved_hash)

        merged: Dict[str, Optional[Shape]] = dict(saved_shapes)
        merged.update(updated)
        shapes = normalize_shapes(merged)
        current_hash = shapes_hash(shapes)
        changed = current_hash != saved_hash

        logger.debug(
            f"Precise check: {len(updated)} entities recomputed, "
            f"{'changed' if changed else 'unchanged'}"
        )
        return Verification(
            changed=changed,
            shapes=shapes,
            shapes_hash=current_hash,
            recomputed=sorted(updated),
        )

    @staticmethod
    def _unindexed(path: str, saved_shapes: Mapping[str, Shape], saved_hash: str) -> Verification:
        return Verification(
            changed=True,
            shapes=dict(saved_shapes),
            shapes_hash=saved_hash,
            unindexed_path=path,
        )
