"""
Canonical hashing of shapes and mtime maps.

Hashes are computed over a canonical JSON encoding with sorted keys, so two
equal maps hash equally regardless of their iteration order.
"""

import hashlib
import json
from typing import Any, Dict, Mapping, Optional

from metacheck.interfaces.collaborators import Shape


def canonical_json(value: Any) -> str:
    """Encode a JSON-compatible value deterministically."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def canonical_hash(value: Any) -> str:
    """MD5 hex digest of the canonical JSON encoding of a value."""
    return hashlib.md5(canonical_json(value).encode("utf-8")).hexdigest()


def normalize_shapes(shapes: Mapping[str, Optional[Shape]]) -> Dict[str, Shape]:
    """
    Drop entities without relevant declarations and sort by identifier.

    An entity mapped to None or to an empty shape is equivalent to an entity
    that is not listed at all.
    """
    return {entity_id: shapes[entity_id] for entity_id in sorted(shapes) if shapes[entity_id]}


def shapes_hash(shapes: Mapping[str, Optional[Shape]]) -> str:
    """Hash a whole map of entity shapes."""
    return canonical_hash(normalize_shapes(shapes))


def mtime_hash(mtimes: Mapping[str, Optional[int]]) -> str:
    """Hash an mtime map; used as the opaque fingerprint handed to the compiler."""
    return canonical_hash(dict(sorted(mtimes.items())))
