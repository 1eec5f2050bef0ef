"""Entity shape extraction and precise change verification."""

from metacheck.fingerprint.extractor import AstShapeExtractor, decorator_repr, dotted_name
from metacheck.fingerprint.verifier import PreciseChangeVerifier, Verification, entities_by_path

__all__ = [
    "AstShapeExtractor",
    "decorator_repr",
    "dotted_name",
    "PreciseChangeVerifier",
    "Verification",
    "entities_by_path",
]
