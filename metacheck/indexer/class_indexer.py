"""
Entity index of top-level Python classes.

The index maps "<module>.<ClassName>" to the path of the file that declares
it, joined onto the root in whatever form the root was given. It is persisted
in a PersistentCache keyed by the ordered root list, and only rebuilt
on request: reading it never touches the source tree.
"""

import ast
import logging
import os
import sqlite3
from typing import Any, Dict, List, Optional, Sequence

from metacheck.cache.disk_cache import PersistentCache
from metacheck.cache.mtime_scanner import walk_tree
from metacheck.exceptions import DiscoveryDirectoryNotFound, IndexStorageError
from metacheck.hashing import canonical_json
from metacheck.interfaces.collaborators import IEntityIndexer

logger = logging.getLogger(__name__)


def parse_source(path: str) -> Optional[ast.Module]:
    """
    Parse a Python source file.

    Returns:
        The module AST, or None if the file is gone or does not parse
    """
    try:
        with open(path, "rb") as f:
            source = f.read()
        return ast.parse(source, filename=path)
    except FileNotFoundError:
        return None
    except (SyntaxError, ValueError) as e:
        logger.debug(f"Unparseable source {path}: {e}")
        return None


def top_level_classes(path: str) -> List[str]:
    """Names of the classes declared at module level, in source order."""
    module = parse_source(path)
    if module is None:
        return []
    return [node.name for node in module.body if isinstance(node, ast.ClassDef)]


def module_name(root: str, path: str) -> str:
    """
    Dotted module path of a source file relative to its root.

    Example:
        >>> module_name("/app/src", "/app/src/services/mailer.py")
        'services.mailer'
    """
    relative = os.path.splitext(os.path.relpath(path, root))[0]
    parts = relative.split(os.sep)
    if parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts)


class ClassIndexer(IEntityIndexer):
    """
    Index top-level classes under a set of root directories.

    Implements the IEntityIndexer interface. rebuild() re-parses only files
    whose size or modification time changed since the previous rebuild.

    Attributes:
        _cache: PersistentCache holding one record per root list
        _extensions: Source file suffixes to index

    Example:
        >>> indexer = ClassIndexer(PersistentCache("temp/service-discovery/index"))
        >>> indexer.indexed_entities(["/app/src"])
        {}
        >>> indexer.rebuild(["/app/src"])
        {'services.mailer.Mailer': '/app/src/services/mailer.py'}
    """

    def __init__(self, cache: PersistentCache, extensions: Sequence[str] = (".py",)):
        self._cache = cache
        self._extensions = tuple(extensions)
        self._key_prefix = "_index:"

    def indexed_entities(self, roots: Sequence[str]) -> Dict[str, str]:
        record = self._read(roots)
        if record is None:
            return {}
        return dict(record["entities"])

    def rebuild(self, roots: Sequence[str]) -> Dict[str, str]:
        """
        Rescan the roots and persist the fresh index.

        Raises:
            DiscoveryDirectoryNotFound: If a root is not a directory
        """
        for root in roots:
            if not os.path.isdir(root):
                raise DiscoveryDirectoryNotFound(
                    f"Discovery directory '{root}' does not exist.",
                    details={"root": root},
                )

        record = self._read(roots)
        previous: Dict[str, Dict[str, Any]] = record["files"] if record else {}
        files: Dict[str, Dict[str, Any]] = {}
        parsed = 0

        for root in roots:
            for path, stat, is_dir in walk_tree(root, self._extensions):
                if is_dir:
                    continue
                prior = previous.get(path)
                if prior and prior["mtime_ns"] == stat.st_mtime_ns and prior["size"] == stat.st_size:
                    classes = prior["classes"]
                else:
                    classes = top_level_classes(path)
                    parsed += 1
                files[path] = {
                    "root": root,
                    "mtime_ns": stat.st_mtime_ns,
                    "size": stat.st_size,
                    "classes": classes,
                }

        entities: Dict[str, str] = {}
        for path, info in files.items():
            module = module_name(info["root"], path)
            for class_name in info["classes"]:
                entity_id = f"{module}.{class_name}" if module else class_name
                if entity_id in entities:
                    logger.warning(
                        f"Duplicate entity {entity_id} in {path}, keeping {entities[entity_id]}"
                    )
                    continue
                entities[entity_id] = path

        self._write(roots, {"files": files, "entities": entities})
        logger.info(
            f"Index rebuilt: {len(files)} files ({parsed} parsed), {len(entities)} entities"
        )
        return dict(entities)

    def clear(self, roots: Sequence[str]) -> bool:
        """Forget the index for the given roots."""
        try:
            return self._cache.delete(self._key(roots))
        except sqlite3.Error as e:
            raise IndexStorageError(f"Cannot delete entity index: {e}") from e

    def _key(self, roots: Sequence[str]) -> str:
        return f"{self._key_prefix}{canonical_json(list(roots))}"

    def _read(self, roots: Sequence[str]) -> Optional[Dict[str, Any]]:
        try:
            record = self._cache.get(self._key(roots))
        except sqlite3.Error as e:
            raise IndexStorageError(f"Cannot read entity index: {e}") from e
        if not isinstance(record, dict) or "entities" not in record or "files" not in record:
            return None
        return record

    def _write(self, roots: Sequence[str], record: Dict[str, Any]) -> None:
        try:
            self._cache.set(self._key(roots), record)
        except sqlite3.Error as e:
            raise IndexStorageError(f"Cannot write entity index: {e}") from e
