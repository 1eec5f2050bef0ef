"""Entity discovery."""

from metacheck.indexer.class_indexer import ClassIndexer, module_name, parse_source, top_level_classes

__all__ = [
    "ClassIndexer",
    "module_name",
    "parse_source",
    "top_level_classes",
]
