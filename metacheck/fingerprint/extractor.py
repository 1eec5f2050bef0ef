"""
Static shape extraction for Python classes.

The shape of a class lists the watched decorators applied to it and, for
controllers, a controller flag plus the HTTP-marked public methods with their
injected parameter types. Everything is read from the AST, so comments,
formatting and method bodies never influence the result and user code is
never imported.
"""

import ast
import builtins
import logging
from typing import Dict, List, Mapping, Optional, Set

from metacheck.config.checker_config import ExtractorConfig
from metacheck.indexer.class_indexer import parse_source
from metacheck.interfaces.collaborators import IEntityExtractor, Shape

logger = logging.getLogger(__name__)

_BUILTIN_NAMES = frozenset(dir(builtins))
_NON_INSTANCE_DECORATORS = frozenset({"staticmethod", "classmethod"})


def dotted_name(expr: ast.expr) -> Optional[str]:
    """Last segment of a decorator or base class expression, if it has one."""
    if isinstance(expr, ast.Call):
        expr = expr.func
    if isinstance(expr, ast.Subscript):
        expr = expr.value
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    return None


def decorator_repr(expr: ast.expr) -> Optional[str]:
    """
    Canonical text of a decorator with its module qualifier stripped.

    Example:
        ``@markers.as_service( name = "db" )`` becomes ``as_service(name='db')``
    """
    name = dotted_name(expr)
    if name is None:
        return None
    if not isinstance(expr, ast.Call):
        return name

    arguments = [ast.unparse(arg) for arg in expr.args]
    for keyword in expr.keywords:
        value = ast.unparse(keyword.value)
        arguments.append(f"{keyword.arg}={value}" if keyword.arg else f"**{value}")
    return f"{name}({', '.join(arguments)})"


def _is_injectable(annotation: ast.expr) -> bool:
    if isinstance(annotation, ast.Constant) and annotation.value is None:
        return False
    if isinstance(annotation, ast.Name) and annotation.id in _BUILTIN_NAMES:
        return False
    return True


class AstShapeExtractor(IEntityExtractor):
    """
    Extract entity shapes by parsing source files.

    Implements the IEntityExtractor interface. One instance serves a single
    check: parsed modules are memoised for its lifetime.

    Attributes:
        _index: Entity identifier to source path
        _config: Watched decorators and controller settings
        _modules: Parsed modules by path

    Example:
        >>> extractor = AstShapeExtractor(index, ExtractorConfig())
        >>> extractor.shape_of("services.mailer.Mailer")
        {'class': ['service(lazy=False)']}
    """

    def __init__(self, index: Mapping[str, str], config: ExtractorConfig):
        self._index = index
        self._config = config
        self._watched = frozenset(config.watched_decorators)
        self._http_markers = frozenset(config.http_markers)
        self._modules: Dict[str, Optional[ast.Module]] = {}
        self._by_simple_name: Optional[Dict[str, List[str]]] = None

    def shape_of(self, entity_id: str) -> Optional[Shape]:
        node = self._class_node(entity_id)
        if node is None:
            logger.debug(f"Entity not found: {entity_id}")
            return None

        shape: Shape = {}
        class_decorators = sorted(
            decorator_repr(d) for d in node.decorator_list if dotted_name(d) in self._watched
        )
        if class_decorators:
            shape["class"] = class_decorators

        base = self._config.controller_base
        if base is not None and self._inherits(node, base, set()):
            # Recorded on every class under the base, so a base class that
            # stops or starts deriving from it changes its own shape
            shape["controller"] = True
            methods = self._controller_methods(node)
            if methods:
                shape["methods"] = methods

        return shape

    def declared_in(self, path: str) -> Optional[List[str]]:
        module = self._module(path)
        if module is None:
            return None
        return [node.name for node in module.body if isinstance(node, ast.ClassDef)]

    def _module(self, path: str) -> Optional[ast.Module]:
        if path not in self._modules:
            self._modules[path] = parse_source(path)
        return self._modules[path]

    def _class_node(self, entity_id: str) -> Optional[ast.ClassDef]:
        path = self._index.get(entity_id)
        if path is None:
            return None
        module = self._module(path)
        if module is None:
            return None

        class_name = entity_id.rsplit(".", 1)[-1]
        for node in module.body:
            if isinstance(node, ast.ClassDef) and node.name == class_name:
                return node
        return None

    def _inherits(self, node: ast.ClassDef, base: str, seen: Set[str]) -> bool:
        """Whether a class derives from base, following indexed classes by simple name."""
        for expr in node.bases:
            name = dotted_name(expr)
            if name is None:
                continue
            if name == base:
                return True
            for entity_id in self._entities_named(name):
                if entity_id in seen:
                    continue
                seen.add(entity_id)
                parent = self._class_node(entity_id)
                if parent is not None and self._inherits(parent, base, seen):
                    return True
        return False

    def _entities_named(self, simple_name: str) -> List[str]:
        if self._by_simple_name is None:
            self._by_simple_name = {}
            for entity_id in sorted(self._index):
                self._by_simple_name.setdefault(entity_id.rsplit(".", 1)[-1], []).append(entity_id)
        return self._by_simple_name.get(simple_name, [])

    def _controller_methods(self, node: ast.ClassDef) -> Dict[str, Dict[str, List[str]]]:
        methods: Dict[str, Dict[str, List[str]]] = {}

        for item in node.body:
            if not isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            if item.name.startswith("_"):
                continue

            names = {dotted_name(d) for d in item.decorator_list}
            if names & _NON_INSTANCE_DECORATORS:
                continue

            attrs = sorted(
                decorator_repr(d) for d in item.decorator_list
                if dotted_name(d) in self._http_markers
            )
            if not attrs:
                continue

            arguments = item.args
            positional = arguments.posonlyargs + arguments.args
            params = [
                ast.unparse(arg.annotation)
                for arg in positional[1:] + arguments.kwonlyargs
                if arg.annotation is not None and _is_injectable(arg.annotation)
            ]

            methods[item.name] = {"attrs": attrs, "params": params}

        return methods
