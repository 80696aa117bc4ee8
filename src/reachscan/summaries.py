"""Function, field, getter and event-listener summaries built from access paths."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, Set, Tuple

from .access_paths import (
    AccessPath,
    CallAccessPath,
    FunctionCreation,
    ImportAccessPath,
    PropAccessPath,
    SourceLocation,
)
from .ast_utils import (
    FUNCTION_TYPES,
    ParsedFile,
    call_arguments,
    concatenation_wildcard,
    location_of,
    named_children,
    node_text,
    string_literal_value,
    walk,
)

if TYPE_CHECKING:
    from .model_generator import AccessPathInfo, AliasInfo


_USAGE_TYPES = {
    "member_expression",
    "subscript_expression",
    "call_expression",
    "new_expression",
    "assignment_expression",
    "augmented_assignment_expression",
}


def _add(table: Dict, key, paths: Iterable[AccessPath] | None) -> None:
    if paths is None:
        return
    table.setdefault(key, set()).update(paths)


def _freeze(table: Dict) -> Dict:
    return {key: frozenset(paths) for key, paths in table.items()}


def summarize_functions(
    parsed: ParsedFile, paths: "AccessPathInfo", module_path: ImportAccessPath
) -> Tuple[Dict[AccessPath, FrozenSet[AccessPath]], Dict[AccessPath, FrozenSet[AccessPath]]]:
    """Usage and return summaries per function, plus the module's top level.

    Every recorded sub-expression is attributed to the innermost enclosing
    function; code outside any function belongs to ``module_path``. An arrow
    function with an expression body returns that expression.
    """

    usages: Dict[AccessPath, Set[AccessPath]] = {module_path: set()}
    returns: Dict[AccessPath, Set[AccessPath]] = {module_path: set()}
    stack = [(parsed.root, module_path)]
    while stack:
        node, scope = stack.pop()
        kind = node.type
        if kind in FUNCTION_TYPES:
            creation = FunctionCreation(SourceLocation.from_tuple(location_of(node)), paths.file_name)
            usages.setdefault(creation, set())
            returns.setdefault(creation, set())
            body = node.child_by_field_name("body")
            if body is None:
                continue
            if kind == "arrow_function" and body.type != "statement_block":
                _add(returns, creation, paths.get(body))
            stack.append((body, creation))
            continue
        if kind == "import_statement":
            for child in walk(node):
                _add(usages, scope, paths.get(child))
            continue
        if kind == "return_statement":
            argument = next(iter(named_children(node)), None)
            if argument is not None:
                _add(returns, scope, paths.get(argument))
                stack.append((argument, scope))
            continue
        if kind in _USAGE_TYPES:
            _add(usages, scope, paths.get(node))
        stack.extend((child, scope) for child in reversed(node.children))
    return _freeze(usages), _freeze(returns)


def summarize_fields(
    aliases: "AliasInfo", paths: "AccessPathInfo"
) -> Tuple[Dict[str, FrozenSet[AccessPath]], Dict[str, FrozenSet[AccessPath]]]:
    """Property name -> every value assigned under that name in the file."""

    fields: Dict[str, Set[AccessPath]] = {}
    for key, nodes in aliases.aliases.items():
        if not isinstance(key, str):
            continue
        for node in nodes:
            _add(fields, key, paths.get(node))
    wildcards: Dict[str, Set[AccessPath]] = {}
    for key, nodes in aliases.wildcard_fields.items():
        for node in nodes:
            _add(wildcards, key, paths.get(node))
    return _freeze(fields), _freeze(wildcards)


def _is_define_property(call_paths: Iterable[AccessPath]) -> bool:
    for path in call_paths:
        if not isinstance(path, CallAccessPath):
            continue
        callee = path.callee
        if (
            isinstance(callee, PropAccessPath)
            and callee.prop == "defineProperty"
            and isinstance(callee.receiver, ImportAccessPath)
            and callee.receiver.import_path == "Object"
        ):
            return True
    return False


def summarize_getters(parsed: ParsedFile, paths: "AccessPathInfo") -> Dict[str, FrozenSet[AccessPath]]:
    """Getters installed with ``Object.defineProperty(obj, 'name', {get: fn})``."""

    getters: Dict[str, Set[AccessPath]] = {}
    for node in walk(parsed.root):
        if node.type != "call_expression":
            continue
        call_paths = paths.get(node)
        if not call_paths or not _is_define_property(call_paths):
            continue
        args = call_arguments(node)
        if len(args) != 3:
            continue
        name = string_literal_value(args[1], parsed.source)
        if name is None or args[2].type != "object":
            continue
        for prop in named_children(args[2]):
            if prop.type == "pair":
                key = prop.child_by_field_name("key")
                value = prop.child_by_field_name("value")
            elif prop.type == "method_definition":
                key = prop.child_by_field_name("name")
                value = prop
            else:
                continue
            if key is None or key.type != "property_identifier" or node_text(key, parsed.source) != "get":
                continue
            _add(getters, name, paths.get(value))
    return _freeze(getters)


def summarize_event_listeners(parsed: ParsedFile, paths: "AccessPathInfo") -> Dict[str, FrozenSet[AccessPath]]:
    """Listeners registered with ``emitter.on(event, handler)``, keyed by event name or pattern."""

    listeners: Dict[str, Set[AccessPath]] = {}
    for node in walk(parsed.root):
        if node.type != "call_expression":
            continue
        callee = node.child_by_field_name("function")
        if callee is None or callee.type != "member_expression":
            continue
        prop = callee.child_by_field_name("property")
        args = call_arguments(node)
        if prop is None or node_text(prop, parsed.source) != "on" or len(args) != 2:
            continue
        event, handler = args
        name = string_literal_value(event, parsed.source)
        if name is None:
            name = concatenation_wildcard(event, parsed.source)
        if name is not None:
            _add(listeners, name, paths.get(handler))
    return _freeze(listeners)
