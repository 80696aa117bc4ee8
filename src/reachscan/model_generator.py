"""Per-file static summarization: declarations, aliases and access paths."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Dict, FrozenSet, Iterable, List, Mapping, Set, Tuple, Union

from .access_paths import (
    UNKNOWN,
    THIS,
    AccessPath,
    ArgumentsAccessPath,
    CallAccessPath,
    FunctionCreation,
    GLOBAL_OBJECTS,
    ImportAccessPath,
    ParameterAccessPath,
    PropAccessPath,
    SourceLocation,
    StringLiteralAccessPath,
    StringPrefixAccessPath,
    StringSuffixAccessPath,
    global_object_path,
)
from .ast_utils import (
    CLASS_TYPES,
    FUNCTION_TYPES,
    NodeKey,
    ParsedFile,
    call_arguments,
    concatenation_wildcard,
    location_of,
    named_children,
    node_key,
    node_text,
    parse_file,
    string_literal_value,
    walk,
)
from .package_model import exports_from_package_model
from .summaries import (
    summarize_event_listeners,
    summarize_fields,
    summarize_functions,
    summarize_getters,
)
from .usage_model import UsageModel


logger = logging.getLogger(__name__)

AliasKey = Union[NodeKey, str]

MAX_FIELD_ALIASES = 30
APPLY_ARGUMENT_SLOTS = 9
ASSIGNMENT_TYPES = {"assignment_expression", "augmented_assignment_expression"}
LOGICAL_OPERATORS = {"||", "&&", "??"}
IDENTIFIER_TYPES = {"identifier", "shorthand_property_identifier"}
PATTERN_ENTRY_TYPES = {"shorthand_property_identifier_pattern", "pair_pattern", "object_assignment_pattern"}
_TRANSPARENT_TYPES = {"parenthesized_expression", "as_expression", "non_null_expression", "satisfies_expression"}
_BINDING_PARENTS = {
    "variable_declarator": "name",
    "function_declaration": "name",
    "function_expression": "name",
    "function": "name",
    "generator_function": "name",
    "generator_function_declaration": "name",
    "class_declaration": "name",
    "class": "name",
}


@dataclass(frozen=True, slots=True)
class ParamInfo:
    function: object
    index: int


@dataclass(frozen=True, slots=True)
class DeclarationInfo:
    """Output of the scope-aware declaration pass.

    ``declarations`` maps every resolved identifier occurrence to the node that
    declares it. Import bindings, destructured properties and parameters carry
    the extra facts the later phases need to turn them into access paths.
    """

    declarations: Mapping[NodeKey, object]
    param_info: Mapping[NodeKey, ParamInfo]
    import_sources: Mapping[NodeKey, str]
    import_names: Mapping[NodeKey, str]
    pattern_inits: Mapping[NodeKey, Tuple[object, str]]
    require_aliases: FrozenSet[str]

    def declaration_of(self, node):
        return self.declarations.get(node_key(node))


@dataclass(frozen=True, slots=True)
class AliasInfo:
    """Expressions that may flow into a declaration or a property name."""

    aliases: Mapping[AliasKey, Tuple[object, ...]]
    wildcard_fields: Mapping[str, Tuple[object, ...]]

    def field_names(self) -> List[str]:
        return [key for key in self.aliases if isinstance(key, str)]


@dataclass(frozen=True, slots=True)
class AccessPathInfo:
    file_name: str
    results: Mapping[NodeKey, FrozenSet[AccessPath]]

    def get(self, node) -> FrozenSet[AccessPath] | None:
        if node is None:
            return None
        return self.results.get(node_key(node))

    def __contains__(self, node) -> bool:
        return node is not None and node_key(node) in self.results


def _location(node) -> SourceLocation:
    return SourceLocation.from_tuple(location_of(node))


def function_parameters(function) -> List:
    if function.type == "arrow_function":
        single = function.child_by_field_name("parameter")
        if single is not None:
            return [single]
    params = function.child_by_field_name("parameters")
    if params is None:
        return []
    return named_children(params)


def function_body(function):
    return function.child_by_field_name("body")


def class_constructor(class_node):
    body = class_node.child_by_field_name("body")
    if body is None:
        return None
    for member in named_children(body):
        if member.type != "method_definition":
            continue
        name = member.child_by_field_name("name")
        if name is not None and name.type == "property_identifier" and name.text == b"constructor":
            return member
    return None


def is_binding_identifier(node) -> bool:
    parent = node.parent
    if parent is None:
        return False
    field_name = _BINDING_PARENTS.get(parent.type)
    if field_name is not None:
        target = parent.child_by_field_name(field_name)
        return target is not None and node_key(target) == node_key(node)
    return parent.type in {
        "formal_parameters",
        "import_clause",
        "namespace_import",
        "import_specifier",
        "required_parameter",
        "optional_parameter",
    }


def import_bindings(statement, source: bytes) -> List[Tuple[object, str, str | None]]:
    """``(declaring node, local name, imported name)`` for an import statement."""

    bindings: List[Tuple[object, str, str | None]] = []
    for clause in named_children(statement):
        if clause.type != "import_clause":
            continue
        for child in named_children(clause):
            if child.type == "identifier":
                bindings.append((child, node_text(child, source), None))
            elif child.type == "namespace_import":
                local = next((c for c in named_children(child) if c.type == "identifier"), None)
                if local is not None:
                    bindings.append((child, node_text(local, source), None))
            elif child.type == "named_imports":
                for spec in named_children(child):
                    if spec.type != "import_specifier":
                        continue
                    name = spec.child_by_field_name("name")
                    alias = spec.child_by_field_name("alias")
                    if name is None:
                        continue
                    imported = string_literal_value(name, source) or node_text(name, source)
                    local = node_text(alias, source) if alias is not None else imported
                    bindings.append((spec, local, imported))
    return bindings


def pattern_entries(pattern, source: bytes) -> List[Tuple[object, str, str]]:
    """``(entry node, local name, property name)`` for flat object-pattern entries."""

    entries: List[Tuple[object, str, str]] = []
    for entry in named_children(pattern):
        if entry.type == "shorthand_property_identifier_pattern":
            name = node_text(entry, source)
            entries.append((entry, name, name))
        elif entry.type == "object_assignment_pattern":
            left = entry.child_by_field_name("left")
            if left is not None and left.type == "shorthand_property_identifier_pattern":
                name = node_text(left, source)
                entries.append((entry, name, name))
        elif entry.type == "pair_pattern":
            key = entry.child_by_field_name("key")
            value = entry.child_by_field_name("value")
            if key is None or value is None:
                continue
            if value.type == "assignment_pattern":
                value = value.child_by_field_name("left")
            if value is None or value.type != "identifier":
                continue
            prop = string_literal_value(key, source) if key.type == "string" else node_text(key, source)
            entries.append((entry, node_text(value, source), prop))
    return entries


def is_require_call(node, require_aliases: Iterable[str], source: bytes) -> bool:
    if node is None or node.type != "call_expression":
        return False
    callee = node.child_by_field_name("function")
    if callee is None or callee.type != "identifier":
        return False
    name = node_text(callee, source)
    return (name == "require" or name in require_aliases) and len(call_arguments(node)) == 1


def member_property_name(node, source: bytes) -> str | None:
    """Property name read by a member expression, with ``.*`` wildcards for concatenations."""

    if node.type == "member_expression":
        prop = node.child_by_field_name("property")
        if prop is None:
            return None
        return node_text(prop, source)
    if node.type != "subscript_expression":
        return None
    index = node.child_by_field_name("index")
    if index is None:
        return None
    literal = string_literal_value(index, source)
    if literal is not None:
        return literal
    return concatenation_wildcard(index, source)


def _binary_operator(node) -> str | None:
    operator = node.child_by_field_name("operator")
    return operator.type if operator is not None else None


def _arguments_index(node, source: bytes) -> int | None:
    """Index ``n`` of an ``arguments[n]`` read, else ``None``."""

    if node.type != "subscript_expression":
        return None
    obj = node.child_by_field_name("object")
    index = node.child_by_field_name("index")
    if obj is None or index is None or obj.type != "identifier" or index.type != "number":
        return None
    if node_text(obj, source) != "arguments":
        return None
    try:
        return int(node_text(index, source), 0)
    except ValueError:
        return None


# Phase 1 ------------------------------------------------------------------


def analyze_declarations(parsed: ParsedFile) -> DeclarationInfo:
    source = parsed.source
    declarations: Dict[NodeKey, object] = {}
    param_info: Dict[NodeKey, ParamInfo] = {}
    import_sources: Dict[NodeKey, str] = {}
    import_names: Dict[NodeKey, str] = {}
    pattern_inits: Dict[NodeKey, Tuple[object, str]] = {}
    require_aliases: Set[str] = set()

    def text(node) -> str:
        return node_text(node, source)

    def declare_params(function, state: Dict[str, object]) -> None:
        state["arguments"] = function
        for index, param in enumerate(function_parameters(function)):
            info = ParamInfo(function, index)
            if param.type in {"required_parameter", "optional_parameter"}:
                param = param.child_by_field_name("pattern") or param
            if param.type == "assignment_pattern":
                param = param.child_by_field_name("left") or param
            if param.type == "identifier":
                param_info[node_key(param)] = info
                state[text(param)] = param
            elif param.type == "object_pattern":
                for entry, local, _ in pattern_entries(param, source):
                    param_info[node_key(entry)] = info
                    state[local] = entry

    def hoist(body, state: Dict[str, object]) -> None:
        if body is None:
            return
        for statement in named_children(body):
            if statement.type == "export_statement":
                statement = statement.child_by_field_name("declaration") or statement
            if statement.type in {"function_declaration", "generator_function_declaration", "class_declaration"}:
                name = statement.child_by_field_name("name")
                if name is not None:
                    state[text(name)] = statement
            elif statement.type in {"lexical_declaration", "variable_declaration"}:
                for declarator in named_children(statement):
                    if declarator.type != "variable_declarator":
                        continue
                    name = declarator.child_by_field_name("name")
                    if name is None:
                        continue
                    if name.type == "identifier":
                        state[text(name)] = declarator
                    elif name.type == "object_pattern":
                        for entry, local, _ in pattern_entries(name, source):
                            state[local] = entry

    def visit(node, state: Dict[str, object]) -> None:
        kind = node.type
        if kind == "import_statement":
            module = string_literal_value(node.child_by_field_name("source"), source)
            for binding, local, imported in import_bindings(node, source):
                state[local] = binding
                if module is not None:
                    import_sources[node_key(binding)] = module
                if imported is not None:
                    import_names[node_key(binding)] = imported
            return
        if kind == "variable_declarator":
            name = node.child_by_field_name("name")
            value = node.child_by_field_name("value")
            if name is not None and name.type == "identifier":
                state[text(name)] = node
                if value is not None and value.type == "identifier" and text(value) == "require":
                    require_aliases.add(text(name))
            elif name is not None and name.type == "object_pattern":
                for entry, local, prop in pattern_entries(name, source):
                    state[local] = entry
                    if value is not None:
                        pattern_inits[node_key(entry)] = (value, prop)
            if value is not None:
                visit(value, state)
            return
        if kind in FUNCTION_TYPES:
            scope = dict(state)
            name = node.child_by_field_name("name")
            if kind in {"function_expression", "function", "generator_function"} and name is not None:
                scope[text(name)] = node
            declare_params(node, scope)
            body = function_body(node)
            if body is None:
                return
            if body.type == "statement_block":
                hoist(body, scope)
            visit(body, scope)
            return
        if kind in IDENTIFIER_TYPES:
            declaration = state.get(text(node))
            if declaration is not None:
                declarations[node_key(node)] = declaration
            return
        if kind in ASSIGNMENT_TYPES:
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            if left is not None and left.type == "identifier":
                name = text(left)
                if name not in state:
                    state[name] = node
                    declarations[node_key(left)] = node
                else:
                    declarations[node_key(left)] = state[name]
            elif left is not None and left.type in {"member_expression", "subscript_expression"}:
                obj = left.child_by_field_name("object")
                if obj is not None and obj.type == "identifier" and text(obj) in state:
                    declarations[node_key(obj)] = state[text(obj)]
            if left is not None:
                visit(left, state)
            if right is not None:
                visit(right, state)
            return
        if kind == "class_declaration":
            if node.child_by_field_name("name") is None:
                return
            body = node.child_by_field_name("body")
            if body is None:
                return
            for member in named_children(body):
                if member.type != "method_definition":
                    continue
                name = member.child_by_field_name("name")
                if name is not None and name.type == "property_identifier":
                    state[text(name)] = member
            visit(body, state)
            return
        for child in named_children(node):
            visit(child, state)

    state: Dict[str, object] = {}
    hoist(parsed.root, state)
    visit(parsed.root, state)
    return DeclarationInfo(
        declarations=declarations,
        param_info=param_info,
        import_sources=import_sources,
        import_names=import_names,
        pattern_inits=pattern_inits,
        require_aliases=frozenset(require_aliases),
    )


# Phase 2 ------------------------------------------------------------------


def analyze_aliases(parsed: ParsedFile, declarations: DeclarationInfo) -> AliasInfo:
    source = parsed.source
    aliases: Dict[AliasKey, Dict[NodeKey, object]] = {}
    wildcards: Dict[str, Dict[NodeKey, object]] = {}

    def add(table: Dict, key, node) -> None:
        if node is None:
            return
        table.setdefault(key, {})[node_key(node)] = node

    for node in walk(parsed.root):
        kind = node.type
        if kind == "import_statement":
            for binding, _, _ in import_bindings(node, source):
                add(aliases, node_key(binding), binding)
        elif kind == "variable_declarator":
            name = node.child_by_field_name("name")
            value = node.child_by_field_name("value")
            if name is None or value is None:
                continue
            if name.type == "identifier":
                add(aliases, node_key(node), value)
            elif name.type == "object_pattern":
                for entry, _, _ in pattern_entries(name, source):
                    add(aliases, node_key(entry), entry)
        elif kind in ASSIGNMENT_TYPES:
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            if left is None or right is None:
                continue
            if left.type == "identifier":
                declaration = declarations.declaration_of(left)
                if declaration is not None:
                    add(aliases, node_key(declaration), right)
            elif left.type == "member_expression":
                prop = left.child_by_field_name("property")
                if prop is not None:
                    add(aliases, node_text(prop, source), right)
            elif left.type == "subscript_expression":
                index = left.child_by_field_name("index")
                literal = string_literal_value(index, source)
                if literal is not None:
                    add(aliases, literal, right)
                else:
                    wildcard = concatenation_wildcard(index, source)
                    if wildcard is not None:
                        add(wildcards, wildcard, right)
        elif kind == "object":
            for prop in named_children(node):
                if prop.type == "pair":
                    key = prop.child_by_field_name("key")
                    if key is not None and key.type == "property_identifier":
                        add(aliases, node_text(key, source), prop.child_by_field_name("value"))
                elif prop.type == "shorthand_property_identifier":
                    add(aliases, node_text(prop, source), prop)
        elif kind == "method_definition":
            name = node.child_by_field_name("name")
            if name is not None and name.type == "property_identifier":
                add(aliases, node_text(name, source), node)
        elif kind == "field_definition":
            prop = node.child_by_field_name("property")
            value = node.child_by_field_name("value")
            if prop is not None and prop.type == "property_identifier" and value is not None:
                add(aliases, node_text(prop, source), value)
        elif kind == "class_declaration":
            name = node.child_by_field_name("name")
            constructor = class_constructor(node)
            if name is not None and constructor is not None:
                add(aliases, node_text(name, source), constructor)

    return AliasInfo(
        aliases={key: tuple(nodes.values()) for key, nodes in aliases.items()},
        wildcard_fields={key: tuple(nodes.values()) for key, nodes in wildcards.items()},
    )


# Phase 3 ------------------------------------------------------------------


class _PathComputer:
    def __init__(self, parsed: ParsedFile, declarations: DeclarationInfo, aliases: AliasInfo) -> None:
        self.parsed = parsed
        self.source = parsed.source
        self.file_name = parsed.path
        self.dir = os.path.dirname(parsed.path)
        self.declarations = declarations
        self.aliases = aliases

    def text(self, node) -> str:
        return node_text(node, self.source)

    def function_creation(self, function) -> FunctionCreation:
        return FunctionCreation(_location(function), self.file_name)

    def is_require_call(self, node) -> bool:
        return is_require_call(node, self.declarations.require_aliases, self.source)

    def is_module_import(self, node) -> bool:
        return (
            node.type == "import_statement"
            or node_key(node) in self.declarations.import_sources
            or self.is_require_call(node)
        )

    def import_path(self, node) -> AccessPath:
        module: str | None = None
        key = node_key(node)
        if self.is_require_call(node):
            module = string_literal_value(call_arguments(node)[0], self.source)
        elif key in self.declarations.import_sources:
            module = self.declarations.import_sources[key]
        elif node.type == "import_statement":
            module = string_literal_value(node.child_by_field_name("source"), self.source)
        if not module:
            return UNKNOWN
        location = _location(node)
        path = ImportAccessPath.resolve(module, self.dir, location, self.file_name)
        imported = self.declarations.import_names.get(key)
        if imported is not None:
            return PropAccessPath(path, imported, location, self.file_name)
        return path

    def paths(self, node, use_field_based: bool = False) -> Set[AccessPath]:
        if node is None:
            return {UNKNOWN}
        return self._compute(node, set(), use_field_based)

    def _lookup(self, key: AliasKey, visited: Set[AliasKey], use_field_based: bool) -> Set[AccessPath]:
        result: Set[AccessPath] = set()
        info = None if isinstance(key, str) else self.declarations.param_info.get(key)
        if info is not None:
            result.add(ParameterAccessPath(self.function_creation(info.function), info.index))
        nodes = self.aliases.aliases.get(key)
        if nodes is None:
            if info is not None:
                return result
            return set() if isinstance(key, str) else {UNKNOWN}
        if key in visited:
            return set()
        if isinstance(key, str) and len(nodes) > MAX_FIELD_ALIASES:
            return {UNKNOWN}
        visited.add(key)
        for alias in nodes:
            result |= self._compute(alias, set(visited), use_field_based)
        return result

    def _compute(self, n, visited: Set[AliasKey], use_field_based: bool) -> Set[AccessPath]:
        kind = n.type
        if self.is_module_import(n):
            return {self.import_path(n)}
        if kind in {"member_expression", "subscript_expression"}:
            prop = member_property_name(n, self.source)
            if prop is not None:
                location = _location(n)
                receivers = self._compute(n.child_by_field_name("object"), set(visited), use_field_based)
                result = {PropAccessPath(receiver, prop, location, self.file_name) for receiver in receivers}
                if use_field_based:
                    result |= self._lookup(prop, visited, use_field_based)
                return result
            index = _arguments_index(n, self.source)
            if index is not None:
                function = self.declarations.declaration_of(n.child_by_field_name("object"))
                if function is None or function.type not in FUNCTION_TYPES:
                    return {UNKNOWN}
                return {ParameterAccessPath(self.function_creation(function), index)}
            return {UNKNOWN}
        if kind in IDENTIFIER_TYPES:
            return self._identifier_paths(n, visited, use_field_based)
        if kind in {"call_expression", "new_expression"}:
            callee_node = n.child_by_field_name("function" if kind == "call_expression" else "constructor")
            args = [self._compute(arg, visited, use_field_based) for arg in call_arguments(n)]
            callees = self._compute(callee_node, visited, use_field_based) if callee_node is not None else {UNKNOWN}
            location = _location(n)
            result: Set[AccessPath] = {
                CallAccessPath(callee, args, location, self.file_name) for callee in callees
            }
            for callee in callees:
                if isinstance(callee, PropAccessPath) and callee.prop == "bind":
                    result.add(callee.receiver)
            return result
        if kind in PATTERN_ENTRY_TYPES and node_key(n) in self.declarations.pattern_inits:
            init, prop = self.declarations.pattern_inits[node_key(n)]
            return {
                PropAccessPath(receiver, prop, _location(n), self.file_name)
                for receiver in self._compute(init, visited, use_field_based)
            }
        if kind == "array":
            return {global_object_path("Array", _location(n), self.file_name)}
        if kind == "object":
            return {global_object_path("Object", _location(n), self.file_name)}
        if kind in _TRANSPARENT_TYPES:
            inner = named_children(n)
            if not inner:
                return {UNKNOWN}
            return set(self._compute(inner[0], visited, use_field_based))
        if kind == "this":
            return {THIS}
        if kind in FUNCTION_TYPES:
            return {self.function_creation(n)}
        if kind == "binary_expression":
            operator = _binary_operator(n)
            if operator in LOGICAL_OPERATORS:
                return self._compute(n.child_by_field_name("left"), visited, use_field_based) | self._compute(
                    n.child_by_field_name("right"), visited, use_field_based
                )
            if operator == "+":
                left = string_literal_value(n.child_by_field_name("left"), self.source)
                if left is not None:
                    return {StringPrefixAccessPath(left)}
                right = string_literal_value(n.child_by_field_name("right"), self.source)
                if right is not None:
                    return {StringSuffixAccessPath(right)}
            return {UNKNOWN}
        if kind == "ternary_expression":
            return self._compute(n.child_by_field_name("consequence"), visited, use_field_based) | self._compute(
                n.child_by_field_name("alternative"), visited, use_field_based
            )
        if kind in ASSIGNMENT_TYPES:
            return set(self._compute(n.child_by_field_name("right"), visited, use_field_based))
        literal = string_literal_value(n, self.source)
        if literal is not None:
            return {StringLiteralAccessPath(literal)}
        if kind in CLASS_TYPES:
            constructor = class_constructor(n)
            return self._compute(constructor, visited, use_field_based) if constructor is not None else {UNKNOWN}
        return {UNKNOWN}

    def _identifier_paths(self, n, visited: Set[AliasKey], use_field_based: bool) -> Set[AccessPath]:
        declaration = self.declarations.declaration_of(n)
        name = self.text(n)
        if declaration is None:
            if name in GLOBAL_OBJECTS:
                return {global_object_path(name, _location(n), self.file_name)}
            return {UNKNOWN}
        if declaration.type in FUNCTION_TYPES and (name == "arguments" or declaration.type != "method_definition"):
            creation = self.function_creation(declaration)
            return {ArgumentsAccessPath(creation) if name == "arguments" else creation}
        if declaration.type == "class_declaration":
            constructor = class_constructor(declaration)
            return self._compute(constructor, visited, use_field_based) if constructor is not None else {UNKNOWN}
        return self._lookup(node_key(declaration), visited, use_field_based)

    def apply_arguments(self, node) -> List[Set[AccessPath]]:
        """Argument sets for ``f.apply(thisArg, array)`` call sites."""

        args = call_arguments(node)
        collected: Set[AccessPath] = set()
        array = args[1] if len(args) > 1 else None
        if array is not None and array.type == "call_expression":
            callee = array.child_by_field_name("function")
            if callee is not None and callee.type == "member_expression":
                obj = callee.child_by_field_name("object")
                if obj is not None and obj.type == "array":
                    for element in named_children(obj):
                        collected |= self.paths(element, use_field_based=True)
                prop = callee.child_by_field_name("property")
                inner = call_arguments(array)
                if prop is not None and self.text(prop) == "concat" and inner:
                    first = inner[0]
                    if first.type == "identifier" and self.text(first) == "args":
                        for path in self.paths(first, use_field_based=True):
                            if not isinstance(path, CallAccessPath) or not path.args:
                                continue
                            callee_key = str(path.callee)
                            if "<BUILT_IN" not in callee_key or ".prototype.slice.call" not in callee_key:
                                continue
                            for arg in path.args[0]:
                                if isinstance(arg, ArgumentsAccessPath):
                                    for index in range(APPLY_ARGUMENT_SLOTS):
                                        collected.add(ParameterAccessPath(arg.function, index))
        return [collected for _ in range(APPLY_ARGUMENT_SLOTS)]


def compute_access_paths(
    parsed: ParsedFile, declarations: DeclarationInfo, aliases: AliasInfo
) -> AccessPathInfo:
    computer = _PathComputer(parsed, declarations, aliases)
    source = parsed.source
    results: Dict[NodeKey, FrozenSet[AccessPath]] = {}

    def record(node, paths: Iterable[AccessPath]) -> None:
        results[node_key(node)] = frozenset(paths)

    for node in walk(parsed.root):
        kind = node.type
        if kind in FUNCTION_TYPES:
            record(node, computer.paths(node))
        elif kind in IDENTIFIER_TYPES:
            if kind == "identifier" and is_binding_identifier(node):
                continue
            record(node, computer.paths(node))
        elif kind == "member_expression" or (
            kind == "subscript_expression" and _arguments_index(node, source) is not None
        ):
            record(node, computer.paths(node))
        elif kind == "call_expression":
            record(node, _call_paths(computer, node))
        elif kind == "new_expression":
            args = [computer.paths(arg) for arg in call_arguments(node)]
            location = _location(node)
            record(
                node,
                {
                    CallAccessPath(callee, args, location, computer.file_name)
                    for callee in computer.paths(node.child_by_field_name("constructor"))
                },
            )
        elif kind in ASSIGNMENT_TYPES:
            record(node, computer.paths(node.child_by_field_name("left")))
        elif kind == "import_statement":
            for binding, _, _ in import_bindings(node, source):
                record(binding, computer.paths(binding))
            record(node, computer.paths(node))
        elif kind == "binary_expression" and _binary_operator(node) in LOGICAL_OPERATORS:
            record(node, computer.paths(node))
        elif kind == "ternary_expression":
            record(node, computer.paths(node))
    return AccessPathInfo(file_name=parsed.path, results=results)


def _call_paths(computer: _PathComputer, node) -> Set[AccessPath]:
    callee = node.child_by_field_name("function")
    args = call_arguments(node)
    imprecise = any(arg.type == "spread_element" for arg in args)
    method = None
    if callee is not None and callee.type == "member_expression":
        prop = callee.child_by_field_name("property")
        if prop is not None and computer.text(prop) in {"call", "apply"}:
            method = computer.text(prop)
    if computer.is_require_call(node):
        return computer.paths(node)
    if method is not None:
        target = callee.child_by_field_name("object")
        imprecise = imprecise or method == "apply"
    else:
        target = callee
    if method == "apply":
        arg_paths = computer.apply_arguments(node)
    else:
        arg_paths = [computer.paths(arg) for arg in (args[1:] if method == "call" else args)]
    location = _location(node)
    return {
        CallAccessPath(path, arg_paths, location, computer.file_name, imprecise)
        for path in computer.paths(target)
    }


def class_constructor_locations(parsed: ParsedFile) -> Dict[str, SourceLocation]:
    """Map a class's start position (``line:column``) to its constructor's location."""

    mapping: Dict[str, SourceLocation] = {}
    for node in walk(parsed.root):
        if node.type not in CLASS_TYPES:
            continue
        constructor = class_constructor(node)
        if constructor is not None:
            mapping[_location(node).start()] = _location(constructor)
    return mapping


class ModelGenerator:
    """Runs the summarization phases for one file, memoizing each result."""

    def __init__(self, parsed: ParsedFile) -> None:
        self.parsed = parsed
        self.file_name = parsed.path
        self._declarations: DeclarationInfo | None = None
        self._aliases: AliasInfo | None = None
        self._access_paths: AccessPathInfo | None = None

    @classmethod
    def from_file(cls, path: str) -> "ModelGenerator":
        return cls(parse_file(os.path.abspath(path)))

    def declarations(self) -> DeclarationInfo:
        if self._declarations is None:
            self._declarations = analyze_declarations(self.parsed)
        return self._declarations

    def aliases(self) -> AliasInfo:
        if self._aliases is None:
            self._aliases = analyze_aliases(self.parsed, self.declarations())
        return self._aliases

    def access_paths(self) -> AccessPathInfo:
        if self._access_paths is None:
            self._access_paths = compute_access_paths(self.parsed, self.declarations(), self.aliases())
        return self._access_paths

    def usage_model(self, package_model: Mapping[str, object] | None = None) -> UsageModel:
        paths = self.access_paths()
        module_path = ImportAccessPath.for_module(self.file_name)
        usages, returns = summarize_functions(self.parsed, paths, module_path)
        fields, wildcard_fields = summarize_fields(self.aliases(), paths)
        exports = {}
        if package_model:
            exports = exports_from_package_model(
                package_model, class_constructor_locations(self.parsed), self.file_name
            )
        return UsageModel(
            module_path=module_path,
            exports_summary=exports,
            function_usage_summaries=usages,
            function_return_summaries=returns,
            field_based_summary=fields,
            field_based_summary_with_wildcards=wildcard_fields,
            getters_summary=summarize_getters(self.parsed, paths),
            event_listener_summary=summarize_event_listeners(self.parsed, paths),
        )


def usage_model_for_file(path: str, package_model: Mapping[str, object] | None = None) -> UsageModel:
    """Usage model of ``path``; unreadable or unparsable files yield an empty model."""

    file_name = os.path.abspath(path)
    try:
        return ModelGenerator.from_file(file_name).usage_model(package_model)
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Could not read %s: %s", file_name, exc)
    except RecursionError:
        logger.debug("Nesting too deep while summarizing %s", file_name)
    return UsageModel.empty(file_name)
