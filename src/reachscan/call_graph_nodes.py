"""Call-graph nodes, edges and the reduced access paths nodes are keyed by."""

from __future__ import annotations

import os
from typing import FrozenSet, Sequence, Tuple

from .access_paths import AccessPath, KeyedPath, SourceLocation, UNKNOWN, args_string


class NodeCallAccessPath(AccessPath):
    """Result of calling whatever ``callee`` denotes; arguments are dropped."""

    __slots__ = ("callee",)

    def __init__(self, callee: AccessPath) -> None:
        self.callee = callee
        super().__init__(f"{callee}()")

    def pretty(self) -> str:
        return f"{self.callee.pretty()}()"


class NodePropAccessPath(AccessPath):
    """Property read, identified only by name, reading module and owning library."""

    __slots__ = ("prop", "module_read_from", "library")

    def __init__(self, prop: str, module_read_from: str, library: str | None = None) -> None:
        self.prop = prop
        self.module_read_from = module_read_from
        self.library = library
        prefix = f"{library}..." if library else ""
        super().__init__(f"PROP<{module_read_from}:{prefix}{prop}>")


class GetterAccessPath(AccessPath):
    __slots__ = ("prop",)

    def __init__(self, prop: str) -> None:
        self.prop = prop
        super().__init__(f"GETTER<{prop}>")


class CallGraphNode(KeyedPath):
    __slots__ = ()


class ResolvedNode(CallGraphNode):
    """A function creation or a loaded module."""

    __slots__ = ("node",)

    def __init__(self, node: AccessPath) -> None:
        self.node = node
        super().__init__(str(node))

    def pretty(self) -> str:
        return self.node.pretty()


class IgnoredModuleNode(CallGraphNode):
    """Stands in for every node of a module excluded from the analysis."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def pretty(self) -> str:
        return os.path.basename(self.name)


class UnresolvedNode(CallGraphNode):
    __slots__ = ("access_path",)

    def __init__(self, access_path: AccessPath) -> None:
        self.access_path = access_path
        super().__init__(str(access_path))

    def pretty(self) -> str:
        return self.access_path.pretty()


class UnknownNode(CallGraphNode):
    __slots__ = ("access_path",)

    def __init__(self) -> None:
        self.access_path = UNKNOWN
        super().__init__(str(UNKNOWN))


def is_simple_node(node: CallGraphNode) -> bool:
    return isinstance(node, (ResolvedNode, IgnoredModuleNode, UnknownNode))


class CallGraphEdge(KeyedPath):
    """One call site of ``source``; its targets are kept by the call graph."""

    __slots__ = ("source", "callee_nap", "args", "args_string", "location", "file", "unknown_arguments")

    def __init__(
        self,
        source: CallGraphNode,
        callee_nap: AccessPath,
        args: Sequence[FrozenSet[AccessPath]],
        args_str: str,
        location: SourceLocation,
        file: str,
        unknown_arguments: bool = False,
    ) -> None:
        self.source = source
        self.callee_nap = callee_nap
        self.args: Tuple[FrozenSet[AccessPath], ...] = tuple(args)
        self.args_string = args_str
        self.location = location
        self.file = file
        self.unknown_arguments = unknown_arguments
        super().__init__(f"{source} --{callee_nap}:{args_str} from {file}:{location}")

    def ignore_arguments(self) -> "CallGraphEdge":
        if not self.args:
            return self
        return CallGraphEdge(self.source, self.callee_nap, (), "", self.location, self.file, True)

    def remove_first_arg(self) -> "CallGraphEdge":
        rest = self.args[1:]
        return CallGraphEdge(
            self.source, self.callee_nap, rest, args_string(rest), self.location, self.file, self.unknown_arguments
        )

    def pretty(self) -> str:
        return f"{self.source.pretty()} -> {self.callee_nap.pretty()}"
