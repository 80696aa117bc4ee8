"""Demand-driven call-graph construction over per-file usage models.

Call sites whose callee is not syntactically known become *unresolved*
nodes. ``rho`` maps every node access path to the nodes it currently
denotes; it only grows. Resolution runs to a fixpoint either with a
worklist (:meth:`CallGraph.resolve_unresolved_nodes`) or by re-scanning
every pending edge until nothing changes
(:meth:`CallGraph.resolve_unresolved_nodes_without_worklist`).
"""

from __future__ import annotations

from enum import Enum
import json
import logging
import os
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Sequence, Set

from .access_paths import (
    BUILT_IN,
    MODULE_NOT_FOUND,
    AccessPath,
    ArgumentsAccessPath,
    CallAccessPath,
    FunctionCreation,
    ImportAccessPath,
    ModuleMainPath,
    ParameterAccessPath,
    PropAccessPath,
    StringLiteralAccessPath,
    StringPrefixAccessPath,
    StringSuffixAccessPath,
    ThisAccessPath,
    UnknownAccessPath,
)
from .call_graph_nodes import (
    CallGraphEdge,
    CallGraphNode,
    GetterAccessPath,
    IgnoredModuleNode,
    NodeCallAccessPath,
    NodePropAccessPath,
    ResolvedNode,
    UnknownNode,
    UnresolvedNode,
    is_simple_node,
)
from .dependency_tree import DependencyTree
from .errors import CallGraphError
from .model_generator import usage_model_for_file
from .module_resolution import ModuleNotFound, estimate_npm_module, package_name, resolve_module
from .package_model import DEFAULT_TIMEOUT, obtain_package_model
from .simple_call_graph import SimpleCallGraph
from .usage_model import MAIN_MODULE, UsageModel
from .worklist import FifoWorklist, Worklist


logger = logging.getLogger(__name__)

DEFAULT_MODULES_TO_IGNORE = ("RegExp", "Array", "Function", "Object")

CALLBACK_FIRST_METHODS = {"forEach", "filter", "map", "reduce", "some", "every", "catch", "then", "sort", "find"}
CALLBACK_SECOND_METHODS = {"readFile", "replace"}

FieldSummary = Dict[str, Set[AccessPath]]


class FieldBasedStrategy(str, Enum):
    """How property reads on module objects are resolved."""

    NORMAL = "normal"
    FIELD_BASED_FROM_LIBRARY = "field-based-from-library"
    DYNAMIC = "dynamic"


class FieldBasedScope(str, Enum):
    """Which field-based summary answers reads that are not scoped to a library."""

    DISTANCE_1 = "distance-1"
    PROJECT = "project"


def _add_all(table: Dict, key, values: Iterable) -> None:
    table.setdefault(key, set()).update(values)


def _join(table: Dict, other: Mapping) -> None:
    for key, values in other.items():
        _add_all(table, key, values)


def _event_matches(arg: AccessPath, key: str) -> bool:
    """Whether an emitted event name may reach listeners registered under ``key``."""

    if isinstance(arg, StringLiteralAccessPath):
        if key.startswith(".*"):
            return arg.value.endswith(key[2:])
        if key.endswith(".*"):
            return arg.value.startswith(key[:-2])
        return arg.value == key
    if isinstance(arg, StringPrefixAccessPath):
        if key.startswith(".*"):
            return False
        if key.endswith(".*"):
            shortest = min(len(key) - 2, len(arg.prefix))
            return key[:shortest] == arg.prefix[:shortest]
        return key.startswith(arg.prefix)
    if isinstance(arg, StringSuffixAccessPath):
        if key.startswith(".*"):
            shortest = min(len(key) - 2, len(arg.suffix))
            return key[len(key) - shortest:] == arg.suffix[len(arg.suffix) - shortest:]
        if key.endswith(".*"):
            return False
        return key.endswith(arg.suffix)
    return False


class CallGraph:
    """Mutable call graph for one program (or one dependency of it)."""

    def __init__(
        self,
        main_dir: str,
        strategy: FieldBasedStrategy = FieldBasedStrategy.FIELD_BASED_FROM_LIBRARY,
        modules_to_ignore: Sequence[str] = (),
        *,
        dependency_tree: DependencyTree | None = None,
        scope: FieldBasedScope = FieldBasedScope.DISTANCE_1,
        package_model_dir: str | Path | None = None,
        dynamic_analysis_command: str | Sequence[str] | None = None,
        dynamic_analysis_timeout: float = DEFAULT_TIMEOUT,
        worklist_factory: Callable[[], Worklist] = FifoWorklist,
    ) -> None:
        self.main_dir = os.path.abspath(main_dir)
        self.strategy = FieldBasedStrategy(strategy)
        self.scope = FieldBasedScope(scope)
        self.modules_to_ignore: List[str] = list(DEFAULT_MODULES_TO_IGNORE) + [
            name for name in modules_to_ignore if name not in DEFAULT_MODULES_TO_IGNORE
        ]
        self.dependency_tree = dependency_tree if dependency_tree is not None else DependencyTree.load(self.main_dir)
        self.package_model_dir = package_model_dir
        self.dynamic_analysis_command = dynamic_analysis_command
        self.dynamic_analysis_timeout = dynamic_analysis_timeout

        self.usage_models: Dict[str, UsageModel] = {}
        self.nodes: Dict[AccessPath, CallGraphNode] = {}
        self.intermediary_nodes: Dict[AccessPath, UnresolvedNode] = {}
        self.edges: Set[CallGraphEdge] = set()
        self.rho: Dict[AccessPath, Set[CallGraphNode]] = {}
        self.source_to_edges: Dict[CallGraphNode, Set[CallGraphEdge]] = {}
        self.target_to_edges: Dict[CallGraphNode, Set[CallGraphEdge]] = {}
        self.edge_to_targets: Dict[CallGraphEdge, Set[CallGraphNode]] = {}
        self.ur_targets_to_ur_sources: Dict[UnresolvedNode, Set[UnresolvedNode]] = {}
        self.ur_sources_to_ur_targets: Dict[UnresolvedNode, Set[UnresolvedNode]] = {}
        self.intermediary_target_to_edges: Dict[UnresolvedNode, Set[CallGraphEdge]] = {}
        self.field_based_info: FieldSummary = {}
        self.field_based_info_with_wildcards: FieldSummary = {}
        self.preciser_field_based_info: Dict[str, FieldSummary] = {}
        self.field_based_info_for_libraries: Dict[str, FieldSummary] = {}
        self.getter_info: FieldSummary = {}
        self.event_listener_summary: FieldSummary = {}
        self.fun_creation_to_param_nodes: Dict[AccessPath, Set[UnresolvedNode]] = {}

        self.worklist: Worklist = worklist_factory()
        self.work_items_processed = 0
        self._callee_cache: Dict[AccessPath, FrozenSet[CallGraphNode]] = {}
        self._node_paths: Dict[AccessPath, AccessPath] = {}

    # Usage models ---------------------------------------------------------

    def get_usage_model(self, file: str) -> UsageModel | None:
        return self.usage_models.get(file)

    def estimated_module(self, path: ModuleMainPath) -> str:
        if path.builtin_name:
            return path.builtin_name
        return estimate_npm_module(path.file_location)

    def is_ignored_module(self, module: str) -> bool:
        return module in self.modules_to_ignore or package_name(module) in self.modules_to_ignore

    def should_not_compute_usage_model(self, path: ImportAccessPath | ModuleMainPath) -> bool:
        if isinstance(path, ImportAccessPath) and path.import_path in self.modules_to_ignore:
            return True
        location = path.file_location
        if location in (BUILT_IN, MODULE_NOT_FOUND) or not os.path.isabs(location):
            return True
        if location.endswith((".json", ".node")):
            return True
        if isinstance(path, ModuleMainPath):
            return self.is_ignored_module(self.estimated_module(path))
        return self.is_ignored_module(estimate_npm_module(location))

    def compute_and_add_usage_model(self, import_path: ImportAccessPath) -> bool:
        if self.should_not_compute_usage_model(import_path):
            return False
        file = import_path.file_location
        package_model = None
        if self.strategy is FieldBasedStrategy.DYNAMIC:
            package_model = obtain_package_model(
                file,
                self.package_model_dir,
                self.dynamic_analysis_command,
                self.dynamic_analysis_timeout,
            )
        usage_model = usage_model_for_file(file, package_model)
        self.usage_models[file] = usage_model
        _join(self.field_based_info, usage_model.field_based_summary)
        _join(self.field_based_info_with_wildcards, usage_model.field_based_summary_with_wildcards)
        _join(self.getter_info, usage_model.getters_summary)
        _join(self.event_listener_summary, usage_model.event_listener_summary)
        logger.debug("Computed usage model for %s", file)
        self.process_usage_model(usage_model)
        return True

    def compute_field_based_info(self) -> None:
        """Aggregate field-based summaries per package and per package subtree."""

        preciser: Dict[str, FieldSummary] = {}
        libraries: Dict[str, FieldSummary] = {}
        for file, usage_model in self.usage_models.items():
            for module in self.dependency_tree.get_modules_with_distance1(file):
                _join(preciser.setdefault(module, {}), usage_model.field_based_summary)
            for module in self.dependency_tree.get_modules_in_subtree(file):
                _join(libraries.setdefault(module, {}), usage_model.field_based_summary)
        self.preciser_field_based_info = preciser
        self.field_based_info_for_libraries = libraries

    def process_usage_model(self, usage_model: UsageModel) -> None:
        for entry, usages in usage_model.function_usage_summaries.items():
            source = self.lookup_node(entry)
            for usage in usages:
                if not isinstance(usage, (ImportAccessPath, CallAccessPath, PropAccessPath)):
                    continue
                targets = self.nodes_from_access_path(usage)
                if isinstance(usage, PropAccessPath):
                    key: AccessPath = GetterAccessPath(usage.prop)
                else:
                    key = self.to_node_access_path(usage.callee if isinstance(usage, CallAccessPath) else usage)
                self._add_to_rho(key, (target for target in targets if isinstance(target, ResolvedNode)))
                for target in targets:
                    self.create_edge(source, usage, target)

    # Nodes ----------------------------------------------------------------

    def to_node_access_path(self, path: AccessPath) -> AccessPath:
        cached = self._node_paths.get(path)
        if cached is None:
            cached = self._node_paths[path] = self._compute_node_access_path(path)
        return cached

    def _compute_node_access_path(self, path: AccessPath) -> AccessPath:
        if isinstance(path, CallAccessPath):
            return NodeCallAccessPath(self.to_node_access_path(path.callee))
        if isinstance(path, PropAccessPath):
            library = None
            if self.strategy is FieldBasedStrategy.FIELD_BASED_FROM_LIBRARY:
                root = path.root_element()
                if (
                    isinstance(root, ImportAccessPath)
                    and path.is_prop_read_on_module_sequence()
                    and not root.is_builtin
                ):
                    library = self.dependency_tree.get_estimated_npm_module(root.file_location)
            return NodePropAccessPath(
                path.prop, self.dependency_tree.get_estimated_npm_module(path.file_name), library
            )
        if isinstance(path, ImportAccessPath):
            return ModuleMainPath(path.file_location, path.import_path if path.is_builtin else None)
        return path

    def lookup_node(self, path: AccessPath) -> CallGraphNode:
        node_path = self.to_node_access_path(path)
        node = self.nodes.get(node_path)
        if node is not None:
            return node
        if isinstance(node_path, FunctionCreation) or (
            isinstance(node_path, ModuleMainPath) and not node_path.is_builtin
        ):
            return self.create_resolved_node(node_path)
        return self.create_unresolved_node(node_path)

    def lookup_simple_node(self, path: AccessPath) -> CallGraphNode:
        node = self.lookup_node(path)
        if not is_simple_node(node):
            raise CallGraphError(f"Unexpectedly received non-simple node {node} when looking up {path}")
        return node

    def create_resolved_node(self, node_path: AccessPath) -> CallGraphNode:
        node: CallGraphNode
        if isinstance(node_path, ModuleMainPath) and self.is_ignored_module(self.estimated_module(node_path)):
            node = IgnoredModuleNode(self.estimated_module(node_path))
        else:
            node = ResolvedNode(node_path)
        self.nodes[node_path] = node
        self._add_to_rho(node_path, (node,))
        return node

    def create_unresolved_node(self, path: AccessPath) -> UnresolvedNode:
        node_path = self.to_node_access_path(path)
        existing = self.intermediary_nodes.get(node_path)
        if existing is not None:
            return existing
        node = UnresolvedNode(node_path)
        if isinstance(node_path, ParameterAccessPath):
            _add_all(self.fun_creation_to_param_nodes, node_path.function, (node,))
        self.add_to_worklist(node)
        self.intermediary_nodes[node_path] = node
        return node

    def create_unknown_node(self, path: UnknownAccessPath) -> UnknownNode:
        node = UnknownNode()
        self.nodes[path] = node
        return node

    def nodes_from_access_path(self, path: AccessPath) -> Set[CallGraphNode]:
        if isinstance(path, ImportAccessPath):
            if path.file_location not in self.usage_models:
                self.compute_and_add_usage_model(path)
            return {self.lookup_node(path)}
        if isinstance(path, PropAccessPath):
            return {self.create_unresolved_node(GetterAccessPath(path.prop))}
        if isinstance(path, CallAccessPath):
            return self.callee_nodes(path.callee)
        raise CallGraphError(f"No call-graph nodes for {path}")

    def callee_nodes(self, path: AccessPath) -> Set[CallGraphNode]:
        """Nodes ``path`` may denote when called, computing usage models on the way."""

        if isinstance(path, ImportAccessPath):
            if path.file_location not in self.usage_models:
                self.compute_and_add_usage_model(path)
        elif isinstance(path, PropAccessPath):
            root = path.root_element()
            if (
                isinstance(root, ImportAccessPath)
                and path.is_prop_read_on_module_sequence()
                and not root.is_builtin
                and root.file_location not in self.usage_models
            ):
                self.compute_and_add_usage_model(root)
        return self.callee_nodes_without_creating_usage_models(path)

    def callee_nodes_without_creating_usage_models(
        self, path: AccessPath, visited: Set[AccessPath] | None = None
    ) -> Set[CallGraphNode]:
        if isinstance(path, FunctionCreation):
            return {self.lookup_node(path)}
        if isinstance(path, ImportAccessPath):
            return self._module_callee_nodes(path, visited if visited is not None else set())
        if isinstance(path, PropAccessPath):
            return self._prop_callee_nodes(path)
        if isinstance(path, CallAccessPath):
            nodes: Set[CallGraphNode] = set()
            callee = path.callee
            if (
                isinstance(callee, PropAccessPath)
                and callee.prop == "assign"
                and isinstance(callee.receiver, ImportAccessPath)
                and callee.receiver.import_path == "Object"
                and path.args
            ):
                for arg in path.args[0]:
                    nodes |= self.callee_nodes_without_creating_usage_models(arg, visited)
            if isinstance(callee, PropAccessPath) and callee.prop == "bind":
                nodes |= self.callee_nodes_without_creating_usage_models(callee.receiver, visited)
            nodes.add(self.create_unresolved_node(path))
            return nodes
        if isinstance(path, (ParameterAccessPath, ThisAccessPath)):
            return {self.create_unresolved_node(path)}
        if isinstance(path, UnknownAccessPath):
            return {self.create_unknown_node(path)}
        if isinstance(
            path,
            (ArgumentsAccessPath, StringLiteralAccessPath, StringPrefixAccessPath, StringSuffixAccessPath),
        ):
            return set()
        raise CallGraphError(f"Unsupported access path: {path}")

    def _module_callee_nodes(self, path: ImportAccessPath, visited: Set[AccessPath]) -> Set[CallGraphNode]:
        if self.should_not_compute_usage_model(path):
            return {self.lookup_node(path)}
        usage_model = self.usage_models.get(path.file_location)
        if usage_model is None:
            raise CallGraphError(f"Missing usage model for {path.file_location}")
        if self.strategy is FieldBasedStrategy.DYNAMIC and MAIN_MODULE in usage_model.exports_summary:
            return {self.lookup_node(export) for export in usage_model.exports_summary[MAIN_MODULE]}
        if path in visited:
            return set()
        visited.add(path)
        nodes: Set[CallGraphNode] = set()
        for export in usage_model.field_based_summary.get("exports", ()):
            nodes |= self.callee_nodes_without_creating_usage_models(export, visited)
        return nodes

    def _prop_callee_nodes(self, path: PropAccessPath) -> Set[CallGraphNode]:
        root = path.root_element()
        if not (
            self.strategy is FieldBasedStrategy.DYNAMIC
            and isinstance(root, ImportAccessPath)
            and path.is_prop_read_on_module_sequence()
            and not root.is_builtin
        ):
            return {self.create_unresolved_node(path)}
        usage_model = self.usage_models.get(root.file_location)
        if usage_model is None:
            if self.should_not_compute_usage_model(root):
                return {self.create_unresolved_node(path)}
            raise CallGraphError(f"Missing usage model for {path}")
        exports = usage_model.exports_summary.get(path.exports_summary_path())
        if not exports:
            return {self.create_unresolved_node(path)}
        return {self.lookup_node(export) for export in exports}

    def cached_callee_nodes(self, path: AccessPath) -> FrozenSet[CallGraphNode]:
        cached = self._callee_cache.get(path)
        if cached is None:
            cached = self._callee_cache[path] = frozenset(self.callee_nodes_without_creating_usage_models(path))
        return cached

    def get_aps_for_resolved_nodes(self, paths: Iterable[AccessPath]) -> List[AccessPath]:
        """Function creations and modules currently denoted by ``paths``."""

        found: Dict[str, AccessPath] = {}
        for path in paths:
            for node in self.rho.get(self.to_node_access_path(path), ()):
                if isinstance(node, ResolvedNode):
                    found.setdefault(node.key, node.node)
        return list(found.values())

    # Edges ----------------------------------------------------------------

    def create_edge(
        self,
        source: CallGraphNode,
        caller: ImportAccessPath | CallAccessPath | PropAccessPath,
        target: CallGraphNode,
    ) -> None:
        if caller.file_name is None:
            raise CallGraphError(f"Missing file name for call edge from {caller}")
        unknown_arguments = False
        if isinstance(caller, CallAccessPath):
            args, args_str = caller.args, caller.args_string
            unknown_arguments = caller.unknown_arguments
        else:
            args, args_str = (), ""
        edge = CallGraphEdge(
            source,
            self.to_node_access_path(caller),
            args,
            args_str,
            caller.location,
            caller.file_name,
            unknown_arguments,
        )
        if isinstance(target, UnresolvedNode):
            self.create_intermediary_edge(edge, target)
        else:
            self.create_real_edge(edge, target)

    def propagate_intermediary_edge(self, edge: CallGraphEdge, target: CallGraphNode) -> None:
        if isinstance(target, UnresolvedNode):
            self.create_intermediary_edge(edge, target)
        else:
            self.create_real_edge(edge, target)

    def create_intermediary_edge(self, edge: CallGraphEdge, target: UnresolvedNode) -> None:
        pending = self.intermediary_target_to_edges.setdefault(target, set())
        if edge in pending:
            return
        pending.add(edge)
        self.add_to_worklist(target)

    def create_real_edge(self, edge: CallGraphEdge, target: CallGraphNode) -> None:
        targets = self.edge_to_targets.get(edge)
        if targets is not None and target in targets:
            return
        # a new caller feeds the parameters of the target
        self.add_to_worklist(target)
        _add_all(self.edge_to_targets, edge, (target,))
        _add_all(self.target_to_edges, target, (edge,))
        _add_all(self.source_to_edges, edge.source, (edge,))
        self.edges.add(edge)

    def remove_edge(self, edge: CallGraphEdge) -> None:
        raise CallGraphError("Removing edges is not supported")

    # Resolution -----------------------------------------------------------

    def add_to_worklist(self, item: CallGraphNode) -> None:
        if isinstance(item, (ResolvedNode, UnresolvedNode)):
            self.worklist.add(item)

    def _add_to_rho(self, path: AccessPath, nodes: Iterable[CallGraphNode]) -> None:
        """Grow what ``path`` denotes, requeueing every unresolved node computed from it."""

        denoted = self.rho.setdefault(path, set())
        size = len(denoted)
        denoted.update(nodes)
        if len(denoted) == size:
            return
        node = self.intermediary_nodes.get(path)
        if node is not None:
            for dependent in list(self.ur_targets_to_ur_sources.get(node, ())):
                self.add_to_worklist(dependent)
        return_node = self.intermediary_nodes.get(NodeCallAccessPath(path))
        if return_node is not None:
            self.add_to_worklist(return_node)

    def resolve_unresolved_nodes(self) -> None:
        while self.worklist:
            self._process_work_item(self.worklist.pop())
            self.work_items_processed += 1
            if self.work_items_processed % 1000 == 0:
                logger.debug("Processed %d work items, %d left", self.work_items_processed, len(self.worklist))
        logger.debug("Resolution done: %d edges, %d nodes", len(self.edges), len(self.nodes))

    def resolve_unresolved_nodes_without_worklist(self) -> None:
        """Re-resolve every unresolved node until a whole pass adds no fact."""

        while True:
            before = self._fact_count()
            for node in list(self.intermediary_nodes.values()):
                self.resolve_node(node)
            if self._fact_count() == before:
                return

    def _fact_count(self) -> tuple:
        return (
            len(self.edges),
            sum(len(edges) for edges in self.intermediary_target_to_edges.values()),
            sum(len(nodes) for nodes in self.rho.values()),
            len(self.intermediary_nodes),
            sum(len(targets) for targets in self.ur_sources_to_ur_targets.values()),
        )

    def add_nodes_to_be_recomputed_after_graph_join(self) -> None:
        # summaries, rho and callers all grew with the join
        for node in list(self.intermediary_nodes.values()):
            self.worklist.add(node)

    def _process_work_item(self, item: CallGraphNode) -> None:
        if isinstance(item, UnresolvedNode):
            self.resolve_node(item)
        elif isinstance(item, ResolvedNode) and isinstance(item.node, FunctionCreation):
            for parameter in list(self.fun_creation_to_param_nodes.get(item.node, ())):
                self.resolve_node(parameter)

    def resolve_node(self, node: UnresolvedNode) -> None:
        """Resolve ``node`` if a call site waits on it or another unresolved node draws from it."""

        edges = self.intermediary_target_to_edges.get(node, set())
        if edges or self.ur_targets_to_ur_sources.get(node):
            self.resolve_target_with_edges(node, edges)

    def resolve_target_with_edges(self, target: UnresolvedNode, edges: Set[CallGraphEdge]) -> None:
        edges = set(edges)
        node_path = target.access_path
        paths: Set[AccessPath] = set()
        if isinstance(node_path, NodeCallAccessPath):
            for node in list(self.rho.get(node_path.callee, ())):
                if isinstance(node, ResolvedNode):
                    paths |= self._returns_of(node)
        elif isinstance(node_path, ParameterAccessPath):
            function_node = self.lookup_node(node_path.function)
            for edge in list(self.target_to_edges.get(function_node, ())):
                if node_path.index < len(edge.args):
                    paths |= edge.args[node_path.index]
        elif isinstance(node_path, NodePropAccessPath):
            paths = self._field_based_paths(node_path)
            self.handle_builtin_method_calls(edges, node_path.prop)
        elif isinstance(node_path, ModuleMainPath) and node_path.is_builtin:
            self.handle_builtin_function_calls(edges, node_path)
            return
        elif isinstance(node_path, GetterAccessPath):
            paths = set(self.getter_info.get(node_path.prop, ()))
        self.add_edges_to_corresponding_nodes(paths, edges, target)

    def _returns_of(self, node: ResolvedNode) -> FrozenSet[AccessPath]:
        callee = node.node
        if isinstance(callee, FunctionCreation):
            file = callee.file
        elif isinstance(callee, ModuleMainPath):
            file = callee.file_location
        else:
            return frozenset()
        usage_model = self.usage_models.get(file)
        if usage_model is None:
            if isinstance(callee, ModuleMainPath) and self.should_not_compute_usage_model(callee):
                return frozenset()
            raise CallGraphError(f"Missing usage model for {file}")
        if isinstance(callee, ModuleMainPath):
            return usage_model.returns_of(usage_model.module_path)
        return usage_model.returns_of(callee)

    def _field_based_paths(self, node_path: NodePropAccessPath) -> Set[AccessPath]:
        prop = node_path.prop
        if self.strategy is FieldBasedStrategy.FIELD_BASED_FROM_LIBRARY and node_path.library:
            return self.read_from_field_based_info(self.field_based_info_for_libraries.get(node_path.library), prop)
        if self.scope is FieldBasedScope.PROJECT:
            return self.read_from_field_based_info(self.field_based_info, prop)
        module = self.dependency_tree.get_estimated_npm_module(node_path.module_read_from)
        return self.read_from_field_based_info(self.preciser_field_based_info.get(module), prop)

    def read_from_field_based_info(self, info: Mapping[str, Set[AccessPath]] | None, prop: str) -> Set[AccessPath]:
        """Values assigned to ``prop``; ``.*x`` and ``x.*`` names match by suffix or prefix."""

        result: Set[AccessPath] = set()
        if info is None:
            return result
        if prop.startswith(".*"):
            suffix = prop[2:]
            for name, paths in info.items():
                if name.endswith(suffix):
                    result |= paths
            return result
        if prop.endswith(".*"):
            prefix = prop[:-2]
            for name, paths in info.items():
                if name.startswith(prefix):
                    result |= paths
            return result
        result |= info.get(prop, set())
        for name, paths in self.field_based_info_with_wildcards.items():
            if (name.startswith(".*") and prop.endswith(name[2:])) or (
                name.endswith(".*") and prop.startswith(name[:-2])
            ):
                result |= paths
        return result

    def handle_builtin_function_calls(self, edges: Iterable[CallGraphEdge], path: ModuleMainPath) -> None:
        if self.estimated_module(path) != "Promise":
            return
        for edge in list(edges):
            if edge.args:
                self.create_builtin_edge(edge.args[0], edge.ignore_arguments())

    def handle_builtin_method_calls(self, edges: Iterable[CallGraphEdge], prop: str) -> None:
        """Callbacks handed to well-known built-in methods are called by them."""

        for edge in list(edges):
            if prop in CALLBACK_FIRST_METHODS and edge.args:
                self.create_builtin_edge(edge.args[0], edge.ignore_arguments())
            if prop in CALLBACK_SECOND_METHODS and len(edge.args) > 1:
                self.create_builtin_edge(edge.args[1], edge.ignore_arguments())
            if prop == "call":
                for arg in edge.args:
                    self.create_builtin_edge(arg, edge.ignore_arguments())
            if prop == "emit" and edge.args:
                for event in edge.args[0]:
                    for key, listeners in list(self.event_listener_summary.items()):
                        if _event_matches(event, key):
                            self.create_builtin_edge(listeners, edge.remove_first_arg())

    def create_builtin_edge(self, paths: Iterable[AccessPath], edge: CallGraphEdge) -> None:
        for path in list(paths):
            for node in self.cached_callee_nodes(path):
                self.propagate_intermediary_edge(edge, node)

    def add_edges_to_corresponding_nodes(
        self, paths: Iterable[AccessPath], edges: Set[CallGraphEdge], target: UnresolvedNode
    ) -> None:
        """Make ``target`` denote whatever ``paths`` denote and point its pending edges there.

        Unresolved nodes among the callees are recorded in
        ``ur_sources_to_ur_targets``; whenever one of them later grows,
        :meth:`_add_to_rho` puts ``target`` back on the worklist.
        """

        reached = self.ur_sources_to_ur_targets.setdefault(target, set())
        denoted: Set[CallGraphNode] = set()
        for path in paths:
            for node in self.cached_callee_nodes(path):
                if isinstance(node, ResolvedNode):
                    denoted.add(node)
                elif isinstance(node, UnresolvedNode) and node != target and node not in reached:
                    reached.add(node)
                    _add_all(self.ur_targets_to_ur_sources, node, (target,))
                    self.add_to_worklist(node)
        for node in reached:
            denoted |= self.rho.get(node.access_path, set())
        self._add_to_rho(target.access_path, denoted)
        for edge in edges:
            for node in list(self.rho[target.access_path]):
                self.propagate_intermediary_edge(edge, node)
        for node in list(reached):
            for edge in edges:
                self.create_intermediary_edge(edge, node)

    # Joining and filtering ------------------------------------------------

    def add_cg(self, other: "CallGraph") -> None:
        """Union ``other`` into this graph; keys are canonical strings, so nodes merge by identity."""

        self.usage_models.update(other.usage_models)
        for path, node in other.nodes.items():
            self.nodes.setdefault(path, node)
        for path, node in other.intermediary_nodes.items():
            self.intermediary_nodes.setdefault(path, node)
        self.edges |= other.edges
        _join(self.rho, other.rho)
        _join(self.source_to_edges, other.source_to_edges)
        _join(self.target_to_edges, other.target_to_edges)
        _join(self.edge_to_targets, other.edge_to_targets)
        _join(self.ur_targets_to_ur_sources, other.ur_targets_to_ur_sources)
        _join(self.ur_sources_to_ur_targets, other.ur_sources_to_ur_targets)
        _join(self.intermediary_target_to_edges, other.intermediary_target_to_edges)
        _join(self.field_based_info, other.field_based_info)
        _join(self.field_based_info_with_wildcards, other.field_based_info_with_wildcards)
        _join(self.getter_info, other.getter_info)
        _join(self.fun_creation_to_param_nodes, other.fun_creation_to_param_nodes)
        _join(self.event_listener_summary, other.event_listener_summary)
        # cached callee sets were computed against the smaller graph
        self._callee_cache.clear()

    def filter_reachable_edges_from_load_of_module(self, main_file: str) -> SimpleCallGraph:
        main_node = self.lookup_simple_node(ImportAccessPath.for_module(os.path.abspath(main_file)))
        if main_node not in self.source_to_edges:
            logger.warning("Module load of %s makes no calls; the reachable graph only holds its module", main_file)
        return self._filter_from(list(self.source_to_edges.get(main_node, ())), {main_node})

    def filter_reachable_based_on_all_usages(self, main_files: Sequence[str]) -> SimpleCallGraph:
        worklist: List[CallGraphEdge] = []
        roots: Set[CallGraphNode] = set()
        for main_file in main_files:
            file = os.path.abspath(main_file)
            usage_model = self.usage_models.get(file)
            if usage_model is None:
                raise CallGraphError(f"Could not find the usage model of {file}")
            for exports in usage_model.exports_summary.values():
                for export in exports:
                    if isinstance(export, ImportAccessPath) and export.is_builtin:
                        continue
                    node = self.lookup_simple_node(export)
                    roots.add(node)
                    worklist.extend(self.source_to_edges.get(node, ()))
            main_node = self.lookup_simple_node(ImportAccessPath.for_module(file))
            roots.add(main_node)
            worklist.extend(self.source_to_edges.get(main_node, ()))
        return self._filter_from(worklist, roots)

    def _filter_from(self, worklist: List[CallGraphEdge], nodes: Set[CallGraphNode]) -> SimpleCallGraph:
        new_edges: Set[CallGraphEdge] = set()
        new_edge_to_targets: Dict[CallGraphEdge, Set[CallGraphNode]] = {}
        index = 0
        while index < len(worklist):
            edge = worklist[index]
            index += 1
            if edge in new_edges or edge not in self.edges:
                continue
            new_edges.add(edge)
            for target in self.edge_to_targets.get(edge, ()):
                if not is_simple_node(target):
                    raise CallGraphError(f"Expected {target} to be a simple call-graph node")
                _add_all(new_edge_to_targets, edge, (target,))
                if target in nodes:
                    continue
                nodes.add(target)
                worklist.extend(self.source_to_edges.get(target, ()))
        return SimpleCallGraph(
            nodes=nodes,
            edges=new_edges,
            edge_to_targets=new_edge_to_targets,
            usage_models=self.usage_models,
            dependency_tree=self.dependency_tree,
        )


def build_call_graph_from_main(
    directory: str,
    main_files: Sequence[str],
    strategy: FieldBasedStrategy = FieldBasedStrategy.FIELD_BASED_FROM_LIBRARY,
    modules_to_ignore: Sequence[str] = (),
    **options,
) -> CallGraph:
    """Seed a graph with the usage models reachable from ``main_files``; resolution is left to the caller."""

    graph = CallGraph(directory, strategy, modules_to_ignore, **options)
    for main_file in main_files:
        graph.compute_and_add_usage_model(ImportAccessPath.for_module(os.path.abspath(main_file)))
    graph.compute_field_based_info()
    return graph


def _declared_dependencies(directory: str) -> List[str]:
    try:
        data = json.loads((Path(directory) / "package.json").read_text())
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read package.json in %s: %s", directory, exc)
        return []
    dependencies = data.get("dependencies") if isinstance(data, dict) else None
    return sorted(dependencies) if isinstance(dependencies, dict) else []


def build_call_graphs_for_dependencies(
    directory: str,
    strategy: FieldBasedStrategy = FieldBasedStrategy.FIELD_BASED_FROM_LIBRARY,
    modules_to_ignore: Sequence[str] = (),
    **options,
) -> List[CallGraph]:
    """One resolved graph per dependency declared in ``package.json``.

    Every graph shares the client's dependency tree so field-based scopes
    line up when the graphs are joined.
    """

    if options.get("dependency_tree") is None:
        options["dependency_tree"] = DependencyTree.load(directory)
    graphs: List[CallGraph] = []
    for name in _declared_dependencies(directory):
        try:
            main = resolve_module(name, directory)
        except ModuleNotFound:
            logger.warning("Dependency %s is not installed in %s", name, directory)
            continue
        if not os.path.isabs(main):
            continue
        graph = build_call_graph_from_main(directory, [main], strategy, modules_to_ignore, **options)
        graph.resolve_unresolved_nodes()
        logger.debug("Built call graph for dependency %s with %d edges", name, len(graph.edges))
        graphs.append(graph)
    return graphs


def join_call_graphs(graphs: Sequence[CallGraph]) -> CallGraph:
    if not graphs:
        raise ValueError("join_call_graphs needs at least one call graph")
    result = graphs[0]
    for graph in graphs[1:]:
        result.add_cg(graph)
    return result


def extend_call_graph_with_main(main_file: str, graph: CallGraph) -> CallGraph:
    graph.compute_and_add_usage_model(ImportAccessPath.for_module(os.path.abspath(main_file)))
    graph.compute_field_based_info()
    graph.add_nodes_to_be_recomputed_after_graph_join()
    graph.resolve_unresolved_nodes()
    return graph
