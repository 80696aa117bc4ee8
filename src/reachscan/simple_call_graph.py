"""Read-only call graph restricted to what is reachable from an entry point."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Set

from .access_paths import AccessPath, FunctionCreation, ModuleMainPath
from .call_graph_nodes import CallGraphEdge, CallGraphNode, ResolvedNode
from .dependency_tree import DependencyTree
from .errors import CallGraphError
from .usage_model import UsageModel


@dataclass(frozen=True, slots=True)
class SimpleCallGraph:
    """Resolved, ignored and unknown nodes only, with every edge fully materialized."""

    nodes: FrozenSet[CallGraphNode]
    edges: FrozenSet[CallGraphEdge]
    edge_to_targets: Mapping[CallGraphEdge, FrozenSet[CallGraphNode]]
    usage_models: Mapping[str, UsageModel] = field(default_factory=dict)
    dependency_tree: DependencyTree | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", frozenset(self.nodes))
        object.__setattr__(self, "edges", frozenset(self.edges))
        object.__setattr__(
            self, "edge_to_targets", {edge: frozenset(targets) for edge, targets in self.edge_to_targets.items()}
        )

    def all_resolved_paths(self) -> Set[AccessPath]:
        return {node.node for node in self.nodes if isinstance(node, ResolvedNode)}

    def modules_loaded(self) -> Set[ModuleMainPath]:
        return {path for path in self.all_resolved_paths() if isinstance(path, ModuleMainPath)}

    def stack_trace_to(self, function: AccessPath, depth: int) -> List[AccessPath]:
        """Walk callers back from ``function``, at most ``depth`` frames above it."""

        stack: List[AccessPath] = [function]
        seen = {str(function)}
        ordered = sorted(self.edges, key=str)
        for _ in range(depth):
            top = str(stack[-1])
            candidates = [
                edge
                for edge in ordered
                if any(str(target) == top for target in self.edge_to_targets.get(edge, ()))
            ]
            if not candidates:
                break
            edge = next((e for e in candidates if str(e.source) not in seen), None)
            if edge is None:
                edge = candidates[0]
            if not isinstance(edge.source, ResolvedNode):
                raise CallGraphError(f"Call edge {edge} does not start at a resolved node")
            stack.append(edge.source.node)
            seen.add(str(edge.source))
        return stack

    def number_functions_reachable(self) -> int:
        return sum(
            1 for node in self.nodes if isinstance(node, ResolvedNode) and isinstance(node.node, FunctionCreation)
        )

    def reachable_modules(self) -> Set[str]:
        files: Set[str] = set()
        for path in self.all_resolved_paths():
            file = path.file if isinstance(path, FunctionCreation) else path.file_location
            if "/" in file:
                files.add(file)
        return files

    def number_modules_reachable(self) -> int:
        return len(self.reachable_modules())

    def number_packages_reachable(self) -> int:
        """Distinct packages among the reachable modules, not counting the client itself."""

        if self.dependency_tree is None:
            return 0
        packages = {self.dependency_tree.get_estimated_npm_module(file) for file in self.reachable_modules()}
        return max(len(packages) - 1, 0)

    def to_dict(self) -> Dict[str, object]:
        return {
            "nodes": sorted(str(node) for node in self.nodes),
            "edges": [
                {
                    "source": str(edge.source),
                    "callee": str(edge.callee_nap),
                    "file": edge.file,
                    "location": edge.location.to_dict(),
                    "targets": sorted(str(target) for target in self.edge_to_targets.get(edge, ())),
                }
                for edge in sorted(self.edges, key=str)
            ],
        }
