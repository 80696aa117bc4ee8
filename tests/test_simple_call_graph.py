from __future__ import annotations

import unittest

from reachscan.access_paths import FunctionCreation, ModuleMainPath, SourceLocation
from reachscan.call_graph_nodes import CallGraphEdge, ResolvedNode, UnresolvedNode
from reachscan.dependency_tree import DependencyTree
from reachscan.errors import CallGraphError
from reachscan.simple_call_graph import SimpleCallGraph


MAIN = ResolvedNode(ModuleMainPath("/p/main.js"))
FOO = ResolvedNode(FunctionCreation(SourceLocation(2, 0, 4, 1), "/p/lib.js"))
BAD = ResolvedNode(FunctionCreation(SourceLocation(1, 17, 1, 30), "/p/node_modules/v/index.js"))


def _edge(source, target, line: int, file: str) -> CallGraphEdge:
    return CallGraphEdge(source, target.node, (), "", SourceLocation(line, 0, line, 5), file)


def _graph(edges_with_targets, tree: DependencyTree | None = None) -> SimpleCallGraph:
    nodes = {MAIN}
    edge_to_targets = {}
    for edge, target in edges_with_targets:
        nodes.add(target)
        edge_to_targets.setdefault(edge, set()).add(target)
    return SimpleCallGraph(
        nodes=nodes,
        edges={edge for edge, _ in edges_with_targets},
        edge_to_targets=edge_to_targets,
        dependency_tree=tree,
    )


class SimpleCallGraphTests(unittest.TestCase):
    def setUp(self) -> None:
        self.main_to_foo = _edge(MAIN, FOO, 3, "/p/main.js")
        self.foo_to_bad = _edge(FOO, BAD, 3, "/p/lib.js")
        self.graph = _graph(
            [(self.main_to_foo, FOO), (self.foo_to_bad, BAD)],
            DependencyTree("/p", "app"),
        )

    def test_resolved_paths_and_counts(self) -> None:
        self.assertEqual(self.graph.all_resolved_paths(), {MAIN.node, FOO.node, BAD.node})
        self.assertEqual(self.graph.modules_loaded(), {MAIN.node})
        self.assertEqual(self.graph.number_functions_reachable(), 2)
        self.assertEqual(
            self.graph.reachable_modules(),
            {"/p/main.js", "/p/lib.js", "/p/node_modules/v/index.js"},
        )
        self.assertEqual(self.graph.number_modules_reachable(), 3)
        self.assertEqual(self.graph.number_packages_reachable(), 1)

    def test_packages_need_a_dependency_tree(self) -> None:
        graph = _graph([(self.main_to_foo, FOO)])
        self.assertEqual(graph.number_packages_reachable(), 0)

    def test_stack_trace_walks_callers(self) -> None:
        self.assertEqual(self.graph.stack_trace_to(BAD.node, 10), [BAD.node, FOO.node, MAIN.node])
        self.assertEqual(self.graph.stack_trace_to(BAD.node, 1), [BAD.node, FOO.node])
        self.assertEqual(self.graph.stack_trace_to(MAIN.node, 10), [MAIN.node])

    def test_stack_trace_prefers_callers_not_on_the_trace(self) -> None:
        bad_to_foo = _edge(BAD, FOO, 1, "/p/node_modules/v/index.js")
        graph = _graph([(self.main_to_foo, FOO), (self.foo_to_bad, BAD), (bad_to_foo, FOO)])
        self.assertEqual(graph.stack_trace_to(BAD.node, 10), [BAD.node, FOO.node, MAIN.node])

    def test_stack_trace_rejects_unresolved_callers(self) -> None:
        unresolved = UnresolvedNode(FOO.node)
        edge = _edge(unresolved, BAD, 5, "/p/lib.js")
        graph = _graph([(edge, BAD)])
        with self.assertRaises(CallGraphError):
            graph.stack_trace_to(BAD.node, 3)

    def test_to_dict(self) -> None:
        data = self.graph.to_dict()
        self.assertEqual(data["nodes"], sorted([str(MAIN), str(FOO), str(BAD)]))
        self.assertEqual(len(data["edges"]), 2)
        first = next(edge for edge in data["edges"] if edge["source"] == str(MAIN))
        self.assertEqual(first["targets"], [str(FOO)])
        self.assertEqual(first["location"]["start"], {"line": 3, "column": 0})


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
