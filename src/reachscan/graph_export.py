"""Graphviz rendering of a reachable call graph."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict

from graphviz import Digraph, nohtml

from .call_graph_nodes import CallGraphNode, IgnoredModuleNode
from .simple_call_graph import SimpleCallGraph


def _edge_label(edge) -> str:
    return nohtml(f"{edge.callee_nap.pretty()}\\n{os.path.basename(edge.file)}:{edge.location}")


def to_digraph(graph: SimpleCallGraph, name: str = "callgraph") -> Digraph:
    """Nodes are labelled with pretty access paths; ids are positional since paths contain ``:``.

    Labels go through ``nohtml`` so ``<module>`` renderings stay plain text.
    """

    dot = Digraph(name=name, comment="Reachable call graph")
    dot.attr(rankdir="LR")
    ids: Dict[CallGraphNode, str] = {}
    for index, node in enumerate(sorted(graph.nodes, key=str)):
        ids[node] = f"n{index}"
        fill = "palegreen" if isinstance(node, IgnoredModuleNode) else "lightblue"
        dot.node(
            ids[node],
            label=nohtml(node.pretty()),
            style="filled",
            fillcolor=fill,
            tooltip=nohtml(str(node)),
        )
    for edge in sorted(graph.edges, key=str):
        source = ids.get(edge.source)
        if source is None:
            continue
        for target in sorted(graph.edge_to_targets.get(edge, ()), key=str):
            if target in ids:
                dot.edge(source, ids[target], label=_edge_label(edge))
    return dot


def render_dot(graph: SimpleCallGraph) -> str:
    return to_digraph(graph).source


def write_dot(graph: SimpleCallGraph, path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(render_dot(graph))
    return target
