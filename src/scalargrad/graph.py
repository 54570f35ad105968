from __future__ import annotations

import logging
from pathlib import Path

from graphviz import Digraph

from scalargrad.node import Node

logger = logging.getLogger(__name__)


def _node_name(node: Node) -> str:
    return f"n{node.id.graph}_{node.id.index}"


def _escape_record(text: str) -> str:
    # Characters that would otherwise open new fields in a record label.
    for char in "\\|{}<>":
        text = text.replace(char, "\\" + char)
    return text


def trace(root: Node) -> tuple[set[Node], set[tuple[Node, Node]]]:
    """
    Traverses the computational graph starting from the root node.

    Collects all nodes and edges in the graph by recursively visiting
    each node and its operands.

    Args:
        root: The root node of the computational graph.

    Returns:
        A tuple containing:
        - nodes: Set of all nodes in the graph.
        - edges: Set of tuples representing edges (operand, consumer).
    """
    nodes: set[Node] = set()
    edges: set[tuple[Node, Node]] = set()

    def build(node: Node) -> None:
        if node not in nodes:
            nodes.add(node)
            for operand in node.operands:
                # Edge direction: operand -> consumer.
                edges.add((operand, node))
                build(operand)

    build(root)
    return nodes, edges


def draw_graph(root: Node, fmt: str = "svg", rankdir: str = "LR") -> Digraph:
    """
    Builds a Graphviz description of the computational graph.

    Every node becomes a record showing its label, data and grad. Derived nodes
    also get a small operation node, so edges read operand -> op -> result.

    Args:
        root: The root node of the computational graph to visualize.
        fmt: Output format used when the graph is rendered.
        rankdir: Graphviz layout direction, left-to-right by default.

    Returns:
        A Digraph object representing the computational graph.
    """
    graph = Digraph(format=fmt, graph_attr={"rankdir": rankdir})

    nodes, edges = trace(root)

    # Sorted so the DOT source is stable between runs.
    for node in sorted(nodes, key=lambda n: n.id):
        name = _node_name(node)
        graph.node(
            name=name,
            label=f"{_escape_record(node.label)} | data {node.data:.4f} | grad {node.grad:.4f}",
            shape="record",
        )

        if node.op is not None:
            op_name = name + node.op.name
            graph.node(name=op_name, label=node.op.symbol)
            graph.edge(op_name, name)

    for operand, consumer in sorted(edges, key=lambda e: (e[1].id, e[0].id)):
        # Connect to the consumer's op node if it exists, otherwise to the consumer directly.
        if consumer.op is not None:
            target = _node_name(consumer) + consumer.op.name
        else:
            target = _node_name(consumer)

        graph.edge(_node_name(operand), target)

    return graph


def export_graph(root: Node, path: str | Path, fmt: str = "svg") -> Path:
    """
    Writes the DOT description of the graph rooted at root to path.

    Only the DOT source is written; turning it into an image needs the Graphviz
    binaries (see graphviz.Digraph.render).

    Args:
        root: The root node of the computational graph.
        path: Destination file. Parent directories are created if needed.
        fmt: Format recorded on the graph for later rendering.

    Returns:
        The path the DOT source was written to.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    graph = draw_graph(root, fmt=fmt)
    graph.save(filename=path.name, directory=path.parent)

    logger.info("Wrote computational graph to %s", path)
    return path
