"""A scalar reverse-mode automatic differentiation engine."""

from scalargrad.engine import backward, collect_nodes, topological_sort, zero_grad
from scalargrad.node import Graph, Node, NodeId, use_graph
from scalargrad.ops import (
    BACKWARD_RULES,
    REFERENCE_RULES,
    Op,
    add,
    divide,
    exp,
    multiply,
    negate,
    power,
    subtract,
    tanh,
)

__version__ = "0.1.0"

__all__ = [
    # Graph
    "Graph",
    "Node",
    "NodeId",
    "use_graph",
    # Operators
    "Op",
    "add",
    "multiply",
    "divide",
    "power",
    "exp",
    "tanh",
    "negate",
    "subtract",
    "BACKWARD_RULES",
    "REFERENCE_RULES",
    # Engine
    "backward",
    "zero_grad",
    "topological_sort",
    "collect_nodes",
]
