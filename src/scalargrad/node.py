from __future__ import annotations

import itertools
import math
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Mapping, NamedTuple

if TYPE_CHECKING:
    from scalargrad.ops import BackwardRule, Op


class NodeId(NamedTuple):
    """Stable identity of a node: the graph it was built in and its index there."""

    graph: int
    index: int


class Graph:
    """
    Identity scope for nodes.

    A graph only hands out node identities; it does not hold on to the nodes
    themselves, so a node lives exactly as long as something references it.
    Every graph gets its own serial number, which keeps identities unique even
    when nodes from different graphs end up in the same expression.
    """

    _serials = itertools.count()

    def __init__(self) -> None:
        self.serial = next(Graph._serials)
        self._indices = itertools.count()

    def next_id(self) -> NodeId:
        return NodeId(self.serial, next(self._indices))

    def __repr__(self) -> str:
        return f"Graph(serial={self.serial})"


_active_graph = Graph()


def active_graph() -> Graph:
    return _active_graph


@contextmanager
def use_graph(graph: Graph | None = None) -> Iterator[Graph]:
    """
    Temporarily build nodes inside another graph:

        with use_graph():
            a = Node(2.0, label="a")  # a.id.index == 0
    """
    global _active_graph
    prev = _active_graph
    try:
        _active_graph = graph or Graph()
        yield _active_graph
    finally:
        _active_graph = prev


def _as_float(data: object) -> float:
    # bool is an int subclass but never a meaningful node value.
    if isinstance(data, bool) or not isinstance(data, (int, float)):
        raise TypeError(
            f"Node only accepts int or float data, but got {type(data).__name__}"
        )
    try:
        return float(data)
    except OverflowError:
        # Ints beyond the float64 range saturate like any other overflow.
        return math.inf if data > 0 else -math.inf


class Node:
    """
    Represents a node in a computational graph for automatic differentiation.

    Each node stores a scalar value (data), a gradient accumulator (grad) and
    references to the operands that produced it. The operation tag selects the
    local gradient rule applied during the backward pass, so nodes carry no
    per-node closures.
    """

    def __init__(
        self,
        data: float,
        _operands: tuple[Node, ...] = (),
        _op: Op | None = None,
        label: str = "",
    ) -> None:
        """
        Initialize a Node in the computational graph.

        Args:
            data: The numerical value stored in this node.
            _operands: Nodes this node was computed from, in positional order.
                       Empty for leaf nodes.
            _op: The operation that produced this node, None for leaf nodes.
            label: Human-readable label for visualization purposes.
        """
        self.id = active_graph().next_id()
        self.data = _as_float(data)
        self.grad = 0.0
        self.label = label
        # Order matters: gradient rules address operands by position.
        self.operands = tuple(_operands)
        self.op = _op

    @property
    def is_leaf(self) -> bool:
        return not self.operands

    def __repr__(self) -> str:
        return f"Node(data={self.data}, grad={self.grad})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    # Operator overloading for building the graph.
    def __add__(self, other: Node | float) -> Node:
        from scalargrad.ops import add

        return add(self, other)

    def __radd__(self, other: float) -> Node:
        from scalargrad.ops import add

        return add(other, self)

    def __sub__(self, other: Node | float) -> Node:
        from scalargrad.ops import subtract

        return subtract(self, other)

    def __rsub__(self, other: float) -> Node:
        from scalargrad.ops import subtract

        return subtract(other, self)

    def __mul__(self, other: Node | float) -> Node:
        from scalargrad.ops import multiply

        return multiply(self, other)

    def __rmul__(self, other: float) -> Node:
        from scalargrad.ops import multiply

        return multiply(other, self)

    def __truediv__(self, other: Node | float) -> Node:
        from scalargrad.ops import divide

        return divide(self, other)

    def __rtruediv__(self, other: float) -> Node:
        from scalargrad.ops import divide

        return divide(other, self)

    def __pow__(self, other: Node | float) -> Node:
        from scalargrad.ops import power

        return power(self, other)

    def __rpow__(self, other: float) -> Node:
        from scalargrad.ops import power

        return power(other, self)

    def __neg__(self) -> Node:
        from scalargrad.ops import negate

        return negate(self)

    def exp(self) -> Node:
        from scalargrad.ops import exp

        return exp(self)

    def tanh(self) -> Node:
        from scalargrad.ops import tanh

        return tanh(self)

    def backward(self, rules: Mapping[Op, BackwardRule] | None = None) -> None:
        """
        Accumulate the gradient of this node into every node it depends on.

        Gradients are added, never overwritten: call zero_grad() (or reset the
        leaves' grad) between passes to start from a clean slate.

        Args:
            rules: Optional backward rule table keyed by operation tag.
                   Defaults to scalargrad.ops.BACKWARD_RULES.
        """
        from scalargrad.engine import backward

        backward(self, rules=rules)

    def zero_grad(self) -> None:
        """Reset the gradient of this node and all of its ancestors to 0.0."""
        from scalargrad.engine import zero_grad

        zero_grad(self)
