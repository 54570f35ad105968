from __future__ import annotations

import logging
from typing import Mapping

from scalargrad.node import Node, NodeId
from scalargrad.ops import BACKWARD_RULES, BackwardRule, Op

logger = logging.getLogger(__name__)


def topological_sort(root: Node) -> list[Node]:
    """
    Performs a topological sort of the computational graph using depth-first search.

    Traverses the graph starting from the root and builds an ordering where each
    node appears after all of its operands. Reversing it gives the order in which
    gradients must be propagated: every node before the nodes it was computed from.

    The traversal is recursive, so graphs deeper than the interpreter's recursion
    limit raise RecursionError.

    Args:
        root: The node to start the traversal from.

    Returns:
        A list of every node reachable from root, operands first, root last.
    """
    topo_ordering: list[Node] = []

    # Identities rather than nodes, so shared operands are visited once.
    visited: set[NodeId] = set()

    def build_topo(node: Node) -> None:
        if node.id not in visited:
            visited.add(node.id)
            # Process all operands first so they appear before the node itself.
            for operand in node.operands:
                build_topo(operand)
            topo_ordering.append(node)

    build_topo(root)

    return topo_ordering


def collect_nodes(root: Node) -> set[Node]:
    """
    Collects all nodes in the computational graph starting from root.

    Returns:
        A set of all nodes reachable from root, root included.
    """
    nodes: set[Node] = set()

    def build(node: Node) -> None:
        if node not in nodes:
            nodes.add(node)
            for operand in node.operands:
                build(operand)

    build(root)
    return nodes


def backward(root: Node, rules: Mapping[Op, BackwardRule] | None = None) -> None:
    """
    Computes the gradient of root with respect to every node it depends on.

    The backward pass:
    1. Sort the graph so that every node comes before its operands.
    2. Seed the gradient of root with 1.0 (d(root)/d(root) = 1).
    3. Walk that order and hand each node's gradient to its rule, adding the
       returned contributions into the gradients of its operands.
    4. Add the gradients of this pass into each node's grad.

    A node is only visited after all of its consumers, so its gradient is final
    before it is propagated further, which makes shared operands (diamonds) sum
    the contributions of every path.

    Gradients of a pass are collected separately and only then added to grad.
    The result of a pass therefore never depends on what grad held before it:
    running backward twice without resetting doubles every gradient, and
    resetting the leaves reproduces the first pass exactly. The seed of root is
    added too, so its grad reads 2.0 after a second pass rather than being set
    back to 1.0.

    Args:
        root: The output node to differentiate.
        rules: Backward rule table keyed by operation tag. Nodes whose tag has
               no rule (leaves, or ops missing from the table) do not propagate.
    """
    if rules is None:
        rules = BACKWARD_RULES

    order = topological_sort(root)
    order.reverse()

    grads: dict[NodeId, float] = {root.id: 1.0}

    for node in order:
        rule = rules.get(node.op) if node.op is not None else None
        if rule is None:
            continue
        grad = grads.get(node.id, 0.0)
        for operand, contribution in zip(node.operands, rule(node, grad)):
            grads[operand.id] = grads.get(operand.id, 0.0) + contribution

    for node in order:
        node.grad += grads.get(node.id, 0.0)

    logger.debug("Backward pass from %r visited %d nodes", root, len(order))


def zero_grad(root: Node) -> None:
    """Reset the gradient of root and every node it depends on to 0.0."""
    for node in collect_nodes(root):
        node.grad = 0.0
