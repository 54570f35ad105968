"""
Forward operators and the backward rules that go with them.

Every operator eagerly computes its value from the operands' current data and
returns a new Node tagged with its Op. The gradient logic lives in rule tables
keyed by that tag: a rule receives the output node and its gradient for the
current pass and returns one contribution per operand, in operand order.

Arithmetic never raises. Degenerate inputs produce IEEE special values the way
a float64 ALU would (x / 0 -> +-inf, 0 / 0 -> nan, overflow -> inf).
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Callable, Mapping

from scalargrad.node import Node


class Op(Enum):
    """Operation tags; the value doubles as the symbol shown in graph exports."""

    ADD = "+"
    MUL = "*"
    DIV = "/"
    POW = "**"
    EXP = "exp"
    TANH = "tanh"
    NEG = "neg"

    @property
    def symbol(self) -> str:
        return self.value


BackwardRule = Callable[[Node, float], tuple[float, ...]]


def _as_node(value: Node | float) -> Node:
    return value if isinstance(value, Node) else Node(value)


def _is_odd_integer(x: float) -> bool:
    return x.is_integer() and x % 2 == 1


def _reciprocal(x: float) -> float:
    if x == 0.0:
        return math.copysign(math.inf, x)
    return 1.0 / x


def _pow(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except ValueError:
        # Zero to a negative power, or a negative base to a fractional one.
        if base == 0.0:
            return math.copysign(math.inf, base) if _is_odd_integer(exponent) else math.inf
        return math.nan
    except OverflowError:
        return -math.inf if base < 0.0 and _is_odd_integer(exponent) else math.inf


def _exp(x: float) -> float:
    try:
        return math.exp(x)
    except OverflowError:
        return math.inf


# Forward operators.


def add(a: Node | float, b: Node | float, label: str = "") -> Node:
    a, b = _as_node(a), _as_node(b)
    return Node(a.data + b.data, (a, b), Op.ADD, label)


def multiply(a: Node | float, b: Node | float, label: str = "") -> Node:
    a, b = _as_node(a), _as_node(b)
    return Node(a.data * b.data, (a, b), Op.MUL, label)


def divide(a: Node | float, b: Node | float, label: str = "") -> Node:
    """Compute a * b^-1; dividing by a zero-valued node gives +-inf or nan."""
    a, b = _as_node(a), _as_node(b)
    return Node(a.data * _reciprocal(b.data), (a, b), Op.DIV, label)


def power(a: Node | float, k: Node | float, label: str = "") -> Node:
    """
    Raise a to the power k.

    The exponent is recorded as operand 1 so it shows up in the graph, but no
    gradient is propagated into it.
    """
    a, k = _as_node(a), _as_node(k)
    return Node(_pow(a.data, k.data), (a, k), Op.POW, label)


def exp(a: Node | float, label: str = "") -> Node:
    a = _as_node(a)
    return Node(_exp(a.data), (a,), Op.EXP, label)


def tanh(a: Node | float, label: str = "") -> Node:
    a = _as_node(a)
    return Node(math.tanh(a.data), (a,), Op.TANH, label)


def negate(a: Node | float, label: str = "") -> Node:
    a = _as_node(a)
    return Node(-a.data, (a,), Op.NEG, label)


def subtract(a: Node | float, b: Node | float, label: str = "") -> Node:
    """Compute a - b as add(a, negate(b))."""
    return add(a, negate(b), label)


# Backward rules.


def _add_backward(node: Node, grad: float) -> tuple[float, ...]:
    return grad, grad


def _mul_backward(node: Node, grad: float) -> tuple[float, ...]:
    a, b = node.operands
    return b.data * grad, a.data * grad


def _div_backward(node: Node, grad: float) -> tuple[float, ...]:
    a, b = node.operands
    inv = _reciprocal(b.data)
    # d(a/b)/da = 1/b, d(a/b)/db = -a/b^2
    return inv * grad, -a.data * inv * inv * grad


def _pow_backward(node: Node, grad: float) -> tuple[float, ...]:
    base, exponent = node.operands
    return (exponent.data * _pow(base.data, exponent.data - 1.0) * grad,)


def _exp_backward(node: Node, grad: float) -> tuple[float, ...]:
    return (node.data * grad,)


def _tanh_backward(node: Node, grad: float) -> tuple[float, ...]:
    # d(tanh(x))/dx = 1 - tanh^2(x), and node.data already holds tanh(x).
    return ((1.0 - node.data * node.data) * grad,)


def _neg_backward(node: Node, grad: float) -> tuple[float, ...]:
    return (-grad,)


BACKWARD_RULES: Mapping[Op, BackwardRule] = {
    Op.ADD: _add_backward,
    Op.MUL: _mul_backward,
    Op.DIV: _div_backward,
    Op.POW: _pow_backward,
    Op.EXP: _exp_backward,
    Op.TANH: _tanh_backward,
    Op.NEG: _neg_backward,
}

# Rules as the original program shipped them: division reuses the multiply
# rule on the raw operand data and negation has no rule at all, so nothing
# flows into the right-hand side of a subtraction. Only useful for comparing
# results against that program.
REFERENCE_RULES: Mapping[Op, BackwardRule] = {
    Op.ADD: _add_backward,
    Op.MUL: _mul_backward,
    Op.DIV: _mul_backward,
    Op.POW: _pow_backward,
    Op.EXP: _exp_backward,
    Op.TANH: _tanh_backward,
}
