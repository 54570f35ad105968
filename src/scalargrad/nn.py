from __future__ import annotations

import random
from typing import Sequence

from scalargrad.node import Node
from scalargrad.ops import tanh


class Module:
    """Base class for anything that owns trainable nodes."""

    def parameters(self) -> list[Node]:
        return []

    def zero_grad(self) -> None:
        for p in self.parameters():
            p.grad = 0.0


class Neuron(Module):
    """
    A single neuron: a weighted sum of its inputs plus a bias, optionally
    squashed through tanh.
    """

    def __init__(self, nin: int, nonlin: bool = True, rng: random.Random | None = None) -> None:
        """
        Args:
            nin: Number of inputs the neuron takes.
            nonlin: Apply tanh to the output when True, stay linear otherwise.
            rng: Random number generator for reproducible initialization.
                 Weights and bias are drawn uniformly from [-1, 1).
        """
        rng = rng or random.Random()
        self.w = [Node(rng.uniform(-1, 1), label="weight") for _ in range(nin)]
        self.b = Node(rng.uniform(-1, 1), label="bias")
        self.nonlin = nonlin

    def __call__(self, x: Sequence[Node | float]) -> Node:
        if len(x) != len(self.w):
            raise ValueError(f"Neuron expects {len(self.w)} inputs, but got {len(x)}")
        act = sum((wi * xi for wi, xi in zip(self.w, x)), self.b)
        return tanh(act) if self.nonlin else act

    def parameters(self) -> list[Node]:
        return self.w + [self.b]

    def __repr__(self) -> str:
        return f"{'Tanh' if self.nonlin else 'Linear'}Neuron({len(self.w)})"


class Layer(Module):
    def __init__(self, nin: int, nout: int, **kwargs) -> None:
        self.neurons = [Neuron(nin, **kwargs) for _ in range(nout)]

    def __call__(self, x: Sequence[Node | float]) -> list[Node]:
        return [n(x) for n in self.neurons]

    def parameters(self) -> list[Node]:
        return [p for n in self.neurons for p in n.parameters()]

    def __repr__(self) -> str:
        return f"Layer of [{', '.join(str(n) for n in self.neurons)}]"


class MLP(Module):
    """
    Multilayer perceptron built from scalar nodes.

    Hidden layers use tanh, the output layer is linear.
    """

    def __init__(self, nin: int, nouts: Sequence[int], rng: random.Random | None = None) -> None:
        if not nouts:
            raise ValueError("MLP needs at least one layer")
        rng = rng or random.Random()
        sizes = [nin] + list(nouts)
        self.layers = [
            Layer(sizes[i], sizes[i + 1], nonlin=i != len(nouts) - 1, rng=rng)
            for i in range(len(nouts))
        ]

    def __call__(self, x: Sequence[Node | float]) -> list[Node]:
        for layer in self.layers:
            x = layer(x)
        return x

    def parameters(self) -> list[Node]:
        return [p for layer in self.layers for p in layer.parameters()]

    def __repr__(self) -> str:
        return f"MLP of [{', '.join(str(layer) for layer in self.layers)}]"
