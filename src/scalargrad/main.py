from __future__ import annotations

import argparse
import logging
import random
import sys

from scalargrad.constants import (
    GRAPH_PATH,
    LAYER_SIZES,
    LEARNING_RATE,
    NUM_ITERATIONS,
    PRINT_INTERVAL,
    SAMPLE_SEED,
)
from scalargrad.engine import backward, topological_sort
from scalargrad.graph import export_graph
from scalargrad.nn import MLP
from scalargrad.node import Node, use_graph
from scalargrad.ops import REFERENCE_RULES, add, multiply, tanh
from scalargrad.train import XS, YS, plot_losses, train

logger = logging.getLogger("scalargrad")


def setup_logger(log_level: str = "INFO") -> logging.Logger:
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    return logger


def build_example() -> Node:
    """
    Build h = tanh((a * b + c) * f), the worked example:

        a=2, b=-3, c=10, f=-2  ->  d=-6, e=4, g=-8, h=tanh(-8)
    """
    a = Node(2.0, label="a")
    b = Node(-3.0, label="b")
    c = Node(10.0, label="c")
    f = Node(-2.0, label="f")

    d = multiply(a, b, label="d")
    e = add(d, c, label="e")
    g = multiply(e, f, label="g")
    return tanh(g, label="h")


def run_example(args: argparse.Namespace) -> int:
    with use_graph():
        h = build_example()
        backward(h, rules=REFERENCE_RULES if args.reference_rules else None)

        for node in reversed(topological_sort(h)):
            print(f"{node.label:>2}: data = {node.data: .6f}  grad = {node.grad: .6e}")

        path = export_graph(h, args.output)
    print(f"Graph written to {path}")
    return 0


def run_train(args: argparse.Namespace) -> int:
    rng = random.Random(args.seed)
    model = MLP(len(XS[0]), LAYER_SIZES, rng=rng)
    print(model)

    losses = train(
        model,
        XS,
        YS,
        num_iterations=args.iterations,
        learning_rate=args.learning_rate,
        print_interval=args.print_interval,
    )

    print(f"Final loss: {losses[-1]:.6f}")
    for x, y in zip(XS, YS):
        print(f"  {x} -> {model(x)[0].data: .4f} (target {y: .1f})")

    if args.plot:
        plot_losses(losses, args.plot)
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="scalargrad", description="Scalar reverse-mode autodiff examples"
    )
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    example = subparsers.add_parser("example", help="Run the worked backprop example")
    example.add_argument("--output", type=str, default=GRAPH_PATH, help="Where to write the DOT file")
    example.add_argument(
        "--reference-rules",
        action="store_true",
        help="Use the original program's divide/negate gradient rules",
    )
    example.set_defaults(func=run_example)

    training = subparsers.add_parser("train", help="Train a tiny MLP on a toy dataset")
    training.add_argument("--iterations", type=int, default=NUM_ITERATIONS, help="Gradient descent steps")
    training.add_argument("--learning-rate", type=float, default=LEARNING_RATE, help="Step size")
    training.add_argument("--print-interval", type=int, default=PRINT_INTERVAL, help="Log every N steps")
    training.add_argument("--seed", type=int, default=SAMPLE_SEED, help="Weight initialization seed")
    training.add_argument("--plot", type=str, default=None, help="Save the loss curve to this file")
    training.set_defaults(func=run_train)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logger(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
