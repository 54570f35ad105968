from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from scalargrad.constants import LEARNING_RATE, NUM_ITERATIONS, PRINT_INTERVAL
from scalargrad.nn import Module
from scalargrad.node import Node

logger = logging.getLogger(__name__)

# Toy dataset: three inputs per sample, one target each.
XS = [
    [2.0, 3.0, -1.0],
    [3.0, -1.0, 0.5],
    [0.5, 1.0, 1.0],
    [1.0, 1.0, -1.0],
]
YS = [1.0, -1.0, -1.0, 1.0]


def mse_loss(predictions: Sequence[Node], targets: Sequence[Node | float]) -> Node:
    """
    Sum of squared errors between predictions and targets.

    Args:
        predictions: One output node per sample.
        targets: The expected value for each sample.

    Returns:
        A scalar loss node that the whole batch feeds into.
    """
    if not predictions:
        raise ValueError("Cannot compute a loss without predictions")
    if len(predictions) != len(targets):
        raise ValueError(
            f"Got {len(predictions)} predictions for {len(targets)} targets"
        )
    return sum((p - t) ** 2 for p, t in zip(predictions, targets))


def train(
    model: Module,
    xs: Sequence[Sequence[float]],
    ys: Sequence[float],
    num_iterations: int = NUM_ITERATIONS,
    learning_rate: float = LEARNING_RATE,
    print_interval: int = PRINT_INTERVAL,
) -> list[float]:
    """
    Fit model to (xs, ys) with plain gradient descent.

    Every iteration runs a forward pass over all samples, zeroes the gradients
    of the parameters, backpropagates the loss and steps each parameter against
    its gradient.

    Args:
        model: Model with a single output per sample.
        xs: Input samples.
        ys: Target for each sample.
        num_iterations: Number of gradient descent steps.
        learning_rate: Step size.
        print_interval: Log the loss every N iterations.

    Returns:
        The loss before each update.
    """
    if num_iterations <= 0:
        raise ValueError(f"num_iterations must be positive, got {num_iterations}")
    if print_interval <= 0:
        raise ValueError(f"print_interval must be positive, got {print_interval}")

    parameters = model.parameters()
    logger.info(
        "Training %d parameters for %d iterations (lr=%s)",
        len(parameters),
        num_iterations,
        learning_rate,
    )

    losses: list[float] = []
    for i in range(num_iterations):
        # Forward pass.
        predictions = [model(x)[0] for x in xs]
        loss = mse_loss(predictions, ys)

        # Backward pass; gradients accumulate, so clear them first.
        model.zero_grad()
        loss.backward()

        # Update.
        for p in parameters:
            p.data += -learning_rate * p.grad

        losses.append(loss.data)
        if i % print_interval == 0:
            logger.info("Iteration %d: loss = %.6f", i, loss.data)

    logger.info("Final loss = %.6f", losses[-1])
    return losses


def plot_losses(losses: Sequence[float], path: str | Path | None = None) -> None:
    """
    Plot the loss curve.

    Args:
        losses: Loss value per iteration.
        path: Save the figure here instead of opening a window.
    """
    import matplotlib

    if path is not None:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(range(len(losses)), losses)
    ax.set_xlabel("Iteration")
    ax.set_ylabel("Loss")
    ax.set_title("Training loss")

    if path is None:
        plt.show()
    else:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path)
        logger.info("Saved loss plot to %s", path)
    plt.close(fig)
