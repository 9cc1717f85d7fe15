"""
network.py
~~~~~~~~~~

A feedforward neural network trained one example at a time with
backpropagation and momentum gradient descent.

The network owns an ordered tuple of layers. A query feeds the input through
them left to right. A training step runs the same forward pass, hands the
gradient of the cost backwards through the layers right to left, and then
lets every layer apply its gradients.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from neuranet.cost import CostFunction, QuadraticCost
from neuranet.exceptions import EmptyLayoutError, ShapeMismatchError
from neuranet.layer import Layer

# Configure module logger
logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class TrainingExample:
    """An input vector and the output the network should produce for it."""

    input: np.ndarray
    target: np.ndarray

    def __post_init__(self):
        for field_name in ('input', 'target'):
            vector = np.array(getattr(self, field_name), dtype=float)
            if vector.ndim != 1:
                raise ShapeMismatchError(
                    f"Training example {field_name} must be a vector, "
                    f"got shape {vector.shape}"
                )
            vector.setflags(write=False)
            object.__setattr__(self, field_name, vector)


ExampleLike = Union[TrainingExample, Tuple[Any, Any]]


def _validate_hyperparameters(learning_rate: float, momentum: float) -> None:
    if not learning_rate > 0:
        raise ValueError(f"learning_rate must be positive, got {learning_rate}")
    if not 0.0 <= momentum < 1.0:
        raise ValueError(f"momentum must be in [0, 1), got {momentum}")


class NeuralNetwork:
    """
    An ordered chain of layers plus the cost function used to train them.

    Args:
        layers: Layers in order from the first hidden layer to the output layer
        cost_function: Cost minimised by training (defaults to QuadraticCost)

    Raises:
        EmptyLayoutError: If ``layers`` is empty
        ShapeMismatchError: If adjacent layers disagree on their dimensions
        ValueError: If a layer is listed twice or already belongs to another
            network
    """

    def __init__(self, layers: Iterable[Layer], cost_function: Optional[CostFunction] = None):
        layers = tuple(layers)
        if not layers:
            raise EmptyLayoutError("A network needs at least one layer")

        if len({id(layer) for layer in layers}) != len(layers):
            raise ValueError("A layer can appear only once in a network")
        if any(layer.attached for layer in layers):
            raise ValueError("A layer already belongs to another network")

        for previous, layer in zip(layers[:-1], layers[1:]):
            if previous.outputs != layer.inputs:
                raise ShapeMismatchError(
                    f"Layer with {previous.outputs} outputs cannot feed "
                    f"a layer with {layer.inputs} inputs"
                )

        previous = None
        for layer in layers:
            layer.connect(previous)
            layer.reset_velocity()
            layer.attached = True
            previous = layer

        self._layers = layers
        self.first_layer = layers[0]
        self.last_layer = layers[-1]
        self.cost_function = cost_function if cost_function is not None else QuadraticCost()

        logger.debug(f"Created network with sizes {self.sizes}")

    @property
    def layers(self) -> Tuple[Layer, ...]:
        """The layers of the network, first hidden layer first."""
        return self._layers

    @property
    def sizes(self) -> List[int]:
        """Neuron counts per layer, starting with the number of inputs."""
        return [self.first_layer.inputs] + [layer.outputs for layer in self._layers]

    def query(self, values) -> np.ndarray:
        """
        Return the network's output for ``values``.

        Raises:
            ShapeMismatchError: If ``values`` does not have one entry per input
        """
        return self._feed_forward(values)

    def train_one_example(
        self,
        values,
        target,
        learning_rate: float,
        momentum: float = 0.0
    ) -> float:
        """
        Run one forward, backward and update cycle for a single example.

        Args:
            values: Input vector
            target: Expected output vector
            learning_rate: Step size, must be positive
            momentum: Fraction of the previous step carried into this one,
                in [0, 1)

        Returns:
            The cost of the output produced before the update
        """
        _validate_hyperparameters(learning_rate, momentum)
        target = np.asarray(target, dtype=float)
        if target.ndim != 1 or target.shape[0] != self.last_layer.outputs:
            raise ShapeMismatchError(
                f"Target must be a vector of length {self.last_layer.outputs}, "
                f"got shape {target.shape}"
            )

        output = self._feed_forward(values)
        self._back_propagate(self.cost_function.derivative(output, target))
        self._perform_gradient_descent(learning_rate, momentum)

        return self.cost_function.calculate(output, target)

    def train(
        self,
        examples: Sequence[ExampleLike],
        number_of_epochs: int,
        learning_rate: float,
        momentum: float = 0.0,
        callback: Optional[ProgressCallback] = None
    ) -> float:
        """
        Train the network on ``examples`` for a number of epochs.

        Each epoch trains on every example once, in the given order.

        Args:
            examples: TrainingExample instances or (input, target) pairs
            number_of_epochs: How many passes over ``examples`` to make
            learning_rate: Step size, must be positive
            momentum: Momentum coefficient in [0, 1)
            callback: Called after every example with a dict holding
                ``epoch``, ``total_epochs``, ``example``, ``total_examples``
                and ``mean_cost`` (epoch and example are 1-based)

        Returns:
            The mean cost over the examples of the last epoch
        """
        if isinstance(number_of_epochs, bool) or not isinstance(number_of_epochs, (int, np.integer)) \
                or number_of_epochs < 0:
            raise ValueError(
                f"number_of_epochs must be a non-negative integer, got {number_of_epochs!r}"
            )
        _validate_hyperparameters(learning_rate, momentum)

        examples = [
            example if isinstance(example, TrainingExample) else TrainingExample(*example)
            for example in examples
        ]
        for index, example in enumerate(examples):
            if example.input.shape[0] != self.first_layer.inputs \
                    or example.target.shape[0] != self.last_layer.outputs:
                raise ShapeMismatchError(
                    f"Example {index} must have {self.first_layer.inputs} input value(s) "
                    f"and {self.last_layer.outputs} target value(s), got "
                    f"{example.input.shape[0]} and {example.target.shape[0]}"
                )
        total_examples = len(examples)

        logger.info(
            f"Training network {self.sizes} on {total_examples} example(s) for "
            f"{number_of_epochs} epoch(s): lr={learning_rate}, momentum={momentum}"
        )

        mean_cost = 0.0
        for epoch in range(1, number_of_epochs + 1):
            cost_sum = 0.0
            for index, example in enumerate(examples, start=1):
                cost_sum += self.train_one_example(
                    example.input, example.target, learning_rate, momentum
                )
                mean_cost = cost_sum / index

                if callback is not None:
                    callback({
                        'epoch': epoch,
                        'total_epochs': number_of_epochs,
                        'example': index,
                        'total_examples': total_examples,
                        'mean_cost': mean_cost
                    })

            logger.debug(f"Epoch {epoch}/{number_of_epochs} complete: mean cost {mean_cost:.6f}")

        return mean_cost

    def _feed_forward(self, values) -> np.ndarray:
        activations = values
        for layer in self._layers:
            activations = layer.feed_forward(activations)
        return activations

    def _back_propagate(self, cost_gradient: np.ndarray) -> None:
        gradient = cost_gradient
        for layer in reversed(self._layers):
            gradient = layer.back_propagate(gradient)

    def _perform_gradient_descent(self, learning_rate: float, momentum: float) -> None:
        for layer in self._layers:
            layer.perform_gradient_descent(learning_rate, momentum)

    def __repr__(self) -> str:
        return f"NeuralNetwork(sizes={self.sizes}, cost_function={self.cost_function!r})"
