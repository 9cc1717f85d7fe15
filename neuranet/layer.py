"""
layer.py
~~~~~~~~

A single fully connected layer: an affine transform followed by an
elementwise activation.

The layer receives the output of the previous layer (or the network input),
computes ``z = input . W + b`` and passes ``activation(z)`` on. During
training it also computes the gradients of the cost with respect to its own
weights, biases and inputs, and applies momentum gradient descent to its
parameters.

State lifecycle:

- ``weights``/``biases`` are allocated once and only mutated in place by
  ``perform_gradient_descent``.
- ``weight_velocity``/``bias_velocity`` start at zero and carry over between
  training steps. The network that takes ownership of the layer resets them
  once, when it is built.
- ``last_input``/``last_preactivation`` are overwritten by every forward pass
  and cleared once the gradients computed from them have been applied.
- ``weight_gradient``/``bias_gradient``/``gradient_to_previous`` are
  overwritten by every backward pass.
"""

import logging
from typing import Optional

import numpy as np

from neuranet.activations import Activation
from neuranet.exceptions import (
    InvalidShapeError,
    ShapeMismatchError,
    StaleStateError,
)

# Configure module logger
logger = logging.getLogger(__name__)


def _check_dimension(label: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
        raise InvalidShapeError(f"{label} must be a positive integer, got {value!r}")
    return int(value)


def _as_vector(values, length: int, label: str) -> np.ndarray:
    vector = np.asarray(values, dtype=float)
    if vector.ndim != 1 or vector.shape[0] != length:
        raise ShapeMismatchError(
            f"{label} must be a vector of length {length}, got shape {vector.shape}"
        )
    return vector


class Layer:
    """
    One layer of a feedforward network.

    Args:
        inputs: Number of neurons in the previous layer (or network inputs)
        outputs: Number of neurons in this layer
        initializer: Supplies ``initial_weight(i, j)`` and ``initial_bias(j)``
        activation: Activation applied to the pre-activation values
    """

    def __init__(self, inputs: int, outputs: int, initializer, activation: Activation):
        self.inputs = _check_dimension('inputs', inputs)
        self.outputs = _check_dimension('outputs', outputs)
        self.activation = activation

        self.weights = np.array(
            [[initializer.initial_weight(i, j) for j in range(self.outputs)]
             for i in range(self.inputs)],
            dtype=float
        )
        self.biases = np.array(
            [initializer.initial_bias(j) for j in range(self.outputs)],
            dtype=float
        )

        self.weight_velocity = np.zeros_like(self.weights)
        self.bias_velocity = np.zeros_like(self.biases)

        # A freshly built layer stands alone until a network connects it
        self.has_previous = False
        self.attached = False

        self.last_input: Optional[np.ndarray] = None
        self.last_preactivation: Optional[np.ndarray] = None

        self.weight_gradient: Optional[np.ndarray] = None
        self.bias_gradient: Optional[np.ndarray] = None
        self.gradient_to_previous: Optional[np.ndarray] = None
        self._gradients_pending = False

    @property
    def shape(self):
        """(inputs, outputs) of the weight matrix."""
        return self.weights.shape

    def reset_velocity(self) -> None:
        """Forget the momentum accumulated by earlier training steps."""
        self.weight_velocity.fill(0.0)
        self.bias_velocity.fill(0.0)

    def connect(self, previous: Optional['Layer'] = None) -> None:
        """
        Record this layer's position in a chain.

        Args:
            previous: The layer feeding this one, or None for the first layer

        Raises:
            ShapeMismatchError: If ``previous`` produces a different number of
                values than this layer consumes
        """
        if previous is not None and previous.outputs != self.inputs:
            raise ShapeMismatchError(
                f"Cannot connect a layer with {previous.outputs} outputs "
                f"to a layer with {self.inputs} inputs"
            )
        self.has_previous = previous is not None

    def feed_forward(self, values) -> np.ndarray:
        """
        Compute this layer's activations for ``values``.

        The input and pre-activation values are cached for the backward pass.
        """
        inputs = _as_vector(values, self.inputs, 'Layer input')

        z = np.dot(inputs, self.weights) + self.biases

        self.last_input = inputs
        self.last_preactivation = z

        return self.activation.transform(z)

    def back_propagate(self, cost_gradient) -> Optional[np.ndarray]:
        """
        Compute the gradients of the cost for this layer.

        Args:
            cost_gradient: d cost / d output, one value per neuron

        Returns:
            d cost / d input, to be handed to the previous layer, or None when
            there is no previous layer

        Raises:
            StaleStateError: If the layer has not been fed forward
        """
        if self.last_preactivation is None:
            raise StaleStateError(
                "back_propagate() requires a preceding feed_forward() on this layer"
            )
        cost_gradient = _as_vector(cost_gradient, self.outputs, 'Cost gradient')

        activation_gradient = self.activation.derivative(self.last_preactivation)

        # d cost / d z for every neuron
        node_delta = activation_gradient * cost_gradient

        self.weight_gradient = np.outer(self.last_input, node_delta)
        self.bias_gradient = node_delta
        self._gradients_pending = True

        if self.has_previous:
            self.gradient_to_previous = np.dot(self.weights, node_delta)
        else:
            self.gradient_to_previous = None

        return self.gradient_to_previous

    def perform_gradient_descent(self, learning_rate: float, momentum: float = 0.0) -> None:
        """
        Apply the gradients from the last backward pass.

        velocity = momentum * velocity - learning_rate * gradient
        parameter = parameter + velocity

        With momentum 0 this is plain gradient descent.

        Raises:
            StaleStateError: If there are no unapplied gradients
        """
        if not self._gradients_pending:
            raise StaleStateError(
                "perform_gradient_descent() requires gradients from back_propagate()"
            )

        self.weight_velocity *= momentum
        self.weight_velocity -= learning_rate * self.weight_gradient
        self.weights += self.weight_velocity

        self.bias_velocity *= momentum
        self.bias_velocity -= learning_rate * self.bias_gradient
        self.biases += self.bias_velocity

        self._gradients_pending = False
        self.last_input = None
        self.last_preactivation = None

    def __repr__(self) -> str:
        return (
            f"Layer(inputs={self.inputs}, outputs={self.outputs}, "
            f"activation={self.activation!r})"
        )
