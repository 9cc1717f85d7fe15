"""
layout.py
~~~~~~~~~

Builders describing the shape and initial parameters of a network.

A layout is a sequence of ``LayerSpec`` entries. Each entry names the layer's
dimensions, the initializer that supplies its starting weights and biases,
and its activation.
"""

import logging
from typing import List, NamedTuple, Optional, Sequence, Union

import numpy as np

from neuranet.activations import Activation, get_activation
from neuranet.cost import CostFunction, get_cost_function
from neuranet.exceptions import ShapeMismatchError
from neuranet.layer import Layer
from neuranet.network import NeuralNetwork

# Configure module logger
logger = logging.getLogger(__name__)


class LayerInitializer:
    """Supplies the initial value of every weight and bias of a layer."""

    def initial_weight(self, i: int, j: int) -> float:
        """Weight connecting input neuron ``i`` to output neuron ``j``."""
        raise NotImplementedError

    def initial_bias(self, j: int) -> float:
        """Bias of output neuron ``j``."""
        raise NotImplementedError


class FixedInitializer(LayerInitializer):
    """
    Serves weights and biases from explicit arrays.

    Args:
        weights: Matrix of shape (inputs, outputs)
        biases: Vector of length outputs
    """

    def __init__(self, weights, biases):
        self.weights = np.array(weights, dtype=float, ndmin=2)
        self.biases = np.array(biases, dtype=float, ndmin=1)

    def initial_weight(self, i: int, j: int) -> float:
        rows, columns = self.weights.shape
        if not (0 <= i < rows and 0 <= j < columns):
            raise ShapeMismatchError(
                f"Weight ({i}, {j}) requested from a {rows}x{columns} initializer"
            )
        return float(self.weights[i, j])

    def initial_bias(self, j: int) -> float:
        if not 0 <= j < self.biases.shape[0]:
            raise ShapeMismatchError(
                f"Bias {j} requested from an initializer with "
                f"{self.biases.shape[0]} biases"
            )
        return float(self.biases[j])


class GaussianInitializer(LayerInitializer):
    """
    Draws weights from N(0, 1/sqrt(inputs)) and biases from N(0, 1).

    Args:
        inputs: Number of inputs of the layer being initialized
        seed: Seed or Generator, for reproducible layouts
    """

    def __init__(self, inputs: int, seed=None):
        self.scale = 1.0 / np.sqrt(max(int(inputs), 1))
        self.rng = np.random.default_rng(seed)

    def initial_weight(self, i: int, j: int) -> float:
        return float(self.rng.normal(0.0, self.scale))

    def initial_bias(self, j: int) -> float:
        return float(self.rng.normal(0.0, 1.0))


class LayerSpec(NamedTuple):
    """Declarative description of one layer."""

    inputs: int
    outputs: int
    initializer: LayerInitializer
    activation: Union[Activation, str] = 'sigmoid'


def _resolve_activation(activation: Union[Activation, str]) -> Activation:
    if isinstance(activation, Activation):
        return activation
    return get_activation(activation)


def build_layers(specs: Sequence[LayerSpec]) -> List[Layer]:
    """Create one unconnected Layer per spec, in order."""
    return [
        Layer(
            spec.inputs,
            spec.outputs,
            spec.initializer,
            _resolve_activation(spec.activation)
        )
        for spec in specs
    ]


def layers_from_sizes(
    sizes: Sequence[int],
    activation: Union[Activation, str] = 'sigmoid',
    seed=None
) -> List[Layer]:
    """
    Build Gaussian-initialized layers from a list of neuron counts.

    ``[3, 4, 2]`` describes 3 inputs, a hidden layer of 4 neurons and an
    output layer of 2, i.e. two layers.

    Args:
        sizes: Neuron counts, input layer first
        activation: Activation (or its name) used by every layer
        seed: Seed for the weight initializers

    Raises:
        ValueError: If fewer than two sizes are given
    """
    sizes = list(sizes)
    if len(sizes) < 2:
        raise ValueError(
            f"A layout needs at least an input and an output size, got {sizes}"
        )

    rng = np.random.default_rng(seed)
    specs = [
        LayerSpec(n_in, n_out, GaussianInitializer(n_in, rng), activation)
        for n_in, n_out in zip(sizes[:-1], sizes[1:])
    ]
    logger.debug(f"Building {len(specs)} layer(s) for sizes {sizes}")
    return build_layers(specs)


def build_network(
    sizes: Sequence[int],
    activation: Union[Activation, str] = 'sigmoid',
    cost: Union[CostFunction, str] = 'quadratic',
    seed: Optional[int] = None
) -> NeuralNetwork:
    """
    Build a NeuralNetwork from neuron counts.

    Returns:
        A connected NeuralNetwork using ``cost`` as its cost function
    """
    cost_function = cost if isinstance(cost, CostFunction) else get_cost_function(cost)
    return NeuralNetwork(layers_from_sizes(sizes, activation, seed), cost_function)
