"""
conftest.py
~~~~~~~~~~~

Shared fixtures for the neuranet test suite.
"""

import numpy as np
import pytest

from neuranet.activations import Sigmoid
from neuranet.cost import QuadraticCost
from neuranet.layer import Layer
from neuranet.layout import FixedInitializer
from neuranet.network import NeuralNetwork

HIDDEN_WEIGHTS = [
    [0.001, 0.002, 0.003, 0.004],
    [0.005, 0.006, 0.007, 0.008],
    [0.009, 0.010, 0.011, 0.012],
]
HIDDEN_BIASES = [0.013, 0.014, 0.015, 0.016]

OUTPUT_WEIGHTS = [
    [0.017, 0.018],
    [0.019, 0.020],
    [0.021, 0.022],
    [0.023, 0.024],
]
OUTPUT_BIASES = [0.025, 0.026]

EXAMPLE_INPUT = [1.0, -2.0, 3.0]
EXAMPLE_TARGET = [0.1234, 0.8766]


@pytest.fixture
def two_layer_network():
    """A 3-4-2 sigmoid network with known weights and biases."""
    return NeuralNetwork([
        Layer(3, 4, FixedInitializer(HIDDEN_WEIGHTS, HIDDEN_BIASES), Sigmoid()),
        Layer(4, 2, FixedInitializer(OUTPUT_WEIGHTS, OUTPUT_BIASES), Sigmoid()),
    ], QuadraticCost())


def numerical_gradients(network, values, target, epsilon=1e-6):
    """
    Central finite-difference gradients of the cost for every layer.

    Returns a list of (weight_gradient, bias_gradient) pairs, one per layer.
    Parameters are perturbed in place and restored afterwards.
    """
    cost = network.cost_function

    def cost_at():
        return cost.calculate(network.query(values), target)

    gradients = []
    for layer in network.layers:
        pairs = []
        for parameters in (layer.weights, layer.biases):
            estimate = np.zeros_like(parameters)
            for index in np.ndindex(parameters.shape):
                original = parameters[index]
                parameters[index] = original + epsilon
                plus = cost_at()
                parameters[index] = original - epsilon
                minus = cost_at()
                parameters[index] = original
                estimate[index] = (plus - minus) / (2 * epsilon)
            pairs.append(estimate)
        gradients.append(tuple(pairs))
    return gradients


def analytic_gradients(network, values, target):
    """Run one forward and backward pass without updating the parameters."""
    output = network.query(values)
    gradient = network.cost_function.derivative(output, target)
    for layer in reversed(network.layers):
        gradient = layer.back_propagate(gradient)
    return [(layer.weight_gradient.copy(), layer.bias_gradient.copy())
            for layer in network.layers]
