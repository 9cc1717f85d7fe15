"""
test_layer.py
~~~~~~~~~~~~~

Unit tests for a single layer: construction, forward pass, backward pass and
momentum updates.
"""

import numpy as np
import pytest

from neuranet.activations import Identity, Sigmoid
from neuranet.exceptions import InvalidShapeError, ShapeMismatchError, StaleStateError
from neuranet.layer import Layer
from neuranet.layout import FixedInitializer


@pytest.fixture
def identity_layer():
    """A 2-3 identity layer with hand-picked weights."""
    return Layer(
        2, 3,
        FixedInitializer([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], [0.1, 0.2, 0.3]),
        Identity()
    )


@pytest.mark.unit
class TestLayerConstruction:
    """Test layer allocation."""

    def test_parameters_come_from_initializer(self, identity_layer):
        assert identity_layer.shape == (2, 3)
        assert identity_layer.weights.tolist() == [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]
        assert identity_layer.biases.tolist() == [0.1, 0.2, 0.3]

    def test_velocities_start_at_zero(self, identity_layer):
        assert identity_layer.weight_velocity.shape == (2, 3)
        assert not identity_layer.weight_velocity.any()
        assert identity_layer.bias_velocity.shape == (3,)
        assert not identity_layer.bias_velocity.any()

    @pytest.mark.parametrize('inputs,outputs', [(0, 3), (2, 0), (-1, 2), (2, 1.5)])
    def test_invalid_dimensions_raise(self, inputs, outputs):
        with pytest.raises(InvalidShapeError):
            Layer(inputs, outputs, FixedInitializer([[0.0]], [0.0]), Identity())

    def test_initializer_too_small_raises(self):
        with pytest.raises(ShapeMismatchError):
            Layer(2, 2, FixedInitializer([[0.0, 0.0]], [0.0, 0.0]), Identity())

    def test_connect_checks_dimensions(self, identity_layer):
        follower = Layer(3, 1, FixedInitializer([[1.0], [1.0], [1.0]], [0.0]), Identity())
        follower.connect(identity_layer)
        assert follower.has_previous is True

        mismatched = Layer(2, 1, FixedInitializer([[1.0], [1.0]], [0.0]), Identity())
        with pytest.raises(ShapeMismatchError):
            mismatched.connect(identity_layer)

    def test_connect_without_previous(self, identity_layer):
        identity_layer.connect(None)
        assert identity_layer.has_previous is False


@pytest.mark.unit
class TestFeedForward:
    """Test the forward pass."""

    def test_affine_transform(self, identity_layer):
        """Test that z = input . W + b."""
        output = identity_layer.feed_forward([1.0, -1.0])
        assert np.allclose(output, [-2.9, -2.8, -2.7])

    def test_caches_input_and_preactivation(self):
        layer = Layer(1, 2, FixedInitializer([[1.0, -1.0]], [0.0, 0.0]), Sigmoid())
        output = layer.feed_forward([2.0])

        assert layer.last_input.tolist() == [2.0]
        assert layer.last_preactivation.tolist() == [2.0, -2.0]
        assert np.allclose(output, 1 / (1 + np.exp([-2.0, 2.0])))

    @pytest.mark.parametrize('values', [[1.0], [1.0, 2.0, 3.0], [[1.0, 2.0]]])
    def test_wrong_input_shape_raises(self, identity_layer, values):
        with pytest.raises(ShapeMismatchError):
            identity_layer.feed_forward(values)


@pytest.mark.unit
class TestBackPropagate:
    """Test gradient computation."""

    def test_gradients(self, identity_layer):
        identity_layer.connect(None)
        identity_layer.feed_forward([1.0, -1.0])

        result = identity_layer.back_propagate([1.0, 0.0, -2.0])

        # Identity derivative is 1, so the node delta equals the cost gradient
        assert identity_layer.bias_gradient.tolist() == [1.0, 0.0, -2.0]
        assert identity_layer.weight_gradient.tolist() == [
            [1.0, 0.0, -2.0],
            [-1.0, 0.0, 2.0],
        ]
        assert result is None
        assert identity_layer.gradient_to_previous is None

    def test_gradient_to_previous_when_connected(self, identity_layer):
        previous = Layer(1, 2, FixedInitializer([[1.0, 1.0]], [0.0, 0.0]), Identity())
        identity_layer.connect(previous)
        identity_layer.feed_forward([1.0, -1.0])

        result = identity_layer.back_propagate([1.0, 0.0, -2.0])

        # W . delta = [1 - 6, 4 - 12]
        assert result.tolist() == [-5.0, -8.0]
        assert identity_layer.gradient_to_previous is result

    def test_without_forward_pass_raises(self, identity_layer):
        with pytest.raises(StaleStateError):
            identity_layer.back_propagate([1.0, 0.0, -2.0])

    def test_wrong_gradient_length_raises(self, identity_layer):
        identity_layer.feed_forward([1.0, -1.0])
        with pytest.raises(ShapeMismatchError):
            identity_layer.back_propagate([1.0, 0.0])


@pytest.mark.unit
class TestGradientDescent:
    """Test parameter updates."""

    def test_zero_momentum_is_plain_gradient_descent(self, identity_layer):
        identity_layer.feed_forward([1.0, -1.0])
        identity_layer.back_propagate([1.0, 0.0, -2.0])
        weights = identity_layer.weights.copy()
        biases = identity_layer.biases.copy()

        identity_layer.perform_gradient_descent(0.1, 0.0)

        assert np.array_equal(
            identity_layer.weights, weights - 0.1 * identity_layer.weight_gradient
        )
        assert np.array_equal(
            identity_layer.biases, biases - 0.1 * identity_layer.bias_gradient
        )

    def test_momentum_accumulates_velocity(self, identity_layer):
        """Test two steps with the same gradient and momentum 0.5."""
        biases = identity_layer.biases.copy()
        gradient = np.array([1.0, 0.0, -2.0])

        for _ in range(2):
            identity_layer.feed_forward([1.0, -1.0])
            identity_layer.back_propagate(gradient)
            identity_layer.perform_gradient_descent(0.1, 0.5)

        # v1 = -0.1 g, v2 = 0.5 v1 - 0.1 g = -0.15 g
        assert np.allclose(identity_layer.bias_velocity, -0.15 * gradient)
        assert np.allclose(identity_layer.biases, biases - 0.25 * gradient)

    def test_update_without_gradients_raises(self, identity_layer):
        with pytest.raises(StaleStateError):
            identity_layer.perform_gradient_descent(0.1)

    def test_gradients_are_applied_once(self, identity_layer):
        identity_layer.feed_forward([1.0, -1.0])
        identity_layer.back_propagate([1.0, 0.0, -2.0])
        identity_layer.perform_gradient_descent(0.1)

        with pytest.raises(StaleStateError):
            identity_layer.perform_gradient_descent(0.1)

    def test_update_completes_the_training_step(self, identity_layer):
        """Test that forward caches are consumed but gradients stay readable."""
        identity_layer.feed_forward([1.0, -1.0])
        identity_layer.back_propagate([1.0, 0.0, -2.0])
        identity_layer.perform_gradient_descent(0.1)

        assert identity_layer.last_input is None
        assert identity_layer.last_preactivation is None
        assert identity_layer.weight_gradient is not None

        with pytest.raises(StaleStateError):
            identity_layer.back_propagate([1.0, 0.0, -2.0])
