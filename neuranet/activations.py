"""
activations.py
~~~~~~~~~~~~~~

Elementwise activation functions and their derivatives.

Every ``derivative`` takes the pre-activation value ``z`` (the value the layer
fed into ``transform``), never the transformed output. Activations whose
derivative is most naturally written in terms of the output recompute the
transform first.
"""

from typing import Dict, Type

import numpy as np


class Activation:
    """
    Base class for activation functions.

    Subclasses implement ``_transform`` and ``_derivative`` as vectorized
    formulas over a float array; the public methods coerce their input and
    apply them elementwise.
    """

    name = 'activation'

    def transform(self, values) -> np.ndarray:
        """Apply the activation to every element of ``values``."""
        return self._transform(np.asarray(values, dtype=float))

    def derivative(self, values) -> np.ndarray:
        """
        Derivative of the activation with respect to its input.

        Args:
            values: Pre-activation values ``z``

        Returns:
            d transform(z) / dz for every element
        """
        return self._derivative(np.asarray(values, dtype=float))

    def _transform(self, z: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _derivative(self, z: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class Sigmoid(Activation):
    """Logistic function ``1 / (1 + e^-z)``."""

    name = 'sigmoid'

    def _transform(self, z: np.ndarray) -> np.ndarray:
        # exp overflows to inf for very negative z, which still yields 0.0
        with np.errstate(over='ignore'):
            return 1.0 / (1.0 + np.exp(-z))

    def _derivative(self, z: np.ndarray) -> np.ndarray:
        s = self._transform(z)
        return s * (1.0 - s)


class HyperbolicTangent(Activation):
    """Hyperbolic tangent, output in (-1, 1)."""

    name = 'tanh'

    def _transform(self, z: np.ndarray) -> np.ndarray:
        return np.tanh(z)

    def _derivative(self, z: np.ndarray) -> np.ndarray:
        a = np.tanh(z)
        return (1.0 - a) * (1.0 + a)


class ReLU(Activation):
    """Rectified linear unit. The derivative at exactly 0 is taken as 0."""

    name = 'relu'

    def _transform(self, z: np.ndarray) -> np.ndarray:
        return np.maximum(0.0, z)

    def _derivative(self, z: np.ndarray) -> np.ndarray:
        return (z > 0).astype(float)


class Identity(Activation):
    """Linear pass-through, mostly useful for regression output layers."""

    name = 'identity'

    def _transform(self, z: np.ndarray) -> np.ndarray:
        return z.copy()

    def _derivative(self, z: np.ndarray) -> np.ndarray:
        return np.ones_like(z)


ACTIVATIONS: Dict[str, Type[Activation]] = {
    cls.name: cls for cls in (Sigmoid, HyperbolicTangent, ReLU, Identity)
}


def get_activation(name: str) -> Activation:
    """
    Look up an activation by name.

    Args:
        name: Registered name, case-insensitive ('sigmoid', 'tanh', ...)

    Returns:
        A new instance of the matching activation

    Raises:
        ValueError: If no activation is registered under ``name``
    """
    key = str(name).lower()
    if key not in ACTIVATIONS:
        raise ValueError(
            f"Unknown activation '{name}'. "
            f"Expected one of: {', '.join(sorted(ACTIVATIONS))}"
        )
    return ACTIVATIONS[key]()
