"""
cost.py
~~~~~~~

Cost functions measuring how far a single network output is from its target.
"""

from typing import Dict, Tuple, Type

import numpy as np

from neuranet.exceptions import ShapeMismatchError


def _as_pair(output, target) -> Tuple[np.ndarray, np.ndarray]:
    output = np.asarray(output, dtype=float)
    target = np.asarray(target, dtype=float)
    if output.shape != target.shape:
        raise ShapeMismatchError(
            f"Output shape {output.shape} does not match target shape {target.shape}"
        )
    return output, target


class CostFunction:
    """Base class for cost functions over one (output, target) pair."""

    name = 'cost'

    def calculate(self, output, target) -> float:
        """Return the scalar cost of ``output`` given ``target``."""
        raise NotImplementedError("calculate() is not implemented")

    def derivative(self, output, target) -> np.ndarray:
        """Return the gradient of the cost with respect to ``output``."""
        raise NotImplementedError("derivative() is not implemented")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class QuadraticCost(CostFunction):
    """
    Half the summed squared error.

    Training has done a good job when it finds weights and biases for which
    this cost is close to 0 across the training examples.
    """

    name = 'quadratic'

    def calculate(self, output, target) -> float:
        output, target = _as_pair(output, target)
        return float(0.5 * np.sum((output - target) ** 2))

    def derivative(self, output, target) -> np.ndarray:
        output, target = _as_pair(output, target)
        return output - target


COST_FUNCTIONS: Dict[str, Type[CostFunction]] = {
    QuadraticCost.name: QuadraticCost,
}


def get_cost_function(name: str) -> CostFunction:
    """
    Look up a cost function by name.

    Raises:
        ValueError: If no cost function is registered under ``name``
    """
    key = str(name).lower()
    if key not in COST_FUNCTIONS:
        raise ValueError(
            f"Unknown cost function '{name}'. "
            f"Expected one of: {', '.join(sorted(COST_FUNCTIONS))}"
        )
    return COST_FUNCTIONS[key]()
