"""
exceptions.py
~~~~~~~~~~~~~

Errors raised by the network engine.

All of them signal a caller bug: nothing is retried, clamped or padded.
"""


class NeuralNetworkError(Exception):
    """Base class for all neuranet errors."""


class ShapeMismatchError(NeuralNetworkError, ValueError):
    """A vector or layer dimension disagrees with the one it is paired with."""


class InvalidShapeError(NeuralNetworkError, ValueError):
    """A layer was declared with a non-positive number of inputs or outputs."""


class EmptyLayoutError(NeuralNetworkError, ValueError):
    """A network was built without any layers."""


class StaleStateError(NeuralNetworkError, RuntimeError):
    """
    A backward pass or update was requested without the state it depends on.

    Raised when back-propagating through a layer that has not been fed
    forward, or when applying gradients that were never computed or were
    already applied.
    """
