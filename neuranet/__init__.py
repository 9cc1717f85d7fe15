"""
neuranet package
~~~~~~~~~~~~~~~~

Feedforward neural network engine trained by backpropagation with momentum
gradient descent. Contains the activation and cost functions, the layer and
network implementation, layout builders, and a REST/WebSocket API server.
"""

__version__ = "1.0.0"
