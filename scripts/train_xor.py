#!/usr/bin/env python3
"""
Train a small network to learn XOR.

A minimal training driver around the neuranet engine: it builds a 2-3-1
tanh/sigmoid network, trains it with momentum gradient descent and reports
the mean cost as training progresses.

Usage:
    python scripts/train_xor.py

The script will:
1. Build the network with a fixed seed
2. Train it on the four XOR examples
3. Print the network's answer for every example
"""

import os
import sys
from typing import Any, Dict, List

import numpy as np

# Allow running from a source checkout without installing the package
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

from neuranet.layout import GaussianInitializer, LayerSpec, build_layers
from neuranet.network import NeuralNetwork, TrainingExample

XOR_EXAMPLES: List[TrainingExample] = [
    TrainingExample([0.0, 0.0], [0.0]),
    TrainingExample([0.0, 1.0], [1.0]),
    TrainingExample([1.0, 0.0], [1.0]),
    TrainingExample([1.0, 1.0], [0.0]),
]

EPOCHS = 2000
LEARNING_RATE = 0.5
MOMENTUM = 0.9
REPORT_EVERY = 200
SEED = 7


def build_xor_network(seed: int = SEED) -> NeuralNetwork:
    """
    Build a 2-3-1 network with a tanh hidden layer and sigmoid output.

    Parameters:
    -----------
    seed : int
        Seed for the weight initializers

    Returns:
    --------
    NeuralNetwork
        The untrained network
    """
    rng = np.random.default_rng(seed)
    return NeuralNetwork(build_layers([
        LayerSpec(2, 3, GaussianInitializer(2, rng), 'tanh'),
        LayerSpec(3, 1, GaussianInitializer(3, rng), 'sigmoid'),
    ]))


def report_progress(data: Dict[str, Any]) -> None:
    """Print the mean cost at the end of every REPORT_EVERY-th epoch."""
    if data['example'] == data['total_examples'] and data['epoch'] % REPORT_EVERY == 0:
        print(f"   epoch {data['epoch']:>5}/{data['total_epochs']}: "
              f"mean cost {data['mean_cost']:.6f}")


def main():
    """Main training function."""
    print("=" * 60)
    print("XOR training run")
    print(f"epochs={EPOCHS}, learning_rate={LEARNING_RATE}, momentum={MOMENTUM}")
    print("=" * 60)

    network = build_xor_network()
    print(f"\n🧠 Built network with sizes {network.sizes}")

    print("\n🏋️  Training...")
    mean_cost = network.train(
        XOR_EXAMPLES,
        EPOCHS,
        LEARNING_RATE,
        MOMENTUM,
        callback=report_progress
    )
    print(f"✅ Final mean cost: {mean_cost:.6f}")

    print("\n🔍 Results:")
    for example in XOR_EXAMPLES:
        output = network.query(example.input)
        print(f"   {example.input.tolist()} -> {output[0]:.4f} "
              f"(expected {example.target[0]:.0f})")


if __name__ == '__main__':
    main()
