"""Feedforward threshold network with mutation-based search."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


class Level:
    """Single layer of threshold units."""

    def __init__(self, input_count: int, output_count: int,
                 rng: Optional[np.random.RandomState] = None):
        """Initialize level with weights and biases drawn from U(-1, 1).

        Args:
            input_count: Number of input neurons
            output_count: Number of output neurons
            rng: Random state used for initialization
        """
        if input_count < 1 or output_count < 1:
            raise ValueError(f"Level sizes must be positive, got {input_count}x{output_count}")
        rng = rng if rng is not None else np.random.RandomState()
        self.weights = rng.uniform(-1.0, 1.0, size=(input_count, output_count))
        self.biases = rng.uniform(-1.0, 1.0, size=output_count)

    @property
    def input_count(self) -> int:
        return self.weights.shape[0]

    @property
    def output_count(self) -> int:
        return self.weights.shape[1]

    def feed_forward(self, inputs: Sequence[float]) -> np.ndarray:
        """Output 1 for every unit whose weighted sum strictly exceeds its bias."""
        inputs = np.asarray(inputs, dtype=np.float64)
        if inputs.shape != (self.input_count,):
            raise ValueError(
                f"Expected {self.input_count} inputs, got shape {inputs.shape}")
        sums = inputs @ self.weights
        return (sums > self.biases).astype(np.int64)


class PerceptronNetwork:
    """Stack of threshold levels mapping sensor inputs to binary controls."""

    def __init__(self, layer_sizes: Sequence[int], seed: Optional[int] = None):
        """Initialize network.

        Args:
            layer_sizes: Neuron count per layer, inputs first
            seed: Random seed for initialization and mutation
        """
        if len(layer_sizes) < 2:
            raise ValueError(f"Need at least input and output sizes, got {list(layer_sizes)}")
        self.layer_sizes = [int(n) for n in layer_sizes]
        self.rng = np.random.RandomState(seed)
        self.levels = [Level(self.layer_sizes[i], self.layer_sizes[i + 1], self.rng)
                       for i in range(len(self.layer_sizes) - 1)]

    def feed_forward(self, inputs: Sequence[float]) -> np.ndarray:
        """Run inputs through every level; the last output is the action vector."""
        outputs = self.levels[0].feed_forward(inputs)
        for level in self.levels[1:]:
            outputs = level.feed_forward(outputs)
        return outputs

    def mutate(self, amount: float = 1.0) -> None:
        """Pull every parameter toward a fresh U(-1, 1) draw by amount."""
        amount = float(np.clip(amount, 0.0, 1.0))
        for level in self.levels:
            targets = self.rng.uniform(-1.0, 1.0, size=level.biases.shape)
            level.biases = level.biases + (targets - level.biases) * amount
            targets = self.rng.uniform(-1.0, 1.0, size=level.weights.shape)
            level.weights = level.weights + (targets - level.weights) * amount

    def copy(self, seed: Optional[int] = None) -> 'PerceptronNetwork':
        """Deep copy with its own parameter storage and random state."""
        clone = PerceptronNetwork.__new__(PerceptronNetwork)
        clone.layer_sizes = list(self.layer_sizes)
        clone.rng = np.random.RandomState(seed)
        clone.levels = []
        for level in self.levels:
            new_level = Level.__new__(Level)
            new_level.weights = level.weights.copy()
            new_level.biases = level.biases.copy()
            clone.levels.append(new_level)
        return clone

    def to_dict(self) -> Dict[str, Any]:
        return {
            'layer_sizes': list(self.layer_sizes),
            'levels': [{'weights': level.weights.tolist(), 'biases': level.biases.tolist()}
                       for level in self.levels],
        }

    @classmethod
    def from_dict(cls, data: Any, layer_sizes: Sequence[int],
                  seed: Optional[int] = None) -> 'PerceptronNetwork':
        """Restore a network, falling back to a fresh one if data is unusable.

        Args:
            data: Output of to_dict (possibly corrupt or None)
            layer_sizes: Expected architecture
            seed: Random seed for the returned network

        Returns:
            Network with the stored parameters, or freshly initialized
        """
        network = cls(layer_sizes, seed=seed)
        if data is None:
            return network
        try:
            levels: List[Dict[str, Any]] = data['levels']
            if len(levels) != len(network.levels):
                raise ValueError(f"Expected {len(network.levels)} levels, got {len(levels)}")
            restored = []
            for level, stored in zip(network.levels, levels):
                weights = np.asarray(stored['weights'], dtype=np.float64)
                biases = np.asarray(stored['biases'], dtype=np.float64)
                if weights.shape != level.weights.shape or biases.shape != level.biases.shape:
                    raise ValueError(f"Level shape mismatch: {weights.shape}, {biases.shape}")
                if not (np.all(np.isfinite(weights)) and np.all(np.isfinite(biases))):
                    raise ValueError("Non-finite parameters")
                restored.append((weights, biases))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding stored network: {e}")
            return network

        for level, (weights, biases) in zip(network.levels, restored):
            level.weights = weights
            level.biases = biases
        return network
