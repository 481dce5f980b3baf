"""
Reference decision function for ExternalModelAgent
A small feed-forward network over the two previous choices, standing in for an evolved phenotype
"""

import numpy as np
from typing import List, Optional, Sequence


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


class FeedForwardNetwork:
    """Fully connected network: 2 inputs (+ bias) -> optional hidden layer -> outputs, sigmoid activations"""

    def __init__(self, weights: Sequence[np.ndarray]):
        if not weights:
            raise ValueError("network needs at least one weight matrix")
        self.weights = [np.asarray(w, dtype=float) for w in weights]
        # every layer takes the previous activations plus a bias unit
        fan_in = 2
        for i, w in enumerate(self.weights):
            if w.ndim != 2 or w.shape[0] != fan_in + 1:
                raise ValueError(f"layer {i} expects shape ({fan_in + 1}, n), got {w.shape}")
            fan_in = w.shape[1]

    @classmethod
    def random(cls, hidden: Optional[int] = 1, outputs: int = 1,
               seed: Optional[int] = None, scale: float = 1.0) -> "FeedForwardNetwork":
        """Gaussian-initialised network; ``hidden=None`` or 0 gives a single layer"""
        rng = np.random.default_rng(seed)
        sizes = [2] + ([hidden] if hidden else []) + [outputs]
        weights = [rng.normal(0.0, scale, size=(n_in + 1, n_out))
                   for n_in, n_out in zip(sizes[:-1], sizes[1:])]
        return cls(weights)

    @property
    def n_outputs(self) -> int:
        return self.weights[-1].shape[1]

    def decide(self, inputs: Sequence[float]) -> List[float]:
        activation = np.asarray(inputs, dtype=float)
        if activation.shape != (2,):
            raise ValueError(f"expected 2 inputs, got shape {activation.shape}")
        for w in self.weights:
            activation = _sigmoid(np.append(activation, 1.0) @ w)
        return activation.tolist()

    __call__ = decide

    def __repr__(self):
        layers = " -> ".join(str(w.shape[0] - 1) for w in self.weights)
        return f"FeedForwardNetwork({layers} -> {self.n_outputs})"
