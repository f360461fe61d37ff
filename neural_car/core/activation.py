"""
core/activation.py

Squashing functions for network neurons.

Softsign is the default: bounded, smooth, odd, and defined everywhere.
"""

from __future__ import annotations
from typing import Callable, Dict, Union
import numpy as np

from neural_car.errors import ConfigurationError

ArrayLike = Union[float, np.ndarray]


def softsign(x: ArrayLike) -> ArrayLike:
    """x / (1 + |x|), bounded to (-1, 1)."""
    return x / (1.0 + np.abs(x))


def tanh(x: ArrayLike) -> ArrayLike:
    return np.tanh(x)


ACTIVATIONS: Dict[str, Callable[[ArrayLike], ArrayLike]] = {
    "softsign": softsign,
    "tanh": tanh,
}


def get_activation(name: str) -> Callable[[ArrayLike], ArrayLike]:
    """Look up an activation by name."""
    try:
        return ACTIVATIONS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown activation '{name}', expected one of {sorted(ACTIVATIONS)}"
        ) from None
