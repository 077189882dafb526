"""Activation utilities for glyphnet."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Tuple

import numpy as np

from .types import Array


class ActivationKind(str, Enum):
    """Activation applied by a dense layer."""

    RELU = "relu"
    SIGMOID = "sigmoid"

    @classmethod
    def parse(cls, value: "ActivationKind | str | int") -> "ActivationKind":
        """Resolve names (``"relu"``) and legacy integer codes (``0``/``1``)."""

        if isinstance(value, cls):
            return value
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            codes = list(cls)
            if 0 <= int(value) < len(codes):
                return codes[int(value)]
            raise ValueError(f"Unknown activation code: {value}")
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            available = ", ".join(kind.value for kind in cls)
            raise ValueError(
                f"Unknown activation {value!r}. Available activations: {available}"
            ) from exc


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def relu_derivative(x: Array) -> Array:
    return (x > 0).astype(x.dtype)


def sigmoid(x: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-x))


def sigmoid_derivative(output: Array) -> Array:
    """Derivative expressed through the already computed sigmoid output."""

    return output * (1.0 - output)


ActivationPair = Tuple[Callable[[Array], Array], Callable[[Array], Array]]

_FUNCTIONS: dict[ActivationKind, ActivationPair] = {
    ActivationKind.RELU: (relu, relu_derivative),
    ActivationKind.SIGMOID: (sigmoid, sigmoid_derivative),
}


def resolve(kind: ActivationKind | str | int) -> ActivationPair:
    """Return ``(activation, derivative)`` for ``kind``."""

    return _FUNCTIONS[ActivationKind.parse(kind)]


__all__ = [
    "ActivationKind",
    "relu",
    "relu_derivative",
    "sigmoid",
    "sigmoid_derivative",
    "resolve",
]
