"""Fully connected layer with manual backpropagation."""

from __future__ import annotations

import numpy as np

from .activations import ActivationKind, resolve
from .image import reshape_1d_to_2d, reshape_2d_to_1d
from .rng import RandomSource
from .snapshot import LayerParameters
from .types import Array


def _lazy_allocate(buffer: Array | None, rows: int, cols: int) -> Array:
    if buffer is None or buffer.shape != (rows, cols):
        return np.zeros((rows, cols), dtype=np.float32)
    return buffer


def _one_hot(targets: Array, rows: int, num_classes: int) -> Array:
    indices = np.asarray(targets).reshape(-1).astype(np.int64)
    if indices.shape[0] != rows:
        raise ValueError(f"Expected {rows} targets, got {indices.shape[0]}")
    if indices.size and (indices.min() < 0 or indices.max() >= num_classes):
        raise ValueError(f"Target class ids must lie in [0, {num_classes})")
    encoded = np.zeros((rows, num_classes), dtype=np.float32)
    encoded[np.arange(rows), indices] = 1.0
    return encoded


class DenseLayer:
    """One fully connected layer with a fixed activation.

    A training step runs in two phases: :meth:`forward` fills ``outputs`` for
    the batch, then one of the ``backpropagate_*`` methods fills
    ``node_errors`` and calls :meth:`update_weights`. Before the parameters are
    mutated the layer stores ``input_error`` (the error signal for the layer
    below, computed with the pre-update weights), so a backward pass that
    walks from the output toward the input never reads stale weights.
    """

    def __init__(
        self,
        n_inputs: int,
        n_neurons: int,
        activation: ActivationKind | str | int,
        rng: RandomSource | None = None,
    ) -> None:
        if n_inputs <= 0 or n_neurons <= 0:
            raise ValueError(
                f"Layer dimensions must be positive, got {n_inputs}x{n_neurons}"
            )
        self.n_inputs = int(n_inputs)
        self.n_neurons = int(n_neurons)
        self.activation = ActivationKind.parse(activation)
        self._activate, self._derivative = resolve(self.activation)
        self.weights = np.zeros((self.n_neurons, self.n_inputs), dtype=np.float32)
        self.biases = np.zeros(self.n_neurons, dtype=np.float32)
        self.outputs: Array | None = None
        self.node_errors: Array | None = None
        self.input_error: Array | None = None
        if rng is not None:
            self.initialize(rng)

    def initialize(self, rng: RandomSource) -> None:
        """He initialisation: ``normal() * sqrt(2 / n_inputs)``.

        Draws follow neuron order, the bias first and then its weight row.
        """

        scale = np.sqrt(2.0 / self.n_inputs)
        draws = np.asarray(rng.normal((self.n_neurons, self.n_inputs + 1))) * scale
        self.biases = draws[:, 0].astype(np.float32)
        self.weights = np.ascontiguousarray(draws[:, 1:], dtype=np.float32)

    @property
    def batch_size(self) -> int:
        return 0 if self.outputs is None else int(self.outputs.shape[0])

    def forward(self, inputs: Array) -> Array:
        inputs = np.asarray(inputs, dtype=np.float32)
        if inputs.ndim != 2 or inputs.shape[1] != self.n_inputs:
            raise ValueError(
                f"Expected inputs of shape (batch, {self.n_inputs}), got {inputs.shape}"
            )
        self.outputs = _lazy_allocate(self.outputs, inputs.shape[0], self.n_neurons)
        np.matmul(inputs, self.weights.T, out=self.outputs)
        self.outputs += self.biases
        self.outputs[...] = self._activate(self.outputs)
        return self.outputs

    def backpropagate_output(self, targets: Array, previous_outputs: Array, lr: float) -> None:
        """Error of an output layer against one-hot ``targets`` (``batch × 1`` ids)."""

        outputs = self._require_outputs()
        rows = outputs.shape[0]
        self.node_errors = _lazy_allocate(self.node_errors, rows, self.n_neurons)
        np.subtract(outputs, _one_hot(targets, rows, self.n_neurons), out=self.node_errors)
        self.update_weights(lr, previous_outputs)

    def backpropagate_hidden(
        self, next_layer: "DenseLayer", previous_outputs: Array, lr: float
    ) -> None:
        """Chain-rule error of a hidden layer from the layer directly above it."""

        outputs = self._require_outputs()
        signal = next_layer.input_error
        if signal is None:
            raise RuntimeError("The layer above has not been backpropagated in this pass")
        if signal.shape != outputs.shape:
            raise ValueError(
                f"Error signal of shape {signal.shape} does not match outputs {outputs.shape}"
            )
        self.node_errors = _lazy_allocate(self.node_errors, outputs.shape[0], self.n_neurons)
        np.copyto(self.node_errors, signal)
        self.update_weights(lr, previous_outputs)

    def update_weights(self, lr: float, previous_outputs: Array) -> None:
        """Plain gradient step summed (not averaged) over the batch."""

        outputs = self._require_outputs()
        if self.node_errors is None:
            raise RuntimeError("Node errors must be computed before updating weights")
        previous_outputs = np.asarray(previous_outputs, dtype=np.float32)
        if previous_outputs.shape != (outputs.shape[0], self.n_inputs):
            raise ValueError(
                f"Expected previous outputs of shape {(outputs.shape[0], self.n_inputs)}, "
                f"got {previous_outputs.shape}"
            )
        delta = self.node_errors * self._derivative(outputs)
        self.input_error = delta @ self.weights
        self.weights -= lr * (delta.T @ previous_outputs)
        self.biases -= lr * delta.sum(axis=0)

    def parameters(self) -> LayerParameters:
        return LayerParameters(
            n_inputs=self.n_inputs,
            n_neurons=self.n_neurons,
            weights=reshape_2d_to_1d(self.weights).tolist(),
            biases=self.biases.tolist(),
            activation=self.activation,
        )

    @classmethod
    def from_parameters(cls, params: LayerParameters) -> "DenseLayer":
        layer = cls(params.n_inputs, params.n_neurons, params.activation)
        layer.weights = reshape_1d_to_2d(
            np.asarray(params.weights, dtype=np.float32), params.n_neurons, params.n_inputs
        ).copy()
        layer.biases = np.asarray(params.biases, dtype=np.float32)
        return layer

    def _require_outputs(self) -> Array:
        if self.outputs is None:
            raise RuntimeError("forward() must run before backpropagation")
        return self.outputs

    def __repr__(self) -> str:
        return (
            f"DenseLayer(n_inputs={self.n_inputs}, n_neurons={self.n_neurons}, "
            f"activation={self.activation.value!r})"
        )


__all__ = ["DenseLayer"]
