"""Multi-layer perceptron built from :class:`DenseLayer` objects."""

from __future__ import annotations

import logging
from typing import Iterable, List

import numpy as np

from .activations import ActivationKind
from .layer import DenseLayer
from .rng import RandomSource
from .snapshot import NetworkSnapshot
from .types import Array, EvaluationReport

logger = logging.getLogger(__name__)


class EmptyNetworkError(RuntimeError):
    """Raised when a pass is requested on a network without layers."""


def _label_indices(labels: Array) -> Array:
    return np.asarray(labels).reshape(-1).astype(np.int64)


def predicted_classes(outputs: Array) -> Array:
    """Index of the maximum output per row, keeping the last index on ties."""

    outputs = np.asarray(outputs)
    reversed_argmax = np.argmax(outputs[:, ::-1], axis=1)
    return outputs.shape[1] - 1 - reversed_argmax


class Network:
    """Ordered stack of dense layers trained by plain backpropagation."""

    def __init__(
        self,
        rng: RandomSource | None = None,
        learning_rate: float = 0.001,
        layers: Iterable[DenseLayer] | None = None,
    ) -> None:
        self.rng = rng
        self.learning_rate = float(learning_rate)
        self.layers: List[DenseLayer] = list(layers or [])

    # ------------------------------------------------------------------
    # Topology

    def add_layer(
        self, n_inputs: int, n_neurons: int, activation: ActivationKind | str | int
    ) -> DenseLayer:
        layer = DenseLayer(n_inputs, n_neurons, activation, rng=self.rng)
        self.layers.append(layer)
        return layer

    def clear_layers(self) -> None:
        self.layers.clear()

    @property
    def n_classes(self) -> int:
        return self._require_layers()[-1].n_neurons

    @property
    def outputs(self) -> Array:
        outputs = self._require_layers()[-1].outputs
        if outputs is None:
            raise RuntimeError("forward_pass() has not been run yet")
        return outputs

    def describe(self) -> List[int]:
        if not self.layers:
            return []
        return [self.layers[0].n_inputs] + [layer.n_neurons for layer in self.layers]

    def parameter_count(self) -> int:
        return int(sum(layer.weights.size + layer.biases.size for layer in self.layers))

    # ------------------------------------------------------------------
    # Passes

    def forward_pass(self, inputs: Array) -> Array:
        layers = self._require_layers()
        x = np.asarray(inputs, dtype=np.float32)
        for layer in layers:
            x = layer.forward(x)
        return x

    def backward_pass(self, inputs: Array, targets: Array) -> None:
        """Backpropagate from the output layer toward the input.

        Each layer computes its whole error array from the signal the layer
        above captured before its own update, then updates its parameters.
        """

        layers = self._require_layers()
        inputs = np.asarray(inputs, dtype=np.float32)
        lr = self.learning_rate
        last = len(layers) - 1
        below = layers[last - 1].outputs if last > 0 else inputs
        layers[last].backpropagate_output(targets, below, lr)
        for idx in range(last - 1, -1, -1):
            below = layers[idx - 1].outputs if idx > 0 else inputs
            layers[idx].backpropagate_hidden(layers[idx + 1], below, lr)

    # ------------------------------------------------------------------
    # Metrics over the outputs of the last forward pass

    def compute_loss(self, labels: Array) -> float:
        """Mean over samples of the summed squared error against one-hot targets."""

        outputs = self.outputs.astype(np.float64)
        indices = self._check_labels(labels, outputs.shape[0])
        if indices.size == 0:
            return 0.0
        targets = np.zeros_like(outputs)
        targets[np.arange(indices.size), indices] = 1.0
        return float(np.sum((outputs - targets) ** 2) / indices.size)

    def confusion_matrix_and_accuracy(self, labels: Array) -> EvaluationReport:
        outputs = self.outputs
        indices = self._check_labels(labels, outputs.shape[0])
        n_classes = self.n_classes
        predicted = predicted_classes(outputs)
        confusion = np.zeros((n_classes, n_classes), dtype=np.int64)
        np.add.at(confusion, (indices, predicted), 1)
        hits = int(np.trace(confusion))
        return EvaluationReport(confusion=confusion, hits=hits, total=int(indices.size))

    def evaluate(self, inputs: Array, labels: Array) -> EvaluationReport:
        """Forward ``inputs`` and report loss, confusion matrix and hits."""

        self.forward_pass(inputs)
        loss = self.compute_loss(labels)
        report = self.confusion_matrix_and_accuracy(labels)
        return EvaluationReport(
            confusion=report.confusion, hits=report.hits, total=report.total, loss=loss
        )

    # ------------------------------------------------------------------
    # Snapshots

    def export_snapshot(self) -> NetworkSnapshot:
        return NetworkSnapshot(layers=[layer.parameters() for layer in self.layers])

    def import_snapshot(self, snapshot: NetworkSnapshot) -> None:
        self.layers = [DenseLayer.from_parameters(params) for params in snapshot.layers]
        logger.debug("Loaded network with dimensions %s", self.describe())

    @classmethod
    def from_snapshot(cls, snapshot: NetworkSnapshot) -> "Network":
        network = cls()
        network.import_snapshot(snapshot)
        return network

    # ------------------------------------------------------------------

    def _require_layers(self) -> List[DenseLayer]:
        if not self.layers:
            raise EmptyNetworkError("The network has no layers")
        return self.layers

    def _check_labels(self, labels: Array, rows: int) -> Array:
        indices = _label_indices(labels)
        if indices.shape[0] != rows:
            raise ValueError(
                f"Got {indices.shape[0]} labels for {rows} outputs of the last forward pass"
            )
        if indices.size and (indices.min() < 0 or indices.max() >= self.n_classes):
            raise ValueError(f"Labels must lie in [0, {self.n_classes})")
        return indices


__all__ = ["EmptyNetworkError", "Network", "predicted_classes"]
