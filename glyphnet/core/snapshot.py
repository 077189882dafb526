"""Layer-parameter snapshots and their JSON persistence."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Dict, List, Mapping

from .activations import ActivationKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayerParameters:
    """Topology and parameters of one dense layer.

    ``weights`` is the ``n_neurons × n_inputs`` matrix flattened row-major.
    """

    n_inputs: int
    n_neurons: int
    weights: List[float]
    biases: List[float]
    activation: ActivationKind

    def __post_init__(self) -> None:
        if self.n_inputs <= 0 or self.n_neurons <= 0:
            raise ValueError(
                f"Layer dimensions must be positive, got {self.n_inputs}x{self.n_neurons}"
            )
        if len(self.weights) != self.n_neurons * self.n_inputs:
            raise ValueError(
                f"Expected {self.n_neurons * self.n_inputs} weights for a "
                f"{self.n_neurons}x{self.n_inputs} layer, got {len(self.weights)}"
            )
        if len(self.biases) != self.n_neurons:
            raise ValueError(
                f"Expected {self.n_neurons} biases, got {len(self.biases)}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nInputs": int(self.n_inputs),
            "nNeurons": int(self.n_neurons),
            "weights": [float(w) for w in self.weights],
            "biases": [float(b) for b in self.biases],
            "activation": self.activation.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LayerParameters":
        try:
            return cls(
                n_inputs=int(payload["nInputs"]),
                n_neurons=int(payload["nNeurons"]),
                weights=[float(w) for w in payload["weights"]],
                biases=[float(b) for b in payload["biases"]],
                activation=ActivationKind.parse(payload["activation"]),
            )
        except KeyError as exc:
            raise ValueError(f"Layer record is missing field {exc.args[0]!r}") from exc


@dataclass(frozen=True)
class NetworkSnapshot:
    """Ordered layer records sufficient to rebuild a network for inference."""

    layers: List[LayerParameters] = field(default_factory=list)

    def __post_init__(self) -> None:
        for idx in range(1, len(self.layers)):
            previous, current = self.layers[idx - 1], self.layers[idx]
            if current.n_inputs != previous.n_neurons:
                raise ValueError(
                    f"Layer {idx} expects {current.n_inputs} inputs but layer "
                    f"{idx - 1} produces {previous.n_neurons}"
                )

    def to_dict(self) -> Dict[str, Any]:
        return {"layers": [layer.to_dict() for layer in self.layers]}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "NetworkSnapshot":
        layers = payload.get("layers")
        if not isinstance(layers, list):
            raise ValueError("Snapshot must contain a 'layers' list")
        return cls(layers=[LayerParameters.from_dict(item) for item in layers])


def dump_snapshot(snapshot: NetworkSnapshot, stream: IO[str]) -> None:
    """Serialise ``snapshot`` as JSON into a text stream."""

    json.dump(snapshot.to_dict(), stream)


def load_snapshot(stream: IO[str]) -> NetworkSnapshot:
    """Read a snapshot previously written by :func:`dump_snapshot`."""

    return NetworkSnapshot.from_dict(json.load(stream))


def read_snapshot_file(path: str | Path) -> NetworkSnapshot:
    with Path(path).open("r", encoding="utf-8") as handle:
        return load_snapshot(handle)


class JsonSnapshotWriter:
    """Persist snapshots to a JSON file, replacing it atomically."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.saved = 0

    def persist(self, snapshot: NetworkSnapshot) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                dump_snapshot(snapshot, handle)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self.saved += 1
        logger.info("Saved model snapshot to %s", self.path)
        return self.path


__all__ = [
    "JsonSnapshotWriter",
    "LayerParameters",
    "NetworkSnapshot",
    "dump_snapshot",
    "load_snapshot",
    "read_snapshot_file",
]
