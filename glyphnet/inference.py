"""Inference over a trained network: input preparation, top-k and evaluation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

import numpy as np

from .core.image import prepare_for_inference
from .core.network import Network
from .core.snapshot import NetworkSnapshot, read_snapshot_file
from .core.types import Array, EvaluationReport

logger = logging.getLogger(__name__)

N_DIGITS = 10
N_SYMBOLS = 36


class ModelNotLoadedError(RuntimeError):
    """Raised when inference is requested before a network is loaded."""


def class_to_label(index: int) -> str:
    """Map a class id to its symbol: ``0-9`` for digits, ``A-Z`` for 10-35."""

    index = int(index)
    if index < 0 or index >= N_SYMBOLS:
        raise ValueError(f"Class index must be between 0 and {N_SYMBOLS - 1}, got {index}")
    if index < N_DIGITS:
        return str(index)
    return chr(ord("A") + index - N_DIGITS)


@dataclass(frozen=True)
class Prediction:
    label: str
    index: int
    score: float
    share: float


def top_k(scores: Array, k: int = 5) -> List[Prediction]:
    """Highest ``k`` scores, each with its percentage share of the score total."""

    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    total = float(scores.sum())
    order = np.argsort(-scores, kind="stable")[: max(0, k)]
    return [
        Prediction(
            label=class_to_label(int(i)),
            index=int(i),
            score=float(scores[i]),
            share=100.0 * float(scores[i]) / total if total else 0.0,
        )
        for i in order
    ]


class Recognizer:
    """Inference-only wrapper around a network reloaded from a snapshot."""

    def __init__(
        self,
        network: Network | None = None,
        *,
        target_size: int = 24,
        threshold: int = 50,
    ) -> None:
        self.network = network
        self.target_size = int(target_size)
        self.threshold = int(threshold)

    @classmethod
    def from_file(cls, path: str | Path, **kwargs) -> "Recognizer":
        recognizer = cls(**kwargs)
        recognizer.load(read_snapshot_file(path))
        logger.info("Network loaded from %s", path)
        return recognizer

    def load(self, snapshot: NetworkSnapshot) -> None:
        self.network = Network.from_snapshot(snapshot)

    @property
    def loaded(self) -> bool:
        return self.network is not None and bool(self.network.layers)

    def prepare(self, raw_pixels: Sequence[int] | Array, default_size: int = 28) -> Array:
        return prepare_for_inference(raw_pixels, default_size, self.target_size, self.threshold)

    def scores(self, raw_pixels: Sequence[int] | Array, default_size: int = 28) -> Array:
        network = self._require_network()
        inputs = self.prepare(raw_pixels, default_size).astype(np.float32).reshape(1, -1)
        return network.forward_pass(inputs)[0].copy()

    def predict(
        self, raw_pixels: Sequence[int] | Array, default_size: int = 28, k: int = 5
    ) -> List[Prediction]:
        return top_k(self.scores(raw_pixels, default_size), k)

    def evaluate(self, images: Array, labels: Array) -> EvaluationReport:
        """Evaluate already normalised samples (for example a collected test file)."""

        network = self._require_network()
        inputs = np.asarray(images, dtype=np.float32)
        targets = np.asarray(labels, dtype=np.float32).reshape(-1, 1)
        report = network.evaluate(inputs, targets)
        logger.info(
            "Evaluation: loss %.6f, accuracy %d from %d", report.loss, report.hits, report.total
        )
        return report

    def _require_network(self) -> Network:
        if not self.loaded:
            raise ModelNotLoadedError("Network has to be loaded first")
        assert self.network is not None
        return self.network


__all__ = [
    "ModelNotLoadedError",
    "Prediction",
    "Recognizer",
    "class_to_label",
    "top_k",
]
