"""Core typing contracts for glyphnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping

import numpy as np

Array = np.ndarray


@dataclass(frozen=True)
class Batch:
    """A single mini-batch of flattened images and class ids."""

    inputs: Array
    targets: Array


@dataclass(frozen=True)
class DataSplit:
    """Images (``n × pixels``) paired with their integer labels."""

    images: Array
    labels: Array

    def __len__(self) -> int:
        return int(self.labels.shape[0])

    def as_batch(self) -> Batch:
        """Return the whole split as float inputs and ``n × 1`` targets."""

        return Batch(
            inputs=np.asarray(self.images, dtype=np.float32),
            targets=np.asarray(self.labels, dtype=np.float32).reshape(-1, 1),
        )


@dataclass(frozen=True)
class EvaluationReport:
    """Confusion matrix and hit statistics for one evaluation set."""

    confusion: Array
    hits: int
    total: int
    loss: float | None = None

    @property
    def accuracy(self) -> float:
        return self.hits / self.total if self.total else 0.0

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "hits": int(self.hits),
            "total": int(self.total),
            "accuracy": float(self.accuracy),
            "confusion": self.confusion.astype(int).tolist(),
        }
        if self.loss is not None:
            payload["loss"] = float(self.loss)
        return payload


@dataclass(frozen=True)
class TrainingResult:
    """Summary returned by :meth:`glyphnet.training.trainer.Trainer.run`."""

    epochs: int
    history: List[Mapping[str, float]]
    best_valid_loss: float
    checkpoints: int
    test: EvaluationReport | None = None


@dataclass(frozen=True)
class RunResult:
    """Artifacts written by :func:`glyphnet.training.pipelines.run_pipeline`."""

    epochs: int
    metrics_path: str
    manifest_path: str
    model_path: str = ""
    test_accuracy: float = 0.0
    test_loss: float = 0.0
    extra: Dict[str, object] = field(default_factory=dict)
