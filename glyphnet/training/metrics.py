"""Metric helpers for the glyph trainer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

import numpy as np

from ..core.network import predicted_classes
from ..core.types import Array


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(num_classes: int | None = None) -> List[str]:
    metrics = ["accuracy"]
    if num_classes and num_classes <= 40:
        metrics.append("macro_f1")
    return metrics


def one_hot(labels: Array, num_classes: int) -> Array:
    indices = np.asarray(labels).reshape(-1).astype(int)
    return np.eye(num_classes, dtype=np.float32)[indices]


def confusion_matrix(labels: Array, predicted: Array, num_classes: int) -> Array:
    """Counts of ``(true, predicted)`` pairs; rows are true classes."""

    matrix = np.zeros((num_classes, num_classes), dtype=np.int64)
    np.add.at(
        matrix,
        (np.asarray(labels).reshape(-1).astype(int), np.asarray(predicted).astype(int)),
        1,
    )
    return matrix


def compute_metric(name: str, outputs: Array, labels: Array) -> MetricResult:
    key = name.lower()
    num_classes = outputs.shape[1]
    targets = np.asarray(labels).reshape(-1).astype(int)
    if key == "loss":
        diff = outputs - one_hot(targets, num_classes)
        value = float(np.sum(np.square(diff)) / max(1, targets.size))
    elif key == "accuracy":
        value = float(np.mean(predicted_classes(outputs) == targets)) if targets.size else 0.0
    elif key == "macro_f1":
        matrix = confusion_matrix(targets, predicted_classes(outputs), num_classes)
        tp = np.diag(matrix).astype(np.float64)
        fp = matrix.sum(axis=0) - tp
        fn = matrix.sum(axis=1) - tp
        precision = tp / (tp + fp + 1e-9)
        recall = tp / (tp + fn + 1e-9)
        f1 = 2 * precision * recall / (precision + recall + 1e-9)
        present = (tp + fn) > 0
        value = float(np.mean(f1[present])) if present.any() else 0.0
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(names: Iterable[str], outputs: Array, labels: Array) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, outputs, labels)
        results[metric.name] = metric.value
    return results


__all__ = [
    "MetricResult",
    "compute_metric",
    "compute_metrics",
    "confusion_matrix",
    "default_metrics",
    "one_hot",
]
