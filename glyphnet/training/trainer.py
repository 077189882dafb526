"""Epoch loop with mini-batching, validation and best-model checkpointing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

from ..core.network import Network
from ..core.types import Array, Batch, DataSplit, EvaluationReport, TrainingResult
from ..data.dataset import GlyphDataset
from .callbacks import BestModelCallback, SnapshotPersister
from .metrics import compute_metrics

logger = logging.getLogger(__name__)


@dataclass
class TrainerConfig:
    """Hyper-parameters of one training run."""

    epochs: int = 5
    batch_size: int = 32
    learning_rate: float = 0.001
    minority_class_ids: Sequence[int] = field(default_factory=list)
    # checkpoints are only considered once the epoch index exceeds this value
    checkpoint_warmup_epochs: int = 15
    metric_names: Sequence[str] = ("accuracy",)

    def __post_init__(self) -> None:
        if self.epochs < 0:
            raise ValueError(f"epochs must be non-negative, got {self.epochs}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")


class Trainer:
    """Train a :class:`Network` on splits produced by a :class:`GlyphDataset`."""

    def __init__(
        self,
        network: Network,
        dataset: GlyphDataset,
        config: TrainerConfig,
        *,
        checkpoint: BestModelCallback | None = None,
        persister: SnapshotPersister | None = None,
        callbacks: Sequence[object] | None = None,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
    ) -> None:
        self.network = network
        self.dataset = dataset
        self.config = config
        self.checkpoint = checkpoint or BestModelCallback()
        self.persister = persister
        self.callbacks = list(callbacks or [])
        self.split_loggers = dict(split_loggers or {})
        self.checkpoints_saved = 0
        self.network.learning_rate = float(config.learning_rate)

    def run(self, train: DataSplit, validation: DataSplit, test: DataSplit) -> TrainingResult:
        cfg = self.config
        minority = list(cfg.minority_class_ids)
        train_images, train_labels = self.dataset.augment(train.images, train.labels, minority)
        validation = self.dataset.augment_split(validation, minority)
        val_batch = validation.as_batch()

        self.network.forward_pass(val_batch.inputs)
        initial_loss = self.network.compute_loss(val_batch.targets)
        logger.info("Initial validation loss: %.6f", initial_loss)

        history: list[Mapping[str, float]] = []
        for epoch in range(cfg.epochs):
            self.dataset.shuffle(train_images, train_labels)
            train_loss = self._run_epoch(train_images, train_labels)
            train_metrics = {"loss": train_loss}
            self._emit_epoch("train", epoch, train_metrics)

            outputs = self.network.forward_pass(val_batch.inputs)
            val_loss = self.network.compute_loss(val_batch.targets)
            val_metrics = {"loss": val_loss}
            if len(validation):
                val_metrics.update(compute_metrics(cfg.metric_names, outputs, validation.labels))
            self._emit_epoch("val", epoch, val_metrics)
            logger.info(
                "Epoch %d: train loss %.6f, validation loss %.6f", epoch, train_loss, val_loss
            )
            history.append({"epoch": float(epoch), "train_loss": train_loss, "val_loss": val_loss})

            if epoch > cfg.checkpoint_warmup_epochs and self.checkpoint.on_improvement(val_loss):
                self._save_checkpoint()

        report = self.evaluate(test)
        test_metrics = {"loss": report.loss or 0.0, "accuracy": report.accuracy}
        self._emit_epoch("test", cfg.epochs, test_metrics)
        return TrainingResult(
            epochs=cfg.epochs,
            history=history,
            best_valid_loss=self.checkpoint.best_valid_loss,
            checkpoints=self.checkpoints_saved,
            test=report,
        )

    def evaluate(self, split: DataSplit) -> EvaluationReport:
        """Loss, confusion matrix and accuracy on ``split``."""

        batch = split.as_batch()
        report = self.network.evaluate(batch.inputs, batch.targets)
        logger.info("Testing results: loss %.6f", report.loss)
        for row in report.confusion:
            logger.debug(",".join(str(int(v)) for v in row))
        logger.info("Total accuracy %d from %d", report.hits, report.total)
        return report

    # ------------------------------------------------------------------
    # Internal helpers

    def _batches(self, images: Array, labels: Array):
        size = self.config.batch_size
        for start in range(0, images.shape[0], size):
            stop = start + size
            yield Batch(
                inputs=images[start:stop].astype(np.float32),
                targets=labels[start:stop].astype(np.float32).reshape(-1, 1),
            )

    def _run_epoch(self, images: Array, labels: Array) -> float:
        total = 0.0
        seen = 0
        for batch in self._batches(images, labels):
            rows = batch.inputs.shape[0]
            self.network.forward_pass(batch.inputs)
            total += self.network.compute_loss(batch.targets) * rows
            seen += rows
            self.network.backward_pass(batch.inputs, batch.targets)
        return total / seen if seen else 0.0

    def _save_checkpoint(self) -> bool:
        if self.persister is None:
            return False
        try:
            self.persister.persist(self.network.export_snapshot())
        except OSError:
            logger.exception("Saving the model checkpoint failed; training continues")
            return False
        self.checkpoints_saved += 1
        return True

    def _emit_epoch(self, split: str, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
        for callback in self.split_loggers.get(split, []):
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


__all__ = ["Trainer", "TrainerConfig"]
