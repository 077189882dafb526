"""Checkpoint policy and persistence collaborators."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..core.snapshot import NetworkSnapshot

logger = logging.getLogger(__name__)


class SnapshotPersister(Protocol):
    """Anything able to store a network snapshot (file, database, memory)."""

    def persist(self, snapshot: NetworkSnapshot) -> Any:
        """Store ``snapshot``; raise ``OSError`` on I/O failure."""


class BestModelCallback:
    """Track the best validation loss seen so far."""

    def __init__(self) -> None:
        self.best_valid_loss = float("inf")

    def on_improvement(self, loss: float) -> bool:
        """Return ``True`` and record ``loss`` when it beats the best strictly."""

        if loss < self.best_valid_loss:
            logger.info(
                "Validation loss improved from %.6f to %.6f", self.best_valid_loss, loss
            )
            self.best_valid_loss = float(loss)
            return True
        return False


class MemoryPersister:
    """Keep snapshots in memory; useful for tests and notebooks."""

    def __init__(self) -> None:
        self.snapshots: list[NetworkSnapshot] = []

    def persist(self, snapshot: NetworkSnapshot) -> NetworkSnapshot:
        self.snapshots.append(snapshot)
        return snapshot

    @property
    def last(self) -> NetworkSnapshot | None:
        return self.snapshots[-1] if self.snapshots else None


__all__ = ["BestModelCallback", "MemoryPersister", "SnapshotPersister"]
