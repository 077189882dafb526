"""Training loop, checkpoint policy and run assembly."""

from .callbacks import BestModelCallback, MemoryPersister, SnapshotPersister
from .pipelines import load_preset, presets, run_pipeline
from .trainer import Trainer, TrainerConfig

__all__ = [
    "BestModelCallback",
    "MemoryPersister",
    "SnapshotPersister",
    "Trainer",
    "TrainerConfig",
    "load_preset",
    "presets",
    "run_pipeline",
]
