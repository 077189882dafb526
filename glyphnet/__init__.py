"""glyphnet public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.network import EmptyNetworkError, Network
from .core.rng import RandomSource
from .core.snapshot import JsonSnapshotWriter, NetworkSnapshot
from .data.dataset import GlyphDataset
from .inference import ModelNotLoadedError, Recognizer, class_to_label
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer, TrainerConfig

__all__ = [
    "EmptyNetworkError",
    "GlyphDataset",
    "JsonSnapshotWriter",
    "ModelNotLoadedError",
    "Network",
    "NetworkSnapshot",
    "RandomSource",
    "Recognizer",
    "Trainer",
    "TrainerConfig",
    "activations",
    "class_to_label",
    "load_preset",
    "presets",
    "run_pipeline",
    "types",
]
