"""Core numerical primitives for glyphnet."""

from . import activations, image, layer, network, rng, snapshot, types

__all__ = ["activations", "image", "layer", "network", "rng", "snapshot", "types"]
