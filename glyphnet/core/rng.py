"""Seeded random stream shared by initialisation, splitting and augmentation."""

from __future__ import annotations

import numpy as np

from .types import Array

DEFAULT_SEED = 123


class RandomSource:
    """Sequential pseudo-random stream with an explicit seed.

    Every consumer (layer initialisation, dataset split, augmentation angles,
    shuffling) draws from the same stream, so calls must happen in a fixed
    order on a single thread for runs to be reproducible.
    """

    def __init__(self, seed: int = DEFAULT_SEED) -> None:
        self.seed = int(seed)
        self._generator = np.random.default_rng(self.seed)

    def uniform(self, size: int | tuple[int, ...] | None = None) -> float | Array:
        """Uniform floats in ``[0, 1)``."""

        if size is None:
            return float(self._generator.random())
        return self._generator.random(size)

    def integers(
        self, low: int, high: int, size: int | tuple[int, ...] | None = None
    ) -> int | Array:
        """Uniform integers in ``[low, high)``."""

        if size is None:
            return int(self._generator.integers(low, high))
        return self._generator.integers(low, high, size=size)

    def normal(self, size: int | tuple[int, ...] | None = None) -> float | Array:
        """Standard normal samples using the Box–Muller transform."""

        count = 1 if size is None else int(np.prod(size))
        draws = np.asarray(self.uniform(2 * count), dtype=np.float64).reshape(count, 2)
        # shift away from zero so the logarithm stays finite
        x1 = 1.0 - draws[:, 0]
        x2 = 1.0 - draws[:, 1]
        samples = np.sqrt(-2.0 * np.log(x1)) * np.cos(2.0 * np.pi * x2)
        if size is None:
            return float(samples[0])
        return samples.reshape(size)

    def permutation(self, n: int) -> Array:
        """Permutation of ``range(n)`` ordered by one random key per index."""

        keys = np.asarray(self.integers(0, 2**31 - 1, size=n))
        return np.argsort(keys, kind="stable")


__all__ = ["DEFAULT_SEED", "RandomSource"]
