"""Labelled glyph samples: loading, normalisation, splitting and augmentation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Sequence, Tuple

import numpy as np

from ..core.image import binarize, process_image, rotate
from ..core.rng import RandomSource
from ..core.types import Array, DataSplit
from .csv_source import RecordReader, read_labeled_csv

logger = logging.getLogger(__name__)

# Angle ranges (degrees, upper bound exclusive) for the two rotated copies of
# every minority sample.
AUGMENT_ANGLE_RANGES: Tuple[Tuple[int, int], Tuple[int, int]] = ((-15, 5), (5, 15))


class GlyphDataset:
    """Normalised, binarised glyph samples owned by one training run.

    Raw samples are ``input_size × input_size`` images; every stored sample is
    cropped to its bounding box, centred on a ``target_size × target_size``
    canvas and binarised with ``threshold``.
    """

    def __init__(
        self,
        rng: RandomSource,
        *,
        input_size: int = 28,
        target_size: int = 24,
        threshold: int = 50,
        reader: RecordReader = read_labeled_csv,
    ) -> None:
        self.rng = rng
        self.input_size = int(input_size)
        self.target_size = int(target_size)
        self.threshold = int(threshold)
        self.reader = reader
        self.images = np.zeros((0, self.n_pixels), dtype=np.uint8)
        self.labels = np.zeros(0, dtype=np.int64)

    @property
    def n_pixels(self) -> int:
        return self.target_size * self.target_size

    def __len__(self) -> int:
        return int(self.labels.shape[0])

    # ------------------------------------------------------------------
    # Loading

    def load(
        self,
        paths: Sequence[str | Path],
        label_offsets: Sequence[int],
        *,
        size_limit: int | None = None,
    ) -> None:
        """Read, normalise and append every source to the stored samples."""

        split = self.read_split(paths, label_offsets, size_limit=size_limit)
        self._append(split.images, split.labels)
        for label, count in self.class_counts().items():
            logger.info("Class %d: %d samples", label, count)

    def read_split(
        self,
        paths: Sequence[str | Path],
        label_offsets: Sequence[int],
        *,
        size_limit: int | None = None,
    ) -> DataSplit:
        """Read and normalise sources without storing them."""

        if len(paths) != len(label_offsets):
            raise ValueError(
                f"Got {len(paths)} sources but {len(label_offsets)} label offsets; "
                "the counts must match"
            )
        images: list[Array] = []
        labels: list[Array] = []
        n_pixels = self.input_size * self.input_size
        for path, offset in zip(paths, label_offsets):
            raw_images, raw_labels = self.reader(
                path, int(offset), size_limit, n_pixels=n_pixels
            )
            images.append(self.normalize_many(raw_images))
            labels.append(np.asarray(raw_labels, dtype=np.int64))
        if not images:
            return DataSplit(
                images=np.zeros((0, self.n_pixels), dtype=np.uint8),
                labels=np.zeros(0, dtype=np.int64),
            )
        return DataSplit(images=np.concatenate(images), labels=np.concatenate(labels))

    def load_records(
        self, records: Iterable[Tuple[int, Sequence[int]]], label_offset: int = 0
    ) -> None:
        """Normalise in-memory ``(label, pixels)`` records and append them."""

        records = list(records)
        if not records:
            return
        labels = np.asarray([label for label, _ in records], dtype=np.int64) + label_offset
        raw = np.asarray([np.asarray(pixels) for _, pixels in records])
        self._append(self.normalize_many(raw), labels)

    def normalize(self, pixels: Sequence[int] | Array) -> Array:
        size = self.input_size
        processed = process_image(pixels, size, size, self.target_size, self.target_size)
        return binarize(processed, self.threshold)

    def normalize_many(self, raw_images: Array) -> Array:
        raw_images = np.asarray(raw_images)
        expected = self.input_size * self.input_size
        if raw_images.size == 0:
            return np.zeros((0, self.n_pixels), dtype=np.uint8)
        if raw_images.ndim != 2 or raw_images.shape[1] != expected:
            raise ValueError(
                f"Expected samples with {expected} pixels "
                f"({self.input_size}x{self.input_size}), got shape {raw_images.shape}"
            )
        return np.stack([self.normalize(row) for row in raw_images])

    def class_counts(self) -> Dict[int, int]:
        values, counts = np.unique(self.labels, return_counts=True)
        return {int(v): int(c) for v, c in zip(values, counts)}

    # ------------------------------------------------------------------
    # Splitting and augmentation

    def split(
        self, train_ratio: float, validation_ratio: float
    ) -> Tuple[DataSplit, DataSplit, DataSplit]:
        """Random contiguous partition into train, validation and test splits."""

        if train_ratio < 0 or validation_ratio < 0:
            raise ValueError("Split ratios must be non-negative")
        if train_ratio + validation_ratio > 1.0:
            raise ValueError(
                "The sum of train_ratio and validation_ratio must be less than or equal to 1"
            )
        n = len(self)
        order = self.rng.permutation(n)
        train_size = int(n * train_ratio)
        validation_size = int(n * validation_ratio)
        bounds = (0, train_size, train_size + validation_size, n)
        splits = []
        for start, stop in zip(bounds[:-1], bounds[1:]):
            idx = order[start:stop]
            splits.append(DataSplit(images=self.images[idx], labels=self.labels[idx]))
        train, validation, test = splits
        logger.info(
            "Split %d samples into train=%d validation=%d test=%d",
            n,
            len(train),
            len(validation),
            len(test),
        )
        return train, validation, test

    def augment(
        self, images: Array, labels: Array, minority_class_ids: Iterable[int]
    ) -> Tuple[Array, Array]:
        """Append two rotated copies of every sample whose label is a minority class."""

        minority = {int(c) for c in minority_class_ids}
        images = np.asarray(images)
        labels = np.asarray(labels)
        size = self.target_size
        extra_images: list[Array] = []
        extra_labels: list[int] = []
        for image, label in zip(images, labels):
            if int(label) not in minority:
                continue
            for low, high in AUGMENT_ANGLE_RANGES:
                angle = self.rng.integers(low, high)
                extra_images.append(rotate(image, size, size, angle))
                extra_labels.append(int(label))
        if not extra_images:
            return images.copy(), labels.copy()
        logger.debug("Augmented %d minority samples", len(extra_labels) // 2)
        return (
            np.concatenate([images, np.stack(extra_images).astype(images.dtype)]),
            np.concatenate([labels, np.asarray(extra_labels, dtype=labels.dtype)]),
        )

    def augment_split(self, split: DataSplit, minority_class_ids: Iterable[int]) -> DataSplit:
        images, labels = self.augment(split.images, split.labels, minority_class_ids)
        return DataSplit(images=images, labels=labels)

    def shuffle(self, images: Array, labels: Array) -> None:
        """In-place Fisher–Yates shuffle keeping images and labels paired."""

        n = images.shape[0]
        if labels.shape[0] != n:
            raise ValueError(f"Got {n} images but {labels.shape[0]} labels")
        for i in range(n - 1):
            j = self.rng.integers(i, n)
            if j != i:
                images[[i, j]] = images[[j, i]]
                labels[[i, j]] = labels[[j, i]]

    def _append(self, images: Array, labels: Array) -> None:
        if images.shape[0] != labels.shape[0]:
            raise ValueError(f"Got {images.shape[0]} images but {labels.shape[0]} labels")
        self.images = np.concatenate([self.images, images.astype(np.uint8)])
        self.labels = np.concatenate([self.labels, labels.astype(np.int64)])


__all__ = ["AUGMENT_ANGLE_RANGES", "GlyphDataset"]
