"""Geometric normalisation and augmentation for flat row-major glyph images."""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np

from .types import Array

BoundingBox = Tuple[int, int, int, int]


def find_bounding_box(image: Sequence[int] | Array, width: int, height: int) -> BoundingBox:
    """Return ``(min_x, min_y, max_x, max_y)`` of the non-zero pixels.

    An image without any non-zero pixel yields the full frame.
    """

    pixels = np.asarray(image).reshape(height, width)
    ys, xs = np.nonzero(pixels)
    if xs.size == 0:
        return 0, 0, width - 1, height - 1
    return int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max())


def centralize_and_resize(
    image: Sequence[int] | Array,
    width: int,
    height: int,
    target_width: int,
    target_height: int,
    bbox: BoundingBox,
) -> Array:
    """Crop ``bbox`` out of ``image`` and scale it onto a centred target canvas.

    Sampling is nearest-neighbour: every target pixel maps back through the
    inverse scale around the box centre and reads the floored source
    coordinate. Coordinates outside the source frame read as 0.
    """

    source = np.asarray(image).reshape(height, width)
    min_x, min_y, max_x, max_y = bbox
    bbox_width = float(max_x - min_x + 1)
    bbox_height = float(max_y - min_y + 1)
    bbox_center_x = min_x + bbox_width / 2.0
    bbox_center_y = min_y + bbox_height / 2.0
    target_center_x = target_width / 2.0
    target_center_y = target_height / 2.0
    scale = min(target_width / bbox_width, target_height / bbox_height)

    xs = np.arange(target_width, dtype=np.float64)
    ys = np.arange(target_height, dtype=np.float64)
    source_x = np.floor((xs - target_center_x) / scale + bbox_center_x).astype(np.int64)
    source_y = np.floor((ys - target_center_y) / scale + bbox_center_y).astype(np.int64)
    return _sample(source, source_x[np.newaxis, :], source_y[:, np.newaxis]).reshape(-1)


def process_image(
    image: Sequence[int] | Array,
    width: int,
    height: int,
    target_width: int,
    target_height: int,
) -> Array:
    """Standard normalisation: bounding-box crop, centre and resize."""

    bbox = find_bounding_box(image, width, height)
    return centralize_and_resize(image, width, height, target_width, target_height, bbox)


def binarize(image: Sequence[int] | Array, threshold: int) -> Array:
    """Map pixels strictly above ``threshold`` to 1 and everything else to 0."""

    return (np.asarray(image) > threshold).astype(np.uint8)


def rotate(image: Sequence[int] | Array, width: int, height: int, angle: float) -> Array:
    """Rotate ``image`` by ``angle`` degrees around its integer centre.

    Source coordinates are truncated toward zero; pixels that map outside the
    frame are filled with 0.
    """

    source = reshape_1d_to_2d(np.asarray(image), height, width)
    radians = angle * (math.pi / 180.0)
    cos_angle = math.cos(radians)
    sin_angle = math.sin(radians)
    center_x = width // 2
    center_y = height // 2

    dx = np.arange(width, dtype=np.float64)[np.newaxis, :] - center_x
    dy = np.arange(height, dtype=np.float64)[:, np.newaxis] - center_y
    source_x = np.trunc(cos_angle * dx - sin_angle * dy + center_x).astype(np.int64)
    source_y = np.trunc(sin_angle * dx + cos_angle * dy + center_y).astype(np.int64)
    return reshape_2d_to_1d(_sample(source, source_x, source_y))


def reshape_1d_to_2d(array: Sequence | Array, rows: int, cols: int) -> Array:
    flat = np.asarray(array)
    if flat.size != rows * cols:
        raise ValueError(
            f"Cannot reshape {flat.size} elements into a {rows}x{cols} matrix"
        )
    return flat.reshape(rows, cols)


def reshape_2d_to_1d(matrix: Array) -> Array:
    matrix = np.asarray(matrix)
    if matrix.ndim != 2:
        raise ValueError(f"Expected a 2D matrix, got {matrix.ndim} dimensions")
    return matrix.reshape(-1)


def prepare_for_inference(
    raw_pixels: Sequence[int] | Array,
    default_size: int,
    target_size: int,
    threshold: int,
) -> Array:
    """Turn a captured drawing (dark strokes on white) into a network input.

    Pixels are inverted so strokes become non-zero, then normalised and
    binarised exactly like the training samples.
    """

    pixels = np.asarray(raw_pixels, dtype=np.int64).reshape(-1)
    expected = default_size * default_size
    if pixels.size != expected:
        raise ValueError(
            f"Expected {expected} pixels for a {default_size}x{default_size} capture, "
            f"got {pixels.size}"
        )
    inverted = 255 - pixels
    processed = process_image(inverted, default_size, default_size, target_size, target_size)
    return binarize(processed, threshold)


def _sample(source: Array, xs: Array, ys: Array) -> Array:
    height, width = source.shape
    xs, ys = np.broadcast_arrays(xs, ys)
    inside = (xs >= 0) & (xs < width) & (ys >= 0) & (ys < height)
    result = np.zeros(xs.shape, dtype=source.dtype)
    result[inside] = source[ys[inside], xs[inside]]
    return result


__all__ = [
    "BoundingBox",
    "binarize",
    "centralize_and_resize",
    "find_bounding_box",
    "prepare_for_inference",
    "process_image",
    "reshape_1d_to_2d",
    "reshape_2d_to_1d",
    "rotate",
]
