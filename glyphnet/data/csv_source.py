"""Lenient reader for ``label,p0,...,pN-1`` glyph CSV files."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Callable, Iterator, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

RecordReader = Callable[..., Tuple[np.ndarray, np.ndarray]]

# Lines parsed per pandas chunk; bounds peak memory on large sources.
CHUNK_ROWS = 10_000


def _integral(frame: pd.DataFrame) -> pd.DataFrame:
    numeric = frame.apply(pd.to_numeric, errors="coerce")
    return numeric.where(np.isfinite(numeric) & (numeric == np.floor(numeric)))


def _read_rows(
    path: Path, n_fields: int | None = None, chunk_rows: int | None = None
) -> Iterator[pd.DataFrame]:
    """Yield integer-valued field frames for successive chunks of ``path``.

    Every line is split on its own, so a malformed line never changes how the
    others are read. With ``n_fields`` each chunk has exactly that many
    columns: short lines are padded with NaN and longer lines are dropped.
    Without it a chunk is as wide as its widest line.
    """

    try:
        chunks = pd.read_csv(
            path,
            header=None,
            names=["line"],
            sep="\x1f",
            dtype=str,
            quoting=csv.QUOTE_NONE,
            skip_blank_lines=True,
            chunksize=chunk_rows or CHUNK_ROWS,
        )
    except pd.errors.EmptyDataError:
        return
    with chunks:
        for chunk in chunks:
            if chunk.empty:
                continue
            fields = chunk["line"].str.split(",", expand=True)
            if n_fields is not None:
                if fields.shape[1] > n_fields:
                    too_long = fields.iloc[:, n_fields:].notna().any(axis=1)
                    if too_long.any():
                        logger.debug(
                            "Dropped %d rows wider than %d fields in %s",
                            int(too_long.sum()),
                            n_fields,
                            path,
                        )
                    fields = fields[~too_long]
                fields = fields.reindex(columns=range(n_fields))
            yield _integral(fields)


def read_labeled_csv(
    path: str | Path,
    label_offset: int = 0,
    size_limit: int | None = None,
    *,
    n_pixels: int | None = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(images, labels)`` read from ``path``.

    Rows whose label is not an integer (for example a header line) are
    skipped. Pixel fields that fail to parse read as 0, as do trailing fields
    missing from short rows. When ``n_pixels`` is given every image has that
    many pixels and rows carrying more fields are dropped; otherwise the
    widest row sets the width. Reading stops once ``size_limit`` labelled rows
    are collected. ``label_offset`` is added to every label so files with
    separate label spaces can be merged.
    """

    path = Path(path)
    n_fields = None if n_pixels is None else int(n_pixels) + 1
    limit = None if size_limit is None else max(int(size_limit), 0)
    kept: list[pd.DataFrame] = []
    count = 0
    skipped = 0
    for values in _read_rows(path, n_fields):
        valid = values.iloc[:, 0].notna()
        skipped += int((~valid).sum())
        values = values[valid]
        if limit is not None:
            values = values.iloc[: limit - count]
        kept.append(values)
        count += len(values)
        if limit is not None and count >= limit:
            break

    if skipped:
        logger.debug("Skipped %d rows without an integer label in %s", skipped, path)
    frame = pd.concat(kept) if kept else pd.DataFrame()
    if frame.empty or frame.shape[1] < 2:
        logger.warning("No labelled rows found in %s", path)
        width = 0 if n_pixels is None else int(n_pixels)
        return np.zeros((0, width), dtype=np.int32), np.zeros(0, dtype=np.int64)

    labels = frame.iloc[:, 0].to_numpy(dtype=np.int64) + int(label_offset)
    images = frame.iloc[:, 1:].fillna(0).to_numpy(dtype=np.int32)
    logger.info("Read %d samples from %s", labels.shape[0], path)
    return images, labels


def read_pixel_rows(path: str | Path, n_pixels: int | None = None) -> np.ndarray:
    """Return unlabelled pixel rows (``p0,...,pN-1``) from ``path``."""

    frames = list(_read_rows(Path(path), n_pixels))
    if not frames:
        return np.zeros((0, 0 if n_pixels is None else int(n_pixels)), dtype=np.int32)
    return pd.concat(frames).fillna(0).to_numpy(dtype=np.int32)


__all__ = ["CHUNK_ROWS", "RecordReader", "read_labeled_csv", "read_pixel_rows"]
